"""Response cache for generative-AI brand-presence analyses."""

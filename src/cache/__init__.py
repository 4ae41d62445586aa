"""Response cache engine, stores and fingerprinting."""

"""Core engine: resolver, content cache, fingerprinted layers, orchestration."""

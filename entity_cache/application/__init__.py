"""Application layer: ports and the cache-aside services."""

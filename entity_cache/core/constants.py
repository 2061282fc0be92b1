"""Core constants: cache key structure and cache lifetime defaults.

Single source of truth for cache key structure (DRY). Used by
infrastructure cache key builders, the primary cache and relation index.
"""

# Delimiter for composite keys (type:field:value)
CACHE_KEY_SEP = ":"

# Escape tokens for key values. Type and field names may not contain
# CACHE_KEY_SEP or CACHE_KEY_ESCAPE; values are escaped instead.
CACHE_KEY_ESCAPE = "%"
CACHE_KEY_ESCAPED_ESCAPE = "%25"
CACHE_KEY_ESCAPED_SEP = "%3A"

# Rendering of a None value. No escaped string can produce it.
CACHE_KEY_NULL_TOKEN = "%00"

# Default TTL for primary entries and relation indexes (24 hours)
DEFAULT_CACHE_TTL = 86400

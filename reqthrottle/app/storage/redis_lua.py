"""Redis Lua scripts for rate limit counters.

These scripts provide atomic operations so concurrent instances never race
between incrementing a counter and setting its window expiry.
"""

# Lua script for atomic increment with conditional expiry
# KEYS[1]: counter key
# ARGV[1]: window length in milliseconds
# The expiry is only set when the increment created the key (or the key somehow
# lost its TTL), so later increments within the window never extend it
INCREMENT_SCRIPT = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 or redis.call('PTTL', KEYS[1]) == -1 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
    end
    return count
"""

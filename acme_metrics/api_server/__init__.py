"""
API server package: HTTP interface over the supply cache, timestamp resolver
and staking registry. Handles cache-state headers and maps service errors to
coarse HTTP errors.
"""

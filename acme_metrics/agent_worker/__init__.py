"""
Background workers. The cache warmer keeps the supply and identity map caches
fresh so request handlers rarely pay for a full registry scan.
"""

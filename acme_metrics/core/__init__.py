"""
Core utilities: error taxonomy, fixed-point units, and the TTL cache
shared by the staking registry and supply services.
"""

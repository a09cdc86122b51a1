"""
ACME Metrics: supply and transaction timestamp service for the Accumulate network.

Aggregates and caches data pulled from the network's query API to answer two
questions: the circulating supply of ACME (net of tokens locked in staking),
and when a given transaction was recorded. Modular layout with clear separation
between the ledger client, staking resolution, supply and timestamp caches,
persistent store, and API server.
"""

__version__ = "0.1.0"

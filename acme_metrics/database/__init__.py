"""
Persistent timestamp store: one record per transaction id, never expires.

SQLAlchemy-backed: DATABASE_URL for PostgreSQL or any SQLAlchemy URL,
otherwise a local SQLite file.
"""

from acme_metrics.database.models import Base, TimestampEntry
from acme_metrics.database.store import TimestampStore, get_timestamp_store, reset_store_cache

__all__ = [
    "Base",
    "TimestampEntry",
    "TimestampStore",
    "get_timestamp_store",
    "reset_store_cache",
]

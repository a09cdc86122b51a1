"""
SQLAlchemy models for the timestamp store.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TimestampEntry(Base):
    """
    Cached timestamp for one transaction. record_json holds the full record
    including internal fields; has_block_time mirrors _hasBlockTime so the
    no-downgrade rule can be enforced in the UPDATE itself.
    """

    __tablename__ = "transaction_timestamps"

    txid = Column(String(128), primary_key=True)
    record_json = Column(Text, nullable=False)
    has_block_time = Column(Boolean, nullable=False, default=False, index=True)
    updated_at = Column(Integer, nullable=False)  # Unix seconds

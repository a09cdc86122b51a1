"""
Timestamp store.

get() returns the stored TimestampRecord or None. put() writes a record unless
the stored one is already block-finalized, and returns whatever is stored
afterwards, so concurrent writers can never downgrade a finalized record.
"""

from __future__ import annotations

import json
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from acme_metrics.core.exceptions import DecodeError
from acme_metrics.database.models import Base, TimestampEntry
from acme_metrics.logging import get_logger
from acme_metrics.timestamps.models import TimestampRecord

logger = get_logger(__name__)

PUT_ATTEMPTS = 3


def _redact(url: str) -> str:
    return url.split("?")[0].split("@")[-1].split("//")[-1]


class TimestampStore:
    """SQLAlchemy-backed key-value store: txid -> TimestampRecord."""

    def __init__(self, url: str) -> None:
        self._url = url
        connect_args = {}
        parsed = make_url(url)
        if parsed.drivername.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if parsed.database and parsed.database != ":memory:":
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    @property
    def url(self) -> str:
        return self._url

    def ensure_schema(self) -> None:
        """Create tables if they do not exist. Safe to call on every startup."""
        Base.metadata.create_all(bind=self._engine)
        logger.info("timestamp_store_ready", url=_redact(self._url))

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _decode(txid: str, record_json: str) -> TimestampRecord:
        try:
            raw = json.loads(record_json)
        except ValueError as e:
            raise DecodeError(f"stored record for {txid} is not JSON") from e
        return TimestampRecord.from_storage_dict(raw)

    def get(self, txid: str) -> TimestampRecord | None:
        """Stored record, or None. Raises DecodeError on a corrupt row."""
        with self._session_scope() as session:
            row = session.get(TimestampEntry, txid)
            if row is None:
                return None
            return self._decode(txid, row.record_json)

    def put(self, txid: str, record: TimestampRecord) -> TimestampRecord:
        """Write record unless a finalized one is stored; return the stored record."""
        record_json = json.dumps(record.to_storage_dict(), separators=(",", ":"))
        for attempt in range(PUT_ATTEMPTS):
            now = int(time.time())
            try:
                with self._session_scope() as session:
                    result = session.execute(
                        update(TimestampEntry)
                        .where(TimestampEntry.txid == txid, TimestampEntry.has_block_time.is_(False))
                        .values(
                            record_json=record_json,
                            has_block_time=record.has_block_time,
                            updated_at=now,
                        )
                    )
                    if result.rowcount:
                        return record
                    existing = session.execute(
                        select(TimestampEntry.record_json).where(TimestampEntry.txid == txid)
                    ).scalar_one_or_none()
                    if existing is not None:
                        # Finalized by another writer; keep it.
                        logger.debug("timestamp_store_keep_finalized", txid=txid)
                        return self._decode(txid, existing)
                    session.add(
                        TimestampEntry(
                            txid=txid,
                            record_json=record_json,
                            has_block_time=record.has_block_time,
                            updated_at=now,
                        )
                    )
                return record
            except IntegrityError:
                # Concurrent insert of the same txid; retry as an update.
                logger.debug("timestamp_store_insert_race", txid=txid, attempt=attempt + 1)
        raise RuntimeError(f"could not store timestamp record for {txid}")

    def count(self) -> int:
        with self._session_scope() as session:
            return session.execute(select(func.count()).select_from(TimestampEntry)).scalar_one()

    def dispose(self) -> None:
        self._engine.dispose()


_stores: dict[str, TimestampStore] = {}
_stores_lock = threading.Lock()


def get_timestamp_store(url: str | None = None) -> TimestampStore:
    """
    Return the process-wide store for url (default: settings.database_url),
    creating it and its schema on first use.
    """
    if url is None:
        from acme_metrics.config import get_settings

        url = get_settings().database_url
    with _stores_lock:
        store = _stores.get(url)
        if store is None:
            store = TimestampStore(url)
            store.ensure_schema()
            _stores[url] = store
        return store


def reset_store_cache() -> None:
    """Dispose cached stores. For tests only."""
    with _stores_lock:
        for store in _stores.values():
            store.dispose()
        _stores.clear()

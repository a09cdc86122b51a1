"""
Major block numbers.

Major blocks close every 12 hours. The network's major block numbering was
reset on 2025-07-14 00:00 UTC; post-reset block n is absolute block
PRE_RESET_BLOCKS + n. Times before the reset report 0.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

RESET_INSTANT = datetime(2025, 7, 14, 0, 0, 0, tzinfo=timezone.utc)
MAJOR_BLOCK_INTERVAL = timedelta(hours=12)
PRE_RESET_BLOCKS = 1864


def calculate_major_block(t: datetime) -> int:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    if t < RESET_INSTANT:
        return 0
    periods = (t - RESET_INSTANT) // MAJOR_BLOCK_INTERVAL
    return PRE_RESET_BLOCKS + 1 + periods

"""
Fixed-point token amounts.

ACME amounts travel as decimal strings in the smallest unit (precision 8).
Display values are whole tokens, truncated.
"""

from __future__ import annotations

from typing import Any

from acme_metrics.core.exceptions import DecodeError

ACME_PRECISION = 8
ACME_SCALE = 10**ACME_PRECISION


def parse_amount(raw: Any, field: str = "amount") -> int:
    """Parse a smallest-unit amount (decimal string or int). Raises DecodeError."""
    if isinstance(raw, bool):
        raise DecodeError(f"invalid {field}: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            return int(raw.strip(), 10)
        except ValueError:
            pass
    raise DecodeError(f"invalid {field}: {raw!r}")


def to_whole_tokens(raw: int) -> int:
    """Smallest units -> whole tokens (floor division by 10^8)."""
    return raw // ACME_SCALE

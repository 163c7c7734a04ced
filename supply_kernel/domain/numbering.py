"""
Document numbering (``supply_kernel.domain.numbering``).

Formats human-readable document numbers ``PREFIX-YYYYMM-NNNNNN``: prefix,
year and zero-padded month of issue, and a suffix taken from the low digits
of the issue time in epoch milliseconds.  Formatting alone does not make a
number unique; ``NumberService`` reserves each candidate and walks the
suffix forward on collision.

Pure functions, ZERO I/O.
"""

from __future__ import annotations

from datetime import datetime


def format_number(prefix: str, issued_at: datetime, suffix: int, digits: int = 6) -> str:
    """Render a document number.

    The suffix wraps modulo ``10**digits`` so it always has exactly
    ``digits`` characters.
    """
    if not prefix:
        raise ValueError("Document number prefix must be non-empty")
    if digits < 1:
        raise ValueError("Suffix must have at least one digit")
    wrapped = suffix % (10 ** digits)
    return f"{prefix}-{issued_at.year:04d}{issued_at.month:02d}-{wrapped:0{digits}d}"


def candidate_numbers(
    prefix: str,
    issued_at: datetime,
    epoch_millis: int,
    attempts: int,
    digits: int = 6,
) -> list[str]:
    """The ordered candidates tried for one allocation: base suffix, then +1, +2, ..."""
    return [
        format_number(prefix, issued_at, epoch_millis + offset, digits)
        for offset in range(attempts)
    ]

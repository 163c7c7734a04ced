"""Append-only notes log shared by requests, orders and shipments."""

from __future__ import annotations

from supply_kernel.exceptions import ValidationError

NOTE_SEPARATOR = "\n\n"


def require_reason(reason: str | None, action: str) -> str:
    """Return the stripped reason, or raise ValidationError if blank."""
    if reason is None or not reason.strip():
        raise ValidationError(f"A reason is required to {action}", field="reason")
    return reason.strip()


def append_note(
    existing: str | None,
    action: str,
    text: str,
    separator: str = NOTE_SEPARATOR,
) -> str:
    """Append ``ACTION: text`` after any previous entries; never overwrite."""
    entry = f"{action.upper()}: {text}"
    if existing:
        return f"{existing}{separator}{entry}"
    return entry

"""
Derived stock figures for an item.

Totals and expirations are never stored; callers recompute them from the
item's current batches on every read.
"""
from datetime import datetime, timezone
from typing import Iterable, Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _batches_of(item) -> Iterable:
    return getattr(item, "batches", None) or []


def total_quantity(item) -> int:
    return sum(int(b.quantity or 0) for b in _batches_of(item))


def expiration_dates(item) -> list:
    return [as_utc(b.expiration_date) for b in _batches_of(item) if b.expiration_date is not None]


def earliest_expiration(item) -> Optional[datetime]:
    dates = expiration_dates(item)
    return min(dates) if dates else None


def restock_needed(item) -> int:
    return max(0, int(item.target_quantity or 0) - total_quantity(item))

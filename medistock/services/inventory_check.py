"""
Stock counts.

A submitted check updates every counted batch whose quantity changed, drops
batches counted at zero, and records one immutable InventoryCheck listing
the changes. Item updates and the check record commit together.
"""
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import InventoryCheck, Item
from ..schemas.checks import InventoryCheckSubmit
from .aggregation import as_utc
from .inventory import Actor, items_query, stamp_updated


log = structlog.get_logger(__name__)


class InventoryCheckError(ValueError):
    pass


def _start_of_day(now: datetime) -> datetime:
    return as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


def _expiration_label(value: Optional[datetime]) -> str:
    return as_utc(value).strftime("%Y-%m-%d") if value else "N/A"


def submit_inventory_check(
    db: Session,
    submission: InventoryCheckSubmit,
    actor: Actor,
    now: Optional[datetime] = None,
) -> InventoryCheck:
    now = as_utc(now) if now else datetime.now(timezone.utc)
    today = _start_of_day(now)

    reviewed = [entry for entry in submission.items if entry.reviewed]
    items = {}
    if reviewed:
        rows = items_query(db).filter(Item.id.in_([e.item_id for e in reviewed])).all()
        items = {i.id: i for i in rows}

    changes: List[dict] = []
    for entry in reviewed:
        item = items.get(entry.item_id)
        if item is None:
            raise InventoryCheckError(f"Item {entry.item_id} not found.")
        batches = {b.id: b for b in item.batches}

        item_changed = False
        for counted in entry.batches:
            batch = batches.get(counted.batch_id)
            if batch is None:
                raise InventoryCheckError(f"Batch {counted.batch_id} does not belong to {item.name}.")
            if counted.actual_quantity == batch.quantity:
                continue
            expiration = as_utc(batch.expiration_date)
            changes.append({
                "item_name": item.name,
                "batch_expiration": _expiration_label(expiration),
                "quantity_before": batch.quantity,
                "quantity_after": counted.actual_quantity,
                "is_expired": bool(expiration and expiration < today),
            })
            batch.quantity = counted.actual_quantity
            item_changed = True

        if item_changed:
            for batch in [b for b in item.batches if b.quantity <= 0]:
                item.batches.remove(batch)
            stamp_updated(item, actor)

    check = InventoryCheck(
        checked_at=now,
        checked_by_id=actor[0],
        checked_by_name=actor[1],
        items=changes,
    )
    db.add(check)
    try:
        db.commit()
    except Exception:
        db.rollback()
        log.error("inventory_check_failed", checker=actor[0])
        raise
    db.refresh(check)
    log.info("inventory_check_recorded", check_id=str(check.id), changes=len(changes), reviewed=len(reviewed))
    return check

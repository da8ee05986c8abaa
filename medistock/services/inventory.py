"""
Item reads and writes shared by the inventory, vehicle and dashboard routes.
"""
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from ..models.models import Batch, Case, Item, ModuleBag, Vehicle
from ..schemas.inventory import BatchCreate, date_to_utc
from .aggregation import as_utc, earliest_expiration, total_quantity
from .status import classify, is_expiring_soon
from .reports import is_understocked


Actor = Tuple[str, str]


def stamp_created(row, actor: Actor) -> None:
    row.created_at = datetime.now(timezone.utc)
    row.created_by_id, row.created_by_name = actor


def stamp_updated(row, actor: Actor) -> None:
    row.updated_at = datetime.now(timezone.utc)
    row.updated_by_id, row.updated_by_name = actor


def items_query(db: Session):
    return db.query(Item).options(selectinload(Item.batches))


def load_items(db: Session, module_ids: Optional[Iterable[uuid.UUID]] = None) -> List[Item]:
    query = items_query(db)
    if module_ids is not None:
        module_ids = list(module_ids)
        if not module_ids:
            return []
        query = query.filter(Item.module_id.in_(module_ids))
    return query.order_by(Item.name.asc()).all()


def item_view(item, now: datetime) -> dict:
    """Item plus its derived figures; recomputed on every call."""
    return {
        "id": item.id,
        "name": item.name,
        "barcode": item.barcode,
        "target_quantity": item.target_quantity,
        "module_id": item.module_id,
        "notes": item.notes,
        "batches": [
            {
                "id": b.id,
                "quantity": b.quantity,
                "expiration_date": as_utc(b.expiration_date),
                "delivery_date": as_utc(b.delivery_date),
            }
            for b in item.batches
        ],
        "quantity": total_quantity(item),
        "earliest_expiration": earliest_expiration(item),
        "statuses": [{"key": s.key.value, "variant": s.variant} for s in classify(item, now)],
        "created_at": getattr(item, "created_at", None),
        "created_by_name": getattr(item, "created_by_name", None),
        "updated_at": getattr(item, "updated_at", None),
        "updated_by_name": getattr(item, "updated_by_name", None),
    }


def new_batch(data: BatchCreate) -> Batch:
    return Batch(
        quantity=data.quantity,
        expiration_date=date_to_utc(data.expiration_date),
        delivery_date=date_to_utc(data.delivery_date),
        created_at=datetime.now(timezone.utc),
    )


def add_stock(db: Session, item: Item, data: BatchCreate, actor: Actor) -> Item:
    item.batches.append(new_batch(data))
    stamp_updated(item, actor)
    db.commit()
    db.refresh(item)
    return item


def lookup_items(db: Session, q: str) -> List[Item]:
    """Barcodes are longer than 5 characters; shorter queries match the exact name."""
    q = (q or "").strip()
    if not q:
        return []
    column = Item.barcode if len(q) > 5 else Item.name
    return items_query(db).filter(column == q).all()


def dashboard_stats(db: Session, now: datetime) -> dict:
    vehicles = db.query(Vehicle).order_by(Vehicle.name.asc()).all()
    cases = db.query(Case).all()
    modules = db.query(ModuleBag).all()
    items = load_items(db)

    vehicle_of_case = {c.id: c.vehicle_id for c in cases}
    vehicle_of_module = {m.id: vehicle_of_case.get(m.case_id) for m in modules}
    per_vehicle = {v.id: 0 for v in vehicles}
    for item in items:
        vid = vehicle_of_module.get(item.module_id)
        if vid in per_vehicle:
            per_vehicle[vid] += total_quantity(item)

    return {
        "total_vehicles": len(vehicles),
        "total_items": len(items),
        "total_quantity": sum(total_quantity(i) for i in items),
        "understocked_items": sum(1 for i in items if is_understocked(i)),
        "expiring_soon_items": sum(1 for i in items if is_expiring_soon(earliest_expiration(i), now)),
        "vehicles": [{"id": v.id, "name": v.name, "total_quantity": per_vehicle[v.id]} for v in vehicles],
    }

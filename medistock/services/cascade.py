"""
Cascading deletes for the vehicle -> case -> module bag -> item hierarchy.

Every delete runs in the caller's session as one transaction: either the
parent and all of its descendants are gone, or nothing is. Any failure rolls
back and surfaces as CascadeDeleteError.
"""
import uuid
from dataclasses import dataclass
from typing import Iterable, List

import structlog
from sqlalchemy.orm import Session

from ..models.models import Case, Item, ModuleBag, Vehicle


log = structlog.get_logger(__name__)


class CascadeDeleteError(RuntimeError):
    pass


class NotFoundError(LookupError):
    pass


@dataclass
class CascadeResult:
    vehicles: int = 0
    cases: int = 0
    module_bags: int = 0
    items: int = 0

    def as_dict(self) -> dict:
        return {
            "vehicles": self.vehicles,
            "cases": self.cases,
            "module_bags": self.module_bags,
            "items": self.items,
        }


def _delete_rows(db: Session, rows: Iterable) -> int:
    count = 0
    for row in rows:
        db.delete(row)
        count += 1
    # Flush per level so children go before their parents
    db.flush()
    return count


def _items_in_modules(db: Session, module_ids: List[uuid.UUID]) -> list:
    if not module_ids:
        return []
    return db.query(Item).filter(Item.module_id.in_(module_ids)).all()


def _modules_in_cases(db: Session, case_ids: List[uuid.UUID]) -> list:
    if not case_ids:
        return []
    return db.query(ModuleBag).filter(ModuleBag.case_id.in_(case_ids)).all()


def _run(db: Session, kind: str, target_id: uuid.UUID, levels) -> CascadeResult:
    result = CascadeResult()
    try:
        for attr, rows in levels():
            setattr(result, attr, _delete_rows(db, rows))
        db.commit()
    except Exception as e:
        db.rollback()
        log.error("cascade_delete_failed", kind=kind, id=str(target_id), error=str(e))
        raise CascadeDeleteError(f"Could not delete {kind} {target_id}; no changes were made.") from e
    log.info("cascade_delete", kind=kind, id=str(target_id), **result.as_dict())
    return result


def _get_or_raise(db: Session, model, row_id: uuid.UUID):
    row = db.get(model, row_id)
    if row is None:
        raise NotFoundError(f"{model.__name__} {row_id} not found")
    return row


def delete_item(db: Session, item_id: uuid.UUID) -> CascadeResult:
    item = _get_or_raise(db, Item, item_id)

    def levels():
        yield "items", [item]

    return _run(db, "item", item_id, levels)


def delete_module_bag(db: Session, module_id: uuid.UUID) -> CascadeResult:
    module = _get_or_raise(db, ModuleBag, module_id)

    def levels():
        yield "items", _items_in_modules(db, [module.id])
        yield "module_bags", [module]

    return _run(db, "module_bag", module_id, levels)


def delete_case(db: Session, case_id: uuid.UUID) -> CascadeResult:
    case = _get_or_raise(db, Case, case_id)

    def levels():
        modules = _modules_in_cases(db, [case.id])
        yield "items", _items_in_modules(db, [m.id for m in modules])
        yield "module_bags", modules
        yield "cases", [case]

    return _run(db, "case", case_id, levels)


def delete_vehicle(db: Session, vehicle_id: uuid.UUID) -> CascadeResult:
    vehicle = _get_or_raise(db, Vehicle, vehicle_id)

    def levels():
        cases = db.query(Case).filter(Case.vehicle_id == vehicle.id).all()
        modules = _modules_in_cases(db, [c.id for c in cases])
        yield "items", _items_in_modules(db, [m.id for m in modules])
        yield "module_bags", modules
        yield "cases", cases
        yield "vehicles", [vehicle]

    return _run(db, "vehicle", vehicle_id, levels)

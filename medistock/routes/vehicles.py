import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Case, ModuleBag, User, Vehicle
from ..auth.security import actor_of, get_current_user
from ..schemas.vehicles import (
    CaseCreate,
    CaseResponse,
    CaseUpdate,
    DeleteResponse,
    ModuleBagCreate,
    ModuleBagResponse,
    ModuleBagUpdate,
    VehicleCreate,
    VehicleResponse,
    VehicleTree,
)
from ..services.aggregation import total_quantity
from ..services.cascade import (
    CascadeDeleteError,
    NotFoundError,
    delete_case,
    delete_module_bag,
    delete_vehicle,
)
from ..services.inventory import item_view, load_items, stamp_created, stamp_updated
from ..services.live_feed import InventoryFeed
from .deps import get_inventory_feed, get_now


router = APIRouter(prefix="/api", tags=["vehicles"])


def _get_or_404(db: Session, model, row_id: uuid.UUID, label: str):
    row = db.get(model, row_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def _cascade(fn, db: Session, row_id: uuid.UUID, label: str, feed: InventoryFeed) -> dict:
    try:
        result = fn(db, row_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    except CascadeDeleteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if result.items:
        feed.publish_from(db)
    return {"message": f"{label} and all of its contents deleted.", "deleted": result.as_dict()}


# =====================
# Vehicles
# =====================


@router.get("/vehicles", response_model=List[VehicleResponse])
def list_vehicles(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return db.query(Vehicle).order_by(Vehicle.name.asc()).all()


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
def create_vehicle(body: VehicleCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicle = Vehicle(name=body.name.strip())
    stamp_created(vehicle, actor_of(user))
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


@router.get("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(vehicle_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return _get_or_404(db, Vehicle, vehicle_id, "Vehicle")


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def rename_vehicle(
    vehicle_id: uuid.UUID,
    body: VehicleCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    vehicle = _get_or_404(db, Vehicle, vehicle_id, "Vehicle")
    vehicle.name = body.name.strip()
    stamp_updated(vehicle, actor_of(user))
    db.commit()
    db.refresh(vehicle)
    return vehicle


@router.delete("/vehicles/{vehicle_id}", response_model=DeleteResponse)
def remove_vehicle(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    feed: InventoryFeed = Depends(get_inventory_feed),
    _: User = Depends(get_current_user),
):
    return _cascade(delete_vehicle, db, vehicle_id, "Vehicle", feed)


@router.get("/vehicles/{vehicle_id}/tree", response_model=VehicleTree)
def vehicle_tree(
    vehicle_id: uuid.UUID,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: User = Depends(get_current_user),
):
    """Cases -> module bags -> items of one vehicle, with totals and item statuses."""
    vehicle = _get_or_404(db, Vehicle, vehicle_id, "Vehicle")
    cases = db.query(Case).filter(Case.vehicle_id == vehicle.id).order_by(Case.name.asc()).all()
    modules = (
        db.query(ModuleBag)
        .filter(ModuleBag.case_id.in_([c.id for c in cases]))
        .order_by(ModuleBag.name.asc())
        .all()
        if cases
        else []
    )
    items = load_items(db, [m.id for m in modules])

    items_by_module = {}
    for item in items:
        items_by_module.setdefault(item.module_id, []).append(item)

    case_nodes = []
    for case in cases:
        module_nodes = []
        for module in [m for m in modules if m.case_id == case.id]:
            module_items = items_by_module.get(module.id, [])
            module_nodes.append({
                "id": module.id,
                "name": module.name,
                "total_quantity": sum(total_quantity(i) for i in module_items),
                "items": [item_view(i, now) for i in module_items],
            })
        case_nodes.append({
            "id": case.id,
            "name": case.name,
            "total_quantity": sum(m["total_quantity"] for m in module_nodes),
            "modules": module_nodes,
        })
    return {
        "id": vehicle.id,
        "name": vehicle.name,
        "total_quantity": sum(c["total_quantity"] for c in case_nodes),
        "cases": case_nodes,
    }


# =====================
# Cases
# =====================


@router.get("/cases", response_model=List[CaseResponse])
def list_cases(
    vehicle_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(Case)
    if vehicle_id:
        query = query.filter(Case.vehicle_id == vehicle_id)
    return query.order_by(Case.name.asc()).all()


@router.post("/cases", response_model=CaseResponse, status_code=201)
def create_case(body: CaseCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if db.get(Vehicle, body.vehicle_id) is None:
        raise HTTPException(status_code=400, detail="Vehicle not found")
    case = Case(name=body.name.strip(), vehicle_id=body.vehicle_id)
    stamp_created(case, actor_of(user))
    db.add(case)
    db.commit()
    db.refresh(case)
    return case


@router.patch("/cases/{case_id}", response_model=CaseResponse)
def rename_case(
    case_id: uuid.UUID,
    body: CaseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    case = _get_or_404(db, Case, case_id, "Case")
    case.name = body.name.strip()
    stamp_updated(case, actor_of(user))
    db.commit()
    db.refresh(case)
    return case


@router.delete("/cases/{case_id}", response_model=DeleteResponse)
def remove_case(
    case_id: uuid.UUID,
    db: Session = Depends(get_db),
    feed: InventoryFeed = Depends(get_inventory_feed),
    _: User = Depends(get_current_user),
):
    return _cascade(delete_case, db, case_id, "Case", feed)


# =====================
# Module bags
# =====================


@router.get("/module-bags", response_model=List[ModuleBagResponse])
def list_module_bags(
    case_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(ModuleBag)
    if case_id:
        query = query.filter(ModuleBag.case_id == case_id)
    return query.order_by(ModuleBag.name.asc()).all()


@router.post("/module-bags", response_model=ModuleBagResponse, status_code=201)
def create_module_bag(body: ModuleBagCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if db.get(Case, body.case_id) is None:
        raise HTTPException(status_code=400, detail="Case not found")
    module = ModuleBag(name=body.name.strip(), case_id=body.case_id)
    stamp_created(module, actor_of(user))
    db.add(module)
    db.commit()
    db.refresh(module)
    return module


@router.patch("/module-bags/{module_id}", response_model=ModuleBagResponse)
def rename_module_bag(
    module_id: uuid.UUID,
    body: ModuleBagUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    module = _get_or_404(db, ModuleBag, module_id, "Module bag")
    module.name = body.name.strip()
    stamp_updated(module, actor_of(user))
    db.commit()
    db.refresh(module)
    return module


@router.delete("/module-bags/{module_id}", response_model=DeleteResponse)
def remove_module_bag(
    module_id: uuid.UUID,
    db: Session = Depends(get_db),
    feed: InventoryFeed = Depends(get_inventory_feed),
    _: User = Depends(get_current_user),
):
    return _cascade(delete_module_bag, db, module_id, "Module bag", feed)

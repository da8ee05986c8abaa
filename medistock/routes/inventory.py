import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Item, ModuleBag, User
from ..auth.security import actor_of, get_current_user
from ..schemas.inventory import BatchCreate, ItemCreate, ItemResponse, ItemUpdate
from ..schemas.vehicles import DeleteResponse
from ..services.cascade import CascadeDeleteError, NotFoundError, delete_item
from ..services.inventory import (
    add_stock,
    item_view,
    items_query,
    load_items,
    lookup_items,
    new_batch,
    stamp_created,
    stamp_updated,
)
from ..services.live_feed import InventoryFeed
from ..services.status import ItemStatus, status_keys
from .deps import get_inventory_feed, get_now


router = APIRouter(prefix="/api/items", tags=["inventory"])


def _get_item(db: Session, item_id: uuid.UUID) -> Item:
    item = items_query(db).filter(Item.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


def _require_module(db: Session, module_id: uuid.UUID) -> None:
    if db.get(ModuleBag, module_id) is None:
        raise HTTPException(status_code=400, detail="Module bag not found")


@router.get("", response_model=List[ItemResponse])
def list_items(
    module_id: Optional[uuid.UUID] = None,
    status: Optional[ItemStatus] = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: User = Depends(get_current_user),
):
    items = load_items(db, [module_id] if module_id else None)
    if status is not None:
        items = [i for i in items if status.value in status_keys(i, now)]
    return [item_view(i, now) for i in items]


@router.get("/lookup", response_model=List[ItemResponse])
def lookup(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: User = Depends(get_current_user),
):
    return [item_view(i, now) for i in lookup_items(db, q)]


@router.get("/{item_id}", response_model=ItemResponse)
def get_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: User = Depends(get_current_user),
):
    return item_view(_get_item(db, item_id), now)


@router.post("", response_model=ItemResponse, status_code=201)
def create_item(
    body: ItemCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    feed: InventoryFeed = Depends(get_inventory_feed),
    user: User = Depends(get_current_user),
):
    _require_module(db, body.module_id)
    item = Item(
        name=body.name.strip(),
        barcode=body.barcode,
        target_quantity=body.target_quantity,
        module_id=body.module_id,
        notes=body.notes,
    )
    item.batches = [new_batch(b) for b in body.batches]
    stamp_created(item, actor_of(user))
    db.add(item)
    db.commit()
    db.refresh(item)
    feed.publish_from(db)
    return item_view(item, now)


@router.patch("/{item_id}", response_model=ItemResponse)
def update_item(
    item_id: uuid.UUID,
    body: ItemUpdate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    feed: InventoryFeed = Depends(get_inventory_feed),
    user: User = Depends(get_current_user),
):
    item = _get_item(db, item_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("module_id"):
        _require_module(db, changes["module_id"])
    for key in ("name", "target_quantity", "module_id"):
        if changes.get(key) is not None:
            setattr(item, key, changes[key])
    for key in ("barcode", "notes"):
        if key in changes:
            setattr(item, key, (changes[key] or "").strip() or None)
    stamp_updated(item, actor_of(user))
    db.commit()
    db.refresh(item)
    feed.publish_from(db)
    return item_view(item, now)


@router.post("/{item_id}/batches", response_model=ItemResponse)
def add_batch(
    item_id: uuid.UUID,
    body: BatchCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    feed: InventoryFeed = Depends(get_inventory_feed),
    user: User = Depends(get_current_user),
):
    item = add_stock(db, _get_item(db, item_id), body, actor_of(user))
    feed.publish_from(db)
    return item_view(item, now)


@router.delete("/{item_id}", response_model=DeleteResponse)
def remove_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    feed: InventoryFeed = Depends(get_inventory_feed),
    _: User = Depends(get_current_user),
):
    try:
        result = delete_item(db, item_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Item not found")
    except CascadeDeleteError as e:
        raise HTTPException(status_code=500, detail=str(e))
    feed.publish_from(db)
    return {"message": "Item deleted.", "deleted": result.as_dict()}

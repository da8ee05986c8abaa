import uuid
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import InventoryCheck, User
from ..auth.security import actor_of, get_current_user
from ..schemas.checks import InventoryCheckResponse, InventoryCheckSubmit
from ..services.inventory_check import InventoryCheckError, submit_inventory_check
from ..services.live_feed import InventoryFeed
from .deps import get_inventory_feed, get_now


router = APIRouter(prefix="/api/inventory-checks", tags=["inventory-checks"])


@router.post("", response_model=InventoryCheckResponse, status_code=201)
def create_check(
    body: InventoryCheckSubmit,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    feed: InventoryFeed = Depends(get_inventory_feed),
    user: User = Depends(get_current_user),
):
    try:
        check = submit_inventory_check(db, body, actor_of(user), now=now)
    except InventoryCheckError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    if check.items:
        feed.publish_from(db)
    return check


@router.get("", response_model=List[InventoryCheckResponse])
def list_checks(limit: int = 50, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    limit = min(max(1, limit), 200)
    return db.query(InventoryCheck).order_by(InventoryCheck.checked_at.desc()).limit(limit).all()


@router.get("/{check_id}", response_model=InventoryCheckResponse)
def get_check(check_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    check = db.get(InventoryCheck, check_id)
    if not check:
        raise HTTPException(status_code=404, detail="Inventory check not found")
    return check

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import get_current_user
from ..schemas.inventory import DashboardResponse
from ..services.inventory import dashboard_stats
from .deps import get_now


router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
def dashboard(db: Session = Depends(get_db), now: datetime = Depends(get_now), _: User = Depends(get_current_user)):
    return dashboard_stats(db, now)

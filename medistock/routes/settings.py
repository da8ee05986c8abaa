from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import AppSetting
from ..auth.security import require_roles
from ..schemas.settings import EmailTemplate, EmailTemplateResponse
from ..services.expiration_notifier import DEFAULT_TEMPLATE, EMAIL_SETTINGS_KEY


router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/email", response_model=EmailTemplateResponse)
def get_email_settings(db: Session = Depends(get_db), _=Depends(require_roles("Admin"))):
    row = db.get(AppSetting, EMAIL_SETTINGS_KEY)
    template = (row.value or {}).get("template") if row else None
    if not template:
        return {"template": DEFAULT_TEMPLATE, "is_default": True}
    return {"template": template, "is_default": False}


@router.put("/email", response_model=EmailTemplateResponse)
def save_email_settings(body: EmailTemplate, db: Session = Depends(get_db), _=Depends(require_roles("Admin"))):
    row = db.get(AppSetting, EMAIL_SETTINGS_KEY)
    if row is None:
        row = AppSetting(key=EMAIL_SETTINGS_KEY)
        db.add(row)
    row.value = {"template": body.template}
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    return {"template": body.template, "is_default": False}

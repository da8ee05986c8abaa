import secrets
from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..auth.security import http_bearer
from ..services.expiration_notifier import ExpirationNotifier
from ..services.mailer import SmtpMailer
from .deps import get_mailer, get_now


router = APIRouter(prefix="/api/cron", tags=["cron"])

log = structlog.get_logger(__name__)


def _authorized(creds: Optional[HTTPAuthorizationCredentials]) -> bool:
    # No secret configured means the endpoint is open
    if not settings.cron_secret:
        return True
    if creds is None:
        return False
    return secrets.compare_digest(creds.credentials, settings.cron_secret)


@router.get("/check-expirations")
def check_expirations(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
    mailer: SmtpMailer = Depends(get_mailer),
    now: datetime = Depends(get_now),
):
    if not _authorized(creds):
        log.warning("cron_unauthorized")
        return JSONResponse(status_code=401, content={"message": "Unauthorized"})
    try:
        result = ExpirationNotifier(db, mailer, now=now).run()
    except Exception as e:
        log.error("expiration_check_failed", error=str(e), exc_info=True)
        return JSONResponse(status_code=500, content={"message": "Internal Server Error", "error": str(e)})
    return {"message": result.message}

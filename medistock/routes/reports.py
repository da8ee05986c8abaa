from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import Case, ModuleBag, User, Vehicle
from ..auth.security import get_current_user
from ..i18n import get_translator
from ..services.inventory import load_items
from ..services.report_export import render_html, render_pdf
from ..services.reports import ReportType, build_report, report_to_dict
from .deps import get_now


router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/{report_type}")
def get_report(
    report_type: ReportType,
    format: Literal["json", "html", "pdf"] = "json",
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    _: User = Depends(get_current_user),
):
    report = build_report(
        load_items(db),
        db.query(ModuleBag).order_by(ModuleBag.name.asc()).all(),
        db.query(Case).order_by(Case.name.asc()).all(),
        db.query(Vehicle).order_by(Vehicle.name.asc()).all(),
        report_type,
        now,
    )
    if format == "json":
        return report_to_dict(report)

    t = get_translator(lang or settings.default_locale)
    if format == "html":
        return HTMLResponse(render_html(report, t, settings.tz_default))

    filename = f"medistock-{report_type.value}-{now.strftime('%Y%m%d')}.pdf"
    return Response(
        content=render_pdf(report, t, settings.tz_default),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )

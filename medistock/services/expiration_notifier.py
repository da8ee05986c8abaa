"""
Daily expiration check: mail every Admin a list of batches expiring within
the horizon.

"Nobody to notify" and "nothing expiring" are successful outcomes. Missing
mail configuration and delivery failures propagate to the caller.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session, selectinload

from ..models.models import AppSetting, Batch, Item, User
from .aggregation import as_utc
from .status import horizon_end


log = structlog.get_logger(__name__)

EMAIL_SETTINGS_KEY = "email"
ITEMS_PLACEHOLDER = "{{{itemsListHtml}}}"
ALERT_SUBJECT = "MediStock Inventory - Expiration Alert"

DEFAULT_TEMPLATE = """<h1>MediStock Expiration Alert</h1>
<p>The following items in your inventory are expiring within the next 6 weeks:</p>
<ul>
  {{{itemsListHtml}}}
</ul>
<p>Please review your stock and take appropriate action.</p>
<p>This is an automated notification from your MediStock system.</p>"""


@dataclass
class ExpiringBatch:
    item_name: str
    quantity: int
    expiration_date: datetime


@dataclass
class NotifierResult:
    sent: bool
    message: str
    recipients: List[str] = field(default_factory=list)
    batches: List[ExpiringBatch] = field(default_factory=list)


def load_email_template(db: Session) -> str:
    row = db.get(AppSetting, EMAIL_SETTINGS_KEY)
    template = (row.value or {}).get("template") if row else None
    return template or DEFAULT_TEMPLATE


def admin_users(db: Session) -> List[User]:
    return db.query(User).filter(User.role == "Admin").all()


def find_expiring_batches(items, now: datetime) -> List[ExpiringBatch]:
    """Batches expiring in (now, now + horizon]: exactly-now is excluded, the horizon end is included."""
    now = as_utc(now)
    until = horizon_end(now)
    found = []
    for item in items:
        for batch in item.batches or []:
            exp = as_utc(batch.expiration_date)
            if exp is not None and now < exp <= until:
                found.append(ExpiringBatch(item_name=item.name, quantity=int(batch.quantity or 0), expiration_date=exp))
    return found


def render_items_list(batches: List[ExpiringBatch]) -> str:
    return "".join(
        f"<li><b>{escape(b.item_name)}</b> (Quantity: {b.quantity}) - Expires on {b.expiration_date.strftime('%d.%m.%Y')}</li>"
        for b in batches
    )


def render_email(template: str, batches: List[ExpiringBatch]) -> str:
    return template.replace(ITEMS_PLACEHOLDER, render_items_list(batches))


class ExpirationNotifier:
    def __init__(self, db: Session, mailer, now: Optional[datetime] = None):
        self.db = db
        self.mailer = mailer
        self.now = now

    def run(self) -> NotifierResult:
        now = as_utc(self.now) if self.now else datetime.now(timezone.utc)
        log.info("expiration_check_started", now=now.isoformat())

        admins = admin_users(self.db)
        if not admins:
            log.info("expiration_check_no_admins")
            return NotifierResult(sent=False, message="No admin users found to notify.")
        recipients = [u.email for u in admins if u.email]
        if not recipients:
            log.info("expiration_check_no_admin_emails", admins=len(admins))
            return NotifierResult(sent=False, message="No admin users with emails found to notify.")

        # Coarse filter in SQL, exact window applied in Python
        items = (
            self.db.query(Item)
            .join(Batch, Batch.item_id == Item.id)
            .filter(Batch.expiration_date.isnot(None))
            .options(selectinload(Item.batches))
            .distinct()
            .all()
        )
        batches = find_expiring_batches(items, now)
        if not batches:
            log.info("expiration_check_nothing_expiring")
            return NotifierResult(sent=False, message="No items expiring soon.", recipients=recipients)

        html = render_email(load_email_template(self.db), batches)
        self.mailer.send_html(recipients, ALERT_SUBJECT, html)

        log.info("expiration_check_finished", admins=len(recipients), batches=len(batches))
        return NotifierResult(
            sent=True,
            message="Expiration check complete. Notifications sent.",
            recipients=recipients,
            batches=batches,
        )

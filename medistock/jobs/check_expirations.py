"""
Run the expiration check once and exit.

Intended for external schedulers, e.g. a daily crontab entry:

    0 6 * * * medistock-check-expirations
"""
import sys

import structlog

from ..config import settings
from ..db import SessionLocal
from ..logging import setup_logging
from ..services.expiration_notifier import ExpirationNotifier
from ..services.mailer import MailConfigurationError, MailDeliveryError, SmtpMailer


log = structlog.get_logger(__name__)


def main() -> int:
    setup_logging()
    db = SessionLocal()
    try:
        result = ExpirationNotifier(db, SmtpMailer(settings)).run()
    except (MailConfigurationError, MailDeliveryError) as e:
        log.error("expiration_job_failed", error=str(e))
        return 1
    finally:
        db.close()
    log.info("expiration_job_finished", sent=result.sent, message=result.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())

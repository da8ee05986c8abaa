from datetime import timedelta

import pytest

from conftest import FakeMailer, make_item
from medistock.config import Settings
from medistock.models.models import AppSetting, User
from medistock.services.expiration_notifier import (
    ALERT_SUBJECT,
    DEFAULT_TEMPLATE,
    ExpirationNotifier,
    ExpiringBatch,
    find_expiring_batches,
    render_email,
)
from medistock.services.mailer import MailConfigurationError, MailDeliveryError, SmtpMailer


def test_window_includes_horizon_end_and_excludes_now(db, admin, add_item, now):
    add_item("At42", batches=[(1, now + timedelta(days=42))])
    add_item("At43", batches=[(1, now + timedelta(days=43))])
    add_item("Now", batches=[(1, now)])
    add_item("Past", batches=[(1, now - timedelta(days=2))])
    add_item("Undated", batches=[(1, None)])

    mailer = FakeMailer()
    result = ExpirationNotifier(db, mailer, now=now).run()

    assert result.sent
    assert [b.item_name for b in result.batches] == ["At42"]
    assert len(mailer.sent) == 1
    assert "<b>At42</b>" in mailer.sent[0]["html"]
    assert "At43" not in mailer.sent[0]["html"]


def test_one_message_to_all_admins(db, admin, staff, add_item, now):
    db.add(User(email="second@example.com", full_name="Bo", role="Admin", password_hash="x"))
    db.commit()
    add_item("Saline", batches=[(3, now + timedelta(days=7)), (2, now + timedelta(days=8))])

    mailer = FakeMailer()
    result = ExpirationNotifier(db, mailer, now=now).run()

    assert result.message == "Expiration check complete. Notifications sent."
    assert len(mailer.sent) == 1
    assert sorted(mailer.sent[0]["to"]) == ["admin@example.com", "second@example.com"]
    assert mailer.sent[0]["subject"] == ALERT_SUBJECT
    assert mailer.sent[0]["html"].count("<li>") == 2


def test_no_admins_is_a_successful_noop(db, staff, add_item, now):
    add_item("Saline", batches=[(3, now + timedelta(days=7))])
    mailer = FakeMailer()
    result = ExpirationNotifier(db, mailer, now=now).run()
    assert not result.sent
    assert result.message == "No admin users found to notify."
    assert mailer.sent == []


def test_nothing_expiring_is_a_successful_noop(db, admin, add_item, now):
    add_item("Saline", batches=[(3, now + timedelta(days=100))])
    mailer = FakeMailer()
    result = ExpirationNotifier(db, mailer, now=now).run()
    assert not result.sent
    assert result.message == "No items expiring soon."
    assert mailer.sent == []


def test_custom_template_is_used(db, admin, add_item, now):
    db.add(AppSetting(key="email", value={"template": "<p>Check:</p><ul>{{{itemsListHtml}}}</ul>"}))
    db.commit()
    add_item("Saline", batches=[(3, now + timedelta(days=7))])

    mailer = FakeMailer()
    ExpirationNotifier(db, mailer, now=now).run()
    expected_date = (now + timedelta(days=7)).strftime("%d.%m.%Y")
    assert mailer.sent[0]["html"] == (
        f"<p>Check:</p><ul><li><b>Saline</b> (Quantity: 3) - Expires on {expected_date}</li></ul>"
    )


def test_delivery_failure_propagates(db, admin, add_item, now):
    add_item("Saline", batches=[(3, now + timedelta(days=7))])
    mailer = FakeMailer(error=MailDeliveryError("Failed to send email via SMTP", provider_detail="550 rejected"))
    with pytest.raises(MailDeliveryError) as exc:
        ExpirationNotifier(db, mailer, now=now).run()
    assert exc.value.provider_detail == "550 rejected"


def test_missing_smtp_configuration_is_fatal(db, admin, add_item, now):
    add_item("Saline", batches=[(3, now + timedelta(days=7))])
    mailer = SmtpMailer(Settings(SMTP_HOST=None, SMTP_PORT=None, SMTP_USER=None, SMTP_PASS=None))
    with pytest.raises(MailConfigurationError):
        ExpirationNotifier(db, mailer, now=now).run()


def test_render_email_escapes_item_names(now):
    html = render_email(DEFAULT_TEMPLATE, [ExpiringBatch("A<b>", 1, now)])
    assert "A&lt;b&gt;" in html
    assert "{{{itemsListHtml}}}" not in html


def test_find_expiring_batches_accepts_plain_objects(now):
    items = [make_item("X", batches=[(1, now + timedelta(days=1)), (1, now + timedelta(days=50))])]
    assert [b.quantity for b in find_expiring_batches(items, now)] == [1]

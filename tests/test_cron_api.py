from conftest import FakeMailer, days_from_now
from medistock.config import settings
from medistock.routes.deps import get_mailer
from medistock.services.mailer import MailConfigurationError, MailDeliveryError


def test_sends_alert(client, admin, add_item, mailer):
    add_item("Saline", batches=[(3, days_from_now(7))])
    r = client.get("/api/cron/check-expirations")
    assert r.status_code == 200
    assert r.json() == {"message": "Expiration check complete. Notifications sent."}
    assert mailer.sent[0]["to"] == ["admin@example.com"]


def test_noop_messages(client, admin, add_item, mailer):
    add_item("Saline", batches=[(3, days_from_now(90))])
    r = client.get("/api/cron/check-expirations")
    assert r.status_code == 200
    assert r.json() == {"message": "No items expiring soon."}
    assert mailer.sent == []


def test_secret_enforced_when_configured(client, admin, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "tick-tock")

    assert client.get("/api/cron/check-expirations").status_code == 401
    wrong = client.get("/api/cron/check-expirations", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"message": "Unauthorized"}

    ok = client.get("/api/cron/check-expirations", headers={"Authorization": "Bearer tick-tock"})
    assert ok.status_code == 200


def test_missing_smtp_is_500(app, client, admin, add_item):
    add_item("Saline", batches=[(3, days_from_now(7))])
    app.dependency_overrides[get_mailer] = lambda: FakeMailer(
        error=MailConfigurationError("SMTP configuration is missing on the server.")
    )
    r = client.get("/api/cron/check-expirations")
    assert r.status_code == 500
    assert r.json() == {
        "message": "Internal Server Error",
        "error": "SMTP configuration is missing on the server.",
    }


def test_provider_detail_is_reported(app, client, admin, add_item):
    add_item("Saline", batches=[(3, days_from_now(7))])
    app.dependency_overrides[get_mailer] = lambda: FakeMailer(
        error=MailDeliveryError("Failed to send email via SMTP", provider_detail="535 auth failed")
    )
    r = client.get("/api/cron/check-expirations")
    assert r.status_code == 500
    assert "535 auth failed" in r.json()["error"]

import smtplib

import pytest

from medistock.config import Settings
from medistock.services import mailer as mailer_module
from medistock.services.mailer import MailConfigurationError, MailDeliveryError, SmtpMailer


class RecordingSMTP:
    instances = []
    fail_with = None

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))
        if RecordingSMTP.fail_with is not None:
            raise RecordingSMTP.fail_with

    def send_message(self, msg):
        self.calls.append("send_message")
        self.messages.append(msg)


class RecordingSMTPSSL(RecordingSMTP):
    pass


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    RecordingSMTP.instances = []
    RecordingSMTP.fail_with = None
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", RecordingSMTP)
    monkeypatch.setattr(mailer_module.smtplib, "SMTP_SSL", RecordingSMTPSSL)
    yield RecordingSMTP


def _mailer(port=587, **overrides):
    values = {
        "SMTP_HOST": "smtp.test",
        "SMTP_PORT": port,
        "SMTP_USER": "alerts-user",
        "SMTP_PASS": "pw",
        "MAIL_FROM": "alerts@example.com",
    }
    values.update(overrides)
    return SmtpMailer(Settings(**values))


def test_one_message_to_all_recipients_with_starttls(fake_smtp):
    _mailer(587).send_html(["a@example.com", "b@example.com"], "Expiring stock", "<p>hi</p>")

    assert len(fake_smtp.instances) == 1
    conn = fake_smtp.instances[0]
    assert type(conn) is RecordingSMTP
    assert (conn.host, conn.port) == ("smtp.test", 587)
    assert conn.calls == ["starttls", ("login", "alerts-user", "pw"), "send_message", "quit"]

    assert len(conn.messages) == 1
    msg = conn.messages[0]
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg["Subject"] == "Expiring stock"
    assert "alerts@example.com" in msg["From"]
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>hi</p>"


def test_port_465_uses_implicit_tls(fake_smtp):
    _mailer(465).send_html(["a@example.com"], "s", "<p>x</p>")

    conn = fake_smtp.instances[0]
    assert type(conn) is RecordingSMTPSSL
    assert conn.port == 465
    assert "starttls" not in conn.calls
    assert "send_message" in conn.calls


def test_sender_falls_back_to_smtp_user(fake_smtp):
    _mailer(587, MAIL_FROM=None, SMTP_USER="ops@example.com").send_html(["a@example.com"], "s", "<p>x</p>")
    assert "ops@example.com" in fake_smtp.instances[0].messages[0]["From"]


def test_smtp_error_is_wrapped_with_provider_detail(fake_smtp):
    fake_smtp.fail_with = smtplib.SMTPAuthenticationError(535, b"authentication failed")

    with pytest.raises(MailDeliveryError) as exc:
        _mailer(587).send_html(["a@example.com"], "s", "<p>x</p>")

    assert "authentication failed" in exc.value.provider_detail
    assert str(exc.value).startswith("Failed to send email via SMTP: ")
    assert isinstance(exc.value.__cause__, smtplib.SMTPAuthenticationError)


def test_connection_error_is_wrapped(fake_smtp):
    fake_smtp.fail_with = ConnectionRefusedError("connection refused")

    with pytest.raises(MailDeliveryError) as exc:
        _mailer(465).send_html(["a@example.com"], "s", "<p>x</p>")

    assert exc.value.provider_detail == "connection refused"


def test_missing_configuration_sends_nothing(fake_smtp):
    with pytest.raises(MailConfigurationError):
        _mailer(587, SMTP_HOST=None).send_html(["a@example.com"], "s", "<p>x</p>")
    assert fake_smtp.instances == []

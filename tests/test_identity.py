import pytest

from medistock.auth.identity import IdentityError, LocalIdentityProvider, ensure_bootstrap_admin
from medistock.models.models import User


@pytest.mark.parametrize("email", ["boss@example..com", "boss@", "no-at-sign.example.com", "two@@example.com", ""])
def test_malformed_email_is_rejected(db, email):
    with pytest.raises(IdentityError) as exc:
        LocalIdentityProvider(db).create_user(email, "secret123", "Boss", "Admin")
    assert exc.value.code == "invalid-email"
    assert db.query(User).count() == 0


def test_email_is_stored_normalized(db):
    user = LocalIdentityProvider(db).create_user("  Boss@Example.COM ", "secret123", "Boss", "Admin")
    assert user.email == "boss@example.com"


def test_email_taken_ignores_case(db):
    provider = LocalIdentityProvider(db)
    provider.create_user("boss@example.com", "secret123", "Boss", "Admin")
    with pytest.raises(IdentityError) as exc:
        provider.create_user("BOSS@example.com", "secret123", "Other", "Staff")
    assert exc.value.code == "email-already-exists"


def test_short_password_is_rejected(db):
    with pytest.raises(IdentityError) as exc:
        LocalIdentityProvider(db).create_user("boss@example.com", "12345", "Boss", "Admin")
    assert exc.value.code == "invalid-password"


def test_bootstrap_admin_rejects_malformed_email(db):
    with pytest.raises(IdentityError) as exc:
        ensure_bootstrap_admin(db, "root@example..com", "secret123")
    assert exc.value.code == "invalid-email"


def test_bootstrap_admin_promotes_existing_user(db, staff):
    user = ensure_bootstrap_admin(db, "STAFF@example.com", "whatever")
    assert user.id == staff.id
    assert user.role == "Admin"

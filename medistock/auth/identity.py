"""
Identity provisioning.

Accounts live in the local users table; failures are reported with
provider-style error codes so routes can map them to user-facing messages.
"""
import uuid
from typing import Optional, Tuple

import jwt
import structlog
from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import User
from .security import SESSION_EXPIRED, get_password_hash


log = structlog.get_logger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred. Please check the server logs for more details."

ERROR_RESPONSES = {
    "email-already-exists": (409, "This email is already in use by another account."),
    "invalid-password": (400, "The password must be a string with at least six characters."),
    "invalid-email": (400, "The email address provided is not valid."),
    "internal-error": (
        500,
        "An internal identity provider error occurred. Please check the server configuration and logs.",
    ),
    "id-token-expired": (401, SESSION_EXPIRED),
    "id-token-revoked": (401, SESSION_EXPIRED),
    "invalid-id-token": (401, "Unauthorized: Invalid token."),
}


class IdentityError(Exception):
    def __init__(self, code: str, detail: Optional[str] = None):
        super().__init__(detail or code)
        self.code = code
        self.detail = detail


def describe_identity_error(error: IdentityError) -> Tuple[int, str]:
    return ERROR_RESPONSES.get(error.code, (500, error.detail or UNEXPECTED_ERROR))


def verify_id_token(db: Session, token: str) -> User:
    """Resolve a bearer access token to its active user or raise an identity error code."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise IdentityError("id-token-expired") from e
    except jwt.InvalidTokenError as e:
        raise IdentityError("invalid-id-token", str(e)) from e
    if payload.get("type") == "refresh":
        raise IdentityError("invalid-id-token", "refresh token")
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise IdentityError("invalid-id-token", "bad subject") from e
    user = db.get(User, user_uuid)
    if user is None:
        raise IdentityError("invalid-id-token", "unknown subject")
    if not user.is_active:
        raise IdentityError("id-token-revoked")
    return user


class LocalIdentityProvider:
    def __init__(self, db: Session):
        self.db = db

    def email_taken(self, email: str) -> bool:
        return (
            self.db.query(User.id).filter(func.lower(User.email) == email.lower()).first()
            is not None
        )

    def create_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: str,
        phone: Optional[str] = None,
    ) -> User:
        try:
            email = validate_email((email or "").strip(), check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise IdentityError("invalid-email", str(e)) from e
        if not isinstance(password, str) or len(password) < 6:
            raise IdentityError("invalid-password")
        if self.email_taken(email):
            raise IdentityError("email-already-exists")

        user = User(
            email=email.lower(),
            full_name=full_name,
            role=role,
            phone=phone or "",
            password_hash=get_password_hash(password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise IdentityError("email-already-exists", str(e.orig)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("identity_create_failed", error=str(e))
            raise IdentityError("internal-error", str(e)) from e
        self.db.refresh(user)
        log.info("identity_created", user_id=str(user.id), role=role)
        return user


def ensure_bootstrap_admin(db: Session, email: Optional[str], password: Optional[str]) -> Optional[User]:
    """Create or promote the configured administrative account."""
    if not email or not password:
        return None
    user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    if user is None:
        return LocalIdentityProvider(db).create_user(email, password, full_name="Administrator", role="Admin")
    if user.role != "Admin":
        user.role = "Admin"
        db.commit()
    return user

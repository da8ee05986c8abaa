import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.identity import (
    UNEXPECTED_ERROR,
    IdentityError,
    LocalIdentityProvider,
    describe_identity_error,
    verify_id_token,
)
from ..auth.security import http_bearer, is_admin, require_roles
from ..schemas.auth import CreateUserRequest, MeResponse, UserProfileUpdate, UserRoleUpdate
from ..services.validation import parse_model
from ..logging import structlog


router = APIRouter(prefix="/api/users", tags=["users"])

log = structlog.get_logger(__name__)


def _message(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


@router.post("", status_code=201)
async def create_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    db: Session = Depends(get_db),
):
    """
    Create an account on behalf of an Admin.

    Responses carry a user-facing `message`: 201 created, 400 invalid input
    (with per-field `errors`), 401 missing or bad token, 403 caller is not an
    Admin, 409 email already in use, 500 anything else.
    """
    if creds is None:
        return _message(401, "Unauthorized: No token provided.")
    try:
        caller = verify_id_token(db, creds.credentials)
    except IdentityError as e:
        status_code, message = describe_identity_error(e)
        log.warning("user_create_unauthorized", code=e.code, detail=e.detail)
        return _message(status_code, message)
    if not is_admin(caller):
        return _message(403, "Forbidden: Caller is not an admin.")

    try:
        raw = await request.json()
    except ValueError:
        raw = None
    parsed = parse_model(CreateUserRequest, raw)
    if not parsed.ok:
        return _message(400, "Invalid input.", errors=parsed.errors)
    body = parsed.value

    try:
        user = LocalIdentityProvider(db).create_user(
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            role=body.role,
            phone=body.phone,
        )
    except IdentityError as e:
        status_code, message = describe_identity_error(e)
        log.warning("user_create_failed", code=e.code, detail=e.detail, caller=str(caller.id))
        return _message(status_code, message)
    except Exception as e:
        log.error("user_create_failed", error=str(e), caller=str(caller.id))
        return _message(500, UNEXPECTED_ERROR)

    log.info("user_created", user_id=str(user.id), role=user.role, caller=str(caller.id))
    return _message(201, "User created successfully.", uid=str(user.id))


@router.get("", response_model=List[MeResponse])
def list_users(db: Session = Depends(get_db), _=Depends(require_roles("Admin"))):
    return db.query(User).order_by(User.full_name.asc()).all()


def _get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}/role", response_model=MeResponse)
def change_role(
    user_id: uuid.UUID,
    body: UserRoleUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(require_roles("Admin")),
):
    user = _get_user(db, user_id)
    if user.id == me.id and body.role != "Admin":
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role.")
    user.role = body.role
    db.commit()
    db.refresh(user)
    log.info("user_role_changed", user_id=str(user.id), role=user.role, caller=str(me.id))
    return user


@router.patch("/{user_id}", response_model=MeResponse)
def update_profile(
    user_id: uuid.UUID,
    body: UserProfileUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("Admin")),
):
    user = _get_user(db, user_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("full_name"):
        user.full_name = changes["full_name"].strip()
    if "phone" in changes:
        user.phone = (changes["phone"] or "").strip()
    db.commit()
    db.refresh(user)
    return user

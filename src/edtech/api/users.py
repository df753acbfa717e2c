"""User account API routes.

Learn: Every route here sits behind the auth gateway (see api/__init__.py).
Administrators can manage any account; everyone else can only read and
edit their own. Changing a password, deactivating, or deleting an
account revokes its sessions, so the session_token cookies stop working
immediately. A deactivated or deleted account is also refused by the
gateway, so its access tokens stop working too; after a password change
the old access tokens stay valid until they expire on their own.
"""

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.auth.dependencies import CurrentIdentity, get_current_user, require_role
from edtech.config import Settings, get_settings
from edtech.db.engine import get_db
from edtech.db.models import ROLE_ADMINISTRATOR, User
from edtech.errors import (
    EmailAlreadyRegistered,
    NotFound,
    PermissionDenied,
    UserNotFound,
    ValidationError,
)
from edtech.schemas.user import MessageResponse, PasswordChange, UserRead, UserUpdate
from edtech.services.session_service import SessionStore
from edtech.services.user_service import UserService

logger = structlog.get_logger()

router = APIRouter(prefix="/users")

_admin = require_role(ROLE_ADMINISTRATOR)


def _svc(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(db, settings.bcrypt_rounds)


async def _load(svc: UserService, user_id: uuid.UUID) -> User:
    try:
        return await svc.get(user_id)
    except UserNotFound:
        raise NotFound("user not found")


def _ensure_self_or_admin(identity: CurrentIdentity, user_id: uuid.UUID) -> None:
    if identity.user_id != user_id and not identity.has_role(ROLE_ADMINISTRATOR):
        logger.warning(
            "users.forbidden", user_id=str(identity.user_id), target=str(user_id)
        )
        raise PermissionDenied("forbidden")


# ─── Read ───────────────────────────────────────────────

@router.get("", response_model=list[UserRead])
async def list_users(
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(_admin),
):
    return await svc.list_users()


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: uuid.UUID,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(get_current_user),
):
    _ensure_self_or_admin(identity, user_id)
    return await _load(svc, user_id)


# ─── Update ─────────────────────────────────────────────

@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(get_current_user),
):
    _ensure_self_or_admin(identity, user_id)
    user = await _load(svc, user_id)
    try:
        user = await svc.update_profile(
            user, name=body.name, surname=body.surname, email=body.email
        )
    except EmailAlreadyRegistered:
        raise ValidationError("email already registered")
    logger.info("users.updated", user_id=str(user_id))
    return user


@router.patch("/{user_id}/password", response_model=MessageResponse)
async def change_password(
    user_id: uuid.UUID,
    body: PasswordChange,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(get_current_user),
):
    """Set a new password and end every session of the account."""
    _ensure_self_or_admin(identity, user_id)
    user = await _load(svc, user_id)
    await svc.change_password(user, body.password)
    await SessionStore(svc.db).delete_for_user(user_id)
    logger.info("users.password_changed", user_id=str(user_id))
    return MessageResponse(message="password changed")


@router.patch("/{user_id}/deactivate", response_model=UserRead)
async def deactivate_user(
    user_id: uuid.UUID,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(_admin),
):
    user = await _load(svc, user_id)
    user = await svc.set_status(user, active=False)
    await SessionStore(svc.db).delete_for_user(user_id)
    logger.info("users.deactivated", user_id=str(user_id))
    return user


@router.patch("/{user_id}/activate", response_model=UserRead)
async def activate_user(
    user_id: uuid.UUID,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(_admin),
):
    user = await _load(svc, user_id)
    user = await svc.set_status(user, active=True)
    logger.info("users.activated", user_id=str(user_id))
    return user


# ─── Delete ─────────────────────────────────────────────

@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    svc: UserService = Depends(_svc),
    identity: CurrentIdentity = Depends(_admin),
):
    user = await _load(svc, user_id)
    await SessionStore(svc.db).delete_for_user(user_id)
    await svc.delete(user)
    logger.info("users.deleted", user_id=str(user_id))
    return MessageResponse(message="user deleted")

"""Auth API — signup, login, logout, refresh, me.

Learn: Routes for the session lifecycle:
- POST /auth/signup  → create an account → access token
- POST /auth/login   → email/password → access token + session_token cookie
- POST /auth/logout  → drop the session behind the cookie, clear the cookie
- POST /auth/refresh → cookie → new access token + rotated cookie
- GET  /auth/me      → the identity the gateway resolved

Every failure is raised as an ApiError and rendered as {"error": ...}
by the handlers in edtech.errors.
"""

import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.auth.cookies import (
    SESSION_COOKIE,
    clear_session_cookie,
    set_session_cookie,
)
from edtech.auth.dependencies import (
    CurrentIdentity,
    get_current_user,
    get_token_issuer,
)
from edtech.auth.jwt import TokenIssuer, generate_refresh_token
from edtech.auth.password import verify_password
from edtech.config import Settings, get_settings
from edtech.db.engine import get_db
from edtech.db.models import SELF_SIGNUP_ROLES, Role, as_utc
from edtech.errors import (
    AuthenticationFailure,
    DuplicateToken,
    EmailAlreadyRegistered,
    NotFoundInternal,
    PermissionDenied,
    PersistenceFailure,
    RoleNotFound,
    SessionNotFound,
    UserNotFound,
    ValidationError,
)
from edtech.schemas.user import (
    EMAIL_PATTERN,
    MessageResponse,
    UserRead,
    check_password_length,
)
from edtech.services.role_service import RoleService
from edtech.services.session_service import SessionStore
from edtech.services.user_service import UserService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=72)
    role_id: int = Field(..., ge=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_length(value)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    token: str
    user: UserRead
    role: str


class RefreshResponse(BaseModel):
    token: str
    expires: int  # access token expiry, unix seconds


class MeResponse(BaseModel):
    user: UserRead
    role: str
    auth_method: str


# ─── Helpers ─────────────────────────────────────────────


async def _resolve_role(db: AsyncSession, role_id: int) -> Role:
    try:
        return await RoleService(db).get_by_id(role_id)
    except RoleNotFound:
        logger.error("auth.role_missing", role_id=role_id)
        raise NotFoundInternal("couldn't find role")


async def _store_fresh_token(
    user_id: uuid.UUID,
    settings: Settings,
    write: Callable[[str, datetime], Awaitable[object]],
) -> tuple[str, datetime]:
    """Generate a refresh token and persist it via `write`.

    Learn: A collision on the unique refresh_token column is the one
    failure that is retried here, with a freshly generated token each
    time and at most refresh_token_max_attempts tries.
    """
    for attempt in range(1, settings.refresh_token_max_attempts + 1):
        refresh_token = generate_refresh_token(user_id)
        expires_at = datetime.now(timezone.utc) + settings.session_ttl
        try:
            await write(refresh_token, expires_at)
            return refresh_token, expires_at
        except DuplicateToken:
            logger.warning(
                "auth.refresh_token_collision", user_id=str(user_id), attempt=attempt
            )
    raise PersistenceFailure("failed to create session")


# ─── Signup ──────────────────────────────────────────────


@router.post("/signup", response_model=AuthResponse)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Create a Child or Parent account and return an access token.

    No session is opened; clients log in to get a session_token cookie.
    """
    try:
        role = await RoleService(db).get_by_id(body.role_id)
    except RoleNotFound:
        raise ValidationError("unknown role")
    if role.name not in SELF_SIGNUP_ROLES:
        logger.warning("auth.signup_privileged_role", role=role.name)
        raise ValidationError("unknown role")

    try:
        user = await UserService(db, settings.bcrypt_rounds).create(
            name=body.name,
            surname=body.surname,
            email=body.email,
            password=body.password,
            role_id=role.id,
        )
    except EmailAlreadyRegistered:
        logger.info("auth.signup_duplicate_email")
        raise ValidationError("email already registered")

    access = issuer.issue(user.id, role.id, role.name)
    logger.info("auth.signup_succeeded", user_id=str(user.id), role=role.name)
    return AuthResponse(token=access.token, user=UserRead.model_validate(user), role=role.name)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Login with email and password → access token + session cookie."""
    try:
        user = await UserService(db).get_by_email(body.email)
    except UserNotFound:
        logger.warning("auth.login_failed", reason="unknown email")
        raise ValidationError("invalid credentials")

    if not verify_password(body.password, user.password_hash):
        logger.warning("auth.login_failed", user_id=str(user.id), reason="bad password")
        raise AuthenticationFailure("invalid credentials")

    if not user.is_active:
        logger.warning("auth.login_failed", user_id=str(user.id), reason="inactive")
        raise PermissionDenied("account is deactivated")

    role = await _resolve_role(db, user.role_id)
    user_id, role_name = user.id, role.name
    user_out = UserRead.model_validate(user)
    access = issuer.issue(user_id, role.id, role_name)

    # One live session per user: a new login replaces the old one.
    sessions = SessionStore(db)
    await sessions.delete_for_user(user_id)
    refresh_token, expires_at = await _store_fresh_token(
        user_id,
        settings,
        lambda token, expires: sessions.create(user_id, token, expires),
    )

    set_session_cookie(response, refresh_token, expires_at, settings.cookie_secure)
    logger.info("auth.login_succeeded", user_id=str(user_id), role=role_name)
    return AuthResponse(token=access.token, user=user_out, role=role_name)


# ─── Logout ──────────────────────────────────────────────


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Delete the session behind the cookie. Stale cookies log out fine."""
    refresh_token = request.cookies.get(SESSION_COOKIE)
    if not refresh_token:
        logger.warning("auth.logout_without_session")
        raise ValidationError("no session token")

    removed = await SessionStore(db).delete(refresh_token)
    clear_session_cookie(response, settings.cookie_secure)

    logger.info("auth.logout_succeeded", removed=removed)
    return MessageResponse(message="successfully logged out")


# ─── Refresh ─────────────────────────────────────────────


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Exchange the session cookie for a new access token and a rotated cookie."""
    refresh_token = request.cookies.get(SESSION_COOKIE)
    if not refresh_token:
        logger.warning("auth.refresh_without_session")
        raise AuthenticationFailure("no session token")

    sessions = SessionStore(db)
    try:
        session, role_id = await sessions.get_valid(refresh_token)
    except SessionNotFound:
        logger.warning("auth.refresh_invalid_session")
        raise AuthenticationFailure("invalid session token")

    if datetime.now(timezone.utc) >= as_utc(session.expires_at):
        logger.warning("auth.refresh_expired_session", user_id=str(session.user_id))
        raise AuthenticationFailure("expired session token")

    session_id = session.id
    try:
        user = await UserService(db).get(session.user_id)
    except UserNotFound:
        logger.error("auth.session_owner_missing", session_id=session_id)
        raise NotFoundInternal("user not found")

    role = await _resolve_role(db, role_id)
    user_id = user.id
    access = issuer.issue(user_id, role.id, role.name)

    try:
        new_token, expires_at = await _store_fresh_token(
            user_id,
            settings,
            lambda token, expires: sessions.rotate(session_id, token, expires),
        )
    except SessionNotFound:
        # Logged out between the read and the rotate.
        raise AuthenticationFailure("invalid session token")

    set_session_cookie(response, new_token, expires_at, settings.cookie_secure)
    logger.info("auth.tokens_refreshed", user_id=str(user_id))
    return RefreshResponse(
        token=access.token,
        expires=int(access.expires_at.timestamp()),
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(identity: CurrentIdentity = Depends(get_current_user)):
    """Get the current authenticated user's info."""
    return MeResponse(
        user=UserRead.model_validate(identity.user),
        role=identity.role.name,
        auth_method=identity.auth_method,
    )

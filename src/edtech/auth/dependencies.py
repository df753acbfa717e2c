"""FastAPI auth dependencies — the request-time auth gateway.

Learn: get_current_user runs ahead of every protected handler. It
derives exactly one credential from the request, verifies it along that
path only, and either returns a CurrentIdentity or rejects with 401:

    Unauthenticated ─┬─ Authorization header ─→ bearer path ─┐
                     └─ session_token cookie ─→ session path ┴─→ user → role → Authenticated
                                                  any failure ─→ Rejected (401; 403 if deactivated; 500)

A non-empty Authorization header always selects the bearer path, even
when a cookie is also present. A bad bearer token does not fall back
to the cookie. Identity is re-resolved from the database on every
request; nothing is cached in process, so deactivating an account
locks out its outstanding access tokens immediately.
"""

import uuid
from dataclasses import dataclass
from typing import Union

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.auth.cookies import SESSION_COOKIE
from edtech.auth.jwt import TokenError, TokenIssuer
from edtech.db.engine import get_db
from edtech.db.models import Role, User
from edtech.errors import (
    AuthenticationFailure,
    NotFoundInternal,
    PermissionDenied,
    RoleNotFound,
    SessionNotFound,
    UserNotFound,
)
from edtech.services.role_service import RoleService
from edtech.services.session_service import SessionStore
from edtech.services.user_service import UserService

logger = structlog.get_logger()

AUTH_BEARER = "bearer"
AUTH_SESSION = "session"


# ─── Credentials ────────────────────────────────────────


@dataclass(frozen=True)
class BearerCredential:
    token: str


@dataclass(frozen=True)
class SessionCredential:
    refresh_token: str


@dataclass(frozen=True)
class NoCredential:
    pass


Credential = Union[BearerCredential, SessionCredential, NoCredential]


def extract_credential(request: Request) -> Credential:
    """Classify the request's credential. Called once per request.

    A header that is present but not "Bearer <token>" still selects the
    bearer path, with an empty token that verification will reject.
    """
    authorization = request.headers.get("Authorization", "").strip()
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return BearerCredential(token="")
        return BearerCredential(token=token.strip())

    cookie = request.cookies.get(SESSION_COOKIE, "")
    if cookie:
        return SessionCredential(refresh_token=cookie)

    return NoCredential()


# ─── Identity ───────────────────────────────────────────


class CurrentIdentity:
    """The authenticated user making the request.

    Learn: Handlers and role checks read this instead of touching the
    token or cookie again. auth_method records which path succeeded.
    """

    def __init__(self, user: User, role: Role, auth_method: str):
        self.user = user
        self.role = role
        self.auth_method = auth_method

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id

    @property
    def is_session_auth(self) -> bool:
        return self.auth_method == AUTH_SESSION

    def has_role(self, *role_names: str) -> bool:
        return self.role.name in role_names


def get_token_issuer(request: Request) -> TokenIssuer:
    """FastAPI dependency — the TokenIssuer built at startup."""
    return request.app.state.token_issuer


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> CurrentIdentity:
    """Authenticate the request (required — 401 if it can't be)."""
    credential = extract_credential(request)

    if isinstance(credential, BearerCredential):
        user_id = _authenticate_bearer(credential, issuer)
        auth_method = AUTH_BEARER
    elif isinstance(credential, SessionCredential):
        user_id = await _authenticate_session(credential, db)
        auth_method = AUTH_SESSION
    else:
        logger.warning("auth.no_credentials", path=request.url.path)
        raise AuthenticationFailure("no session token")

    try:
        user = await UserService(db).get(user_id)
    except UserNotFound:
        logger.warning("auth.user_not_found", user_id=str(user_id))
        raise AuthenticationFailure("user not found")

    if not user.is_active:
        logger.warning("auth.inactive_user", user_id=str(user_id), auth_method=auth_method)
        raise PermissionDenied("account is deactivated")

    try:
        role = await RoleService(db).get_by_id(user.role_id)
    except RoleNotFound:
        logger.error("auth.role_missing", user_id=str(user_id), role_id=user.role_id)
        raise NotFoundInternal("couldn't find role")

    identity = CurrentIdentity(user=user, role=role, auth_method=auth_method)
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(user.id))

    logger.info(
        "auth.authenticated",
        user_id=str(user.id),
        role=role.name,
        auth_method=auth_method,
    )
    return identity


def _authenticate_bearer(
    credential: BearerCredential, issuer: TokenIssuer
) -> uuid.UUID:
    if not credential.token:
        logger.warning("auth.invalid_token", reason="malformed authorization header")
        raise AuthenticationFailure("invalid token")
    try:
        claims = issuer.verify(credential.token)
    except TokenError as e:
        logger.warning("auth.invalid_token", reason=str(e))
        raise AuthenticationFailure("invalid token")
    return claims.subject_id


async def _authenticate_session(
    credential: SessionCredential, db: AsyncSession
) -> uuid.UUID:
    try:
        session, _ = await SessionStore(db).get_valid(credential.refresh_token)
    except SessionNotFound:
        logger.warning("auth.invalid_session")
        raise AuthenticationFailure("invalid session token")
    return session.user_id


# ─── Authorization ──────────────────────────────────────


def require_role(*role_names: str):
    """Dependency factory — 403 unless the identity has one of the roles."""

    async def _check(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if not identity.has_role(*role_names):
            logger.warning(
                "auth.forbidden",
                user_id=str(identity.user_id),
                role=identity.role.name,
                required=list(role_names),
            )
            raise PermissionDenied("forbidden")
        return identity

    return _check

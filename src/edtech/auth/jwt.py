"""Access token issuing/verification and refresh token generation.

Learn: Two very different credentials.
- Access token: a short-lived HS256 JWT asserting {sub, role, role_id, iat, exp, jti}.
  Verified by signature + expiry only; stateless, not revocable early.
- Refresh token: an opaque random string with no structure at all. Its
  meaning lives entirely in the sessions table (owner + expiry), so it can
  be revoked by deleting the row.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from edtech.config import Settings

logger = structlog.get_logger()

REQUIRED_CLAIMS = ["sub", "role", "role_id", "exp"]


class TokenError(Exception):
    """Raised when an access token fails verification."""


class InvalidSignature(TokenError):
    """The MAC does not match the header and payload."""


class TokenExpired(TokenError):
    """The token's exp is in the past."""


class MalformedToken(TokenError):
    """The token cannot be parsed into the expected claim shape."""


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class AccessClaims:
    subject_id: uuid.UUID
    role_name: str
    role_id: int


class TokenIssuer:
    """Signs and verifies access tokens with the server-held secret.

    Built once at startup from Settings; holds no mutable state.
    """

    def __init__(self, secret: str, ttl: timedelta, algorithm: str = "HS256"):
        self._secret = secret
        self.ttl = ttl
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            ttl=settings.access_token_ttl,
            algorithm=settings.jwt_algorithm,
        )

    def issue(
        self,
        subject_id: uuid.UUID,
        role_id: int,
        role_name: str,
        now: Optional[datetime] = None,
    ) -> IssuedToken:
        """Create a signed access token for a user."""
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self.ttl
        payload = {
            "sub": str(subject_id),
            "role": role_name,
            "role_id": role_id,
            "iat": issued_at,
            "exp": expires_at,
            "jti": uuid.uuid4().hex,  # unique per issuance
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        logger.debug("auth.token_issued", user_id=str(subject_id), role=role_name)
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> AccessClaims:
        """Verify a token and return its claims.

        Raises InvalidSignature, TokenExpired or MalformedToken. The
        signature is checked before anything in the payload is trusted.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError:
            raise InvalidSignature("Token signature is invalid")
        except jwt.ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Malformed token: {e}")

        try:
            subject_id = uuid.UUID(str(payload["sub"]))
        except ValueError:
            raise MalformedToken("Malformed token: subject is not a UUID")

        role_id = payload["role_id"]
        role_name = payload["role"]
        if not isinstance(role_id, int) or isinstance(role_id, bool):
            raise MalformedToken("Malformed token: role_id is not an integer")
        if not isinstance(role_name, str):
            raise MalformedToken("Malformed token: role is not a string")

        return AccessClaims(subject_id=subject_id, role_name=role_name, role_id=role_id)


def generate_refresh_token(subject_id: uuid.UUID) -> str:
    """Return a fresh opaque refresh token.

    Learn: 32 random bytes from the OS CSPRNG, URL-safe encoded. The
    subject is only logging context; nothing about the token is derived
    from it. The sessions table's unique constraint is the backstop
    against the (negligible) chance of a collision.
    """
    token = secrets.token_urlsafe(32)
    logger.debug("auth.refresh_token_generated", user_id=str(subject_id))
    return token

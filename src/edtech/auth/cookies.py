"""The session_token cookie.

The cookie carries the opaque refresh token. It is HttpOnly so page
scripts cannot read it, scoped to "/", and expires together with the
session row it points at.
"""

from datetime import datetime

from fastapi import Response

SESSION_COOKIE = "session_token"


def set_session_cookie(
    response: Response, refresh_token: str, expires_at: datetime, secure: bool
) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=refresh_token,
        expires=expires_at,
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, secure: bool) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )

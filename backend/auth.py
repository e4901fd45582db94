"""
Authentication for the compile authority.

Verifies the bearer JWTs that HTTP requests and websocket joins carry.
Tokens are issued by the account service in production; create_jwt exists
for local runs and tests.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Header, HTTPException, status

from backend import config

INVALID_TOKEN = "Invalid session token. Please sign in again."


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def create_jwt(user_id: str, expires_in: timedelta | None = None) -> str:
    """
    Sign a token whose subject is user_id.

    Args:
        user_id: Subject claim
        expires_in: Lifetime; defaults to JWT_EXPIRY_HOURS
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_in if expires_in is not None else timedelta(hours=config.settings.JWT_EXPIRY_HOURS)
    claims = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)


def user_id_from_token(token: str) -> str:
    """
    Subject of a valid token.

    Raises:
        HTTPException: 401 if the token is expired, malformed, or has no subject
    """
    try:
        claims = jwt.decode(token, config.settings.JWT_SECRET, algorithms=[config.settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise _unauthorized("Session expired. Please sign in again.") from e
    except jwt.InvalidTokenError as e:
        raise _unauthorized(INVALID_TOKEN) from e

    subject = claims.get("sub")
    if not subject:
        raise _unauthorized(INVALID_TOKEN)
    return str(subject)


def verify_token(token: str | None) -> str | None:
    """Non-raising variant for the websocket join: user id or None."""
    if not token:
        return None
    try:
        return user_id_from_token(token)
    except HTTPException:
        return None


async def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """FastAPI dependency: the user id from an `Authorization: Bearer <JWT>` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Not authenticated. Please sign in.")
    return user_id_from_token(authorization.removeprefix("Bearer "))

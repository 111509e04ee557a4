"""
Authentication against the hosted auth provider.

The provider signs an access token (HS256 JWT) for each signed-in account.
The frontend sends it as ``Authorization: Bearer <token>``; WebSocket clients
pass it as the ``token`` query parameter because browsers cannot set headers
on the upgrade request.

Claims used:
- ``sub``: account identity
- ``email``
- ``user_metadata.full_name`` / ``user_metadata.avatar_url``
"""

import time
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from jose import JWTError, jwt

from intermeet.core.config import settings
from intermeet.core.logging import get_logger
from intermeet.models.models import CurrentUser

logger = get_logger(__name__)

ALGORITHMS = ["HS256"]


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature, expiry and audience of a provider access token."""
    return jwt.decode(
        token,
        settings.AUTH_JWT_SECRET,
        algorithms=ALGORITHMS,
        audience=settings.AUTH_JWT_AUDIENCE,
    )


def user_from_token(token: str) -> Optional[CurrentUser]:
    """Resolve the identity behind a token, or None if it is not valid."""
    try:
        claims = decode_access_token(token)
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        return None

    subject = claims.get("sub")
    if not subject:
        return None

    metadata = claims.get("user_metadata") or {}
    return CurrentUser(
        id=subject,
        email=claims.get("email"),
        full_name=metadata.get("full_name"),
        avatar_url=metadata.get("avatar_url"),
    )


def create_access_token(user_id: str, email: Optional[str] = None,
                        full_name: Optional[str] = None, expires_in: int = 3600) -> str:
    """
    Issue a token the way the auth provider does.

    Used by local tooling and tests; production tokens come from the provider.
    """
    now = int(time.time())
    claims: Dict[str, Any] = {
        "sub": user_id,
        "aud": settings.AUTH_JWT_AUDIENCE,
        "iat": now,
        "exp": now + expires_in,
        "user_metadata": {},
    }
    if email:
        claims["email"] = email
    if full_name:
        claims["user_metadata"]["full_name"] = full_name
    return jwt.encode(claims, settings.AUTH_JWT_SECRET, algorithm=ALGORITHMS[0])


async def get_current_user(request: Request) -> CurrentUser:
    """
    Get current authenticated user from the bearer token.
    Use as dependency for protected endpoints.
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(401, "Unauthorized")

    user = user_from_token(token)
    if user is None:
        raise HTTPException(401, "Unauthorized")
    return user

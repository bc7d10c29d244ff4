# gamerhive/sandbox/tokens.py
"""
Bearer tokens for the sandbox backend.

- create_token / verify_token: PyJWT, HS256
- get_current_user_required: FastAPI dependency for /user/* routes

Environment Variables:
- SANDBOX_JWT_SECRET: Signing secret (a fixed development secret if unset)
- SANDBOX_JWT_EXPIRY_HOURS: Token expiry in hours (default: 24)

Token Payload:
- user_id, iat, exp
"""

from __future__ import annotations

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gamerhive.privacy_utils import hash_user_id

log = logging.getLogger("gamerhive.sandbox.tokens")

DEV_JWT_SECRET = "gamerhive-sandbox-development-secret-change-me"


# ============================================================
# Configuration
# ============================================================

def _get_jwt_secret() -> str:
    secret = os.getenv("SANDBOX_JWT_SECRET", "").strip()
    if not secret:
        return DEV_JWT_SECRET
    if len(secret) < 32:
        log.warning("SANDBOX_JWT_SECRET should be at least 32 characters")
    return secret


def _get_jwt_expiry_hours() -> int:
    try:
        return int(os.getenv("SANDBOX_JWT_EXPIRY_HOURS", "24"))
    except ValueError:
        return 24


# ============================================================
# Tokens
# ============================================================

def create_token(user_id: str) -> Tuple[str, datetime]:
    """
    Create a signed token.

    Returns:
        (token, expires_at)
    """
    now = datetime.now(timezone.utc)
    expiry_hours = _get_jwt_expiry_hours()
    expires_at = now + timedelta(hours=expiry_hours)

    payload = {
        "user_id": user_id,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, _get_jwt_secret(), algorithm="HS256")

    log.info("Token created for user %s (expires in %dh)", hash_user_id(user_id), expiry_hours)
    return token, expires_at


def verify_token(token: str) -> Optional[dict]:
    """Decoded payload, or None if the token is invalid or expired."""
    try:
        return jwt.decode(token, _get_jwt_secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        log.info("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        log.warning("Invalid token: %s", str(e)[:50])
        return None


# ============================================================
# FastAPI Dependencies
# ============================================================

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"success": False, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_required(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    Resolve the user behind the bearer token.

    Raises HTTPException 401 if the token is missing, invalid, or names a
    user that no longer exists.
    """
    if not credentials:
        raise _unauthorized("Not authorized, no token")

    payload = verify_token(credentials.credentials)
    if not payload or not payload.get("user_id"):
        raise _unauthorized("Not authorized, token failed")

    user = request.app.state.users.get_user_by_id(payload["user_id"])
    if user is None:
        raise _unauthorized("User not found")
    return user

"""Bearer-token identity for the API routes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Request

from .config import Settings
from .errors import AuthError
from .models import User

logger = logging.getLogger(__name__)


def user_from_claims(claims: Dict[str, Any]) -> User:
    user_id = claims.get("user_id") or claims.get("id")
    return User(
        id=str(user_id) if user_id is not None else None,
        email=claims.get("email"),
        role=claims.get("role") or "user",
    )


def verify_token(token: str, settings: Settings) -> User:
    """Decode and verify a bearer token; raises AuthError on any problem."""
    if not settings.jwt_secret:
        raise AuthError("JWT_SECRET is not configured.")
    try:
        claims = jwt.decode(
            token, settings.jwt_secret, algorithms=settings.jwt_algorithm_list
        )
    except jwt.PyJWTError as exc:
        logger.warning("JWT verification failed: %s", exc)
        raise AuthError(str(exc)) from exc
    return user_from_claims(claims)


def _bearer_token(header: Optional[str]) -> str:
    if not header or not header.startswith("Bearer "):
        raise AuthError(
            "Missing bearer credential.",
            public_message="Missing or invalid Authorization header",
        )
    return header.split(" ", 1)[1].strip()


async def require_user(request: Request) -> User:
    """FastAPI dependency yielding the verified caller."""
    token = _bearer_token(request.headers.get("Authorization"))
    return verify_token(token, request.app.state.settings)

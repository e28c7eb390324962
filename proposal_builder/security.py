from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from proposal_builder.config import settings

logger = logging.getLogger("proposal_builder.auth")


@dataclass(frozen=True)
class AuthContext:
    user_id: str


def _sign(user_id: str) -> str:
    return hmac.new(
        settings.PROPOSALS_SESSION_SECRET.encode("utf-8"),
        user_id.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def issue_session_token(user_id: str) -> str:
    user_id = user_id.strip()
    if not user_id or "." in user_id:
        raise ValueError("user_id must be non-empty and must not contain '.'")
    return f"{user_id}.{_sign(user_id)}"


def verify_session_token(token: str | None) -> AuthContext | None:
    if not token:
        return None
    user_id, sep, signature = token.strip().rpartition(".")
    if not sep or not user_id or not signature:
        return None
    if not hmac.compare_digest(_sign(user_id), signature):
        return None
    return AuthContext(user_id=user_id)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:].strip() or None


def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext:
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer authorization header",
        )
    auth = verify_session_token(token)
    if auth is None:
        logger.info("Rejected session token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return auth

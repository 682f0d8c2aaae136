"""
Request-scoped dependencies.

The caller's identity is never ambient: handlers that need it declare a
``SessionContext`` dependency, which is built here by verifying the bearer
token (API) or the session cookie (pages) against the identity provider.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .database import get_db_session
from .docstore import DocumentStore
from .identity import IdentityProvider, InvalidTokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    uid: str
    email: Optional[str]
    display_name: Optional[str]
    token: str


def get_store(db: AsyncSession = Depends(get_db_session)) -> DocumentStore:
    return DocumentStore(db)


def get_identity_provider(db: AsyncSession = Depends(get_db_session)) -> IdentityProvider:
    return IdentityProvider(
        db,
        secret_key=config.AUTH_SECRET_KEY,
        token_ttl_minutes=config.AUTH_TOKEN_TTL_MINUTES,
        password_rounds=config.PASSWORD_HASH_ROUNDS,
    )


def session_from_token(identity: IdentityProvider, token: str) -> SessionContext:
    """Verify ``token``; raises InvalidTokenError."""
    claims = identity.verify_id_token(token)
    return SessionContext(
        uid=claims["uid"],
        email=claims.get("email"),
        display_name=claims.get("name"),
        token=token,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_session(
    authorization: Optional[str] = Header(None),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> SessionContext:
    """Session for API calls; 401 unless a valid ``Authorization: Bearer`` token is sent."""
    if authorization is None:
        logger.info("Rejected request without Authorization header")
        raise _unauthorized("Missing or invalid authorization token")

    parts = authorization.split()
    # Expected format: "Bearer <token>"
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.info("Rejected malformed Authorization header")
        raise _unauthorized("Missing or invalid authorization token")

    try:
        return session_from_token(identity, parts[1])
    except InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", e)
        raise _unauthorized("Invalid token")


async def get_cookie_session(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[SessionContext]:
    """Session for page views, or None when the cookie is missing or does not verify."""
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        return session_from_token(identity, token)
    except InvalidTokenError as e:
        logger.info("Ignoring session cookie: %s", e)
        return None

"""
Identity provider client.

Owns user accounts and the bearer ID tokens that prove who a caller is.
Tokens are HS256 JWTs carrying the user's uid in ``sub``; verifying a token
only checks its signature and expiry, the same way a hosted identity
service's ``verify_id_token`` does.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_ISSUER = "waterlily"
# bcrypt log2 cost factor; bcrypt only reads the first 72 bytes
DEFAULT_PASSWORD_ROUNDS = 12
PASSWORD_MAX_BYTES = 72


class IdentityError(Exception):
    """Base class for identity provider failures."""


class InvalidTokenError(IdentityError):
    pass


class InvalidCredentialsError(IdentityError):
    pass


class EmailAlreadyExistsError(IdentityError):
    pass


@dataclass
class UserRecord:
    uid: str
    email: str
    display_name: Optional[str]
    created_at: Optional[datetime] = None


@dataclass
class IssuedToken:
    token: str
    expires_at: datetime
    user: UserRecord


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str, rounds: int = DEFAULT_PASSWORD_ROUNDS) -> str:
    """bcrypt hash of ``password``; raises ValueError past 72 UTF-8 bytes."""
    secret = password.encode("utf-8")
    if len(secret) > PASSWORD_MAX_BYTES:
        raise ValueError(f"password is longer than {PASSWORD_MAX_BYTES} bytes")
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(password: str, encoded: str) -> bool:
    secret = password.encode("utf-8")
    if len(secret) > PASSWORD_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, encoded.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password(secrets.token_urlsafe(16), rounds)


def _record(user: User) -> UserRecord:
    return UserRecord(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        created_at=user.created_at,
    )


class IdentityProvider:
    """Sign-up, sign-in and token verification against the ``users`` table."""

    def __init__(
        self,
        session: AsyncSession,
        secret_key: str,
        token_ttl_minutes: int = 60 * 24,
        password_rounds: int = DEFAULT_PASSWORD_ROUNDS,
    ) -> None:
        self.session = session
        self.secret_key = secret_key
        self.token_ttl = timedelta(minutes=token_ttl_minutes)
        self.password_rounds = password_rounds

    async def _find_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_user(self, uid: str) -> Optional[UserRecord]:
        try:
            user = await self.session.get(User, uid)
        except SQLAlchemyError as exc:
            raise IdentityError("User lookup failed") from exc
        return _record(user) if user is not None else None

    async def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> UserRecord:
        """Create an account.

        Raises:
            EmailAlreadyExistsError: if an account with this email exists.
            IdentityError: for database failures.
        """
        email = normalize_email(email)
        try:
            if await self._find_by_email(email) is not None:
                raise EmailAlreadyExistsError(email)
            user = User(
                uid=secrets.token_urlsafe(21),
                email=email,
                display_name=display_name or None,
                password_hash=hash_password(password, self.password_rounds),
                created_at=datetime.now(timezone.utc),
            )
            self.session.add(user)
            await self.session.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent sign-up for the same email
            await self.session.rollback()
            raise EmailAlreadyExistsError(email) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise IdentityError("Could not create user") from exc
        logger.info("Created user %s", user.uid)
        return _record(user)

    async def sign_in(self, email: str, password: str) -> IssuedToken:
        try:
            user = await self._find_by_email(email)
        except SQLAlchemyError as exc:
            raise IdentityError("User lookup failed") from exc
        if user is None:
            # Unknown emails still pay for one bcrypt check.
            check_password(password, _dummy_hash(self.password_rounds))
            valid = False
        else:
            valid = check_password(password, user.password_hash)
        if not valid:
            logger.info("Failed sign-in for %s", normalize_email(email))
            raise InvalidCredentialsError("Invalid email or password")
        return self.create_id_token(_record(user))

    def create_id_token(self, user: UserRecord) -> IssuedToken:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + self.token_ttl
        payload = {
            "sub": user.uid,
            "email": user.email,
            "name": user.display_name,
            "iss": TOKEN_ISSUER,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=TOKEN_ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at, user=user)

    def verify_id_token(self, token: str) -> Dict[str, Any]:
        """Decode and verify ``token``; the returned claims carry ``uid``.

        Raises:
            InvalidTokenError: on a bad signature, an expired or malformed token.
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[TOKEN_ALGORITHM],
                issuer=TOKEN_ISSUER,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("Token has expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidTokenError(f"Token validation failed: {exc}") from exc
        claims["uid"] = claims["sub"]
        return claims

"""
Security utilities for password hashing and JWT access tokens.

This module provides cryptographic functions for:
- Password hashing using Argon2id (memory-hard, adaptive cost)
- Issuing HS256-signed access tokens carrying the caller's id and role
- Validating bearer tokens into an Identity
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import settings
from errors import InvalidToken
from time_utils import utc_now

logger = logging.getLogger(__name__)

# Only HMAC-SHA256 is accepted; tokens signed with anything else fail validation
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller extracted from a bearer token."""

    subject: UUID
    role: str


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2id.

    Example:
        >>> hashed = hash_password("my_secure_password")
        >>> verify_password("my_secure_password", hashed)
        True
    """
    logger.debug("Hashing password")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash (constant-time compare)."""
    logger.debug("Verifying password")
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unrecognized or corrupted hash
        logger.info("Stored password hash could not be parsed")
        return False


def create_access_token(
    subject: UUID,
    role: str,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
    secret_key: Optional[str] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: User id, stored in the `sub` claim
        role: Caller's highest team role at issue time
        expires_delta: Optional custom lifetime (defaults to ACCESS_TOKEN_EXPIRE_MINUTES)
        now: Issue time override, used by tests
        secret_key: Signing key override (defaults to JWT_SECRET_KEY)

    Returns:
        Compact JWS string

    Example:
        >>> token = create_access_token(user.id, "member")
    """
    issued_at = now or utc_now()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = issued_at + expires_delta

    claims = {
        "sub": str(subject),
        "role": role,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    token = jwt.encode(claims, secret_key or settings.JWT_SECRET_KEY, algorithm=ALGORITHM)
    logger.debug(f"Access token created for user {subject}, expires at: {expire}")
    return token


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Identity:
    """
    Validate a bearer token and extract the caller.

    Raises:
        InvalidToken: bad signature, unsupported algorithm, expired, or missing claims
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.JWT_SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require_exp": True, "require_iat": True, "require_sub": True},
        )
    except JWTError as e:
        logger.info(f"JWT verification failed: {str(e)}")
        raise InvalidToken(str(e)) from e

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        logger.info("Token payload missing 'role' claim")
        raise InvalidToken("missing role claim")

    try:
        subject = UUID(str(payload["sub"]))
    except ValueError as e:
        logger.info(f"Invalid subject format in token: {payload.get('sub')}")
        raise InvalidToken("invalid subject") from e

    return Identity(subject=subject, role=role)

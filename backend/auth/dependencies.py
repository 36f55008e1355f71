"""
FastAPI dependencies for authentication and authorization.

This module provides dependency functions that can be used in route handlers to:
- Extract and validate the caller's identity from a bearer token (strict or optional)
- Gate routes on the role claim carried by the token
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from auth.security import Identity, decode_access_token
from errors import InvalidToken

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; missing or non-Bearer headers yield None instead of 403
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Strict entry point: the request must carry a valid bearer token.

    Token validation is CPU-only; the user row is not loaded.

    Raises:
        HTTPException: 401 if the token is missing, malformed, expired, or forged

    Example:
        @router.get("/teams")
        async def list_teams(identity: Identity = Depends(get_current_identity)):
            return {"user_id": identity.subject}
    """
    if credentials is None or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise _unauthorized("Not authenticated")

    try:
        identity = decode_access_token(credentials.credentials)
    except InvalidToken:
        raise _unauthorized("Invalid or expired token")

    logger.debug(f"Authenticated user {identity.subject} with role {identity.role}")
    return identity


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Identity]:
    """
    Optional entry point: returns the caller when a valid token is present, None otherwise.

    Used on public routes, where a broken token must not block the request.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        return decode_access_token(credentials.credentials)
    except InvalidToken:
        logger.debug("Optional authentication failed, continuing anonymously")
        return None


def require_role(*allowed_roles: str):
    """
    Create a dependency that requires the token's role claim to be one of `allowed_roles`.

    This is a coarse pre-filter only: the claim is the caller's highest role at
    login time. Team-specific decisions must still consult the membership oracle.

    Example:
        @router.post("/teams/{team_id}/invite")
        async def invite(identity: Identity = Depends(require_role("owner", "admin"))):
            pass
    """
    allowed = set(allowed_roles)

    async def role_checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if allowed and identity.role not in allowed:
            logger.info(
                f"Access denied: user {identity.subject} has role '{identity.role}', "
                f"but one of {sorted(allowed)} is required"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return identity

    return role_checker

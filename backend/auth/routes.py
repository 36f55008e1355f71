"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration (sends a welcome mail)
- Login (returns an access token carrying the user's highest team role)
"""

import logging

from fastapi import APIRouter, Depends, status

import schemas
from providers import get_auth_service
from services.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["auth"])


@router.post("/register", response_model=schemas.User, status_code=status.HTTP_201_CREATED)
def register(request: schemas.RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """
    Register a new user account.

    Raises:
        400 if the email is already registered or a field is empty
        500 if the welcome mail could not be sent (the account is kept)
    """
    logger.info(f"Registration attempt for email: {request.email}")
    return service.register(request.email, request.password)


@router.post("/login", response_model=schemas.AuthResponse)
def login(request: schemas.LoginRequest, service: AuthService = Depends(get_auth_service)):
    """
    Login with email and password.

    Returns:
        Access token and the user
    """
    logger.info(f"Login attempt for email: {request.email}")
    token, user = service.login(request.email, request.password)
    return schemas.AuthResponse(token=token, user=schemas.User.model_validate(user))

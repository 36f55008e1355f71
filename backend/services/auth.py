"""
Registration and login.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from auth.permissions import DEFAULT_ROLE, highest_role
from auth.security import create_access_token, hash_password, verify_password
from errors import BadInput, InvalidCredentials, UserExists
from mailer import Mailer, welcome_message
from repositories.users import UserRepository
from time_utils import utc_now

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session, mailer: Optional[Mailer] = None):
        self.db = db
        self.mailer = mailer
        self.users = UserRepository(db)

    def register(self, email: str, password: str) -> models.User:
        """
        Create an account and send the welcome mail.

        A mail failure is raised after the user row is committed; the account
        stays registered.

        Raises:
            BadInput: empty email or password
            UserExists: email already registered (case-insensitive)
            MailFailed / BreakerOpen: welcome mail could not be sent
        """
        logger.debug("AuthService.register called")
        email = (email or "").strip()
        if not email or not password:
            raise BadInput("Email and password are required")

        if self.users.get_by_email(email) is not None:
            logger.info(f"Registration failed: email already exists: {email}")
            raise UserExists()

        now = utc_now()
        user = models.User(
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        try:
            user = self.users.create(user)
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Registration lost a race on email: {email}")
            raise UserExists()

        logger.info(f"User registered successfully: {user.email} (ID: {user.id})")

        if self.mailer is not None:
            self.mailer.send(welcome_message(user.email))

        return user

    def login(self, email: str, password: str) -> Tuple[str, models.User]:
        """
        Verify credentials and issue an access token.

        The token's role claim is the user's highest role across teams, or
        "member" when the user belongs to no team.

        Raises:
            BadInput: empty email or password
            InvalidCredentials: unknown email or wrong password
        """
        logger.debug("AuthService.login called")
        email = (email or "").strip()
        if not email or not password:
            raise BadInput("Email and password are required")

        user = self.users.get_by_email(email)
        if user is None:
            logger.info(f"Login failed: user not found: {email}")
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            logger.info(f"Login failed: invalid password for {email}")
            raise InvalidCredentials()

        role = highest_role(self.db, user.id) or DEFAULT_ROLE
        token = create_access_token(user.id, role)

        logger.info(f"User logged in: {user.email} (role={role})")
        return token, user

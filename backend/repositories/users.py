import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from repositories.base import save

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user: models.User, commit: bool = True) -> models.User:
        """Persist a new user. Raises IntegrityError on a duplicate email."""
        return save(self.db, user, commit=commit)

    def get(self, user_id: UUID) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Case-insensitive lookup by email."""
        return (
            self.db.query(models.User)
            .filter(func.lower(models.User.email) == email.strip().lower())
            .first()
        )

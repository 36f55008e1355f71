import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

import models
from repositories.base import remove, save

logger = logging.getLogger(__name__)


class CommentRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, comment: models.Comment, commit: bool = True) -> models.Comment:
        return save(self.db, comment, commit=commit)

    def get(self, task_id: UUID, comment_id: UUID) -> Optional[models.Comment]:
        """Comment by id, scoped to its task."""
        return (
            self.db.query(models.Comment)
            .filter(models.Comment.id == comment_id, models.Comment.task_id == task_id)
            .first()
        )

    def list_for_task(self, task_id: UUID, limit: int, offset: int) -> List[models.Comment]:
        """One page of a task's comments, oldest first."""
        return (
            self.db.query(models.Comment)
            .filter(models.Comment.task_id == task_id)
            .order_by(models.Comment.created_at.asc(), models.Comment.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_for_task(self, task_id: UUID) -> int:
        return self.db.query(models.Comment).filter(models.Comment.task_id == task_id).count()

    def update_body(self, comment: models.Comment, body: str, commit: bool = True) -> models.Comment:
        comment.body = body
        return save(self.db, comment, commit=commit)

    def delete(self, comment: models.Comment, commit: bool = True) -> None:
        remove(self.db, comment, commit=commit)

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Query, Session

import models
from repositories.base import save

logger = logging.getLogger(__name__)


@dataclass
class TaskFilter:
    team_id: UUID
    status: Optional[models.TaskStatus] = None
    assignee_id: Optional[UUID] = None


class TaskRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, task: models.Task, commit: bool = True) -> models.Task:
        return save(self.db, task, commit=commit)

    def update(self, task: models.Task, commit: bool = True) -> models.Task:
        return save(self.db, task, commit=commit)

    def get(self, task_id: UUID) -> Optional[models.Task]:
        return self.db.query(models.Task).filter(models.Task.id == task_id).first()

    def get_for_update(self, task_id: UUID) -> Optional[models.Task]:
        """Load a task and lock its row until the surrounding transaction ends."""
        return (
            self.db.query(models.Task)
            .filter(models.Task.id == task_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def get_team_id(self, task_id: UUID) -> Optional[UUID]:
        row = self.db.query(models.Task.team_id).filter(models.Task.id == task_id).first()
        return row.team_id if row else None

    def _filtered(self, task_filter: TaskFilter) -> Query:
        query = self.db.query(models.Task).filter(models.Task.team_id == task_filter.team_id)
        if task_filter.status is not None:
            query = query.filter(models.Task.status == task_filter.status)
        if task_filter.assignee_id is not None:
            query = query.filter(models.Task.assignee_id == task_filter.assignee_id)
        return query

    def list(self, task_filter: TaskFilter, limit: int, offset: int) -> List[models.Task]:
        """One page of a team's tasks, newest first."""
        return (
            self._filtered(task_filter)
            .order_by(models.Task.created_at.desc(), models.Task.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count(self, task_filter: TaskFilter) -> int:
        return self._filtered(task_filter).count()


class TaskHistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, entry: models.TaskHistory, commit: bool = True) -> models.TaskHistory:
        return save(self.db, entry, commit=commit)

    def list_for_task(self, task_id: UUID) -> List[models.TaskHistory]:
        """History rows for a task, oldest first."""
        return (
            self.db.query(models.TaskHistory)
            .filter(models.TaskHistory.task_id == task_id)
            .order_by(models.TaskHistory.changed_at.asc())
            .all()
        )

    def count_for_task(self, task_id: UUID) -> int:
        return self.db.query(models.TaskHistory).filter(models.TaskHistory.task_id == task_id).count()

"""
Tasks: creation, cached listing, transactional update with change history.

Update flow (single transaction):
1. Lock the task row (SELECT ... FOR UPDATE)
2. Check the caller is the task's creator
3. Apply the fields present in the request, validating a new assignee
4. Maintain completed_at across transitions into and out of "done"
5. Append one history row holding the {field: {from, to}} diff

The list cache is never invalidated here; cached pages expire by TTL.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

import models
import schemas
from auth.permissions import is_member, require_member
from cache import CacheError, TasksCache, build_tasks_key
from database import transaction
from errors import BadInput, Forbidden, InvalidAssignee, NotFound
from repositories.tasks import TaskFilter, TaskHistoryRepository, TaskRepository
from services.pagination import normalize_pagination, offset_for
from time_utils import utc_now

logger = logging.getLogger(__name__)

TRACKED_FIELDS = ("title", "description", "status", "assignee_id")


def _history_value(value: Any) -> Any:
    """JSON-friendly form of a task field for the history diff."""
    if value is None:
        return None
    if isinstance(value, models.TaskStatus):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def compute_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Diff two snapshots of the tracked fields.

    Returns:
        {field: {"from": old, "to": new}} for every field whose value changed
    """
    changes = {}
    for field in TRACKED_FIELDS:
        old = _history_value(before.get(field))
        new = _history_value(after.get(field))
        if old != new:
            changes[field] = {"from": old, "to": new}
    return changes


def _snapshot(task: models.Task) -> Dict[str, Any]:
    return {field: getattr(task, field) for field in TRACKED_FIELDS}


def _to_model_status(status) -> Optional[models.TaskStatus]:
    if status is None:
        return None
    return models.TaskStatus(getattr(status, "value", status))


class TasksService:
    def __init__(self, db: Session, cache: Optional[TasksCache] = None):
        self.db = db
        self.cache = cache
        self.tasks = TaskRepository(db)
        self.history = TaskHistoryRepository(db)

    def _check_assignee(self, team_id: UUID, assignee_id: UUID) -> None:
        if not is_member(self.db, team_id, assignee_id):
            logger.info(f"Assignee {assignee_id} is not a member of team {team_id}")
            raise InvalidAssignee()

    def create_task(self, user_id: UUID, payload: schemas.TaskCreate) -> models.Task:
        """
        Create a task in a team the caller belongs to.

        Raises:
            BadInput: blank title
            Forbidden: caller is not a member of the team
            InvalidAssignee: assignee is not a member of the team
        """
        logger.debug(f"TasksService.create_task called by {user_id} for team {payload.team_id}")
        title = (payload.title or "").strip()
        if not title:
            raise BadInput("Title is required")

        require_member(self.db, payload.team_id, user_id)
        if payload.assignee_id is not None:
            self._check_assignee(payload.team_id, payload.assignee_id)

        status = _to_model_status(payload.status) or models.TaskStatus.todo
        now = utc_now()
        task = models.Task(
            team_id=payload.team_id,
            title=title,
            description=payload.description,
            status=status,
            assignee_id=payload.assignee_id,
            created_by=user_id,
            created_at=now,
            updated_at=now,
            completed_at=now if status == models.TaskStatus.done else None,
        )
        task = self.tasks.create(task)
        logger.info(f"Task created: {task.id} in team {task.team_id} by user {user_id}")
        return task

    def list_tasks(
        self,
        user_id: UUID,
        team_id: UUID,
        status: Optional[schemas.TaskStatus] = None,
        assignee_id: Optional[UUID] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> schemas.TasksList:
        """
        One page of a team's tasks, newest first, read through the cache.

        Only items are cached; `total` is always counted from the database.
        Cache failures are logged and the request is served from the database.
        """
        logger.debug(f"TasksService.list_tasks called by {user_id} for team {team_id}")
        require_member(self.db, team_id, user_id)

        page, per_page = normalize_pagination(page, per_page)
        task_filter = TaskFilter(team_id=team_id, status=_to_model_status(status), assignee_id=assignee_id)
        key = build_tasks_key(team_id, task_filter.status, assignee_id, page, per_page)

        items: Optional[List[schemas.Task]] = None
        if self.cache is not None:
            try:
                items = self.cache.get_tasks(key)
            except CacheError as e:
                logger.warning(f"Tasks cache read failed, falling back to database: {str(e)}")

        if items is None:
            rows = self.tasks.list(task_filter, limit=per_page, offset=offset_for(page, per_page))
            items = [schemas.Task.model_validate(row) for row in rows]
            if self.cache is not None:
                try:
                    self.cache.set_tasks(key, items)
                except CacheError as e:
                    logger.warning(f"Tasks cache write failed: {str(e)}")

        total = self.tasks.count(task_filter)
        return schemas.TasksList(items=items, total=total, page=page, per_page=per_page)

    def update_task(self, user_id: UUID, task_id: UUID, fields: Dict[str, Any]) -> models.Task:
        """
        Apply a partial update and record it in the task history.

        `fields` holds only the keys the client sent. A key mapped to None
        clears `description`; for title, status and assignee_id it is ignored.
        A history row is written even when nothing changed.

        Raises:
            NotFound: task does not exist
            Forbidden: caller did not create the task
            BadInput: blank title
            InvalidAssignee: new assignee is not a member of the task's team
        """
        logger.debug(f"TasksService.update_task called by {user_id} for task {task_id}")

        with transaction(self.db):
            task = self.tasks.get_for_update(task_id)
            if task is None:
                raise NotFound("Task not found")
            if task.created_by != user_id:
                logger.info(f"User {user_id} cannot update task {task_id} created by {task.created_by}")
                raise Forbidden("Only the task creator can update it")

            before = _snapshot(task)
            now = utc_now()

            if fields.get("title") is not None:
                title = fields["title"].strip()
                if not title:
                    raise BadInput("Title cannot be empty")
                task.title = title

            if "description" in fields:
                task.description = fields["description"]

            if fields.get("assignee_id") is not None:
                self._check_assignee(task.team_id, fields["assignee_id"])
                task.assignee_id = fields["assignee_id"]

            new_status = _to_model_status(fields.get("status"))
            if new_status is not None:
                old_status = task.status
                task.status = new_status
                # done -> done keeps completed_at from the transition into done
                if new_status == models.TaskStatus.done and old_status != models.TaskStatus.done:
                    task.completed_at = now
                elif new_status != models.TaskStatus.done:
                    task.completed_at = None

            task.updated_at = now
            changes = compute_changes(before, _snapshot(task))

            self.tasks.update(task, commit=False)
            self.history.create(
                models.TaskHistory(
                    task_id=task.id,
                    changed_by=user_id,
                    changes=changes,
                    changed_at=now,
                ),
                commit=False,
            )

        logger.info(f"Task {task_id} updated by user {user_id}: {sorted(changes)}")
        return task

    def get_history(self, user_id: UUID, task_id: UUID) -> List[models.TaskHistory]:
        """History rows for a task, oldest first. Caller must be a team member."""
        logger.debug(f"TasksService.get_history called by {user_id} for task {task_id}")
        team_id = self.tasks.get_team_id(task_id)
        if team_id is None:
            raise NotFound("Task not found")
        require_member(self.db, team_id, user_id)
        return self.history.list_for_task(task_id)

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

import schemas
from auth.dependencies import get_current_identity, require_role
from auth.security import Identity
from providers import get_tasks_service
from services.tasks import TasksService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


@router.get("", response_model=schemas.TasksList)
def list_tasks(
    team_id: UUID = Query(..., description="Team whose tasks to list"),
    status: Optional[schemas.TaskStatus] = Query(None),
    assignee_id: Optional[UUID] = Query(None),
    page: Optional[int] = Query(None, description="1-based page number (values below 1 mean 1)"),
    per_page: Optional[int] = Query(None, description="Page size, 1..100 (default 20)"),
    identity: Identity = Depends(get_current_identity),
    service: TasksService = Depends(get_tasks_service),
):
    """List a team's tasks, newest first."""
    logger.debug(
        f"User {identity.subject} listing tasks: team={team_id}, status={status}, "
        f"assignee={assignee_id}, page={page}, per_page={per_page}"
    )
    return service.list_tasks(identity.subject, team_id, status, assignee_id, page, per_page)


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    request: schemas.TaskCreate,
    identity: Identity = Depends(require_role("member", "admin", "owner")),
    service: TasksService = Depends(get_tasks_service),
):
    """Create a task in one of the caller's teams."""
    return service.create_task(identity.subject, request)


@router.put("/{task_id}", response_model=schemas.Task)
def update_task(
    task_id: UUID,
    request: schemas.TaskUpdate,
    identity: Identity = Depends(get_current_identity),
    service: TasksService = Depends(get_tasks_service),
):
    """Update a task (creator only). Only fields present in the body are applied."""
    fields = request.model_dump(exclude_unset=True)
    return service.update_task(identity.subject, task_id, fields)


@router.get("/{task_id}/history", response_model=schemas.TaskHistoryList)
def get_task_history(
    task_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: TasksService = Depends(get_tasks_service),
):
    """Change history of a task, oldest first."""
    entries = service.get_history(identity.subject, task_id)
    return schemas.TaskHistoryList(items=[schemas.TaskHistory.model_validate(entry) for entry in entries])

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

import schemas
from auth.dependencies import get_current_identity
from auth.security import Identity
from providers import get_comments_service
from services.comments import CommentsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks/{task_id}/comments", tags=["comments"])


@router.get("", response_model=schemas.CommentsList)
def list_comments(
    task_id: UUID,
    page: Optional[int] = Query(None),
    per_page: Optional[int] = Query(None),
    identity: Identity = Depends(get_current_identity),
    service: CommentsService = Depends(get_comments_service),
):
    """List a task's comments, oldest first."""
    items, total, page, per_page = service.list_comments(identity.subject, task_id, page, per_page)
    return schemas.CommentsList(
        items=[schemas.Comment.model_validate(comment) for comment in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("", response_model=schemas.Comment, status_code=status.HTTP_201_CREATED)
def create_comment(
    task_id: UUID,
    request: schemas.CommentCreate,
    identity: Identity = Depends(get_current_identity),
    service: CommentsService = Depends(get_comments_service),
):
    return service.create_comment(identity.subject, task_id, request.body)


@router.put("/{comment_id}", response_model=schemas.Comment)
def update_comment(
    task_id: UUID,
    comment_id: UUID,
    request: schemas.CommentUpdate,
    identity: Identity = Depends(get_current_identity),
    service: CommentsService = Depends(get_comments_service),
):
    """Edit a comment (author only)."""
    return service.update_comment(identity.subject, task_id, comment_id, request.body)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    task_id: UUID,
    comment_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: CommentsService = Depends(get_comments_service),
):
    """Delete a comment (author only)."""
    service.delete_comment(identity.subject, task_id, comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

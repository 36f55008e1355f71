import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

import models
from auth.permissions import require_member
from errors import BadInput, Forbidden, NotFound
from repositories.comments import CommentRepository
from repositories.tasks import TaskRepository
from services.pagination import normalize_pagination, offset_for
from time_utils import utc_now

logger = logging.getLogger(__name__)


def _clean_body(body: str) -> str:
    body = (body or "").strip()
    if not body:
        raise BadInput("Comment body cannot be empty")
    return body


class CommentsService:
    def __init__(self, db: Session):
        self.db = db
        self.comments = CommentRepository(db)
        self.tasks = TaskRepository(db)

    def _require_task_member(self, user_id: UUID, task_id: UUID) -> None:
        team_id = self.tasks.get_team_id(task_id)
        if team_id is None:
            raise NotFound("Task not found")
        require_member(self.db, team_id, user_id)

    def _get_owned(self, user_id: UUID, task_id: UUID, comment_id: UUID) -> models.Comment:
        comment = self.comments.get(task_id, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        if comment.user_id != user_id:
            logger.info(f"User {user_id} is not the author of comment {comment_id}")
            raise Forbidden("Only the author can modify this comment")
        return comment

    def create_comment(self, user_id: UUID, task_id: UUID, body: str) -> models.Comment:
        logger.debug(f"CommentsService.create_comment called by {user_id} on task {task_id}")
        body = _clean_body(body)
        self._require_task_member(user_id, task_id)

        comment = models.Comment(task_id=task_id, user_id=user_id, body=body, created_at=utc_now())
        comment = self.comments.create(comment)
        logger.info(f"Comment {comment.id} added to task {task_id} by user {user_id}")
        return comment

    def list_comments(
        self, user_id: UUID, task_id: UUID, page: int = None, per_page: int = None
    ) -> Tuple[List[models.Comment], int, int, int]:
        """
        One page of a task's comments, oldest first.

        Returns:
            (items, total, page, per_page) with page and per_page normalized
        """
        logger.debug(f"CommentsService.list_comments called by {user_id} on task {task_id}")
        self._require_task_member(user_id, task_id)

        page, per_page = normalize_pagination(page, per_page)
        items = self.comments.list_for_task(task_id, limit=per_page, offset=offset_for(page, per_page))
        total = self.comments.count_for_task(task_id)
        return items, total, page, per_page

    def update_comment(self, user_id: UUID, task_id: UUID, comment_id: UUID, body: str) -> models.Comment:
        """Replace a comment's body. Only its author may do this."""
        logger.debug(f"CommentsService.update_comment called by {user_id} on comment {comment_id}")
        body = _clean_body(body)
        comment = self._get_owned(user_id, task_id, comment_id)
        comment = self.comments.update_body(comment, body)
        logger.info(f"Comment {comment_id} updated by user {user_id}")
        return comment

    def delete_comment(self, user_id: UUID, task_id: UUID, comment_id: UUID) -> None:
        """Delete a comment. Only its author may do this."""
        logger.debug(f"CommentsService.delete_comment called by {user_id} on comment {comment_id}")
        comment = self._get_owned(user_id, task_id, comment_id)
        self.comments.delete(comment)
        logger.info(f"Comment {comment_id} deleted by user {user_id}")

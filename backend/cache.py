"""
Read-through cache for task list pages, stored in Redis.

Entries hold only the page items (never the total) and expire after a fixed
TTL. Nothing invalidates them on write, so readers may see a page that is up
to one TTL stale.
"""

import logging
from typing import List, Optional
from uuid import UUID

import redis
from pydantic import TypeAdapter, ValidationError

import schemas

logger = logging.getLogger(__name__)

TASKS_LIST_TTL_SECONDS = 300

_tasks_adapter = TypeAdapter(List[schemas.Task])


class CacheError(Exception):
    """Cache backend unreachable or entry unreadable."""


def build_tasks_key(
    team_id: UUID,
    status: Optional[str],
    assignee_id: Optional[UUID],
    page: int,
    per_page: int,
) -> str:
    """
    Compose the cache key for one page of a team's task list.

    Example:
        >>> build_tasks_key(team_id, "done", None, 1, 20)
        'tasks:<team>:status=done:assignee=:page=1:per=20'
    """
    status_value = getattr(status, "value", status) or ""
    assignee_value = str(assignee_id) if assignee_id else ""
    return f"tasks:{team_id}:status={status_value}:assignee={assignee_value}:page={page}:per={per_page}"


class TasksCache:
    """Redis-backed storage for serialized task pages."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = TASKS_LIST_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def get_tasks(self, key: str) -> Optional[List[schemas.Task]]:
        """
        Look up a cached page.

        Returns:
            The cached items, or None on a miss

        Raises:
            CacheError: on connection failures or an undecodable entry
        """
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            raise CacheError(f"get {key}: {str(e)}") from e

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            items = _tasks_adapter.validate_json(raw)
        except ValidationError as e:
            raise CacheError(f"decode {key}: {str(e)}") from e

        logger.debug(f"Cache hit: {key} ({len(items)} items)")
        return items

    def set_tasks(self, key: str, items: List[schemas.Task]) -> None:
        """Store a page with the configured TTL. Raises CacheError on failure."""
        payload = _tasks_adapter.dump_json(items)
        try:
            self.client.set(key, payload, ex=self.ttl_seconds)
        except redis.RedisError as e:
            raise CacheError(f"set {key}: {str(e)}") from e
        logger.debug(f"Cached {len(items)} tasks under {key}")

    def close(self) -> None:
        self.client.close()


def create_tasks_cache(url: str, timeout_seconds: float, ttl_seconds: int) -> TasksCache:
    """Build a TasksCache with its own Redis connection pool."""
    client = redis.Redis.from_url(
        url,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
    )
    logger.info(f"Tasks cache enabled (ttl={ttl_seconds}s)")
    return TasksCache(client, ttl_seconds=ttl_seconds)

"""
FastAPI dependency providers for process-wide collaborators and services.

The breaker, mailer and cache are built once per process. Services are built
per request around the request's Session. Tests swap any of these through
app.dependency_overrides.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from breaker import CircuitBreaker
from cache import TasksCache, create_tasks_cache
from config import settings
from database import get_db
from mailer import BreakerMailer, LogMailer, Mailer, SMTPMailer
from services.auth import AuthService
from services.comments import CommentsService
from services.reports import ReportsService
from services.tasks import TasksService
from services.teams import TeamsService

logger = logging.getLogger(__name__)


@lru_cache
def get_breaker() -> CircuitBreaker:
    return CircuitBreaker(
        name="mailer",
        min_requests=settings.BREAKER_MIN_REQUESTS,
        failure_rate=settings.BREAKER_FAILURE_RATE,
        timeout=settings.BREAKER_TIMEOUT_SECONDS,
        max_requests=settings.BREAKER_MAX_REQUESTS,
        interval=settings.BREAKER_INTERVAL_SECONDS,
    )


@lru_cache
def get_mailer() -> Mailer:
    """SMTP mailer when SMTP_HOST is set, otherwise a logging mailer; always breaker-guarded."""
    if settings.SMTP_HOST:
        inner: Mailer = SMTPMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_addr=settings.SMTP_FROM,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )
    else:
        logger.warning("SMTP_HOST not set, outgoing mail will only be logged")
        inner = LogMailer()
    return BreakerMailer(inner, get_breaker())


@lru_cache
def get_tasks_cache() -> Optional[TasksCache]:
    """Redis-backed list cache, or None when REDIS_URL is empty."""
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set, tasks list cache disabled")
        return None
    return create_tasks_cache(
        settings.REDIS_URL,
        timeout_seconds=settings.REDIS_TIMEOUT_SECONDS,
        ttl_seconds=settings.TASKS_CACHE_TTL_SECONDS,
    )


def get_auth_service(
    db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)
) -> AuthService:
    return AuthService(db, mailer)


def get_teams_service(
    db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)
) -> TeamsService:
    return TeamsService(db, mailer)


def get_tasks_service(
    db: Session = Depends(get_db), cache: Optional[TasksCache] = Depends(get_tasks_cache)
) -> TasksService:
    return TasksService(db, cache)


def get_comments_service(db: Session = Depends(get_db)) -> CommentsService:
    return CommentsService(db)


def get_reports_service(db: Session = Depends(get_db)) -> ReportsService:
    return ReportsService(db)

"""
Test configuration and fixtures for Team Tasks tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database, mailer and cache dependency overrides
- Authentication helpers (JWT token generation)
- Common fixtures for users, teams and tasks
"""

import os
import sys

# Settings are read at import time; point them at throwaway backends first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-team-tasks"
os.environ["ENVIRONMENT"] = "test"
os.environ["REDIS_URL"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["AUTO_CREATE_TABLES"] = "false"

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator, Optional

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, JSON
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.dialects.postgresql import JSONB

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from main import app
import models
from auth.security import hash_password, create_access_token
from breaker import CircuitBreaker
from cache import TasksCache
from mailer import BreakerMailer, MockMailer
from providers import get_mailer, get_tasks_cache
from time_utils import utc_now

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

DEFAULT_PASSWORD = "secret123"


class FakeRedis:
    """Dict-backed stand-in for redis.Redis covering get/set/close."""

    def __init__(self, fail: bool = False):
        self.store: Dict[str, bytes] = {}
        self.expirations: Dict[str, Optional[int]] = {}
        self.fail = fail
        self.get_calls = 0
        self.set_calls = 0

    def get(self, key: str):
        self.get_calls += 1
        if self.fail:
            raise redis.ConnectionError("connection refused")
        return self.store.get(key)

    def set(self, key: str, value, ex: Optional[int] = None):
        self.set_calls += 1
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.store[key] = value if isinstance(value, bytes) else str(value).encode()
        self.expirations[key] = ex
        return True

    def close(self):
        pass


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@pytest.fixture(scope="function")
def as_utc() -> Callable[[datetime], datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    return _as_utc


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")

    # Create engine with SQLite in-memory
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Replace PostgreSQL-specific types with SQLite-compatible types
    for table in Base.metadata.tables.values():
        for column in table.columns:
            if isinstance(column.type, JSONB):
                column.type = JSON()

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def mock_mailer() -> MockMailer:
    return MockMailer()


@pytest.fixture(scope="function")
def breaker() -> CircuitBreaker:
    return CircuitBreaker(name="test-mailer")


@pytest.fixture(scope="function")
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture(scope="function")
def failing_redis() -> FakeRedis:
    """Redis double whose every call raises ConnectionError."""
    return FakeRedis(fail=True)


@pytest.fixture(scope="function")
def tasks_cache(fake_redis: FakeRedis) -> TasksCache:
    return TasksCache(fake_redis, ttl_seconds=300)


@pytest.fixture(scope="function")
def client(
    test_db: Session,
    mock_mailer: MockMailer,
    breaker: CircuitBreaker,
    tasks_cache: TasksCache,
) -> TestClient:
    """
    Create FastAPI test client with database, mailer and cache overrides.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    guarded_mailer = BreakerMailer(mock_mailer, breaker)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: guarded_mailer
    app.dependency_overrides[get_tasks_cache] = lambda: tasks_cache

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_user(test_db: Session) -> Callable[..., models.User]:
    """
    Factory fixture creating users directly in the database.
    """
    def _make_user(email: str, password: str = DEFAULT_PASSWORD) -> models.User:
        logger.debug(f"Creating user {email}")
        now = utc_now()
        user = models.User(
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        logger.info(f"Created user {email} with ID: {user.id}")
        return user

    return _make_user


@pytest.fixture(scope="function")
def owner_user(make_user) -> models.User:
    return make_user("owner@test.com")


@pytest.fixture(scope="function")
def member_user(make_user) -> models.User:
    return make_user("member@test.com")


@pytest.fixture(scope="function")
def outsider_user(make_user) -> models.User:
    return make_user("outsider@test.com")


@pytest.fixture(scope="function")
def make_token() -> Callable[..., str]:
    """
    Helper to create JWT access tokens.

    Usage: make_token(user, role="owner", expires_delta=timedelta(minutes=-1))
    """
    def _make_token(user: models.User, role: str = "member", expires_delta: timedelta = None) -> str:
        logger.debug(f"Creating auth token for user {user.id} with role {role}")
        return create_access_token(user.id, role, expires_delta)

    return _make_token


@pytest.fixture(scope="function")
def auth_headers(make_token) -> Callable[..., Dict[str, str]]:
    """
    Build Authorization headers for a user: auth_headers(user, role="owner").
    """
    def _auth_headers(user: models.User, role: str = "member") -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user, role)}"}

    return _auth_headers


@pytest.fixture(scope="function")
def owner_headers(owner_user: models.User, auth_headers) -> Dict[str, str]:
    return auth_headers(owner_user, "owner")


@pytest.fixture(scope="function")
def member_headers(member_user: models.User, auth_headers) -> Dict[str, str]:
    return auth_headers(member_user, "member")


@pytest.fixture(scope="function")
def outsider_headers(outsider_user: models.User, auth_headers) -> Dict[str, str]:
    return auth_headers(outsider_user, "member")


@pytest.fixture(scope="function")
def make_team(test_db: Session) -> Callable[..., models.Team]:
    """
    Factory fixture creating a team with its owner and optional extra members.
    """
    def _make_team(name: str, owner: models.User, members=(), admins=()) -> models.Team:
        logger.debug(f"Creating team {name}")
        now = utc_now()
        team = models.Team(name=name, created_by=owner.id, created_at=now, updated_at=now)
        test_db.add(team)
        test_db.flush()

        test_db.add(models.TeamMember(team_id=team.id, user_id=owner.id, role=models.MemberRole.owner, created_at=now))
        for admin in admins:
            test_db.add(models.TeamMember(team_id=team.id, user_id=admin.id, role=models.MemberRole.admin, created_at=now))
        for member in members:
            test_db.add(models.TeamMember(team_id=team.id, user_id=member.id, role=models.MemberRole.member, created_at=now))
        test_db.commit()
        test_db.refresh(team)
        logger.info(f"Created team {name} with ID: {team.id}")
        return team

    return _make_team


@pytest.fixture(scope="function")
def team(make_team, owner_user: models.User, member_user: models.User) -> models.Team:
    """
    Test team owned by owner_user with member_user as a plain member.
    """
    return make_team("Test Team", owner_user, members=[member_user])


@pytest.fixture(scope="function")
def make_task(test_db: Session) -> Callable[..., models.Task]:
    """
    Factory fixture inserting tasks directly (bypasses the service).
    """
    def _make_task(
        team: models.Team,
        creator: models.User,
        title: str = "Test Task",
        status: models.TaskStatus = models.TaskStatus.todo,
        assignee: models.User = None,
        created_at: datetime = None,
        completed_at: datetime = None,
    ) -> models.Task:
        now = created_at or utc_now()
        task = models.Task(
            team_id=team.id,
            title=title,
            status=status,
            assignee_id=assignee.id if assignee else None,
            created_by=creator.id,
            created_at=now,
            updated_at=now,
            completed_at=completed_at,
        )
        test_db.add(task)
        test_db.commit()
        test_db.refresh(task)
        logger.info(f"Created task {title} with ID: {task.id}")
        return task

    return _make_task


@pytest.fixture(scope="function")
def task(make_task, team: models.Team, owner_user: models.User) -> models.Task:
    """
    Task titled "a" in the test team, created by owner_user.
    """
    return make_task(team, owner_user, title="a")

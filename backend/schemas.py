from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional, List
from enum import Enum
from uuid import UUID


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    done = "done"


class MemberRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


class ErrorResponse(BaseModel):
    detail: str


# Auth schemas
class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class User(BaseModel):
    id: UUID
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: str
    user: User


# Team schemas
class TeamCreate(BaseModel):
    name: str = Field(..., max_length=255)


class Team(BaseModel):
    id: UUID
    name: str
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class TeamsList(BaseModel):
    items: List[Team]


class TeamMember(BaseModel):
    team_id: UUID
    user_id: UUID
    role: MemberRole
    created_at: datetime

    class Config:
        from_attributes = True


# Invite schemas
class InviteRequest(BaseModel):
    email: str = Field(..., max_length=255)


class AcceptInviteRequest(BaseModel):
    code: str


class Invite(BaseModel):
    id: UUID
    team_id: UUID
    email: str
    inviter_id: UUID
    code: str
    created_at: datetime

    class Config:
        from_attributes = True


# Task schemas
class TaskCreate(BaseModel):
    team_id: UUID
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[UUID] = None


class TaskUpdate(BaseModel):
    """
    Partial task update.

    Only fields present in the request body are applied (model_dump(exclude_unset=True)).
    An explicit null clears `description`; for the other fields null means "unchanged".
    """
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[UUID] = None


class Task(BaseModel):
    id: UUID
    team_id: UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    assignee_id: Optional[UUID] = None
    created_by: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TasksList(BaseModel):
    items: List[Task]
    total: int
    page: int
    per_page: int


class TaskHistory(BaseModel):
    id: UUID
    task_id: UUID
    changed_by: UUID
    changes: Dict[str, Any]
    changed_at: datetime

    class Config:
        from_attributes = True


class TaskHistoryList(BaseModel):
    items: List[TaskHistory]


# Comment schemas
class CommentCreate(BaseModel):
    body: str


class CommentUpdate(BaseModel):
    body: str


class Comment(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    body: str
    created_at: datetime

    class Config:
        from_attributes = True


class CommentsList(BaseModel):
    items: List[Comment]
    total: int
    page: int
    per_page: int


# Report schemas
class TeamSummary(BaseModel):
    team_id: UUID
    team_name: str
    members_count: int
    done_last_7d: int

    class Config:
        from_attributes = True


class UserTaskCount(BaseModel):
    user_id: UUID
    tasks_created: int

    class Config:
        from_attributes = True


class TeamTopCreators(BaseModel):
    team_id: UUID
    team_name: str
    creators: List[UserTaskCount]

    class Config:
        from_attributes = True


class InvalidAssignee(BaseModel):
    task_id: UUID
    team_id: UUID
    assignee_id: UUID

    class Config:
        from_attributes = True

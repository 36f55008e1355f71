"""
Read-only aggregate queries behind the reports endpoints.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List
from uuid import UUID

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)

TOP_CREATORS_LIMIT = 3


@dataclass
class TeamSummaryRow:
    team_id: UUID
    team_name: str
    members_count: int
    done_last_7d: int


@dataclass
class CreatorCount:
    user_id: UUID
    tasks_created: int


@dataclass
class TeamTopCreatorsRow:
    team_id: UUID
    team_name: str
    creators: List[CreatorCount]


@dataclass
class InvalidAssigneeRow:
    task_id: UUID
    team_id: UUID
    assignee_id: UUID


class ReportRepository:
    def __init__(self, db: Session):
        self.db = db

    def team_summary(self, done_since: datetime) -> List[TeamSummaryRow]:
        """Member count and tasks completed since `done_since`, for every team, by name."""
        members = (
            self.db.query(
                models.TeamMember.team_id.label("team_id"),
                func.count(models.TeamMember.user_id).label("members_count"),
            )
            .group_by(models.TeamMember.team_id)
            .subquery()
        )
        done = (
            self.db.query(
                models.Task.team_id.label("team_id"),
                func.count(models.Task.id).label("done_count"),
            )
            .filter(
                models.Task.status == models.TaskStatus.done,
                models.Task.completed_at >= done_since,
            )
            .group_by(models.Task.team_id)
            .subquery()
        )

        rows = (
            self.db.query(
                models.Team.id,
                models.Team.name,
                func.coalesce(members.c.members_count, 0),
                func.coalesce(done.c.done_count, 0),
            )
            .outerjoin(members, members.c.team_id == models.Team.id)
            .outerjoin(done, done.c.team_id == models.Team.id)
            .order_by(models.Team.name, models.Team.id)
            .all()
        )
        return [
            TeamSummaryRow(
                team_id=team_id,
                team_name=name,
                members_count=int(members_count),
                done_last_7d=int(done_count),
            )
            for team_id, name, members_count, done_count in rows
        ]

    def top_creators(self, start: datetime, end: datetime) -> List[TeamTopCreatorsRow]:
        """
        Top task creators per team for tasks created in [start, end).

        Teams with no tasks in the window are omitted. Ties on the count are
        broken by user id so the result is stable.
        """
        counts = (
            self.db.query(
                models.Task.team_id,
                models.Team.name,
                models.Task.created_by,
                func.count(models.Task.id),
            )
            .join(models.Team, models.Team.id == models.Task.team_id)
            .filter(models.Task.created_at >= start, models.Task.created_at < end)
            .group_by(models.Task.team_id, models.Team.name, models.Task.created_by)
            .all()
        )

        names: Dict[UUID, str] = {}
        per_team: Dict[UUID, List[CreatorCount]] = defaultdict(list)
        for team_id, team_name, user_id, tasks_created in counts:
            names[team_id] = team_name
            per_team[team_id].append(CreatorCount(user_id=user_id, tasks_created=int(tasks_created)))

        result = []
        for team_id in sorted(per_team, key=lambda tid: (names[tid], str(tid))):
            ranked = sorted(per_team[team_id], key=lambda c: (-c.tasks_created, str(c.user_id)))
            result.append(
                TeamTopCreatorsRow(
                    team_id=team_id,
                    team_name=names[team_id],
                    creators=ranked[:TOP_CREATORS_LIMIT],
                )
            )
        return result

    def invalid_assignees(self) -> List[InvalidAssigneeRow]:
        """Tasks whose assignee is no longer (or never was) a member of the task's team."""
        rows = (
            self.db.query(models.Task.id, models.Task.team_id, models.Task.assignee_id)
            .outerjoin(
                models.TeamMember,
                and_(
                    models.TeamMember.team_id == models.Task.team_id,
                    models.TeamMember.user_id == models.Task.assignee_id,
                ),
            )
            .filter(models.Task.assignee_id.isnot(None), models.TeamMember.user_id.is_(None))
            .order_by(models.Task.created_at, models.Task.id)
            .all()
        )
        return [
            InvalidAssigneeRow(task_id=task_id, team_id=team_id, assignee_id=assignee_id)
            for task_id, team_id, assignee_id in rows
        ]

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

import models
from repositories.base import remove, save
from time_utils import utc_now

logger = logging.getLogger(__name__)


class TeamRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, team: models.Team, commit: bool = True) -> models.Team:
        return save(self.db, team, commit=commit)

    def get(self, team_id: UUID) -> Optional[models.Team]:
        return self.db.query(models.Team).filter(models.Team.id == team_id).first()

    def exists(self, team_id: UUID) -> bool:
        return self.db.query(models.Team.id).filter(models.Team.id == team_id).first() is not None

    def list_for_user(self, user_id: UUID) -> List[models.Team]:
        """Teams the user belongs to, oldest first."""
        return (
            self.db.query(models.Team)
            .join(models.TeamMember, models.TeamMember.team_id == models.Team.id)
            .filter(models.TeamMember.user_id == user_id)
            .order_by(models.Team.created_at.asc())
            .all()
        )


class TeamMemberRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        team_id: UUID,
        user_id: UUID,
        role: models.MemberRole,
        created_at=None,
        commit: bool = True,
    ) -> models.TeamMember:
        """Insert a membership row. Raises IntegrityError if the pair already exists."""
        member = models.TeamMember(
            team_id=team_id, user_id=user_id, role=role, created_at=created_at or utc_now()
        )
        logger.debug(f"Adding user {user_id} to team {team_id} as {role.value}")
        return save(self.db, member, commit=commit)


class TeamInviteRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, invite: models.TeamInvite, commit: bool = True) -> models.TeamInvite:
        return save(self.db, invite, commit=commit)

    def get_by_code(self, code: str) -> Optional[models.TeamInvite]:
        return self.db.query(models.TeamInvite).filter(models.TeamInvite.code == code).first()

    def delete_by_code(self, code: str, commit: bool = True) -> bool:
        """Delete an invite by code. Returns False if no invite had that code."""
        invite = self.get_by_code(code)
        if invite is None:
            return False
        remove(self.db, invite, commit=commit)
        return True

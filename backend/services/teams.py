"""
Teams, membership, and the invite lifecycle.
"""

import logging
import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
from auth.permissions import is_member, role_of
from database import transaction
from errors import (
    AlreadyMember,
    BadInput,
    Forbidden,
    InviteEmailMismatch,
    InviteNotFound,
    NotFound,
)
from mailer import Mailer, invite_message
from repositories.teams import TeamInviteRepository, TeamMemberRepository, TeamRepository
from repositories.users import UserRepository
from time_utils import utc_now

logger = logging.getLogger(__name__)

INVITER_ROLES = ("owner", "admin")


class TeamsService:
    def __init__(self, db: Session, mailer: Optional[Mailer] = None):
        self.db = db
        self.mailer = mailer
        self.teams = TeamRepository(db)
        self.members = TeamMemberRepository(db)
        self.invites = TeamInviteRepository(db)
        self.users = UserRepository(db)

    def create_team(self, user_id: UUID, name: str) -> models.Team:
        """Create a team and make the caller its owner, atomically."""
        logger.debug(f"TeamsService.create_team called by {user_id}")
        name = (name or "").strip()
        if not name:
            raise BadInput("Team name is required")

        now = utc_now()
        team = models.Team(name=name, created_by=user_id, created_at=now, updated_at=now)
        with transaction(self.db):
            self.teams.create(team, commit=False)
            self.members.add(team.id, user_id, models.MemberRole.owner, created_at=now, commit=False)

        logger.info(f"Team created: {team.name} (ID: {team.id}) by user {user_id}")
        return team

    def list_teams(self, user_id: UUID) -> List[models.Team]:
        logger.debug(f"TeamsService.list_teams called by {user_id}")
        return self.teams.list_for_user(user_id)

    def invite(self, inviter_id: UUID, team_id: UUID, email: str) -> models.TeamInvite:
        """
        Invite an email address to a team and mail it the code.

        The invitee does not have to be registered yet.

        Raises:
            BadInput: empty email
            NotFound: team does not exist
            Forbidden: inviter is not owner or admin of the team
            AlreadyMember: a registered user with that email is already in the team
            MailFailed / BreakerOpen: invite was stored but the mail could not be sent
        """
        logger.debug(f"TeamsService.invite called by {inviter_id} for team {team_id}")
        email = (email or "").strip()
        if not email:
            raise BadInput("Email is required")

        if not self.teams.exists(team_id):
            raise NotFound("Team not found")

        role, found = role_of(self.db, team_id, inviter_id)
        if not found or role not in INVITER_ROLES:
            logger.info(f"User {inviter_id} with role {role} cannot invite to team {team_id}")
            raise Forbidden("Only team owners and admins can invite")

        invitee = self.users.get_by_email(email)
        if invitee is not None and is_member(self.db, team_id, invitee.id):
            raise AlreadyMember()

        invite = models.TeamInvite(
            team_id=team_id,
            email=email,
            inviter_id=inviter_id,
            code=str(uuid.uuid4()),
            created_at=utc_now(),
        )
        invite = self.invites.create(invite)
        logger.info(f"Invite {invite.id} created for {email} to team {team_id}")

        if self.mailer is not None:
            self.mailer.send(invite_message(email, invite.code))

        return invite

    def accept_invite(self, user_id: UUID, code: str) -> models.TeamMember:
        """
        Redeem an invite code: add the caller as a member and consume the invite.

        Raises:
            BadInput: empty code
            InviteNotFound: no invite with that code
            InviteEmailMismatch: invite was issued to another email
            AlreadyMember: caller already belongs to the team
        """
        logger.debug(f"TeamsService.accept_invite called by {user_id}")
        code = (code or "").strip()
        if not code:
            raise BadInput("Invite code is required")

        invite = self.invites.get_by_code(code)
        if invite is None:
            raise InviteNotFound()

        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")

        if user.email.strip().lower() != invite.email.strip().lower():
            logger.info(f"User {user_id} tried to accept invite issued for another email")
            raise InviteEmailMismatch()

        if is_member(self.db, invite.team_id, user_id):
            raise AlreadyMember()

        team_id = invite.team_id
        try:
            with transaction(self.db):
                member = self.members.add(team_id, user_id, models.MemberRole.member, commit=False)
                self.invites.delete_by_code(code, commit=False)
        except IntegrityError:
            logger.info(f"Concurrent accept for user {user_id} in team {team_id}")
            raise AlreadyMember()

        logger.info(f"User {user_id} joined team {team_id} via invite")
        return member

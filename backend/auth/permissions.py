"""
Team membership oracle.

Pure queries answering who belongs to which team and with what role. Nothing
is cached: every call hits the database, since these checks guard every
mutating and listing path.
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from errors import Forbidden
from models import TeamMember

logger = logging.getLogger(__name__)

# Role hierarchy for team permissions, most privileged first
ROLE_PRECEDENCE = {"owner": 2, "admin": 1, "member": 0}

DEFAULT_ROLE = "member"


def _role_value(role) -> str:
    return role.value if hasattr(role, "value") else str(role)


def is_member(db: Session, team_id: UUID, user_id: UUID) -> bool:
    """
    Check whether a user belongs to a team.

    Example:
        >>> if not is_member(db, team_id, user_id):
        ...     raise Forbidden()
    """
    found = (
        db.query(TeamMember.user_id)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )
    logger.debug(f"Membership check team={team_id} user={user_id}: {found is not None}")
    return found is not None


def role_of(db: Session, team_id: UUID, user_id: UUID) -> Tuple[Optional[str], bool]:
    """
    Look up a user's role in a team.

    Returns:
        (role, True) when the user is a member, (None, False) otherwise
    """
    membership = (
        db.query(TeamMember.role)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )
    if membership is None:
        return None, False
    return _role_value(membership.role), True


def highest_role(db: Session, user_id: UUID) -> Optional[str]:
    """
    Highest role the user holds in any team (owner > admin > member).

    Returns:
        Role name, or None if the user belongs to no team
    """
    roles = [
        _role_value(row.role)
        for row in db.query(TeamMember.role).filter(TeamMember.user_id == user_id).all()
    ]
    if not roles:
        return None
    return max(roles, key=lambda role: ROLE_PRECEDENCE.get(role, -1))


def require_member(db: Session, team_id: UUID, user_id: UUID) -> None:
    """
    Require a user to belong to a team, or raise.

    Raises:
        Forbidden: if the user is not a member
    """
    if not is_member(db, team_id, user_id):
        logger.info(f"User {user_id} is not a member of team {team_id}")
        raise Forbidden("Not a member of this team")

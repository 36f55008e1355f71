import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

import schemas
from auth.dependencies import get_current_identity, require_role
from auth.security import Identity
from providers import get_teams_service
from services.teams import TeamsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/teams", tags=["teams"])


@router.get("", response_model=schemas.TeamsList)
def list_teams(
    identity: Identity = Depends(get_current_identity),
    service: TeamsService = Depends(get_teams_service),
):
    """List the teams the caller belongs to, oldest first."""
    teams = service.list_teams(identity.subject)
    return schemas.TeamsList(items=[schemas.Team.model_validate(team) for team in teams])


@router.post("", response_model=schemas.Team, status_code=status.HTTP_201_CREATED)
def create_team(
    request: schemas.TeamCreate,
    identity: Identity = Depends(get_current_identity),
    service: TeamsService = Depends(get_teams_service),
):
    """Create a team; the caller becomes its owner."""
    return service.create_team(identity.subject, request.name)


@router.post("/invites/accept", response_model=schemas.TeamMember)
def accept_invite(
    request: schemas.AcceptInviteRequest,
    identity: Identity = Depends(get_current_identity),
    service: TeamsService = Depends(get_teams_service),
):
    """Redeem an invite code and join its team."""
    return service.accept_invite(identity.subject, request.code)


@router.post("/{team_id}/invite", response_model=schemas.Invite, status_code=status.HTTP_201_CREATED)
def invite(
    team_id: UUID,
    request: schemas.InviteRequest,
    identity: Identity = Depends(require_role("owner", "admin")),
    service: TeamsService = Depends(get_teams_service),
):
    """Invite an email address to the team (owner or admin of that team only)."""
    return service.invite(identity.subject, team_id, request.email)

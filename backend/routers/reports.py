import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

import schemas
from auth.dependencies import get_current_identity
from auth.security import Identity
from providers import get_reports_service
from services.reports import ReportsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/team-summary", response_model=List[schemas.TeamSummary])
def team_summary(
    identity: Identity = Depends(get_current_identity),
    service: ReportsService = Depends(get_reports_service),
):
    """Member count and tasks done in the last 7 days, per team."""
    return [schemas.TeamSummary.model_validate(row) for row in service.team_summary()]


@router.get("/top-creators", response_model=List[schemas.TeamTopCreators])
def top_creators(
    month: Optional[str] = Query(None, description="Month in YYYY-MM format (UTC); defaults to the current month"),
    identity: Identity = Depends(get_current_identity),
    service: ReportsService = Depends(get_reports_service),
):
    """Top three task creators per team for a month."""
    return [schemas.TeamTopCreators.model_validate(row) for row in service.top_creators(month)]


@router.get("/invalid-assignees", response_model=List[schemas.InvalidAssignee])
def invalid_assignees(
    identity: Identity = Depends(get_current_identity),
    service: ReportsService = Depends(get_reports_service),
):
    """Tasks assigned to users who are not members of the task's team."""
    return [schemas.InvalidAssignee.model_validate(row) for row in service.invalid_assignees()]

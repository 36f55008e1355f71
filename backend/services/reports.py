import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from errors import BadInput
from repositories.reports import (
    InvalidAssigneeRow,
    ReportRepository,
    TeamSummaryRow,
    TeamTopCreatorsRow,
)
from time_utils import current_month, days_ago, month_bounds

logger = logging.getLogger(__name__)

DONE_WINDOW_DAYS = 7


class ReportsService:
    def __init__(self, db: Session):
        self.db = db
        self.reports = ReportRepository(db)

    def team_summary(self, now: Optional[datetime] = None) -> List[TeamSummaryRow]:
        """Per team: member count and tasks completed in the last 7 days."""
        logger.debug("ReportsService.team_summary called")
        return self.reports.team_summary(days_ago(DONE_WINDOW_DAYS, now))

    def top_creators(self, month: Optional[str] = None) -> List[TeamTopCreatorsRow]:
        """
        Per team: the three users who created the most tasks in `month`.

        Args:
            month: YYYY-MM (UTC); defaults to the current month

        Raises:
            BadInput: month is not in YYYY-MM format
        """
        month = (month or "").strip() or current_month()
        logger.debug(f"ReportsService.top_creators called for {month}")
        try:
            start, end = month_bounds(month)
        except ValueError as e:
            raise BadInput(str(e)) from e
        return self.reports.top_creators(start, end)

    def invalid_assignees(self) -> List[InvalidAssigneeRow]:
        logger.debug("ReportsService.invalid_assignees called")
        return self.reports.invalid_assignees()

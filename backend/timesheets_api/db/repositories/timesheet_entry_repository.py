"""
Timesheet entry repository for billable and non-billable rows.
"""

from typing import Any, Dict, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete

from timesheets_api.db.repositories.base_repository import BaseRepository
from timesheets_api.models.timesheet import TimesheetEntry, TimesheetUnbillable


class TimesheetEntryRepository(BaseRepository[TimesheetEntry]):
    """Repository for timesheet entry operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(TimesheetEntry, session)

    async def replace_for_timesheet(
        self,
        timesheet_id: UUID,
        entries: List[Dict[str, Any]],
        unbillable: List[Dict[str, Any]],
    ) -> None:
        """Replace every billable and non-billable row of a timesheet."""
        await self.session.execute(delete(TimesheetEntry).where(TimesheetEntry.timesheet_id == timesheet_id))
        await self.session.execute(delete(TimesheetUnbillable).where(TimesheetUnbillable.timesheet_id == timesheet_id))

        for order, values in enumerate(entries):
            self.session.add(TimesheetEntry(timesheet_id=timesheet_id, row_order=order, **values))
        for values in unbillable:
            self.session.add(TimesheetUnbillable(timesheet_id=timesheet_id, **values))
        await self.session.flush()

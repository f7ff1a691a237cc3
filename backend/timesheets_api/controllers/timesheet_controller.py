"""
Timesheet controller - coordinates service calls.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.controllers.base_controller import BaseController
from timesheets_api.models.profile import Profile
from timesheets_api.models.timesheet import TimesheetStatus
from timesheets_api.services.timesheet_service import TimesheetService
from timesheets_api.services.timesheet_approval_service import TimesheetApprovalService
from timesheets_api.schemas.timesheet import (
    TimesheetEntriesUpdate,
    TimesheetListResponse,
    TimesheetResponse,
)


class TimesheetController(BaseController):
    """Controller for timesheet operations."""

    def __init__(self, session: AsyncSession):
        self.timesheet_service = TimesheetService(session)
        self.approval_service = TimesheetApprovalService(session)

    async def get_or_create_timesheet(
        self,
        actor: Profile,
        week_ending: Optional[date] = None,
    ) -> TimesheetResponse:
        return await self.timesheet_service.get_or_create_timesheet(actor, week_ending)

    async def list_my_timesheets(
        self,
        actor: Profile,
        status: Optional[TimesheetStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> TimesheetListResponse:
        return await self.timesheet_service.list_my_timesheets(actor, status, skip, limit)

    async def get_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.timesheet_service.get_timesheet(timesheet_id, actor)

    async def save_entries(
        self,
        timesheet_id: UUID,
        actor: Profile,
        payload: TimesheetEntriesUpdate,
    ) -> TimesheetResponse:
        return await self.timesheet_service.save_entries(timesheet_id, actor, payload)

    async def submit_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.timesheet_service.submit_timesheet(timesheet_id, actor)

    async def check_auto_approve(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.timesheet_service.check_auto_approve(timesheet_id, actor)

    async def recall_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.timesheet_service.recall_timesheet(timesheet_id, actor)

    async def clear_rejection_note(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.timesheet_service.clear_rejection_note(timesheet_id, actor)

    async def delete_timesheet(self, timesheet_id: UUID, actor: Profile) -> None:
        await self.timesheet_service.delete_timesheet(timesheet_id, actor)

    async def approve_timesheet(self, timesheet_id: UUID, actor: Profile) -> TimesheetResponse:
        return await self.approval_service.approve_timesheet(timesheet_id, actor)

    async def reject_timesheet(
        self,
        timesheet_id: UUID,
        actor: Profile,
        reason: Optional[str],
    ) -> TimesheetResponse:
        return await self.approval_service.reject_timesheet(timesheet_id, actor, reason)

    async def list_pending_approvals(self, actor: Profile) -> TimesheetListResponse:
        return await self.approval_service.list_pending_approvals(actor)

    async def list_reviewed(
        self,
        actor: Profile,
        status: TimesheetStatus,
        skip: int = 0,
        limit: int = 100,
    ) -> TimesheetListResponse:
        return await self.approval_service.list_reviewed(actor, status, skip, limit)

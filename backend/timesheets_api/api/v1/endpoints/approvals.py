"""
Approval API endpoints (approver-facing).
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from timesheets_api.db.session import get_db
from timesheets_api.api.v1.middleware import require_authentication
from timesheets_api.controllers.timesheet_controller import TimesheetController
from timesheets_api.models.profile import Profile
from timesheets_api.models.timesheet import TimesheetStatus
from timesheets_api.schemas.timesheet import (
    TimesheetListResponse,
    TimesheetRejectRequest,
    TimesheetResponse,
)

router = APIRouter()


@router.get("/pending", response_model=TimesheetListResponse)
async def list_pending_approvals(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Submitted timesheets waiting on the current user's signature."""
    controller = TimesheetController(db)
    return await controller.list_pending_approvals(current_user)


@router.get("/reviewed", response_model=TimesheetListResponse)
async def list_reviewed(
    status: TimesheetStatus = Query(TimesheetStatus.APPROVED, description="approved or rejected"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Approved or rejected timesheets of users visible to the current user."""
    controller = TimesheetController(db)
    return await controller.list_reviewed(current_user, status, skip, limit)


@router.post("/{timesheet_id}/approve", response_model=TimesheetResponse)
async def approve_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Sign a submitted timesheet."""
    controller = TimesheetController(db)
    return await controller.approve_timesheet(timesheet_id, current_user)


@router.post("/{timesheet_id}/reject", response_model=TimesheetResponse)
async def reject_timesheet(
    timesheet_id: UUID,
    body: TimesheetRejectRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Reject a submitted timesheet with a reason."""
    controller = TimesheetController(db)
    return await controller.reject_timesheet(timesheet_id, current_user, body.reason)

"""
Timesheet API endpoints (owner-facing).
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from timesheets_api.db.session import get_db
from timesheets_api.api.v1.middleware import require_authentication
from timesheets_api.controllers.timesheet_controller import TimesheetController
from timesheets_api.models.profile import Profile
from timesheets_api.models.timesheet import TimesheetStatus
from timesheets_api.schemas.timesheet import (
    TimesheetEntriesUpdate,
    TimesheetListResponse,
    TimesheetResponse,
)

router = APIRouter()


@router.get("/me", response_model=TimesheetResponse)
async def get_my_timesheet_for_week(
    week_ending: Optional[date] = Query(None, description="Week ending date YYYY-MM-DD (Sunday)"),
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Get or create timesheet for the current user and week. Defaults to the current week."""
    controller = TimesheetController(db)
    return await controller.get_or_create_timesheet(current_user, week_ending)


@router.get("/mine", response_model=TimesheetListResponse)
async def list_my_timesheets(
    status: Optional[TimesheetStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """List own timesheets with the approval stage each is at."""
    controller = TimesheetController(db)
    return await controller.list_my_timesheets(current_user, status, skip, limit)


@router.get("/{timesheet_id}", response_model=TimesheetResponse)
async def get_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Get timesheet by ID."""
    controller = TimesheetController(db)
    return await controller.get_timesheet(timesheet_id, current_user)


@router.put("/{timesheet_id}/entries", response_model=TimesheetResponse)
async def save_timesheet_entries(
    timesheet_id: UUID,
    payload: TimesheetEntriesUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Replace timesheet entries."""
    controller = TimesheetController(db)
    return await controller.save_entries(timesheet_id, current_user, payload)


@router.post("/{timesheet_id}/submit", response_model=TimesheetResponse)
async def submit_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Submit timesheet for approval."""
    controller = TimesheetController(db)
    return await controller.submit_timesheet(timesheet_id, current_user)


@router.post("/{timesheet_id}/recall", response_model=TimesheetResponse)
async def recall_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Recall a submitted timesheet back to draft."""
    controller = TimesheetController(db)
    return await controller.recall_timesheet(timesheet_id, current_user)


@router.post("/{timesheet_id}/check-auto-approve", response_model=TimesheetResponse)
async def check_auto_approve(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Approve a submitted timesheet whose owner has no approvers."""
    controller = TimesheetController(db)
    return await controller.check_auto_approve(timesheet_id, current_user)


@router.post("/{timesheet_id}/clear-rejection-note", response_model=TimesheetResponse)
async def clear_rejection_note(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Clear the rejection note of a rejected timesheet."""
    controller = TimesheetController(db)
    return await controller.clear_rejection_note(timesheet_id, current_user)


@router.delete("/{timesheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timesheet(
    timesheet_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Delete a timesheet."""
    controller = TimesheetController(db)
    await controller.delete_timesheet(timesheet_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

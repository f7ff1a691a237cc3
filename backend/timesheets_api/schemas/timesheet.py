"""
Timesheet Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from timesheets_api.models.timesheet import TimesheetStatus, SignerRole, UnbillableCategory


# Day-of-week hours
class TimesheetDayHours(BaseModel):
    """Hours for each day of the week."""
    mon_hours: Decimal = Field(default=0, ge=0, le=24)
    tue_hours: Decimal = Field(default=0, ge=0, le=24)
    wed_hours: Decimal = Field(default=0, ge=0, le=24)
    thu_hours: Decimal = Field(default=0, ge=0, le=24)
    fri_hours: Decimal = Field(default=0, ge=0, le=24)
    sat_hours: Decimal = Field(default=0, ge=0, le=24)
    sun_hours: Decimal = Field(default=0, ge=0, le=24)


class TimesheetEntryInput(TimesheetDayHours):
    """Billable row as sent by the client."""
    site_id: Optional[UUID] = None
    po_id: Optional[UUID] = None
    task_description: str = Field(default="", max_length=1000)


class TimesheetUnbillableInput(TimesheetDayHours):
    """Non-billable row as sent by the client."""
    description: UnbillableCategory


class TimesheetEntriesUpdate(BaseModel):
    """Full replacement of a timesheet's rows."""
    entries: List[TimesheetEntryInput] = Field(default_factory=list)
    unbillable: List[TimesheetUnbillableInput] = Field(default_factory=list)

    @field_validator("unbillable")
    @classmethod
    def unique_categories(cls, v: List[TimesheetUnbillableInput]) -> List[TimesheetUnbillableInput]:
        categories = [row.description for row in v]
        if len(categories) != len(set(categories)):
            raise ValueError("Each non-billable category may appear only once")
        return v


class TimesheetEntryResponse(TimesheetDayHours):
    """Response schema for timesheet entry."""
    id: UUID
    site_id: Optional[UUID] = None
    po_id: Optional[UUID] = None
    task_description: str
    row_order: int
    total_hours: Decimal

    class Config:
        from_attributes = True


class TimesheetUnbillableResponse(TimesheetDayHours):
    """Response schema for non-billable row."""
    id: UUID
    description: UnbillableCategory
    total_hours: Decimal

    class Config:
        from_attributes = True


class TimesheetSignatureResponse(BaseModel):
    """Response schema for an approval signature."""
    id: UUID
    signer_id: UUID
    signer_name: Optional[str] = None
    signer_role: SignerRole
    signed_at: datetime

    class Config:
        from_attributes = True


class TimesheetResponse(BaseModel):
    """Response schema for a timesheet with rows and signatures."""
    id: UUID
    user_id: UUID
    owner_name: Optional[str] = None
    week_ending: date
    week_starting: date
    status: TimesheetStatus
    submitted_at: Optional[datetime] = None
    employee_signed_at: Optional[datetime] = None
    approved_by_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by_id: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    total_hours: Decimal = Decimal("0")
    entries: List[TimesheetEntryResponse] = []
    unbillable: List[TimesheetUnbillableResponse] = []
    signatures: List[TimesheetSignatureResponse] = []
    approval_chain: List[UUID] = []
    next_approver_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class TimesheetSummary(BaseModel):
    """Row in a list of timesheets."""
    id: UUID
    user_id: UUID
    owner_name: Optional[str] = None
    week_ending: date
    status: TimesheetStatus
    total_hours: Decimal
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    next_approver_id: Optional[UUID] = None
    stage: str


class TimesheetListResponse(BaseModel):
    """Response schema for timesheet list."""
    items: List[TimesheetSummary]
    total: int


class TimesheetRejectRequest(BaseModel):
    """Request body for rejecting a timesheet."""
    reason: str = Field(default="", max_length=2000)

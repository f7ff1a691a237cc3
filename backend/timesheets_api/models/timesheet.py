"""
Timesheet models for weekly time entry and the approval signature ledger.
"""

from decimal import Decimal

from sqlalchemy import Column, String, Date, ForeignKey, Numeric, Integer, DateTime, Text, UniqueConstraint, Enum as SQLEnum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
import enum

from timesheets_api.db.base import Base


DAY_FIELDS = ("mon_hours", "tue_hours", "wed_hours", "thu_hours", "fri_hours", "sat_hours", "sun_hours")


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimesheetStatus(str, enum.Enum):
    """Timesheet status enumeration."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class SignerRole(str, enum.Enum):
    """Capacity in which an approver signed."""
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    FINAL_APPROVER = "final_approver"


class UnbillableCategory(str, enum.Enum):
    """Non-billable time categories."""
    HOLIDAY = "HOLIDAY"
    INTERNAL = "INTERNAL"
    PTO = "PTO"


class DayHoursMixin:
    """Per-day hours, Monday through Sunday."""

    mon_hours = Column(Numeric(5, 2), nullable=False, default=0)
    tue_hours = Column(Numeric(5, 2), nullable=False, default=0)
    wed_hours = Column(Numeric(5, 2), nullable=False, default=0)
    thu_hours = Column(Numeric(5, 2), nullable=False, default=0)
    fri_hours = Column(Numeric(5, 2), nullable=False, default=0)
    sat_hours = Column(Numeric(5, 2), nullable=False, default=0)
    sun_hours = Column(Numeric(5, 2), nullable=False, default=0)

    @property
    def total_hours(self) -> Decimal:
        return sum((Decimal(str(getattr(self, f) or 0)) for f in DAY_FIELDS), Decimal("0"))


class Timesheet(Base):
    """Weekly timesheet - one per user per week ending."""

    __tablename__ = "weekly_timesheets"
    __table_args__ = (
        UniqueConstraint("user_id", "week_ending", name="uq_weekly_timesheets_user_week"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    week_ending = Column(Date, nullable=False, index=True)  # Sunday
    week_starting = Column(Date, nullable=False)  # Monday
    status = Column(
        SQLEnum(TimesheetStatus, name="timesheet_status", values_callable=_enum_values),
        nullable=False,
        default=TimesheetStatus.DRAFT,
        index=True,
    )

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    employee_signed_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("Profile", foreign_keys=[user_id])
    entries = relationship("TimesheetEntry", back_populates="timesheet", cascade="all, delete-orphan", order_by="TimesheetEntry.row_order")
    unbillable = relationship("TimesheetUnbillable", back_populates="timesheet", cascade="all, delete-orphan")
    signatures = relationship("TimesheetSignature", back_populates="timesheet", cascade="all, delete-orphan", order_by="TimesheetSignature.signed_at")


class TimesheetEntry(DayHoursMixin, Base):
    """Billable row in a weekly timesheet."""

    __tablename__ = "timesheet_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("weekly_timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = Column(UUID(as_uuid=True), ForeignKey("sites.id", ondelete="SET NULL"), nullable=True, index=True)
    po_id = Column(UUID(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True, index=True)
    row_order = Column(Integer, nullable=False, default=0)
    task_description = Column(String(1000), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    timesheet = relationship("Timesheet", back_populates="entries")


class TimesheetUnbillable(DayHoursMixin, Base):
    """Non-billable row (holiday, internal, PTO) in a weekly timesheet."""

    __tablename__ = "timesheet_unbillable"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "description", name="uq_timesheet_unbillable_category"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("weekly_timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(
        SQLEnum(UnbillableCategory, name="unbillable_category", values_callable=_enum_values),
        nullable=False,
    )

    # Relationships
    timesheet = relationship("Timesheet", back_populates="unbillable")


class TimesheetSignature(Base):
    """Append-only approval signature; one per signer per timesheet."""

    __tablename__ = "timesheet_signatures"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "signer_id", name="uq_timesheet_signatures_signer"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("weekly_timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    signer_id = Column(UUID(as_uuid=True), ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    signer_role = Column(
        SQLEnum(SignerRole, name="signer_role", values_callable=_enum_values),
        nullable=False,
    )
    signed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    timesheet = relationship("Timesheet", back_populates="signatures")
    signer = relationship("Profile", foreign_keys=[signer_id])

"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from timesheets_api.models.profile import Profile, UserRole
from timesheets_api.models.site import (
    Site,
    Department,
    PurchaseOrder,
    user_sites,
    user_departments,
    user_purchase_orders,
)
from timesheets_api.models.timesheet import (
    Timesheet,
    TimesheetEntry,
    TimesheetUnbillable,
    TimesheetSignature,
    TimesheetStatus,
    SignerRole,
)

__all__ = [
    "Profile",
    "UserRole",
    "Site",
    "Department",
    "PurchaseOrder",
    "user_sites",
    "user_departments",
    "user_purchase_orders",
    "Timesheet",
    "TimesheetEntry",
    "TimesheetUnbillable",
    "TimesheetSignature",
    "TimesheetStatus",
    "SignerRole",
]

"""
Approval chain resolution.

A timesheet owner's chain is read from four fixed relation fields of their
profile and is never walked transitively, so cycles in the reporting graph
cannot cause unbounded work.
"""

from typing import Collection, List, Optional
from uuid import UUID

from timesheets_api.models.profile import Profile, CHAIN_FIELDS
from timesheets_api.models.timesheet import SignerRole, TimesheetStatus


STAGE_SUPERVISOR = "With Supervisor"
STAGE_MANAGER = "With Manager"
STAGE_FINAL_APPROVER = "With Final Approver"
STAGE_APPROVED = "Approved"
STAGE_REJECTED = "Rejected"
STAGE_NONE = "—"


def build_approval_chain(profile: Optional[Profile]) -> List[UUID]:
    """
    Ordered, distinct list of user ids who must sign the owner's timesheets.

    Supervisor (or reports-to when no supervisor is set) first, then manager,
    then final approver. Self references are skipped.
    """
    if profile is None:
        return []

    chain: List[UUID] = []
    candidates = (
        profile.supervisor_id or profile.reports_to_id,
        profile.manager_id,
        profile.final_approver_id,
    )
    for user_id in candidates:
        if user_id is None or user_id == profile.id or user_id in chain:
            continue
        chain.append(user_id)
    return chain


def next_approver_id(chain: List[UUID], signed_ids: Collection[UUID]) -> Optional[UUID]:
    """First chain member who has not signed yet."""
    for user_id in chain:
        if user_id not in signed_ids:
            return user_id
    return None


def is_in_chain(profile: Optional[Profile], user_id: UUID) -> bool:
    """Whether ``user_id`` is named in any of the profile's relation fields."""
    if profile is None or user_id is None:
        return False
    return any(getattr(profile, field) == user_id for field in CHAIN_FIELDS)


def signer_role_for(
    profile: Profile,
    chain: List[UUID],
    signer_id: UUID,
    acting_as_admin: bool = False,
) -> SignerRole:
    """Capacity in which ``signer_id`` signs the owner's timesheet."""
    if acting_as_admin or (chain and chain[-1] == signer_id):
        return SignerRole.FINAL_APPROVER
    if profile.manager_id == signer_id:
        return SignerRole.MANAGER
    return SignerRole.SUPERVISOR


def approval_stage_label(
    profile: Optional[Profile],
    status: TimesheetStatus,
    next_id: Optional[UUID],
) -> str:
    """Human-readable stage shown in the owner's list of timesheets."""
    if status == TimesheetStatus.APPROVED:
        return STAGE_APPROVED
    if status == TimesheetStatus.REJECTED:
        return STAGE_REJECTED
    if status != TimesheetStatus.SUBMITTED:
        return STAGE_NONE
    if next_id is None:
        # Every chain member signed; awaiting admin finalisation
        return STAGE_APPROVED
    if profile is None:
        return STAGE_NONE
    if next_id == profile.manager_id:
        return STAGE_MANAGER
    if next_id in (profile.supervisor_id, profile.reports_to_id):
        return STAGE_SUPERVISOR
    if next_id == profile.final_approver_id:
        return STAGE_FINAL_APPROVER
    return STAGE_NONE

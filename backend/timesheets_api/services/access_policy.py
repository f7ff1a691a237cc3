"""
Access policy - every role-based capability check lives here.

Pure checks take profiles and return booleans or raise UnauthorizedError;
AccessPolicy adds the checks that need to read the database.
"""

import enum
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.core.exceptions import UnauthorizedError
from timesheets_api.db.repositories.profile_repository import ProfileRepository
from timesheets_api.db.repositories.site_repository import SiteRepository
from timesheets_api.models.profile import Profile, UserRole, ADMIN_ROLES, APPROVER_ROLES
from timesheets_api.models.timesheet import Timesheet, TimesheetStatus
from timesheets_api.services.approval_chain import is_in_chain


class TimesheetAction(str, enum.Enum):
    """Actions an actor can take on a timesheet."""
    VIEW = "view"
    EDIT = "edit"
    SUBMIT = "submit"
    RECALL = "recall"
    CHECK_AUTO_APPROVE = "check_auto_approve"
    APPROVE = "approve"
    REJECT = "reject"
    CLEAR_REJECTION_NOTE = "clear_rejection_note"
    DELETE = "delete"


# Roles each line-manager role can see among the users related to them
VISIBLE_ROLES = {
    UserRole.SUPERVISOR: frozenset({UserRole.EMPLOYEE}),
    UserRole.MANAGER: frozenset({UserRole.EMPLOYEE, UserRole.SUPERVISOR}),
}

# Fields supervisors and managers may change on users they can see
LINE_MANAGER_EDITABLE_FIELDS = frozenset({"name", "reports_to_id", "supervisor_id", "manager_id"})

OWNER_ONLY_ACTIONS = frozenset({
    TimesheetAction.SUBMIT,
    TimesheetAction.RECALL,
    TimesheetAction.CHECK_AUTO_APPROVE,
})


def is_admin(actor: Profile) -> bool:
    return actor.role in ADMIN_ROLES


def can_view_user(actor: Profile, profile: Optional[Profile]) -> bool:
    """Whether ``actor`` may see ``profile`` in user lists and lookups."""
    if profile is None:
        return False
    if actor.id == profile.id or actor.role == UserRole.SUPER_ADMIN:
        return True
    if actor.role == UserRole.ADMIN:
        return profile.role != UserRole.SUPER_ADMIN
    visible_roles = VISIBLE_ROLES.get(actor.role)
    if not visible_roles:
        return False
    return profile.role in visible_roles and is_in_chain(profile, actor.id)


def can_act_on_timesheet(
    actor: Profile,
    owner: Optional[Profile],
    action: TimesheetAction,
    timesheet: Optional[Timesheet] = None,
) -> bool:
    """
    Capability check for ``action`` by ``actor`` on a timesheet owned by ``owner``.

    Status legality is checked separately by the status machine, except for
    delete where ownership only grants the right on drafts.
    """
    if owner is None:
        return is_admin(actor) and action not in OWNER_ONLY_ACTIONS

    is_owner = actor.id == owner.id

    if action in OWNER_ONLY_ACTIONS:
        return is_owner

    if action == TimesheetAction.DELETE:
        if is_admin(actor):
            return True
        return is_owner and (timesheet is None or timesheet.status == TimesheetStatus.DRAFT)

    if is_admin(actor):
        return True

    if is_owner:
        return action in (
            TimesheetAction.VIEW,
            TimesheetAction.EDIT,
            TimesheetAction.REJECT,
            TimesheetAction.CLEAR_REJECTION_NOTE,
        )

    in_chain = is_in_chain(owner, actor.id)
    if action == TimesheetAction.CLEAR_REJECTION_NOTE:
        return in_chain
    if action == TimesheetAction.VIEW:
        return in_chain or can_view_user(actor, owner)
    if action in (TimesheetAction.APPROVE, TimesheetAction.REJECT):
        if actor.role not in APPROVER_ROLES:
            return False
        return in_chain or can_view_user(actor, owner)
    return False


def ensure_can_act_on_timesheet(
    actor: Profile,
    owner: Optional[Profile],
    action: TimesheetAction,
    timesheet: Optional[Timesheet] = None,
    message: Optional[str] = None,
) -> None:
    """Raise UnauthorizedError unless ``actor`` may perform ``action``."""
    if not can_act_on_timesheet(actor, owner, action, timesheet):
        raise UnauthorizedError(message or f"You are not allowed to {action.value.replace('_', ' ')} this timesheet")


def apply_creation_constraints(actor: Profile, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and constrain the attributes of a user being created by ``actor``.

    Supervisors and managers can only create employees who report to them.
    """
    data = dict(data)
    if is_admin(actor):
        if data.get("role") == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
            raise UnauthorizedError("Only a super admin can create super admin users")
        return data

    if actor.role not in (UserRole.SUPERVISOR, UserRole.MANAGER):
        raise UnauthorizedError("You are not allowed to create users")
    if data.get("final_approver_id") is not None:
        raise UnauthorizedError("Only admins can assign a final approver")

    data["role"] = UserRole.EMPLOYEE
    data["reports_to_id"] = actor.id
    return data


def ensure_can_update_user(actor: Profile, target: Profile, changes: Dict[str, Any]) -> None:
    """Raise UnauthorizedError unless ``actor`` may apply ``changes`` to ``target``."""
    new_role = changes.get("role")
    if new_role is not None and new_role != target.role:
        if actor.id == target.id:
            raise UnauthorizedError("You cannot change your own role")
        if not is_admin(actor):
            raise UnauthorizedError("Only admins can change user roles")
        if new_role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
            raise UnauthorizedError("Only a super admin can assign the super admin role")

    if is_admin(actor):
        if target.role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
            raise UnauthorizedError("Admins cannot modify a super admin")
        return

    if actor.id == target.id:
        if set(changes) - {"name", "role"}:
            raise UnauthorizedError("You may only change your own name")
        return

    if actor.role not in VISIBLE_ROLES or not can_view_user(actor, target):
        raise UnauthorizedError("You are not allowed to modify this user")
    if set(changes) - LINE_MANAGER_EDITABLE_FIELDS:
        raise UnauthorizedError("You may only change the name and reporting relationships of this user")


def ensure_can_delete_user(actor: Profile, target: Profile) -> None:
    if actor.id == target.id:
        raise UnauthorizedError("You cannot delete your own account")
    if not is_admin(actor):
        raise UnauthorizedError("Only admins can delete users")
    if target.role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
        raise UnauthorizedError("Admins cannot delete a super admin")


def ensure_can_assign_sites(
    actor: Profile,
    target: Profile,
    site_ids: Iterable[UUID],
    accessible_site_ids: Optional[Set[UUID]],
) -> None:
    """Managers may only hand out sites they can access; admins are unrestricted."""
    if is_admin(actor):
        return
    if actor.role != UserRole.MANAGER:
        raise UnauthorizedError("Only managers and admins can assign sites")
    if actor.id != target.id and not can_view_user(actor, target):
        raise UnauthorizedError("You are not allowed to modify this user")
    outside = set(site_ids) - (accessible_site_ids or set())
    if outside:
        raise UnauthorizedError(
            "You can only assign sites you have access to",
            details={"site_ids": sorted(str(i) for i in outside)},
        )


class AccessPolicy:
    """Visibility checks that read profiles and site assignments."""

    def __init__(self, session: AsyncSession):
        self.profile_repo = ProfileRepository(session)
        self.site_repo = SiteRepository(session)

    async def visible_users(self, actor: Profile) -> List[Profile]:
        """Users ``actor`` can see, always including themself."""
        if actor.role == UserRole.SUPER_ADMIN:
            return await self.profile_repo.list_all()
        if actor.role == UserRole.ADMIN:
            users = await self.profile_repo.list_all(exclude_roles=[UserRole.SUPER_ADMIN])
            return users

        visible_roles = VISIBLE_ROLES.get(actor.role)
        related = []
        if visible_roles:
            related = await self.profile_repo.list_related_to(actor.id, roles=visible_roles)
        return [actor] + [p for p in related if p.id != actor.id]

    async def visible_user_ids(self, actor: Profile) -> Set[UUID]:
        return {p.id for p in await self.visible_users(actor)}

    async def accessible_site_ids(self, actor: Profile) -> Optional[Set[UUID]]:
        """
        Site ids ``actor`` may see.

        Returns:
            None when unrestricted (admins), otherwise a possibly empty set
        """
        if is_admin(actor):
            return None
        if actor.role == UserRole.SUPERVISOR:
            return await self.site_repo.site_ids_for_users([actor.id])
        if actor.role == UserRole.MANAGER:
            user_ids = [actor.id] + await self.profile_repo.list_subordinate_ids(actor.id)
            return await self.site_repo.site_ids_for_users(user_ids)
        return set()

"""
Profile service - user creation, updates, deletion and assignments, scoped
by the actor's role.
"""

from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from timesheets_api.core.integrations.identity_admin import IdentityAdminClient
from timesheets_api.core.logging import get_logger
from timesheets_api.core.timeout import with_timeout
from timesheets_api.db.repositories.profile_repository import ProfileRepository
from timesheets_api.db.repositories.site_repository import SiteRepository
from timesheets_api.db.repositories.timesheet_repository import TimesheetRepository
from timesheets_api.models.profile import Profile, CHAIN_FIELDS
from timesheets_api.schemas.profile import (
    ProfileCreate,
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdate,
    UserAssignmentsResponse,
    UserAssignmentsUpdate,
)
from timesheets_api.services.access_policy import (
    AccessPolicy,
    apply_creation_constraints,
    can_view_user,
    ensure_can_assign_sites,
    ensure_can_delete_user,
    ensure_can_update_user,
    is_admin,
)
from timesheets_api.services.base_service import BaseService

logger = get_logger(__name__)


class ProfileService(BaseService):
    """Service for user profile operations."""

    def __init__(self, session: AsyncSession, identity_client: Optional[IdentityAdminClient] = None):
        self.session = session
        self.profile_repo = ProfileRepository(session)
        self.site_repo = SiteRepository(session)
        self.timesheet_repo = TimesheetRepository(session)
        self.policy = AccessPolicy(session)
        if identity_client is None:
            from timesheets_api.deps.di_container import get_container
            identity_client = get_container().identity_client()
        self.identity = identity_client

    async def _get_visible(self, actor: Profile, user_id: UUID) -> Profile:
        profile = await with_timeout(self.profile_repo.get(user_id), operation="get_profile")
        if not can_view_user(actor, profile):
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return profile

    async def _validate_chain_references(self, user_id: Optional[UUID], values: Dict[str, Any]) -> None:
        """Chain fields must reference existing profiles other than the user themself."""
        referenced = {values[f] for f in CHAIN_FIELDS if values.get(f) is not None}
        if user_id is not None and user_id in referenced:
            raise ValidationError("A user cannot be their own approver")
        if not referenced:
            return
        found = {p.id for p in await self.profile_repo.get_many(referenced)}
        missing = referenced - found
        if missing:
            raise ValidationError(
                "Referenced approver does not exist",
                details={"user_ids": sorted(str(i) for i in missing)},
            )

    async def get_user(self, actor: Profile, user_id: UUID) -> ProfileResponse:
        return ProfileResponse.model_validate(await self._get_visible(actor, user_id))

    async def list_users(self, actor: Profile, skip: int = 0, limit: int = 100) -> ProfileListResponse:
        """Page of the users visible to the actor; ``total`` counts all of them."""
        users = await self.policy.visible_users(actor)
        return ProfileListResponse(
            items=[ProfileResponse.model_validate(u) for u in users[skip:skip + limit]],
            total=len(users),
        )

    async def create_user(self, actor: Profile, data: ProfileCreate) -> ProfileResponse:
        """
        Create the identity account and its profile.

        Supervisors and managers create employees reporting to themselves;
        admins may set any role (super admin only by a super admin).
        """
        values = apply_creation_constraints(actor, data.model_dump())
        values["email"] = values["email"].strip().lower()
        values["name"] = values["name"].strip()

        if await self.profile_repo.get_by_email(values["email"]):
            raise ValidationError("A user with this email already exists", details={"email": values["email"]})
        await self._validate_chain_references(None, values)

        user_id = await self.identity.create_user(values["email"], values["name"])
        try:
            profile = await self.profile_repo.create(id=user_id, **values)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.error("Profile creation failed, removing identity account", extra={"user_id": str(user_id)})
            await self.identity.delete_user(user_id)
            raise

        logger.info(
            "User created",
            extra={"user_id": str(user_id), "role": profile.role.value, "actor_id": str(actor.id)},
        )
        return ProfileResponse.model_validate(profile)

    async def update_user(self, actor: Profile, user_id: UUID, data: ProfileUpdate) -> ProfileResponse:
        target = await self._get_visible(actor, user_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is not None:
            changes["name"] = changes["name"].strip()
        if changes.get("role") is None:
            changes.pop("role", None)

        ensure_can_update_user(actor, target, changes)
        await self._validate_chain_references(target.id, changes)

        if not changes:
            return ProfileResponse.model_validate(target)

        profile = await self.profile_repo.update(target.id, **changes)
        await self.session.commit()
        logger.info(
            "User updated",
            extra={"user_id": str(user_id), "fields": sorted(changes), "actor_id": str(actor.id)},
        )
        return ProfileResponse.model_validate(profile)

    async def delete_user(self, actor: Profile, user_id: UUID) -> None:
        """Delete the profile, its timesheets and the identity account."""
        if actor.id == user_id:
            raise UnauthorizedError("You cannot delete your own account")

        target = await with_timeout(self.profile_repo.get(user_id), operation="get_profile")
        if target is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        ensure_can_delete_user(actor, target)

        removed = await self.timesheet_repo.delete_all_for_user(user_id)
        await self.site_repo.replace_user_assignments(user_id, [], [], [])
        await self.profile_repo.delete(user_id)

        await self.identity.delete_user(user_id)
        await self.session.commit()
        logger.info(
            "User deleted",
            extra={"user_id": str(user_id), "actor_id": str(actor.id), "timesheets_removed": removed},
        )

    async def get_assignments(self, actor: Profile, user_id: UUID) -> UserAssignmentsResponse:
        target = await self._get_visible(actor, user_id)
        assignments = await self.site_repo.get_user_assignments(target.id)
        return UserAssignmentsResponse(user_id=target.id, **assignments)

    async def update_assignments(
        self,
        actor: Profile,
        user_id: UUID,
        data: UserAssignmentsUpdate,
    ) -> UserAssignmentsResponse:
        """Replace a user's sites, departments and purchase orders."""
        target = await self._get_visible(actor, user_id)
        accessible = await self.policy.accessible_site_ids(actor)
        ensure_can_assign_sites(actor, target, data.site_ids, accessible)

        await self._validate_assignment_references(
            data,
            allowed_site_ids=None if is_admin(actor) else accessible,
        )

        await self.site_repo.replace_user_assignments(
            target.id,
            site_ids=data.site_ids,
            department_ids=data.department_ids,
            purchase_order_ids=data.purchase_order_ids,
        )
        await self.session.commit()
        logger.info(
            "User assignments updated",
            extra={
                "user_id": str(user_id),
                "actor_id": str(actor.id),
                "sites": len(data.site_ids),
                "departments": len(data.department_ids),
                "purchase_orders": len(data.purchase_order_ids),
            },
        )
        return await self.get_assignments(actor, user_id)

    async def _validate_assignment_references(
        self,
        data: UserAssignmentsUpdate,
        allowed_site_ids: Optional[Iterable[UUID]],
    ) -> None:
        site_ids = set(data.site_ids)
        known_sites = {s.id for s in await self.site_repo.list_sites(site_ids)} if site_ids else set()
        if site_ids - known_sites:
            raise ValidationError("Unknown site", details={"site_ids": sorted(str(i) for i in site_ids - known_sites)})

        departments = await self.site_repo.get_departments(set(data.department_ids))
        if len(departments) != len(set(data.department_ids)):
            raise ValidationError("Unknown department")
        purchase_orders = await self.site_repo.get_purchase_orders(set(data.purchase_order_ids))
        if len(purchase_orders) != len(set(data.purchase_order_ids)):
            raise ValidationError("Unknown purchase order")

        if allowed_site_ids is None:
            return
        allowed = set(allowed_site_ids)
        if any(d.site_id not in allowed for d in departments) or any(po.site_id not in allowed for po in purchase_orders):
            raise UnauthorizedError("You can only assign departments and purchase orders of sites you have access to")

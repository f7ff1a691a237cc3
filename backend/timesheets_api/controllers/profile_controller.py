"""
Profile controller - user management.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.controllers.base_controller import BaseController
from timesheets_api.core.integrations.identity_admin import IdentityAdminClient
from timesheets_api.models.profile import Profile
from timesheets_api.services.profile_service import ProfileService
from timesheets_api.schemas.profile import (
    ProfileCreate,
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdate,
    UserAssignmentsResponse,
    UserAssignmentsUpdate,
)


class ProfileController(BaseController):
    """Controller for user profile operations."""

    def __init__(self, session: AsyncSession, identity_client: Optional[IdentityAdminClient] = None):
        self.profile_service = ProfileService(session, identity_client)

    async def list_users(self, actor: Profile, skip: int = 0, limit: int = 100) -> ProfileListResponse:
        return await self.profile_service.list_users(actor, skip, limit)

    async def get_user(self, actor: Profile, user_id: UUID) -> ProfileResponse:
        return await self.profile_service.get_user(actor, user_id)

    async def create_user(self, actor: Profile, data: ProfileCreate) -> ProfileResponse:
        return await self.profile_service.create_user(actor, data)

    async def update_user(self, actor: Profile, user_id: UUID, data: ProfileUpdate) -> ProfileResponse:
        return await self.profile_service.update_user(actor, user_id, data)

    async def delete_user(self, actor: Profile, user_id: UUID) -> None:
        await self.profile_service.delete_user(actor, user_id)

    async def get_assignments(self, actor: Profile, user_id: UUID) -> UserAssignmentsResponse:
        return await self.profile_service.get_assignments(actor, user_id)

    async def update_assignments(
        self,
        actor: Profile,
        user_id: UUID,
        data: UserAssignmentsUpdate,
    ) -> UserAssignmentsResponse:
        return await self.profile_service.update_assignments(actor, user_id, data)

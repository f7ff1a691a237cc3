"""
Site service - sites visible to the actor.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.db.repositories.site_repository import SiteRepository
from timesheets_api.models.profile import Profile
from timesheets_api.schemas.site import SiteListResponse, SiteResponse
from timesheets_api.services.access_policy import AccessPolicy
from timesheets_api.services.base_service import BaseService


class SiteService(BaseService):
    """Service for site operations."""

    def __init__(self, session: AsyncSession):
        self.site_repo = SiteRepository(session)
        self.policy = AccessPolicy(session)

    async def list_accessible_sites(self, actor: Profile) -> SiteListResponse:
        site_ids = await self.policy.accessible_site_ids(actor)
        sites = await self.site_repo.list_sites(site_ids)
        return SiteListResponse(
            items=[SiteResponse.model_validate(s) for s in sites],
            total=len(sites),
        )

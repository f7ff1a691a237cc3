"""
Site controller.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.controllers.base_controller import BaseController
from timesheets_api.models.profile import Profile
from timesheets_api.schemas.site import SiteListResponse
from timesheets_api.services.site_service import SiteService


class SiteController(BaseController):
    """Controller for site operations."""

    def __init__(self, session: AsyncSession):
        self.site_service = SiteService(session)

    async def list_sites(self, actor: Profile) -> SiteListResponse:
        return await self.site_service.list_accessible_sites(actor)

"""
Site API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from timesheets_api.db.session import get_db
from timesheets_api.api.v1.middleware import require_authentication
from timesheets_api.controllers.site_controller import SiteController
from timesheets_api.models.profile import Profile
from timesheets_api.schemas.site import SiteListResponse

router = APIRouter()


@router.get("", response_model=SiteListResponse)
async def list_sites(
    db: AsyncSession = Depends(get_db),
    current_user: Profile = Depends(require_authentication),
):
    """Sites the current user can access."""
    controller = SiteController(db)
    return await controller.list_sites(current_user)

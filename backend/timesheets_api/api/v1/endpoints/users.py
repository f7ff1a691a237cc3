"""
User management API endpoints.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from timesheets_api.db.session import get_db
from timesheets_api.api.v1.middleware import require_authentication
from timesheets_api.controllers.profile_controller import ProfileController
from timesheets_api.core.integrations.identity_admin import IdentityAdminClient
from timesheets_api.deps.di_container import get_identity_client
from timesheets_api.models.profile import Profile
from timesheets_api.schemas.profile import (
    ProfileCreate,
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdate,
    UserAssignmentsResponse,
    UserAssignmentsUpdate,
)

router = APIRouter()


@router.get("", response_model=ProfileListResponse)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """List users visible to the current user."""
    controller = ProfileController(db, identity)
    return await controller.list_users(current_user, skip, limit)


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: ProfileCreate,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Create a user account and profile."""
    controller = ProfileController(db, identity)
    return await controller.create_user(current_user, data)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Get a visible user."""
    controller = ProfileController(db, identity)
    return await controller.get_user(current_user, user_id)


@router.put("/{user_id}", response_model=ProfileResponse)
async def update_user(
    user_id: UUID,
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Update name, role or approval relationships of a user."""
    controller = ProfileController(db, identity)
    return await controller.update_user(current_user, user_id, data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Delete a user account and profile."""
    controller = ProfileController(db, identity)
    await controller.delete_user(current_user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}/assignments", response_model=UserAssignmentsResponse)
async def get_user_assignments(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Get a user's site, department and purchase order assignments."""
    controller = ProfileController(db, identity)
    return await controller.get_assignments(current_user, user_id)


@router.put("/{user_id}/assignments", response_model=UserAssignmentsResponse)
async def update_user_assignments(
    user_id: UUID,
    data: UserAssignmentsUpdate,
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdminClient = Depends(get_identity_client),
    current_user: Profile = Depends(require_authentication),
):
    """Replace a user's site, department and purchase order assignments."""
    controller = ProfileController(db, identity)
    return await controller.update_assignments(current_user, user_id, data)

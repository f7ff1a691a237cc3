"""
API middleware for authentication and common concerns.
Centralized authentication enforcement for all protected routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from timesheets_api.core.security import decode_access_token
from timesheets_api.core.timeout import with_timeout
from timesheets_api.db.session import get_db
from timesheets_api.db.repositories.profile_repository import ProfileRepository
from timesheets_api.models.profile import Profile

security = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_authentication(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Centralized authentication dependency.
    Resolves the bearer token's ``sub`` claim to the caller's profile.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(
            current_user: Profile = Depends(require_authentication)
        ):
            ...

    Args:
        credentials: HTTP Bearer token credentials (injected by FastAPI)
        db: Database session

    Returns:
        Current authenticated Profile

    Raises:
        HTTPException: If authentication fails
    """
    if credentials is None:
        raise _unauthenticated("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthenticated("Invalid authentication token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _unauthenticated("Token missing user ID")

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise _unauthenticated("Invalid user ID in token")

    # A slow profile lookup is treated as a missing profile
    profile = await with_timeout(
        ProfileRepository(db).get(user_id),
        operation="get_profile",
    )
    if not profile:
        raise _unauthenticated("User profile not found")

    return profile

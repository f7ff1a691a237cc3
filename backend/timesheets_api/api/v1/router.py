"""
API v1 router that aggregates all endpoint routers.
All routes require authentication except health.
"""

from fastapi import APIRouter, Depends
from timesheets_api.api.v1.middleware import require_authentication

from timesheets_api.api.v1.endpoints import (
    health,
    timesheets,
    approvals,
    users,
    sites,
)

api_router = APIRouter()

# Public routes (no authentication required)
api_router.include_router(health.router, tags=["health"])

# Protected routes (authentication required for all endpoints)
# Authentication is enforced via dependency injection at the router level
api_router.include_router(
    timesheets.router,
    prefix="/timesheets",
    tags=["timesheets"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    approvals.router,
    prefix="/approvals",
    tags=["approvals"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    sites.router,
    prefix="/sites",
    tags=["sites"],
    dependencies=[Depends(require_authentication)],
)

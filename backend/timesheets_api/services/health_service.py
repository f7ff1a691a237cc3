"""
Health service.
Reports uptime and database reachability.
"""

import time

from timesheets_api.db import session as db_session
from timesheets_api.db.repositories.health_repository import HealthRepository
from timesheets_api.schemas.health import HealthResponse
from timesheets_api.services.base_service import BaseService


class HealthService(BaseService):
    """Service for health check operations."""

    def __init__(self):
        self.start_time = time.time()

    async def get_health(self) -> HealthResponse:
        """
        Get system health status.

        Returns:
            HealthResponse with status, uptime, and checks
        """
        uptime_seconds = int(time.time() - self.start_time)
        uptime_str = f"PT{uptime_seconds}S"  # ISO 8601 duration format

        if db_session.async_session_maker is None:
            db_session.create_sessionmaker()

        checks = {}
        async with db_session.async_session_maker() as session:
            repo = HealthRepository(session=session)
            checks["database"] = "ok" if await repo.check_database() else "error"

        status = "ok" if all(check == "ok" for check in checks.values()) else "degraded"

        return HealthResponse(
            status=status,
            uptime=uptime_str,
            checks=checks,
        )

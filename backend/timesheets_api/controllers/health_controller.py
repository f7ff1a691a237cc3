"""
Health controller.
Coordinates health service to return health status.
"""

from typing import Optional

from timesheets_api.controllers.base_controller import BaseController
from timesheets_api.schemas.health import HealthResponse
from timesheets_api.services.health_service import HealthService


class HealthController(BaseController):
    """Controller for health check operations."""

    def __init__(self, health_service: Optional[HealthService] = None):
        self.health_service = health_service or HealthService()

    async def get_health(self) -> HealthResponse:
        return await self.health_service.get_health()

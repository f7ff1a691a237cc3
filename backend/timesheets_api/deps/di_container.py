"""
Dependency injection container using dependency-injector.
Wires the process-wide services: health checks and the identity provider client.
"""

from dependency_injector import containers, providers

from timesheets_api.controllers.health_controller import HealthController
from timesheets_api.core.integrations.identity_admin import IdentityAdminClient
from timesheets_api.services.health_service import HealthService


class Container(containers.DeclarativeContainer):
    """Dependency injection container."""

    # Services
    health_service = providers.Singleton(
        HealthService,
    )

    identity_client = providers.Singleton(
        IdentityAdminClient,
    )

    # Controllers
    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


# Global container instance
_container: Container = None


def get_container() -> Container:
    """Get the global dependency injection container."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def get_identity_client() -> IdentityAdminClient:
    """FastAPI dependency for the identity provider admin client."""
    return get_container().identity_client()

"""
Admin client for the hosted identity provider.
Creates and deletes the authentication accounts that back user profiles.
"""

import asyncio
import secrets
from typing import Optional
from uuid import UUID

import aiohttp

from timesheets_api.core.config import settings
from timesheets_api.core.exceptions import ServiceUnavailableError, ValidationError
from timesheets_api.core.integrations.http.http_client import HttpClient
from timesheets_api.core.logging import get_logger

logger = get_logger(__name__)


class IdentityAdminClient:
    """Service-role client for the identity provider's admin user API."""

    def __init__(self, http_client: Optional[HttpClient] = None):
        self.http = http_client or HttpClient(
            base_url=settings.IDENTITY_API_URL,
            timeout=settings.IDENTITY_TIMEOUT_SECONDS,
            max_retries=settings.IDENTITY_MAX_RETRIES,
            default_headers={
                "apikey": settings.IDENTITY_SERVICE_KEY,
                "Authorization": f"Bearer {settings.IDENTITY_SERVICE_KEY}",
            },
        )

    async def create_user(self, email: str, name: str) -> UUID:
        """
        Create a confirmed account with a random temporary password.
        The user sets a real password through the provider's invite flow.

        Returns:
            The new account's user id
        """
        payload = {
            "email": email,
            "password": secrets.token_urlsafe(24),
            "email_confirm": True,
            "user_metadata": {"name": name},
        }
        # Not idempotent: sent exactly once
        try:
            body = await self.http.post("/admin/users", json=payload, max_retries=1)
        except aiohttp.ClientResponseError as e:
            if e.status in (400, 409, 422):
                raise ValidationError(f"Could not create account for {email}: {e.message}")
            raise ServiceUnavailableError("Identity provider rejected the request")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                "Identity provider unreachable; the account may still have been created",
                extra={"operation": "create_user", "email": email, "error": str(e)},
            )
            raise ServiceUnavailableError("Identity provider is unavailable")

        user_id = (body or {}).get("id")
        if not user_id:
            raise ServiceUnavailableError("Identity provider returned no user id")
        logger.info("Identity account created", extra={"user_id": user_id})
        return UUID(user_id)

    async def delete_user(self, user_id: UUID) -> None:
        """Delete an account; a missing account is treated as already deleted."""
        try:
            await self.http.delete(f"/admin/users/{user_id}")
        except aiohttp.ClientResponseError as e:
            if e.status == 404:
                logger.warning("Identity account already absent", extra={"user_id": str(user_id)})
                return
            raise ServiceUnavailableError("Identity provider rejected the request")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Identity provider unreachable", extra={"operation": "delete_user", "error": str(e)})
            raise ServiceUnavailableError("Identity provider is unavailable")
        logger.info("Identity account deleted", extra={"user_id": str(user_id)})

    async def close(self) -> None:
        await self.http.close()

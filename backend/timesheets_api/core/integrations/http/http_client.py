"""
Generic async HTTP client wrapper using aiohttp.
Provides bounded timeouts and retry with exponential backoff.
"""

import asyncio
from typing import Optional, Dict, Any
import aiohttp
import logging

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Async HTTP client wrapper using aiohttp.
    Provides post/delete methods with retry/backoff support.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Optional base URL for all requests
            timeout: Total request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Initial delay between retries in seconds
            default_headers: Headers sent with every request
        """
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.default_headers = default_headers or {}
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=self.default_headers)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint."""
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        return endpoint

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        max_retries: Optional[int] = None,
        **kwargs: Any,
    ) -> Optional[Dict[str, Any]]:
        """
        Make HTTP request with retry logic.
        Client errors (4xx) are raised immediately; server errors and
        connection failures are retried up to ``max_retries`` attempts
        (the client default when None).

        Returns:
            Decoded JSON body, or None for empty responses
        """
        attempts = max(1, max_retries) if max_retries is not None else self.max_retries
        session = await self._get_session()
        last_exception: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                async with session.request(method, url, **kwargs) as response:
                    response.raise_for_status()
                    if response.status == 204 or response.content_length == 0:
                        return None
                    return await response.json(content_type=None)
            except aiohttp.ClientResponseError as e:
                if e.status < 500:
                    raise
                last_exception = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e

            if attempt < attempts - 1:
                delay = self.retry_delay * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{attempts}): {last_exception}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

        logger.error(f"Request failed after {attempts} attempt(s): {last_exception}")
        raise last_exception or aiohttp.ClientError("Request failed")

    async def post(
        self,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        max_retries: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Make POST request and return the JSON body.
        Pass ``max_retries=1`` for requests that are not safe to repeat.
        """
        url = self._build_url(endpoint)
        return await self._request_with_retry("POST", url, max_retries=max_retries, json=json, headers=headers)

    async def delete(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Make DELETE request and return the JSON body, if any."""
        url = self._build_url(endpoint)
        return await self._request_with_retry("DELETE", url, headers=headers)

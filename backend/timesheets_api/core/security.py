"""
Access token verification.

Tokens are issued by the hosted identity provider; this service never issues
session tokens for end users, it only verifies them. ``create_access_token`` is
used by tests and internal tooling to mint tokens with the same shared secret.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from timesheets_api.core.config import settings
from timesheets_api.core.logging import get_logger

logger = get_logger(__name__)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to embed; ``sub`` must hold the user id
        expires_delta: Token lifetime (defaults to one hour)

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload = dict(data)
    payload.setdefault("aud", settings.AUTH_JWT_AUDIENCE)
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + (expires_delta or timedelta(hours=1))).timestamp())
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode an access token.

    Returns:
        The claims, or None if the token is expired, malformed or badly signed
    """
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired access token")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected invalid access token: {e}")
    return None

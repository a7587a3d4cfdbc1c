"""
HTTP API for validating bearer tokens.
"""

import aiohttp
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tmichat.chat.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

VALIDATE_URL = "https://id.twitch.tv/oauth2/validate"


@dataclass
class TokenInfo:
    """Identity behind a validated bearer token."""
    login: str
    user_id: str
    client_id: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    expires_in: Optional[int] = None


async def validate_token(token: str, url: str = VALIDATE_URL) -> TokenInfo:
    """
    Validate a bearer token and look up its owner.

    Args:
        token: OAuth access token, with or without the "oauth:" prefix
        url: Validation endpoint

    Returns:
        The token's identity

    Raises:
        AuthenticationError: If the token is rejected or the request fails
    """
    if token.startswith("oauth:"):
        token = token[len("oauth:"):]

    headers = {"Authorization": f"OAuth {token}"}

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, headers=headers) as response:
                if response.status == 401:
                    raise AuthenticationError("Token is invalid or expired")
                if response.status != 200:
                    raise AuthenticationError(
                        f"Failed to validate token: HTTP {response.status}"
                    )

                data = await response.json()

                login = data.get("login")
                if not login:
                    raise AuthenticationError("No login in validation response")

                logger.info(f"Token belongs to {login}")
                return TokenInfo(
                    login=login.lower(),
                    user_id=str(data.get("user_id", "")),
                    client_id=data.get("client_id"),
                    scopes=list(data.get("scopes") or []),
                    expires_in=data.get("expires_in"),
                )

    except aiohttp.ClientError as e:
        raise AuthenticationError(f"Network error: {e}")

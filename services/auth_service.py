"""
Microsoft identity platform token acquisition.

Implements the OAuth2 client-credentials grant for the bot's app
registration. Tokens are cached per scope and refreshed five minutes before
they expire. Tokens and the client secret are never logged.
"""
import asyncio
import logging
import os
import time
from typing import Dict, Optional, Tuple

import httpx

from utils.errors import AuthenticationError

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 300


class AuthService:
    """Acquires and caches app-only access tokens."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize from MICROSOFT_APP_* environment variables.

        Args:
            http_client: Optional pre-configured client (tests pass a mock transport)

        Raises:
            ValueError: If the app registration is not configured
        """
        self.app_id = os.getenv("MICROSOFT_APP_ID")
        self.app_password = os.getenv("MICROSOFT_APP_PASSWORD")
        self.tenant_id = os.getenv("MICROSOFT_APP_TENANT_ID")

        if not (self.app_id and self.app_password and self.tenant_id):
            raise ValueError(
                "MICROSOFT_APP_ID, MICROSOFT_APP_PASSWORD and MICROSOFT_APP_TENANT_ID "
                "environment variables are required"
            )

        authority = os.getenv("MICROSOFT_LOGIN_ENDPOINT", "https://login.microsoftonline.com")
        self.token_url = f"{authority.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"
        self.client = http_client or httpx.AsyncClient(timeout=30.0)

        self._cache: Dict[str, Tuple[str, float]] = {}
        self._lock = asyncio.Lock()

        logger.info(f"AuthService initialized: tenant_id={self.tenant_id}, app_id={self.app_id}")

    async def get_access_token(self, scope: str = GRAPH_SCOPE) -> str:
        """
        Return a valid access token for `scope`, requesting one if needed.

        Raises:
            AuthenticationError: If the token endpoint rejects the request or
                cannot be reached
        """
        cached = self._cache.get(scope)
        if cached and cached[1] > time.monotonic():
            return cached[0]

        async with self._lock:
            cached = self._cache.get(scope)
            if cached and cached[1] > time.monotonic():
                return cached[0]

            token, expires_in = await self._request_token(scope)
            self._cache[scope] = (token, time.monotonic() + expires_in - EXPIRY_MARGIN_SECONDS)
            logger.debug(f"Access token acquired: scope={scope}, expires_in={expires_in}s")
            return token

    async def validate_credentials(self) -> bool:
        """Check that a token can be acquired; failures are logged, not raised."""
        try:
            await self.get_access_token()
            return True
        except AuthenticationError as e:
            logger.error(f"Credential validation failed: code={e.code}, error={e.message}")
            return False

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request_token(self, scope: str) -> Tuple[str, int]:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.app_id,
            "client_secret": self.app_password,
            "scope": scope,
        }

        try:
            response = await self.client.post(self.token_url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Token endpoint unreachable: error={type(e).__name__}")
            raise AuthenticationError(
                "Failed to reach the token endpoint",
                details={"error": type(e).__name__},
            ) from e

        if response.status_code != 200:
            error = _safe_json(response).get("error", "unknown_error")
            logger.error(f"Token request rejected: status={response.status_code}, error={error}")
            raise AuthenticationError(
                "Failed to acquire access token",
                details={"status": response.status_code, "error": error},
            )

        payload = _safe_json(response)
        token = payload.get("access_token")
        if not token:
            raise AuthenticationError("Token response did not contain an access token")

        return token, int(payload.get("expires_in", 3600))


def _safe_json(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}

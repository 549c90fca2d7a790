"""
Thin Microsoft Graph REST client.

Every request carries an app-only bearer token from AuthService. Transport
failures and non-2xx responses are raised as GraphApiError with the status
and a truncated response body in `details`.
"""
import logging
import os
from typing import Any, Dict, Optional

import httpx

from services.auth_service import AuthService
from utils.errors import GraphApiError

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_ENDPOINT = "https://graph.microsoft.com/v1.0"


class GraphService:
    """Authenticated JSON/text access to the Graph API."""

    def __init__(
        self,
        auth_service: AuthService,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        self.auth_service = auth_service
        self.base_url = (base_url or os.getenv("GRAPH_API_ENDPOINT", DEFAULT_GRAPH_ENDPOINT)).rstrip("/")
        self.client = http_client or httpx.AsyncClient(timeout=60.0)
        logger.info(f"GraphService initialized: base_url={self.base_url}")

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = await self._request("GET", path, params=params)
        return _json_body(response)

    async def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("POST", path, json=body)
        return _json_body(response)

    async def delete(self, path: str) -> None:
        await self._request("DELETE", path)

    async def get_text(self, path: str, accept: str = "text/vtt") -> str:
        """GET a non-JSON resource (e.g. transcript content) as text."""
        response = await self._request("GET", path, accept=accept)
        return response.text

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        accept: str = "application/json",
    ) -> httpx.Response:
        token = await self.auth_service.get_access_token()
        url = path if path.startswith("https://") else f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}", "Accept": accept}

        logger.debug(f"Graph request: method={method}, path={path}")

        try:
            response = await self.client.request(method, url, headers=headers, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Graph request failed: method={method}, path={path}, error={type(e).__name__}: {e}")
            raise GraphApiError(
                f"Graph request failed: {method} {path}",
                details={"error": str(e)},
            ) from e

        if response.status_code >= 400:
            logger.warning(
                f"Graph API error: method={method}, path={path}, status={response.status_code}"
            )
            raise GraphApiError(
                f"Graph API returned {response.status_code} for {method} {path}",
                details={"status": response.status_code, "body": response.text[:500]},
            )

        return response


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError as e:
        raise GraphApiError(
            "Graph API returned a non-JSON body",
            details={"status": response.status_code, "body": response.text[:500]},
        ) from e
    return body if isinstance(body, dict) else {"value": body}

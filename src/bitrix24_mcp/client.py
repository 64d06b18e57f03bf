"""
Bitrix24 REST client.

The dispatcher only needs something with a ``call`` method (ApiClient).
Bitrix24Client is the default implementation: an httpx transport over an
inbound webhook URL, optionally authenticating with an access token instead
of the webhook's built-in credentials.
"""

import logging
import re
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlsplit

import httpx

from .errors import RemoteApiError

logger = logging.getLogger(__name__)

_PORTAL_RE = re.compile(r"^(https?://[^/]+)")


class ApiClient(Protocol):
    def call(
        self,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        item_index: int = 0,
    ) -> Dict[str, Any]:
        ...


def redact_url(url: str) -> str:
    """Keep scheme and host only; webhook paths embed the secret."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return "<invalid url>"
    return f"{parts.scheme}://{parts.netloc}/..."


class Bitrix24Client:
    """Synchronous Bitrix24 REST client backed by httpx."""

    def __init__(
        self,
        webhook_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        if not webhook_url or not _PORTAL_RE.match(webhook_url):
            raise ValueError("webhook_url must be an http(s) URL like https://portal.bitrix24.com/rest/1/code/")
        self.webhook_url = webhook_url.rstrip("/")
        self.access_token = (access_token or "").strip() or None
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "Bitrix24Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def build_url(self, endpoint: str) -> str:
        method = endpoint.strip().lstrip("/")
        if self.access_token:
            portal = _PORTAL_RE.match(self.webhook_url).group(1)
            return f"{portal}/rest/{method}"
        return f"{self.webhook_url}/{method}"

    def call(
        self,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        item_index: int = 0,
    ) -> Dict[str, Any]:
        """
        POST a REST method and return the decoded response.

        Raises:
            RemoteApiError: HTTP error status, Bitrix24 error envelope,
                timeout or network failure
        """
        params = dict(query or {})
        if self.access_token and "auth" not in params:
            params["auth"] = self.access_token

        url = self.build_url(endpoint)
        logger.debug("Calling %s (item %d) via %s", endpoint, item_index, redact_url(url))

        try:
            resp = self._http.post(url, json=body or {}, params=params)
        except httpx.TimeoutException as e:
            raise RemoteApiError(
                "TIMEOUT", f"Request to {endpoint} timed out", endpoint=endpoint, item_index=item_index
            ) from e
        except httpx.HTTPError as e:
            raise RemoteApiError(
                "NETWORK_ERROR", str(e) or type(e).__name__, endpoint=endpoint, item_index=item_index
            ) from e

        return self._handle_response(resp, endpoint, item_index)

    def _handle_response(self, resp: httpx.Response, endpoint: str, item_index: int) -> Dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("error"):
            raise RemoteApiError(
                str(payload["error"]),
                payload.get("error_description") or "Unknown Bitrix24 error",
                status=resp.status_code,
                endpoint=endpoint,
                response=payload,
                item_index=item_index,
            )

        if resp.status_code >= 400:
            if resp.status_code == 401:
                code, description = "AUTH_FAILED", "Authentication failed"
            elif resp.status_code == 404:
                code, description = "ENDPOINT_NOT_FOUND", f"Method not found: {endpoint}"
            else:
                code, description = "HTTP_ERROR", resp.text[:500] or f"HTTP {resp.status_code}"
            raise RemoteApiError(
                code, description, status=resp.status_code, endpoint=endpoint,
                response=payload, item_index=item_index,
            )

        if payload is None:
            raise RemoteApiError(
                "INVALID_RESPONSE", "Response is not valid JSON",
                status=resp.status_code, endpoint=endpoint, item_index=item_index,
            )

        if not isinstance(payload, dict):
            return {"result": payload}
        return payload

"""SproutSync — Sprout Social API Client.

Handles authentication and single request/response calls. Retries are applied
by callers through ``with_retry``; this client only classifies failures.
"""

from typing import Any, Dict, List, Optional

import httpx

from sproutsync.config import settings
from sproutsync.core.errors import AuthenticationError, SyncError
from sproutsync.core.logging import get_logger

logger = get_logger("sprout.client")


class SproutAPIError(SyncError):
    """Raised when the Sprout API returns an error."""

    def __init__(
        self, message: str, status_code: int = 0, retryable: Optional[bool] = None
    ):
        self.status_code = status_code
        self._retryable = retryable
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if self._retryable is not None:
            return self._retryable
        return self.status_code == 429 or self.status_code >= 500


class SproutAuthError(SproutAPIError, AuthenticationError):
    """The API token was rejected (401/403)."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code, retryable=False)


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from a JSON error body; empty when there is none."""
    if not response.headers.get("content-type", "").startswith("application/json"):
        return ""
    try:
        body = response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    return str(body.get("error") or body.get("message") or "")


class SproutClient:
    """Async HTTP client for the Sprout Social v1 API."""

    def __init__(
        self,
        api_token: str | None = None,
        customer_id: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_token = api_token or settings.sprout_api_token
        self.customer_id = customer_id or settings.sprout_customer_id
        base = (base_url or settings.sprout_base_url).rstrip("/")
        self.customer_url = f"{base}/{self.customer_id}"
        self._client: Optional[httpx.AsyncClient] = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=settings.sprout_request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make one authenticated request and decode the JSON body."""
        if not self.api_token or not self.customer_id:
            raise SproutAuthError("Sprout API token or customer id is not configured")

        url = f"{self.customer_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/json",
        }
        client = await self._get_client()
        logger.debug(f"[API CALL] {method} {url}")
        resp = await client.request(method, url, headers=headers, json=json_body)

        if resp.status_code in (401, 403):
            raise SproutAuthError(
                f"Sprout API rejected credentials ({resp.status_code}) for {path}",
                resp.status_code,
            )

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_msg = _error_message(e.response) or str(e)
            raise SproutAPIError(str(error_msg), e.response.status_code) from e

        try:
            return resp.json()
        except ValueError as e:
            raise SproutAPIError(
                f"Invalid JSON from {path}: {e}", resp.status_code, retryable=True
            ) from e

    # ── Metadata ──

    async def get_customer_groups(self) -> List[Dict[str, Any]]:
        """Fetch every customer group ({group_id, name})."""
        result = await self._request("GET", "metadata/customer/groups")
        groups = result.get("data", []) or []
        logger.info(f"Fetched {len(groups)} customer groups")
        return groups

    async def get_profiles(self) -> List[Dict[str, Any]]:
        """Fetch every customer profile with its group memberships."""
        result = await self._request("GET", "metadata/customer")
        profiles = result.get("data", []) or []
        logger.info(f"Fetched {len(profiles)} customer profiles")
        return profiles

    # ── Analytics ──

    async def get_profile_analytics(
        self,
        filters: List[str],
        metrics: List[str],
        page: int = 1,
    ) -> Dict[str, Any]:
        """Fetch one page of per-profile, per-day analytics."""
        body = {"filters": filters, "metrics": metrics, "page": page}
        return await self._request("POST", "analytics/profiles", body)

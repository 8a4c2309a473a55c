"""Meshy 3D asset backend - job creation, status checks and GLB downloads."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from robotforge.errors import (
    AssetError,
    ConfigError,
    FetchError,
    SubmitError,
    SubmitReason,
    TransientFetchError,
)

if TYPE_CHECKING:
    from robotforge.config import MeshySettings

logger = logging.getLogger(__name__)


def is_transient_status(status_code: int) -> bool:
    """5xx and rate limiting are worth another poll; other errors are not."""
    return status_code >= 500 or status_code == 429


class MeshyBackend:
    """3D generation backend using the Meshy OpenAPI.

    All three job kinds share one bearer credential. Request bodies and status
    interpretation live in :mod:`robotforge.jobs.stages`; this class only moves
    JSON and bytes.
    """

    def __init__(
        self,
        settings: MeshySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._api_key: str = ""
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Resolve the API key and open the HTTP client.

        Raises
        ------
        ConfigError
            If no key is configured, before any request is made.
        """
        self._api_key = self._settings.require_api_key()
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(self._settings.timeout, connect=10.0),
            transport=self._transport,
        )

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def is_available(self) -> bool:
        """Check if Meshy is reachable and the API key is accepted."""
        if not self._api_key:
            logger.warning("Meshy API key not configured (set MESHY_AI_API_KEY)")
            return False
        try:
            resp = await self._ensure_client().get("/image-to-3d", params={"page_size": 1})
        except (httpx.HTTPError, OSError):
            return False
        return resp.status_code not in (401, 403)

    async def create_task(self, path: str, body: dict[str, Any]) -> str:
        if not self._api_key:
            msg = "MESHY_AI_API_KEY not found"
            raise SubmitError(msg, reason=SubmitReason.AUTH_MISSING)
        client = self._ensure_client()
        try:
            resp = await client.post(path, json=body)
        except httpx.HTTPError as exc:
            msg = f"Failed to send Meshy request to {path}: {exc}"
            raise SubmitError(msg, reason=SubmitReason.TRANSPORT) from exc

        if not resp.is_success:
            msg = f"Meshy API error on {path}: {resp.status_code} - {resp.text}"
            raise SubmitError(
                msg,
                reason=SubmitReason.SERVICE,
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            task_id = resp.json()["result"]
        except (ValueError, KeyError, TypeError):
            msg = f"Meshy API response from {path} has no task id: {resp.text}"
            raise SubmitError(
                msg,
                reason=SubmitReason.SERVICE,
                status_code=resp.status_code,
                body=resp.text,
            ) from None
        logger.info("Created Meshy task %s via %s", task_id, path)
        return str(task_id)

    async def get_task(self, path: str) -> dict[str, Any]:
        if not self._api_key:
            msg = "MESHY_AI_API_KEY not found"
            raise ConfigError(msg)
        client = self._ensure_client()
        try:
            resp = await client.get(path)
        except httpx.HTTPError as exc:
            msg = f"Failed to fetch task status {path}: {exc}"
            raise TransientFetchError(msg) from exc

        if not resp.is_success:
            msg = f"Meshy poll error on {path}: {resp.status_code} - {resp.text}"
            if is_transient_status(resp.status_code):
                raise TransientFetchError(msg, status_code=resp.status_code)
            raise FetchError(msg, status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            # Truncated bodies from an intermediary; the next poll usually recovers.
            msg = f"Failed to parse task status from {path}: {exc}"
            raise TransientFetchError(msg) from exc
        if not isinstance(payload, dict):
            msg = f"Unexpected task status payload from {path}: {payload!r}"
            raise TransientFetchError(msg)
        return payload

    async def download(self, url: str) -> bytes:
        """Download a finished asset. The URL is pre-signed, so no auth header."""
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.download_timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Failed to download GLB from {url}: {exc}"
            raise AssetError(msg) from exc
        logger.info("Downloaded %d bytes from %s", len(resp.content), url)
        return resp.content

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

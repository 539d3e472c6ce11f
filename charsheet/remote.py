"""Remote character API client.

Optional network-backed save collaborator. The auto-save controller pushes
the complete record after every successful local save. The protocol is two
opaque calls against the account API:

    GET  {base}/api/characters/{id}   → {"character": {"character_data": ...}}
    PUT  {base}/api/characters/{id}   ← {"characterData": record}

``character_data`` may arrive as JSON text or as an object.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import httpx

from charsheet.errors import RemoteError

logger = logging.getLogger(__name__)


class RemoteSaver(Protocol):
    async def save(self, entity_id: str, record: dict[str, Any]) -> None: ...


class RemoteCharacterClient:
    """Async HTTP client for the character API.

    Args:
        base_url:  Base URL of the API host, e.g. "http://localhost:3000".
        token:     Bearer token, or empty string if not required.
        timeout:   HTTP timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _url(self, entity_id: str) -> str:
        return f"{self._base_url}/api/characters/{entity_id}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, headers=self._headers(), **kwargs)
                if resp.status_code != 404:
                    resp.raise_for_status()
                return resp
        except httpx.ConnectError as e:
            raise RemoteError(f"Cannot connect to character API at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise RemoteError(f"Character API returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise RemoteError(f"Character API timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise RemoteError(f"Character API request failed: {e}") from e

    async def load(self, entity_id: str) -> dict[str, Any] | None:
        url = self._url(entity_id)
        logger.debug("remote load id=%s url=%s", entity_id, url)
        resp = await self._request("GET", url)
        if resp.status_code == 404:
            return None
        try:
            body = resp.json()
            data = body["character"].get("character_data")
            if isinstance(data, str):
                data = json.loads(data)
        except (ValueError, KeyError, AttributeError) as e:
            raise RemoteError(f"Unexpected response format from character API: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise RemoteError("Character API returned non-object character data")
        return data

    async def save(self, entity_id: str, record: dict[str, Any]) -> None:
        url = self._url(entity_id)
        logger.debug("remote save id=%s url=%s", entity_id, url)
        resp = await self._request("PUT", url, json={"characterData": record})
        if resp.status_code == 404:
            raise RemoteError(f"Character {entity_id} not found on remote API")

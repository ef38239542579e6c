"""JSON-over-HTTP transport for the AIS Fleet API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from aisfleet._constants import REQUEST_TIMEOUT_SECONDS, USER_AGENT
from aisfleet.exceptions import AisFleetTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the sync and reporting engines.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any: ...

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any: ...


class HttpTransport:
    """aiohttp-backed transport with a fixed total timeout per request.

    Every failure surfaces as :class:`AisFleetTransportError`; nothing is
    retried here.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        headers = {"user-agent": USER_AGENT, "accept": "application/json"}
        _logger.debug("GET %s", url)
        return await self._request("GET", url, headers=headers, params=dict(params))

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> Any:
        headers = {"content-type": "application/json", "user-agent": USER_AGENT}
        body = json.dumps(payload, separators=(",", ":"))
        _logger.debug("POST %s (%d bytes)", url, len(body))
        return await self._request("POST", url, headers=headers, data=body)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            async with self._http.request(method, url, timeout=self._timeout, **kwargs) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise AisFleetTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except AisFleetTransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise AisFleetTransportError(
                f"Request to {url} timed out",
                endpoint=url,
                timed_out=True,
            ) from exc
        except aiohttp.ClientError as exc:
            raise AisFleetTransportError(
                f"Request to {url} failed: {exc}",
                endpoint=url,
            ) from exc

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise AisFleetTransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                status_code=resp.status,
                endpoint=url,
            ) from exc

"""HTTP transport with per-request timeouts and typed failures."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from gympulse.config import PulseConfig
from gympulse.exceptions import PulseParseError, PulseTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the sampler and origin tiers.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str: ...

    async def get_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> Any: ...


class HttpTransport:
    """aiohttp-backed transport.

    Every request is bounded by ``config.request_timeout`` so one
    unresponsive endpoint cannot stall a refresh batch.
    """

    def __init__(self, config: PulseConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """GET *url* and return the body, raising on any non-2xx outcome."""
        request_headers: dict[str, str] = {"user-agent": self._config.user_agent}
        if headers:
            request_headers.update(headers)

        _logger.debug("GET %s params=%s", url, dict(params or {}))

        try:
            async with self._http.get(
                url,
                params=dict(params) if params else None,
                headers=request_headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise PulseTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except PulseTransportError:
            raise
        except UnicodeDecodeError as exc:
            raise PulseParseError(f"Undecodable body from {url}: {exc.reason}") from exc
        except TimeoutError as exc:
            raise PulseTransportError(
                f"Request to {url} timed out after {self._config.request_timeout}s",
                url=url,
            ) from exc
        except aiohttp.ClientError as exc:
            raise PulseTransportError(f"Request to {url} failed: {exc}", url=url) from exc

        return text

    async def get_json(self, url: str, *, headers: Mapping[str, str] | None = None) -> Any:
        """GET *url* and decode the body as JSON."""
        text = await self.get_text(url, headers=headers)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise PulseParseError(f"Invalid JSON from {url}: {text[:200]}") from exc

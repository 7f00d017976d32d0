"""Primary, snapshot and cache origin tiers."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError

from gympulse._constants import MAX_RETAIN
from gympulse._transport import Transport
from gympulse.exceptions import PulseParseError
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.session import OriginTag
from gympulse.state.document import parse_history_document
from gympulse.state.store import SeriesStore, build_series

_logger = logging.getLogger(__name__)

_SERIES_LIST_ADAPTER: TypeAdapter[list[FacilitySeries]] = TypeAdapter(list[FacilitySeries])

# The published document may sit behind a CDN; always ask for a fresh copy.
_NO_CACHE_HEADERS = {"cache-control": "no-cache", "pragma": "no-cache"}


class PrimaryTier:
    """A running gympulse service; its facility list is authoritative."""

    origin = OriginTag.PRIMARY
    seeded = False

    def __init__(self, base_url: str, transport: Transport) -> None:
        self._url = f"{base_url.rstrip('/')}/facilities"
        self._transport = transport

    async def try_load(self, configs: Sequence[FacilityConfig]) -> dict[str, FacilitySeries] | None:
        data = await self._transport.get_json(self._url)
        try:
            records = _SERIES_LIST_ADAPTER.validate_python(data)
        except ValidationError as exc:
            raise PulseParseError(f"malformed facility list from {self._url}: {exc.error_count()} errors") from exc
        return {series.facility_id: series for series in records}


class SnapshotTier:
    """A published, possibly stale history document fetched over HTTP."""

    origin = OriginTag.SNAPSHOT
    seeded = False

    def __init__(self, url: str, transport: Transport, *, max_retain: int = MAX_RETAIN) -> None:
        self._url = url
        self._transport = transport
        self._max_retain = max_retain

    async def try_load(self, configs: Sequence[FacilityConfig]) -> dict[str, FacilitySeries] | None:
        data = await self._transport.get_json(self._url, headers=_NO_CACHE_HEADERS)
        histories = parse_history_document(data)
        _logger.debug("Snapshot %s holds %d facilities", self._url, len(histories))
        return build_series(configs, histories, max_retain=self._max_retain)


class CacheTier:
    """History document written by a previous run of this process.

    Read through the :class:`SeriesStore` that will own the state, so the
    store's retention cap applies to what is loaded.
    """

    origin = OriginTag.CACHE
    seeded = False

    def __init__(self, store: SeriesStore) -> None:
        self._store = store

    async def try_load(self, configs: Sequence[FacilityConfig]) -> dict[str, FacilitySeries] | None:
        document = self._store.document
        if document is None or not document.exists():
            return None
        return self._store.load(configs)

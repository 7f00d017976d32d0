"""Deterministic in-memory series store.

This is the only component allowed to add samples to a facility's
history. It is not thread-safe: every call is expected to come from the
event loop that owns it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence

from gympulse._constants import DEDUP_WINDOW_MS, MAX_RETAIN
from gympulse.exceptions import PulseLoadError
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.models.sample import Sample
from gympulse.state.document import JsonDocumentStore
from gympulse.state.policy import retain_tail, should_accept_sample

_logger = logging.getLogger(__name__)


def append_sample(
    series: FacilitySeries,
    sample: Sample,
    *,
    dedup_window_ms: int = DEDUP_WINDOW_MS,
    max_retain: int = MAX_RETAIN,
) -> FacilitySeries:
    """Return *series* extended by *sample*, or *series* itself when rejected.

    A sample closer than ``dedup_window_ms`` to the last one is dropped.
    After an accepted append the history is cut from the front down to
    ``max_retain`` entries; interior entries are never touched.
    """
    last = series.current
    if not should_accept_sample(
        last_timestamp=last.timestamp if last is not None else None,
        incoming_timestamp=sample.timestamp,
        dedup_window_ms=dedup_window_ms,
    ):
        return series

    history = retain_tail((*series.history, sample), max_retain)
    return series.model_copy(
        update={
            "history": history,
            "current": sample,
            "last_updated_at": sample.timestamp,
        }
    )


def build_series(
    configs: Iterable[FacilityConfig],
    histories: Mapping[str, Sequence[Sample]],
    *,
    max_retain: int = MAX_RETAIN,
) -> dict[str, FacilitySeries]:
    """Attach stored histories to *configs*; unknown ids start empty."""
    result: dict[str, FacilitySeries] = {}
    for config in configs:
        samples = sorted(histories.get(config.id, ()), key=lambda s: s.timestamp)
        result[config.id] = FacilitySeries(config=config, history=retain_tail(samples, max_retain))
    return result


class SeriesStore:
    """Per-facility history owner.

    Parameters
    ----------
    document : JsonDocumentStore or None
        Backing document used by :meth:`load` and :meth:`save`.
    dedup_window_ms : int
        Minimum spacing between two accepted samples.
    max_retain : int
        Maximum history length per facility.
    """

    def __init__(
        self,
        document: JsonDocumentStore | None = None,
        *,
        dedup_window_ms: int = DEDUP_WINDOW_MS,
        max_retain: int = MAX_RETAIN,
    ) -> None:
        self._document = document
        self._dedup_window_ms = dedup_window_ms
        self._max_retain = max_retain
        self._series: dict[str, FacilitySeries] = {}

    def __contains__(self, facility_id: object) -> bool:
        return facility_id in self._series

    def __len__(self) -> int:
        return len(self._series)

    def __iter__(self) -> Iterator[FacilitySeries]:
        return iter(list(self._series.values()))

    @property
    def document(self) -> JsonDocumentStore | None:
        return self._document

    def get(self, facility_id: str) -> FacilitySeries | None:
        return self._series.get(facility_id)

    def configs(self) -> list[FacilityConfig]:
        return [series.config for series in self._series.values()]

    def replace_all(self, series: Mapping[str, FacilitySeries]) -> None:
        """Install a freshly resolved state, enforcing the retention cap."""
        self._series = {
            facility_id: self._bounded(item)
            for facility_id, item in series.items()
        }

    def track(self, config: FacilityConfig) -> FacilitySeries:
        """Start tracking *config*, keeping existing history on replacement."""
        existing = self._series.get(config.id)
        if existing is None:
            series = FacilitySeries.empty(config)
        else:
            series = existing.model_copy(update={"config": config})
        self._series[config.id] = series
        return series

    def append(self, facility_id: str, sample: Sample) -> bool:
        """Add *sample* to a tracked facility. Returns whether it was accepted.

        Raises
        ------
        KeyError
            *facility_id* is not tracked.
        """
        series = self._series[facility_id]
        updated = append_sample(
            series,
            sample,
            dedup_window_ms=self._dedup_window_ms,
            max_retain=self._max_retain,
        )
        if updated is series:
            _logger.debug(
                "Skipped %s sample at %d (within %d ms of last)",
                facility_id,
                sample.timestamp,
                self._dedup_window_ms,
            )
            return False
        self._series[facility_id] = updated
        return True

    def load(self, configs: Iterable[FacilityConfig]) -> dict[str, FacilitySeries]:
        """Read the backing document into series for *configs*.

        Does not install them; see :meth:`replace_all`.

        Raises
        ------
        PulseLoadError
            There is no document or it holds no history (missing, empty
            or malformed).
        """
        if self._document is None:
            raise PulseLoadError("store has no backing document")
        histories = self._document.load()
        if not histories:
            raise PulseLoadError(f"no usable history in {self._document.path}")
        _logger.debug("Loaded %d stored histories", len(histories))
        return build_series(configs, histories, max_retain=self._max_retain)

    def save(self) -> None:
        """Rewrite the backing document from the in-memory series.

        Raises
        ------
        PulsePersistError
            The document could not be written.
        """
        if self._document is None:
            return
        self._document.save({facility_id: s.history for facility_id, s in self._series.items()})

    def _bounded(self, series: FacilitySeries) -> FacilitySeries:
        if len(series.history) <= self._max_retain:
            return series
        return FacilitySeries(
            config=series.config,
            history=retain_tail(series.history, self._max_retain),
            last_updated_at=series.last_updated_at,
        )

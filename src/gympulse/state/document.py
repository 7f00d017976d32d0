"""Durable JSON history document.

The document is a single JSON object mapping facility id to an array of
samples (``{timestamp, visitors, maxCapacity}``), newest last. Saving
always rewrites the whole document.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from gympulse.exceptions import PulseParseError, PulsePersistError
from gympulse.ingestion.sampler import now_ms
from gympulse.models.sample import Sample

_logger = logging.getLogger(__name__)

_DOCUMENT_ADAPTER: TypeAdapter[dict[str, list[Sample]]] = TypeAdapter(dict[str, list[Sample]])


def parse_history_document(data: Any) -> dict[str, list[Sample]]:
    """Validate a decoded history document.

    Raises
    ------
    PulseParseError
        *data* is not an object of sample arrays.
    """
    try:
        return _DOCUMENT_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise PulseParseError(f"malformed history document: {exc.error_count()} errors") from exc


def dump_history_document(histories: Mapping[str, Sequence[Sample]]) -> dict[str, list[dict[str, Any]]]:
    return {facility_id: [s.to_wire() for s in samples] for facility_id, samples in histories.items()}


class JsonDocumentStore:
    """Read and atomically rewrite the history document at *path*.

    A malformed document is copied aside (``<name>.corrupt-<epoch ms>``)
    before being treated as empty, so the lost history can be recovered
    by hand.
    """

    def __init__(self, path: str | os.PathLike[str], *, clock: Callable[[], int] = now_ms) -> None:
        self._path = Path(path)
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> dict[str, list[Sample]]:
        """Return the stored histories, or an empty mapping when unavailable."""
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            _logger.warning("History document %s unreadable, starting empty: %s", self._path, exc)
            return {}

        try:
            return parse_history_document(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, PulseParseError) as exc:
            backup = self._backup_corrupt()
            _logger.warning(
                "History document %s is malformed (%s); previous history dropped, copy kept at %s",
                self._path,
                exc,
                backup,
            )
            return {}

    def save(self, histories: Mapping[str, Sequence[Sample]]) -> None:
        """Overwrite the document with *histories*.

        Raises
        ------
        PulsePersistError
            The document could not be written.
        """
        payload = json.dumps(dump_history_document(histories), indent=2)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise PulsePersistError(f"Failed to write {self._path}: {exc}", path=str(self._path)) from exc
        _logger.debug("Saved history document %s (%d facilities)", self._path, len(histories))

    def _backup_corrupt(self) -> Path | None:
        backup = self._path.with_name(f"{self._path.stem}.corrupt-{self._clock()}{self._path.suffix}")
        try:
            shutil.copy2(self._path, backup)
        except OSError:
            _logger.warning("Could not back up malformed document %s", self._path, exc_info=True)
            return None
        return backup

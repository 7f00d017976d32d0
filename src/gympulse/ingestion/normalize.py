"""Normalization helpers.

Centralizes strict parsing of upstream bodies and seed rows.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, tzinfo

from gympulse._constants import DEFAULT_CAPACITY
from gympulse.exceptions import PulseParseError
from gympulse.models.sample import Sample

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_SEED_DATE_FORMAT = "%d.%m.%Y %H:%M"


def parse_visitor_count(text: str) -> int:
    """Parse a plain-text body holding exactly one non-negative integer.

    Raises
    ------
    PulseParseError
        The body is not a single integer or the integer is negative.
    """
    stripped = text.strip()
    if not _INTEGER_RE.fullmatch(stripped):
        raise PulseParseError(f"expected an integer body, got {stripped[:64]!r}")
    try:
        value = int(stripped)
    except ValueError as exc:
        # Longer than the interpreter allows for str -> int conversion.
        raise PulseParseError(f"visitor count out of range ({len(stripped)} digits)") from exc
    if value < 0:
        raise PulseParseError(f"visitor count must be non-negative, got {value}")
    return value


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def parse_seed_rows(
    rows: Iterable[str],
    *,
    tz: tzinfo,
    capacity: int = DEFAULT_CAPACITY,
) -> list[Sample]:
    """Parse ``DD.MM.YYYY HH:MM<TAB>visitors`` rows into ascending samples.

    Blank and malformed rows are skipped; times are interpreted in *tz*.
    """
    samples: list[Sample] = []
    for row in rows:
        date_str, sep, value = row.strip().partition("\t")
        if not sep:
            continue
        try:
            moment = datetime.strptime(date_str.strip(), _SEED_DATE_FORMAT).replace(tzinfo=tz)
            visitors = parse_visitor_count(value)
        except (ValueError, PulseParseError):
            continue
        samples.append(Sample(timestamp=to_epoch_ms(moment), visitors=visitors, capacity=capacity))
    samples.sort(key=lambda s: s.timestamp)
    return samples

"""Single upstream read for one facility.

:func:`sample` never raises for upstream problems: network errors,
timeouts, non-2xx statuses, unparseable or negative bodies all come back
as a :class:`~gympulse.models.sample.SampleFailure`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from gympulse._constants import VENDOR_ACTION, VENDOR_URL
from gympulse._transport import Transport
from gympulse.exceptions import PulseParseError, PulseTransportError
from gympulse.ingestion.normalize import parse_visitor_count
from gympulse.models.facility import FacilityConfig
from gympulse.models.sample import Sample, SampleFailure

_logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def build_request(config: FacilityConfig, *, vendor_url: str = VENDOR_URL) -> tuple[str, dict[str, str]]:
    """Return the URL and query parameters used to sample *config*."""
    if config.url:
        return config.url, {}
    params = {"action": VENDOR_ACTION}
    params.update(config.endpoint_params)
    return vendor_url, params


async def sample(
    config: FacilityConfig,
    transport: Transport,
    *,
    vendor_url: str = VENDOR_URL,
    default_capacity: int | None = None,
    clock: Callable[[], int] = now_ms,
) -> Sample | SampleFailure:
    """Read the current visitor count of one facility.

    The sample records the facility's own capacity when it declares one,
    else *default_capacity* (falling back to the model default).
    """
    url, params = build_request(config, vendor_url=vendor_url)
    try:
        body = await transport.get_text(url, params=params)
        visitors = parse_visitor_count(body)
    except PulseTransportError as exc:
        _logger.warning("Fetch failed for %s: %s", config.name, exc)
        return SampleFailure(facility_id=config.id, reason=str(exc), status_code=exc.status_code)
    except PulseParseError as exc:
        _logger.warning("Invalid data for %s: %s", config.name, exc)
        return SampleFailure(facility_id=config.id, reason=str(exc))

    _logger.debug("Sampled %s: %d visitors", config.name, visitors)
    capacity = config.effective_capacity(default_capacity)
    return Sample(timestamp=clock(), visitors=visitors, capacity=capacity)

"""Built-in seed history used when no origin has data."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import tzinfo

from gympulse._constants import MAX_RETAIN
from gympulse.ingestion.normalize import parse_seed_rows
from gympulse.models.facility import FacilityConfig, FacilitySeries
from gympulse.session import OriginTag
from gympulse.state.policy import retain_tail

# Recorded visitor counts of FP Glattpark, local time.
_GLATTPARK_ROWS = """\
20.06.2025 11:14	78
20.06.2025 11:33	76
20.06.2025 12:03	90
20.06.2025 13:11	130
20.06.2025 13:40	96
20.06.2025 14:10	65
20.06.2025 14:40	57
20.06.2025 15:10	67
20.06.2025 15:39	68
20.06.2025 16:09	70
20.06.2025 16:39	80
20.06.2025 17:09	85
20.06.2025 17:38	107
20.06.2025 18:08	122
20.06.2025 18:38	126
20.06.2025 19:08	109
20.06.2025 19:38	110
20.06.2025 20:07	105
20.06.2025 20:37	94
20.06.2025 21:07	76
20.06.2025 21:31	57
20.06.2025 21:36	57
21.06.2025 08:04	3
21.06.2025 08:13	3
21.06.2025 08:48	69
21.06.2025 09:18	95
21.06.2025 09:47	120
21.06.2025 10:17	170
21.06.2025 10:47	184
21.06.2025 11:17	169
21.06.2025 11:46	148
21.06.2025 12:16	149
21.06.2025 12:46	146
21.06.2025 13:16	135
21.06.2025 13:46	118
21.06.2025 14:56	80
21.06.2025 15:25	76
21.06.2025 15:55	67
21.06.2025 16:25	68
21.06.2025 16:55	78
21.06.2025 17:24	79
21.06.2025 17:54	79
21.06.2025 18:24	63
21.06.2025 18:54	65
21.06.2025 19:24	65
"""

SEED_ROWS: dict[str, str] = {"glattpark": _GLATTPARK_ROWS}


class SeedTier:
    """Always succeeds; facilities without seed rows start empty.

    Tagged as ``cache`` since the seeded state is owned locally from
    then on.
    """

    origin = OriginTag.CACHE
    seeded = True

    def __init__(
        self,
        *,
        tz: tzinfo,
        seed_rows: dict[str, str] | None = None,
        default_capacity: int | None = None,
        max_retain: int = MAX_RETAIN,
    ) -> None:
        self._tz = tz
        self._default_capacity = default_capacity
        self._seed_rows = SEED_ROWS if seed_rows is None else seed_rows
        self._max_retain = max_retain

    async def try_load(self, configs: Sequence[FacilityConfig]) -> dict[str, FacilitySeries] | None:
        result: dict[str, FacilitySeries] = {}
        for config in configs:
            rows = self._seed_rows.get(config.id, "")
            capacity = config.effective_capacity(self._default_capacity)
            samples = parse_seed_rows(rows.splitlines(), tz=self._tz, capacity=capacity)
            result[config.id] = FacilitySeries(config=config, history=retain_tail(samples, self._max_retain))
        return result

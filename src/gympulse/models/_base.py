"""Base model shared by gympulse records.

Every wire record inherits from :class:`PulseBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys of the history
  document and the service API map to snake_case fields.
* ``populate_by_name=True`` so Python callers can use field names.
* Frozen instances; records are replaced, never mutated.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PulseBaseModel(BaseModel):
    """Base for gympulse records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-compatible dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)

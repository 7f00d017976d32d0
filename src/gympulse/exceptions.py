"""Custom exception hierarchy for gympulse."""

from __future__ import annotations


class PulseError(Exception):
    """Base exception for all gympulse errors."""


class PulseConfigError(PulseError):
    """Invalid or missing configuration."""


class PulseTransportError(PulseError):
    """HTTP-level failure (network, timeout, non-2xx status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class PulseParseError(PulseError):
    """A response body or stored document did not have the expected shape."""


class PulseLoadError(PulseError):
    """No usable prior state could be loaded from an origin.

    Always recoverable: the resolver falls through to the next origin
    tier, ending with the built-in seed data.
    """


class PulsePersistError(PulseError):
    """Writing the backing document failed.

    The in-memory series stay correct; the next successful batch
    rewrites the whole document.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)

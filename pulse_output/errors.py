"""Error taxonomy for the Pulse output pipeline."""

from __future__ import annotations

from dataclasses import dataclass


class PulseError(RuntimeError):
    """Base class for every failure raised by the pipeline."""


class ConfigError(PulseError):
    """Raised when the static configuration cannot be used."""


class EncodeError(PulseError):
    """Raised when a submission cannot be serialized or compressed."""


class TransportError(PulseError):
    """Raised on connection failures, timeouts and unreadable responses."""


@dataclass(eq=False)
class HTTPStatusError(PulseError):
    status_code: int
    reason: str
    body: str

    @property
    def status(self) -> str:
        return f"{self.status_code} {self.reason}".strip()

    def __str__(self) -> str:  # noqa: D401
        return f"Pulse rejected request: {self.status} {self.body}".rstrip()

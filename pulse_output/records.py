"""Record model and field flattening."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

FieldValue = Union[bool, int, float, str]

NANOS_PER_MILLI = 1_000_000


@dataclass(frozen=True)
class Record:
    """One measurement sample handed over by the collection agent."""

    name: str
    tags: Mapping[str, str] = field(default_factory=dict)
    fields: Optional[Mapping[str, FieldValue]] = field(default_factory=dict)
    timestamp: int = 0  # nanoseconds since epoch

    @property
    def timestamp_ms(self) -> int:
        return to_millis(self.timestamp)


@dataclass(frozen=True)
class Datapoint:
    name: str
    timestamp_ms: int
    value: FieldValue

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "timestamp": self.timestamp_ms, "value": self.value}


def to_millis(timestamp_ns: int) -> int:
    return timestamp_ns // NANOS_PER_MILLI


def normalize_name(name: str) -> str:
    """Map a record name onto Pulse's dotted naming, e.g. ``cpu_usage`` -> ``cpu.usage``."""

    return name.replace("_", ".")


def flatten(record: Record) -> List[Datapoint]:
    """Produce one datapoint per field of ``record``.

    Records without a field map yield an empty list; deciding what to do with
    them is left to the caller.
    """

    if record.fields is None:
        return []
    prefix = normalize_name(record.name)
    timestamp_ms = record.timestamp_ms
    return [
        Datapoint(name=f"{prefix}_{key}", timestamp_ms=timestamp_ms, value=value)
        for key, value in record.fields.items()
    ]

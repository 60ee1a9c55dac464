"""Grouping of records into Pulse submission units."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Mapping, Sequence, Union

from .records import Datapoint, Record, flatten, normalize_name

Endpoint = Literal["marks", "events"]


@dataclass
class Mark:
    """All datapoints of a single record, sent through the ``marks`` endpoint."""

    stashid: str
    secret: str
    source: str
    timestamp: int
    tags: Mapping[str, str]
    datapoints: List[Datapoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stashid": self.stashid,
            "secret": self.secret,
            "source": self.source,
            "timestamp": self.timestamp,
            "tags": dict(self.tags),
            "datapoints": [point.to_dict() for point in self.datapoints],
        }


@dataclass
class Event:
    """Datapoints of every record sharing one normalized name."""

    stashid: str
    secret: str
    source: str
    name: str
    tags: Mapping[str, str]
    datapoints: List[Datapoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stashid": self.stashid,
            "secret": self.secret,
            "source": self.source,
            "name": self.name,
            "tags": dict(self.tags),
            "datapoints": [point.to_dict() for point in self.datapoints],
        }


SubmissionUnit = Union[Mark, Event]


@dataclass
class Envelope:
    stashid: str
    endpoint: Endpoint
    units: List[SubmissionUnit] = field(default_factory=list)

    def path(self) -> str:
        return f"/stash/{self.stashid}/{self.endpoint}?format=json"

    def datapoints(self) -> Iterator[Datapoint]:
        for unit in self.units:
            yield from unit.datapoints

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stashid": self.stashid,
            self.endpoint: [unit.to_dict() for unit in self.units],
        }


@dataclass
class Assembly:
    envelopes: List[Envelope] = field(default_factory=list)
    skipped: List[Record] = field(default_factory=list)

    @property
    def datapoint_count(self) -> int:
        return sum(1 for envelope in self.envelopes for _ in envelope.datapoints())


def assemble(
    records: Sequence[Record],
    *,
    stashid: str,
    secret: str = "",
    source: str = "",
    grouping: str = "batch",
) -> Assembly:
    """Partition ``records`` into envelopes according to ``grouping``.

    ``batch`` yields at most one ``marks`` envelope holding one mark per
    record. ``name`` yields one ``events`` envelope per distinct normalized
    record name; each event carries the tags of the first record seen with
    that name, so datapoints of later records with other tags are sent under
    those first tags. Records without a field map are returned in ``skipped``.
    """

    if grouping == "batch":
        return _assemble_marks(records, stashid, secret, source)
    if grouping == "name":
        return _assemble_events(records, stashid, secret, source)
    raise ValueError(f"Unknown grouping policy: {grouping!r}")


def _assemble_marks(
    records: Sequence[Record], stashid: str, secret: str, source: str
) -> Assembly:
    assembly = Assembly()
    marks: List[SubmissionUnit] = []
    for record in records:
        if record.fields is None:
            assembly.skipped.append(record)
            continue
        marks.append(
            Mark(
                stashid=stashid,
                secret=secret,
                source=source,
                timestamp=record.timestamp_ms,
                tags=record.tags,
                datapoints=flatten(record),
            )
        )
    if marks:
        assembly.envelopes.append(Envelope(stashid=stashid, endpoint="marks", units=marks))
    return assembly


def _assemble_events(
    records: Sequence[Record], stashid: str, secret: str, source: str
) -> Assembly:
    assembly = Assembly()
    events: Dict[str, Event] = {}
    for record in records:
        if record.fields is None:
            assembly.skipped.append(record)
            continue
        name = normalize_name(record.name)
        event = events.get(name)
        if event is None:
            event = Event(
                stashid=stashid,
                secret=secret,
                source=source,
                name=name,
                tags=record.tags,
            )
            events[name] = event
        event.datapoints.extend(flatten(record))
    assembly.envelopes.extend(
        Envelope(stashid=stashid, endpoint="events", units=[event]) for event in events.values()
    )
    return assembly

"""JSON + gzip encoding of Pulse envelopes."""

from __future__ import annotations

import gzip
import json
import math
import zlib

from .batching import Envelope
from .errors import EncodeError
from .records import Datapoint

SCALAR_TYPES = (bool, int, float, str)


def encode(envelope: Envelope) -> bytes:
    """Serialize ``envelope`` to JSON and gzip it."""

    for point in envelope.datapoints():
        _check_value(point)
    try:
        body = json.dumps(envelope.to_dict(), allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"unable to encode request, {exc}") from exc
    try:
        # mtime pinned so equal payloads compress to equal bytes
        return gzip.compress(body.encode("utf-8"), mtime=0)
    except (OSError, zlib.error) as exc:
        raise EncodeError(f"unable to compress request, {exc}") from exc


def decode(payload: bytes) -> dict:
    """Inverse of :func:`encode`, used for diagnostics and tests."""

    return json.loads(gzip.decompress(payload).decode("utf-8"))


def _check_value(point: Datapoint) -> None:
    value = point.value
    if not isinstance(value, SCALAR_TYPES):
        raise EncodeError(
            f"unable to encode request, field {point.name!r} has unsupported type "
            f"{type(value).__name__}"
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise EncodeError(f"unable to encode request, field {point.name!r} is not finite")

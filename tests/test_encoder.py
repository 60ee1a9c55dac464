import gzip
import json
from decimal import Decimal
from types import MappingProxyType

import pytest

from pulse_output.batching import assemble
from pulse_output.encoder import decode, encode
from pulse_output.errors import EncodeError
from pulse_output.records import Record


def _envelope(fields, grouping="batch"):
    records = [Record("cpu_usage", {"host": "a"}, fields, 1_500_000_123_456_789)]
    return assemble(records, stashid="stash-1", secret="s", grouping=grouping).envelopes[0]


def test_encode_produces_gzip_json():
    envelope = _envelope({"idle": 97.5, "count": 3, "state": "ok", "up": True})

    payload = encode(envelope)

    assert payload[:2] == b"\x1f\x8b"
    assert json.loads(gzip.decompress(payload)) == envelope.to_dict()


@pytest.mark.parametrize("grouping", ["batch", "name"])
def test_decode_reverses_encode(grouping):
    envelope = _envelope({"idle": 97.5}, grouping)
    decoded = decode(encode(envelope))
    assert decoded == envelope.to_dict()
    assert decoded["stashid"] == "stash-1"


def test_encode_is_deterministic():
    envelope = _envelope({"idle": 97.5})
    assert encode(envelope) == encode(envelope)


@pytest.mark.parametrize("value", [Decimal("1.5"), [1, 2], {"a": 1}, None, b"raw"])
def test_encode_rejects_unsupported_types(value):
    with pytest.raises(EncodeError) as excinfo:
        encode(_envelope({"bad": value}))
    assert "cpu.usage_bad" in str(excinfo.value)


def test_encode_rejects_non_finite_floats():
    with pytest.raises(EncodeError):
        encode(_envelope({"bad": float("nan")}))


@pytest.mark.parametrize("grouping", ["batch", "name"])
def test_encode_accepts_read_only_tag_mappings(grouping):
    tags = MappingProxyType({"host": "a"})
    records = [Record("cpu", tags, {"value": 1}, 0)]
    envelope = assemble(records, stashid="s", grouping=grouping).envelopes[0]

    decoded = decode(encode(envelope))

    unit = decoded["marks" if grouping == "batch" else "events"][0]
    assert unit["tags"] == {"host": "a"}
    assert envelope.units[0].tags is tags

import pytest
import requests
from requests import Response

from pulse_output.errors import HTTPStatusError, TransportError
from pulse_output.transport import HEADERS, MAX_ERROR_BODY, Transporter


class DummyResponse(Response):
    def __init__(self, status_code: int, text: str = "", reason: str = "") -> None:
        super().__init__()
        self.status_code = status_code
        self.reason = reason
        self._content = text.encode()
        self._content_consumed = True


class BrokenBodyResponse(DummyResponse):
    def iter_content(self, chunk_size=1, decode_unicode=False):
        raise requests.exceptions.ChunkedEncodingError("connection reset")


def _transporter(monkeypatch, response=None, error=None):
    transporter = Transporter(timeout=60)
    calls = []

    def _fake_post(url, **kwargs):
        calls.append((url, kwargs))
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(transporter.session, "post", _fake_post)
    return transporter, calls


def test_post_sends_gzip_headers_and_timeout(monkeypatch):
    transporter, calls = _transporter(monkeypatch, DummyResponse(204))

    transporter.post("http://pulse/stash/s/events?format=json", b"payload", 204)

    url, kwargs = calls[0]
    assert url == "http://pulse/stash/s/events?format=json"
    assert kwargs["data"] == b"payload"
    assert kwargs["headers"] == HEADERS
    assert kwargs["headers"]["Content-Encoding"] == "gzip"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 60


def test_post_rejects_other_success_codes(monkeypatch):
    transporter, _ = _transporter(monkeypatch, DummyResponse(200, "", "OK"))

    with pytest.raises(HTTPStatusError) as excinfo:
        transporter.post("http://pulse/x", b"payload", 204)

    assert excinfo.value.status_code == 200


def test_post_raises_status_error_with_body(monkeypatch):
    transporter, _ = _transporter(
        monkeypatch, DummyResponse(500, "boom", "Internal Server Error")
    )

    with pytest.raises(HTTPStatusError) as excinfo:
        transporter.post("http://pulse/x", b"payload", 200)

    message = str(excinfo.value)
    assert "500 Internal Server Error" in message
    assert "boom" in message
    assert excinfo.value.body == "boom"


def test_post_bounds_error_body(monkeypatch):
    transporter, _ = _transporter(monkeypatch, DummyResponse(400, "x" * (MAX_ERROR_BODY * 2)))

    with pytest.raises(HTTPStatusError) as excinfo:
        transporter.post("http://pulse/x", b"payload", 200)

    assert len(excinfo.value.body) == MAX_ERROR_BODY


def test_post_body_read_failure_keeps_status(monkeypatch):
    transporter, _ = _transporter(monkeypatch, BrokenBodyResponse(502, "", "Bad Gateway"))

    with pytest.raises(TransportError) as excinfo:
        transporter.post("http://pulse/x", b"payload", 200)

    assert "502 Bad Gateway" in str(excinfo.value)
    assert not isinstance(excinfo.value, HTTPStatusError)


@pytest.mark.parametrize(
    "error",
    [requests.ConnectionError("connection failed"), requests.Timeout("timed out")],
)
def test_post_wraps_transport_failures(monkeypatch, error):
    transporter, _ = _transporter(monkeypatch, error=error)

    with pytest.raises(TransportError) as excinfo:
        transporter.post("http://pulse/x", b"payload", 200)

    assert excinfo.value.__cause__ is error

"""HTTP delivery of encoded payloads to Pulse."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests
from requests import RequestException, Response

from .errors import HTTPStatusError, TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
MAX_ERROR_BODY = 64 * 1024

# Each endpoint has exactly one status that counts as accepted.
EXPECTED_STATUS: Dict[str, int] = {
    "marks": 200,
    "events": 204,
}

HEADERS = {
    "Content-Type": "application/json",
    "Content-Encoding": "gzip",
}


class Transporter:
    """POSTs gzip payloads over a shared session and classifies the response."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def post(self, url: str, payload: bytes, expected_status: int) -> None:
        try:
            response: Response = self.session.post(
                url,
                data=payload,
                headers=HEADERS,
                timeout=self.timeout,
                stream=True,
            )
        except RequestException as exc:
            raise TransportError(f"unable to deliver request to {url}, {exc}") from exc

        try:
            if response.status_code == expected_status:
                return
            status = f"{response.status_code} {response.reason or ''}".strip()
            try:
                body = _read_body(response, MAX_ERROR_BODY)
            except RequestException as exc:
                raise TransportError(
                    f"Pulse responded {status} and the body could not be read, {exc}"
                ) from exc
            LOGGER.error(
                "Pulse write failed",
                extra={"status_code": response.status_code, "response_body": body},
            )
            raise HTTPStatusError(
                status_code=response.status_code,
                reason=response.reason or "",
                body=body,
            )
        finally:
            response.close()

    def close(self) -> None:
        self.session.close()


def _read_body(response: Response, limit: int) -> str:
    chunks = []
    size = 0
    for chunk in response.iter_content(chunk_size=8192):
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit].decode(response.encoding or "utf-8", errors="replace")

"""Pulse output: connect, write and close as driven by the collection agent."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Sequence

import requests

from .batching import Envelope, assemble
from .config import PulseConfig
from .encoder import encode
from .errors import ConfigError
from .records import Record
from .transport import EXPECTED_STATUS, Transporter

LOGGER = logging.getLogger(__name__)

SAMPLE_CONFIG = """\
## Pulse server base URL (required)
PULSE_HOST=https://my-server

## Pulse stash identifier (required)
PULSE_STASHID={guid}

## Pulse shared secret
PULSE_SECRET=

## Source host reported with every mark
# PULSE_SOURCE=

## "batch" sends one marks request per write, "name" one events request per metric name
# PULSE_GROUPING=batch
"""


def _build_transport(config: PulseConfig) -> Transporter:
    return Transporter(session=requests.Session(), timeout=config.timeout)


class PulseOutput:
    def __init__(self, config: PulseConfig) -> None:
        self.config = config
        self.transport: Optional[Transporter] = None

    @staticmethod
    def sample_config() -> str:
        return SAMPLE_CONFIG

    @staticmethod
    def description() -> str:
        return "Configuration for Pulse Server to send metrics to."

    def connect(self) -> None:
        """Validate the destination and build the long-lived HTTP client."""

        if not self.config.host or not self.config.stashid:
            raise ConfigError("pulse host and stashid are required fields")
        self.transport = _build_transport(self.config)
        LOGGER.info("Connected Pulse output to %s (stash %s)", self.config.host, self.config.stashid)

    def write(self, records: Sequence[Record]) -> None:
        """Deliver ``records``; raises on the first encode or delivery failure."""

        if not records:
            return
        transport = self.transport
        if transport is None:
            raise ConfigError("connect() must succeed before write()")

        assembly = assemble(
            records,
            stashid=self.config.stashid,
            secret=self.config.secret,
            source=self.config.source,
            grouping=self.config.grouping,
        )
        for record in assembly.skipped:
            LOGGER.warning("Skipping metric %s without fields", record.name)

        envelopes = assembly.envelopes
        if len(envelopes) > 1 and self.config.max_workers > 1:
            self._send_concurrently(transport, envelopes)
        else:
            for envelope in envelopes:
                self._send(transport, envelope)

    def _send(self, transport: Transporter, envelope: Envelope) -> None:
        payload = encode(envelope)
        url = f"{self.config.host}{envelope.path()}"
        transport.post(url, payload, EXPECTED_STATUS[envelope.endpoint])
        LOGGER.debug(
            "Delivered %d unit(s) to %s (%d bytes)", len(envelope.units), url, len(payload)
        )

    def _send_concurrently(self, transport: Transporter, envelopes: Sequence[Envelope]) -> None:
        executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="pulse-output"
        )
        try:
            futures = [executor.submit(self._send, transport, envelope) for envelope in envelopes]
            for future in as_completed(futures):
                error = future.exception()
                if error is not None:
                    raise error
        finally:
            # in-flight requests finish on their own; queued ones are dropped
            executor.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
            self.transport = None

"""Command line driver that feeds line protocol into the Pulse output."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Iterator, List, Optional, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import PulseConfig, load_config
from .errors import HTTPStatusError, PulseError, TransportError
from .lineprotocol import LineProtocolError, parse_lines
from .output import PulseOutput
from .records import Record

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
RETRY_WAIT = wait_exponential(multiplier=1, min=2, max=10)


def _resolve_log_level(value: str) -> int:
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def _read_lines(paths: Sequence[str]) -> Iterator[str]:
    if not paths:
        yield from sys.stdin
        return
    for path in paths:
        with open(path, "r", encoding="utf-8") as handle:
            yield from handle


def _chunks(records: List[Record], size: int) -> Iterable[List[Record]]:
    for start in range(0, len(records), size):
        yield records[start : start + size]


def deliver(output: PulseOutput, records: List[Record], batch_size: int, attempts: int) -> int:
    """Write ``records`` in batches, re-driving a failed batch up to ``attempts`` times."""

    sent = 0
    for batch in _chunks(records, batch_size):
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=RETRY_WAIT,
            retry=retry_if_exception_type((TransportError, HTTPStatusError)),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    LOGGER.warning(
                        "Retrying batch of %d metrics (attempt %d)",
                        len(batch),
                        attempt.retry_state.attempt_number,
                    )
                output.write(batch)
        sent += len(batch)
    return sent


def _positive(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send line protocol metrics to a Pulse stash")
    parser.add_argument("files", nargs="*", help="Line protocol files (default: stdin)")
    parser.add_argument(
        "--sample-config", action="store_true", help="Print a sample configuration and exit"
    )
    parser.add_argument("--check", action="store_true", help="Validate configuration and exit")
    parser.add_argument(
        "--batch-size",
        type=_positive,
        default=DEFAULT_BATCH_SIZE,
        help="Metrics per write (default: %(default)s)",
    )
    parser.add_argument(
        "--retries",
        type=_positive,
        default=1,
        help="Attempts per batch before giving up (default: %(default)s)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None, config: Optional[PulseConfig] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.sample_config:
        print(PulseOutput.sample_config(), end="")
        return 0

    if config is None:
        config = load_config()
    logging.basicConfig(
        level=_resolve_log_level(config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    output = PulseOutput(config)
    try:
        output.connect()
        if args.check:
            LOGGER.info("Configuration valid for stash %s", config.stashid)
            return 0
        records = parse_lines(_read_lines(args.files))
        sent = deliver(output, records, args.batch_size, args.retries)
    except (PulseError, LineProtocolError, OSError) as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        output.close()

    LOGGER.info("Sent %d metrics to stash %s", sent, config.stashid)
    return 0


if __name__ == "__main__":
    sys.exit(main())

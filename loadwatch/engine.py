"""
Engine interface and the replay engine.

The engine that launches regional workers and aggregates their results
lives outside this package. The monitor only needs three things from it:

- ``config``: the run configuration (time limit for the progress
  estimate, output path, ...)
- ``start()``: an async iterator of ``AggregateEnvelope`` values that ends
  when the run concludes
- ``clean()``: teardown, called unconditionally after the dashboard closes

``ReplayEngine`` satisfies the interface from a recorded stream of
envelopes, one JSON document per line:

    {"regions": {"us-east-1": {"total-reqs": 500, ...}}, "total-expected-requests": 1000}
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from collections.abc import AsyncIterator
from pathlib import Path
from typing import IO, Protocol

from pydantic import ValidationError

from loadwatch.config import RunConfig
from loadwatch.models import AggregateEnvelope

logger = logging.getLogger(__name__)

STDIN_SOURCE = "-"


class Engine(Protocol):
    """What the monitor requires from a test-execution engine."""

    config: RunConfig

    def start(self) -> AsyncIterator[AggregateEnvelope]: ...

    def clean(self) -> None: ...


class ReplayEngine:
    """Replays recorded envelopes from a JSON-lines file or stdin.

    Blank lines are skipped. Lines that fail validation are logged and
    skipped; they never end the stream. End of input closes the stream.

    Lines are read on a daemon thread and handed to the event loop through
    a queue, so a consumer that stops early is never held up by a read
    blocked on a live pipe.

    Args:
        config: Run configuration passed through to the monitor.
        source: Path to the recording, ``"-"`` for stdin, or an open text
            stream (left open; the caller owns it).
        delay: Seconds to wait after each envelope (replay pacing).
    """

    def __init__(
        self,
        config: RunConfig,
        source: str | Path | IO[str],
        *,
        delay: float = 0.0,
    ) -> None:
        self.config = config
        if isinstance(source, (str, Path)):
            self._stream: IO[str] | None = None
            self.source = str(source)
        else:
            self._stream = source
            self.source = str(getattr(source, "name", "<stream>"))
        self.delay = max(0.0, delay)
        self.skipped = 0
        self.cleaned = False
        self.reader_thread: threading.Thread | None = None

    def _open(self) -> tuple[IO[str], bool]:
        """Return the input stream and whether this engine must close it."""
        if self._stream is not None:
            return self._stream, False
        if self.source == STDIN_SOURCE:
            return sys.stdin, False
        return open(self.source, encoding="utf-8"), True

    def _start_reader(
        self, queue: asyncio.Queue[str | None], stop: threading.Event
    ) -> None:
        loop = asyncio.get_running_loop()
        stream, owned = self._open()

        def read_lines() -> None:
            try:
                while not stop.is_set():
                    try:
                        line = stream.readline()
                    except (OSError, ValueError) as e:
                        logger.warning("Reading %s failed: %s", self.source, e)
                        line = ""
                    try:
                        # None marks end of input
                        loop.call_soon_threadsafe(queue.put_nowait, line or None)
                    except RuntimeError:
                        # loop closed: nobody is listening anymore
                        return
                    if not line:
                        return
            finally:
                if owned:
                    stream.close()

        self.reader_thread = threading.Thread(
            target=read_lines, name="loadwatch-replay", daemon=True
        )
        self.reader_thread.start()

    async def _envelopes(self) -> AsyncIterator[AggregateEnvelope]:
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        stop = threading.Event()
        self._start_reader(queue, stop)
        lineno = 0
        try:
            while (line := await queue.get()) is not None:
                lineno += 1
                if not line.strip():
                    continue
                try:
                    envelope = AggregateEnvelope.model_validate_json(line)
                except ValidationError as e:
                    self.skipped += 1
                    logger.warning(
                        "Skipping malformed envelope at %s:%d: %s",
                        self.source,
                        lineno,
                        e.errors()[0]["msg"] if e.errors() else e,
                    )
                    continue
                yield envelope
                if self.delay:
                    await asyncio.sleep(self.delay)
            logger.info("Replay source %s exhausted after %d lines", self.source, lineno)
        finally:
            # a reader blocked on a live pipe exits on its next line or EOF
            stop.set()

    def start(self) -> AsyncIterator[AggregateEnvelope]:
        logger.info("Replaying envelopes from %s", self.source)
        return self._envelopes()

    def clean(self) -> None:
        self.cleaned = True
        logger.debug("Replay engine cleaned up")

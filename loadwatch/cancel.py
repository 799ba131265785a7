"""
Cancellation fan-in for the aggregation loop.

Two independent producers can stop a run:
- SIGINT / SIGTERM delivered to the process
- Ctrl-C typed while the dashboard owns the terminal (the terminal is put
  in a mode where Ctrl-C arrives as a key instead of a signal)

Both hold a ``CancelSink`` obtained from the same ``CancellationBridge``;
the aggregation loop awaits ``bridge.wait()`` and cannot tell which source
fired. The bridge is edge-triggered: the first event wins and later
events are dropped.

Usage:
    bridge = CancellationBridge()          # inside the running loop
    remove = install_signal_handlers(bridge)
    with KeyPoller(bridge.sink("keyboard")):
        ...
        await bridge.wait()
    remove()
"""

from __future__ import annotations

import asyncio
import logging
import os
import select
import signal
import sys
import threading
from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

# Ctrl-C as delivered by a terminal with signal generation disabled
INTERRUPT_KEY = b"\x03"

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancelSink:
    """Producer handle for a ``CancellationBridge``. Thread-safe."""

    def __init__(self, bridge: CancellationBridge, source: str) -> None:
        self._bridge = bridge
        self.source = source

    def send(self) -> None:
        """Request cancellation."""
        self._bridge._send(self.source)


class CancellationBridge:
    """Single-shot cancellation channel consumed by the aggregation loop.

    Must be created while an asyncio loop is running; sinks may then be
    used from any thread.
    """

    def __init__(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self._fired = False

    def sink(self, source: str) -> CancelSink:
        """Create a producer handle; ``source`` is only used for logging."""
        return CancelSink(self, source)

    @property
    def fired(self) -> bool:
        return self._fired

    def _send(self, source: str) -> None:
        try:
            self._loop.call_soon_threadsafe(self._deliver, source)
        except RuntimeError:
            # loop already closed: the run is over
            logger.debug("Cancellation from %s after loop shutdown", source)

    def _deliver(self, source: str) -> None:
        if self._fired:
            logger.debug("Ignoring repeated cancellation from %s", source)
            return
        self._fired = True
        logger.info("Cancellation requested (%s)", source)
        self._queue.put_nowait(None)

    async def wait(self) -> None:
        """Block until the first cancellation event arrives."""
        await self._queue.get()


def install_signal_handlers(
    bridge: CancellationBridge,
    signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
) -> Callable[[], None]:
    """Route termination signals into ``bridge``.

    Returns a callable that restores the previous handlers.
    """
    loop = asyncio.get_running_loop()
    sink = bridge.sink("signal")
    restore: list[Callable[[], None]] = []

    for sig in signals:
        try:
            loop.add_signal_handler(sig, sink.send)
            restore.append(lambda s=sig: loop.remove_signal_handler(s))
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            previous = signal.signal(sig, lambda *_: sink.send())
            restore.append(lambda s=sig, p=previous: signal.signal(s, p))

    def remove() -> None:
        for undo in restore:
            undo()

    return remove


def is_interrupt(data: bytes) -> bool:
    """True if raw terminal input contains the interrupt key."""
    return INTERRUPT_KEY in data


class KeyPoller:
    """Daemon thread turning an interrupt keypress into a cancellation.

    On entry the terminal is switched to non-canonical mode without echo
    or signal generation; on exit the original mode is restored. The
    thread is never joined. It only ever calls ``sink.send()`` and never
    touches the display.

    Disabled automatically when input is not a terminal or the platform
    has no termios.
    """

    def __init__(
        self,
        sink: CancelSink,
        *,
        fd: int | None = None,
        enabled: bool | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.sink = sink
        self.poll_interval = poll_interval
        if fd is None:
            try:
                fd = sys.stdin.fileno()
            except (AttributeError, OSError, ValueError):
                fd = None
        self.fd = fd
        if enabled is None:
            enabled = os.name == "posix" and fd is not None and os.isatty(fd)
        self.enabled = bool(enabled) and fd is not None
        self._old_mode: list | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> KeyPoller:
        if not self.enabled:
            logger.debug("Key polling disabled")
            return self
        if os.isatty(self.fd):
            self._enter_key_mode()
        self._thread = threading.Thread(
            target=self._poll, name="loadwatch-keys", daemon=True
        )
        self._thread.start()
        return self

    def __exit__(self, *args) -> None:
        self._stop.set()
        if self._old_mode is not None:
            import termios

            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._old_mode)
            self._old_mode = None

    def _enter_key_mode(self) -> None:
        import termios

        self._old_mode = termios.tcgetattr(self.fd)
        mode = termios.tcgetattr(self.fd)
        mode[3] &= ~(termios.ICANON | termios.ECHO | termios.ISIG)
        termios.tcsetattr(self.fd, termios.TCSANOW, mode)

    def _poll(self) -> None:
        while not self._stop.is_set():
            try:
                ready, _, _ = select.select([self.fd], [], [], self.poll_interval)
                if not ready:
                    continue
                data = os.read(self.fd, 64)
            except (OSError, ValueError) as e:
                logger.debug("Key polling stopped: %s", e)
                return
            if not data:
                return
            if is_interrupt(data):
                self.sink.send()

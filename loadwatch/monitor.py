"""
Aggregation event loop.

Waits on the union of {next envelope, cancellation} and, for every
envelope received, redraws the whole dashboard:

    stream ──► run_monitor ──► Dashboard.render (every envelope)
                    ▲               │
    cancel ─────────┘               └─► FinalResult (once, on exit)

Each envelope replaces the previous one entirely. The loop ends when the
stream is exhausted or on the first cancellation event; a cancellation
that races a pending envelope may win, leaving that envelope unprocessed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass

from loadwatch.cancel import CancellationBridge, KeyPoller, install_signal_handlers
from loadwatch.dashboard import Dashboard
from loadwatch.engine import Engine
from loadwatch.models import AggregateEnvelope, FinalResult, MonitorOutcome
from loadwatch.progress import estimate_fraction
from loadwatch.surface import Surface

logger = logging.getLogger(__name__)


def render_envelope(
    dashboard: Dashboard,
    envelope: AggregateEnvelope,
    elapsed_seconds: float,
    time_limit_seconds: float,
) -> float:
    """Draw one envelope in lexicographic region order.

    Returns the fraction complete that was drawn.
    """
    ordered = [(rid, envelope.regions[rid]) for rid in envelope.sorted_region_ids()]
    fraction = estimate_fraction(
        envelope.completed_requests(),
        envelope.total_expected_requests,
        elapsed_seconds,
        time_limit_seconds,
    )
    dashboard.render(ordered, fraction)
    return fraction


async def _discard(task: asyncio.Task) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@dataclass
class ResultSlot:
    """Latest envelope seen by the loop.

    Owned by the caller so the final summary can read whatever arrived
    even if the loop exits with an exception. Written only by the loop.
    """

    latest: AggregateEnvelope | None = None
    received: int = 0
    outcome: MonitorOutcome = MonitorOutcome.COMPLETED

    def store(self, envelope: AggregateEnvelope) -> None:
        self.latest = envelope
        self.received += 1

    def to_final(self) -> FinalResult:
        return FinalResult(
            envelope=self.latest,
            outcome=self.outcome,
            envelopes_received=self.received,
        )


async def run_monitor(
    stream: AsyncIterable[AggregateEnvelope],
    dashboard: Dashboard,
    cancel: CancellationBridge,
    *,
    time_limit: float,
    clock: Callable[[], float] = time.monotonic,
    slot: ResultSlot | None = None,
) -> FinalResult:
    """Consume envelopes until the stream closes or the run is cancelled.

    Args:
        stream: Envelopes from the engine, in arrival order.
        dashboard: Renderer for the live view.
        cancel: Cancellation channel.
        time_limit: Run time limit in seconds, used for the progress
            estimate when the expected request count is unknown.
        clock: Monotonic clock in seconds.
        slot: Where to record the latest envelope; a private one is used
            when omitted.

    Returns:
        The last envelope received (if any) and how the loop ended.
    """
    start = clock()
    iterator = aiter(stream)
    slot = slot if slot is not None else ResultSlot()

    cancel_task = asyncio.ensure_future(cancel.wait())
    next_task: asyncio.Task | None = None
    try:
        while True:
            next_task = asyncio.ensure_future(anext(iterator))
            done, _ = await asyncio.wait(
                {next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )

            if cancel_task in done:
                slot.outcome = MonitorOutcome.CANCELLED
                logger.info("Run cancelled after %d envelopes", slot.received)
                break

            try:
                envelope = next_task.result()
            except StopAsyncIteration:
                logger.info("Result stream closed after %d envelopes", slot.received)
                break
            finally:
                next_task = None

            slot.store(envelope)
            if slot.received == 1:
                dashboard.clear_banner()

            fraction = render_envelope(dashboard, envelope, clock() - start, time_limit)
            logger.debug(
                "Envelope %d: %d regions, %d requests, %.1f%% complete",
                slot.received,
                len(envelope.regions),
                envelope.completed_requests(),
                fraction * 100,
            )
    finally:
        if next_task is not None:
            await _discard(next_task)
        await _discard(cancel_task)

    return slot.to_final()


async def run_dashboard_session(
    engine: Engine,
    surface: Surface,
    *,
    slot: ResultSlot | None = None,
    poll_keys: bool | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> FinalResult:
    """Run one live dashboard session against ``engine``.

    Draws the launch banner, starts the engine, shows the cancellation
    hint, wires signals and the key poller into one cancellation channel,
    then runs the aggregation loop. The surface is closed on every exit
    path, including a failure to install the handlers; the engine is not
    cleaned here.
    """
    with Dashboard(surface) as dashboard:
        bridge = CancellationBridge()
        remove_handlers = install_signal_handlers(bridge)
        try:
            dashboard.draw_banner()
            stream = engine.start()
            dashboard.draw_hint()
            with KeyPoller(bridge.sink("keyboard"), enabled=poll_keys):
                return await run_monitor(
                    stream,
                    dashboard,
                    bridge,
                    time_limit=engine.config.timelimit,
                    clock=clock,
                    slot=slot,
                )
        finally:
            remove_handlers()

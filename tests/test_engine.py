"""Tests for the replay engine."""

from __future__ import annotations

import asyncio
import json
import os
import time

import pytest

from loadwatch.cancel import CancellationBridge
from loadwatch.config import RunConfig
from loadwatch.dashboard import Dashboard
from loadwatch.engine import ReplayEngine
from loadwatch.models import MonitorOutcome
from loadwatch.monitor import ResultSlot, run_monitor
from loadwatch.surface import MemorySurface

CONFIG = RunConfig(url="https://example.com/")


def envelope_line(total: int, expected: int = 100) -> str:
    return json.dumps(
        {
            "regions": {"us-east-1": {"region": "us-east-1", "total-reqs": total}},
            "total-expected-requests": expected,
        }
    )


async def collect(engine: ReplayEngine):
    return [env async for env in engine.start()]


class TestReplayEngine:
    """Replaying a JSON-lines recording."""

    @pytest.mark.asyncio
    async def test_yields_in_file_order(self, tmp_path):
        path = tmp_path / "run.jsonl"
        path.write_text("\n".join(envelope_line(n) for n in (10, 50, 100)) + "\n")

        envelopes = await collect(ReplayEngine(CONFIG, path))

        assert [env.completed_requests() for env in envelopes] == [10, 50, 100]
        assert envelopes[0].total_expected_requests == 100

    @pytest.mark.asyncio
    async def test_skips_blank_and_malformed_lines(self, tmp_path, caplog):
        path = tmp_path / "run.jsonl"
        path.write_text(
            "\n".join(
                [
                    envelope_line(1),
                    "",
                    "not json",
                    '{"regions": {"x": {"total-reqs": -5}}}',
                    envelope_line(2),
                ]
            )
        )
        engine = ReplayEngine(CONFIG, path)

        with caplog.at_level("WARNING", logger="loadwatch.engine"):
            envelopes = await collect(engine)

        assert [env.completed_requests() for env in envelopes] == [1, 2]
        assert engine.skipped == 2
        assert "Skipping malformed envelope" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_file_closes_immediately(self, tmp_path):
        path = tmp_path / "empty.jsonl"
        path.write_text("")
        assert await collect(ReplayEngine(CONFIG, path)) == []

    def test_clean(self, tmp_path):
        engine = ReplayEngine(CONFIG, tmp_path / "unused.jsonl")
        engine.clean()
        assert engine.cleaned

    def test_negative_delay_is_ignored(self, tmp_path):
        assert ReplayEngine(CONFIG, tmp_path / "x", delay=-1).delay == 0.0

    def test_config_is_passed_through(self, tmp_path):
        assert ReplayEngine(CONFIG, tmp_path / "x").config is CONFIG

    @pytest.mark.asyncio
    async def test_reads_from_open_stream(self, tmp_path):
        path = tmp_path / "run.jsonl"
        path.write_text(envelope_line(7) + "\n")
        with open(path, encoding="utf-8") as stream:
            envelopes = await collect(ReplayEngine(CONFIG, stream))
            assert not stream.closed
        assert [env.completed_requests() for env in envelopes] == [7]


class TestReplayCancellation:
    """Cancelling a replay that reads from a live pipe."""

    def test_cancel_returns_while_pipe_is_open(self):
        """The session ends promptly even though the writer never closes."""
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, encoding="utf-8")
        engine = ReplayEngine(CONFIG, reader)
        os.write(write_fd, (envelope_line(42) + "\n").encode())

        async def main():
            bridge = CancellationBridge()
            slot = ResultSlot()
            task = asyncio.ensure_future(
                run_monitor(
                    engine.start(),
                    Dashboard(MemorySurface()),
                    bridge,
                    time_limit=10,
                    slot=slot,
                )
            )
            while slot.received == 0:
                await asyncio.sleep(0.01)
            bridge.sink("signal").send()
            return await task

        try:
            started = time.monotonic()
            result = asyncio.run(main())
            elapsed = time.monotonic() - started
        finally:
            os.close(write_fd)
            if engine.reader_thread is not None:
                engine.reader_thread.join(timeout=2.0)
            reader.close()

        assert elapsed < 1.0
        assert result.outcome is MonitorOutcome.CANCELLED
        assert result.overall.total_requests == 42

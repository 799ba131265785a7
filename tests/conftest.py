"""Shared fixtures for loadwatch tests."""

from __future__ import annotations

import pytest

from loadwatch.config import RunConfig
from loadwatch.models import AggregateEnvelope, RegionSnapshot


def snapshot(region: str = "us-east-1", **fields) -> RegionSnapshot:
    """Build a RegionSnapshot with sensible defaults."""
    values = {
        "region": region,
        "total_requests": 100,
        "total_bytes_read": 123_456,
        "average_time_ns": 52_000_000,
        "average_requests_per_sec": 19.21,
        "average_kbytes_per_sec": 24.6,
        "slowest_ns": 310_000_000,
        "fastest_ns": 11_000_000,
        "total_timed_out": 0,
        "statuses": {"200": 100},
    }
    values.update(fields)
    return RegionSnapshot(**values)


def envelope(*snapshots: RegionSnapshot, expected: int = 0) -> AggregateEnvelope:
    """Build an envelope keyed by each snapshot's region id."""
    return AggregateEnvelope(
        regions={s.region: s for s in snapshots},
        total_expected_requests=expected,
    )


async def stream_of(*envelopes: AggregateEnvelope):
    """Async stream yielding ``envelopes`` then closing."""
    for env in envelopes:
        yield env


class FakeEngine:
    """In-memory engine yielding a fixed list of envelopes."""

    def __init__(self, envelopes, config: RunConfig | None = None):
        self.envelopes = list(envelopes)
        self.config = config or RunConfig(url="https://example.com/")
        self.started = False
        self.cleaned = False

    def start(self):
        self.started = True
        return stream_of(*self.envelopes)

    def clean(self) -> None:
        self.cleaned = True


@pytest.fixture
def two_region_envelope() -> AggregateEnvelope:
    """Scenario A: two regions of 500 requests, 1000 expected."""
    return envelope(
        snapshot("us-east-1", total_requests=500, statuses={"200": 490, "500": 10}),
        snapshot("eu-west-1", total_requests=500, statuses={"200": 495, "404": 5}),
        expected=1000,
    )

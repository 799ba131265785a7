"""
Data models for the per-region statistics stream.

The remote engine emits one ``AggregateEnvelope`` per tick. Each envelope
is a complete picture of every region as of that tick, so the monitor
replaces its state wholesale on every receive instead of merging deltas.

Field aliases match the keys used on the wire and in the JSON export
(``total-reqs``, ``tot-bytes-read``, ...). Both the Python field name and
the alias are accepted on input.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "OVERALL_KEY",
    "AggregateEnvelope",
    "FinalResult",
    "MonitorOutcome",
    "RegionSnapshot",
    "sum_region_results",
]

# Synthetic region id for the cross-region sum
OVERALL_KEY = "overall"


class RegionSnapshot(BaseModel):
    """Aggregate statistics for one region, as of the latest update.

    Durations are integer nanoseconds. ``statuses`` maps the HTTP status
    code, as a string, to the number of responses seen with it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    region: str = ""
    total_requests: int = Field(default=0, ge=0, alias="total-reqs")
    total_bytes_read: int = Field(default=0, ge=0, alias="tot-bytes-read")
    average_time_ns: int = Field(default=0, ge=0, alias="ave-time-for-req")
    average_requests_per_sec: float = Field(default=0.0, alias="ave-req-per-sec")
    average_kbytes_per_sec: float = Field(default=0.0, alias="ave-kbytes-per-sec")
    slowest_ns: int = Field(default=0, alias="slowest")
    fastest_ns: int = Field(default=0, alias="fastest")
    total_timed_out: int = Field(default=0, ge=0, alias="tot-timedout")
    statuses: dict[str, int] = Field(default_factory=dict)


class AggregateEnvelope(BaseModel):
    """All regions' statistics for one tick of the stream.

    ``total_expected_requests`` is zero (or negative) when the run targets
    a duration rather than a request count.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    regions: dict[str, RegionSnapshot] = Field(default_factory=dict)
    total_expected_requests: int = Field(default=0, alias="total-expected-requests")

    def sorted_region_ids(self) -> list[str]:
        """Region ids in lexicographic order."""
        return sorted(self.regions)

    def completed_requests(self) -> int:
        """Total completed requests across all regions."""
        return sum(snap.total_requests for snap in self.regions.values())


def sum_region_results(regions: dict[str, RegionSnapshot]) -> RegionSnapshot:
    """Field-wise sum of every region's snapshot.

    Every numeric field is summed as-is, averages and extremes included.
    Status histograms are merged by adding counts per status key.
    """
    statuses: Counter[str] = Counter()
    total_requests = 0
    total_bytes_read = 0
    average_time_ns = 0
    average_requests_per_sec = 0.0
    average_kbytes_per_sec = 0.0
    slowest_ns = 0
    fastest_ns = 0
    total_timed_out = 0

    for snap in regions.values():
        total_requests += snap.total_requests
        total_bytes_read += snap.total_bytes_read
        average_time_ns += snap.average_time_ns
        average_requests_per_sec += snap.average_requests_per_sec
        average_kbytes_per_sec += snap.average_kbytes_per_sec
        slowest_ns += snap.slowest_ns
        fastest_ns += snap.fastest_ns
        total_timed_out += snap.total_timed_out
        statuses.update(snap.statuses)

    return RegionSnapshot(
        region=OVERALL_KEY,
        total_requests=total_requests,
        total_bytes_read=total_bytes_read,
        average_time_ns=average_time_ns,
        average_requests_per_sec=average_requests_per_sec,
        average_kbytes_per_sec=average_kbytes_per_sec,
        slowest_ns=slowest_ns,
        fastest_ns=fastest_ns,
        total_timed_out=total_timed_out,
        statuses=dict(statuses),
    )


class MonitorOutcome(str, Enum):
    """How the aggregation loop ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FinalResult:
    """Last envelope observed before the loop stopped.

    Attributes:
        envelope: Most recent envelope, or None if nothing arrived.
        outcome: Whether the stream closed or the run was cancelled.
        envelopes_received: Number of envelopes processed by the loop.
    """

    envelope: AggregateEnvelope | None = None
    outcome: MonitorOutcome = MonitorOutcome.COMPLETED
    envelopes_received: int = 0

    @property
    def regions(self) -> dict[str, RegionSnapshot]:
        if self.envelope is None:
            return {}
        return self.envelope.regions

    @property
    def has_results(self) -> bool:
        return bool(self.regions)

    @property
    def overall(self) -> RegionSnapshot:
        return sum_region_results(self.regions)

"""
Display formatting for a single region's statistics.

Shared by the live dashboard and the final console summary so both show
identical columns:

       TotReqs   TotBytes    AvgTime   AvgReq/s  AvgKbps/s
          1000     1.2 MB     0.052s      19.21      24.60
       Slowest    Fastest   Timeouts  TotErrors
        0.310s     0.011s          0         20
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from loadwatch.models import RegionSnapshot

logger = logging.getLogger(__name__)

NANOS_PER_SECOND = 1_000_000_000

THROUGHPUT_HEADING = "   TotReqs   TotBytes    AvgTime   AvgReq/s  AvgKbps/s"
LATENCY_HEADING = "   Slowest    Fastest   Timeouts  TotErrors"

_BYTE_SUFFIXES = ("B", "kB", "MB", "GB", "TB", "PB", "EB")


def format_bytes(num_bytes: int) -> str:
    """Format bytes with an SI suffix: 9 B, 1.5 kB, 83 MB"""
    if num_bytes < 10:
        return f"{num_bytes} B"
    exponent = 0
    while exponent < len(_BYTE_SUFFIXES) - 1 and num_bytes >= 1000 ** (exponent + 1):
        exponent += 1
    # one decimal place, rounded half up, before choosing the precision
    value = int(num_bytes / 1000**exponent * 10 + 0.5) / 10
    if value < 10:
        return f"{value:.1f} {_BYTE_SUFFIXES[exponent]}"
    return f"{value:.0f} {_BYTE_SUFFIXES[exponent]}"


def format_seconds(nanoseconds: int) -> str:
    """Nanoseconds as seconds with millisecond precision: 0.052s"""
    return f"{nanoseconds / NANOS_PER_SECOND:.3f}s"


def _parse_status(key: str) -> int | None:
    try:
        return int(key)
    except (TypeError, ValueError):
        return None


def tot_errors(snapshot: RegionSnapshot) -> int:
    """Requests that did not finish with a status below 400.

    Computed as ``total_requests`` minus the counts of parseable status
    codes below 400, so unparseable keys end up counted as errors.
    Timeouts and other requests missing from the histogram count too.
    """
    ok_requests = 0
    for key, count in snapshot.statuses.items():
        status = _parse_status(key)
        if status is not None and status < 400:
            ok_requests += count
    return snapshot.total_requests - ok_requests


@dataclass(frozen=True)
class RegionRows:
    """Display rows for one region.

    Attributes:
        blocks: (heading, values) pairs, top to bottom.
        errors: Raw error count; negative means an inconsistent snapshot.
    """

    blocks: tuple[tuple[str, str], ...]
    errors: int

    @property
    def consistent(self) -> bool:
        return self.errors >= 0

    def lines(self) -> list[tuple[str, bool]]:
        """Flatten to (text, is_heading) lines."""
        out: list[tuple[str, bool]] = []
        for heading, values in self.blocks:
            out.append((heading, True))
            out.append((values, False))
        return out


def format_region(snapshot: RegionSnapshot) -> RegionRows:
    """Format one region's snapshot into the two stat blocks."""
    throughput = (
        f"{snapshot.total_requests:10d} "
        f"{format_bytes(snapshot.total_bytes_read):>10s}   "
        f"{snapshot.average_time_ns / NANOS_PER_SECOND:7.3f}s "
        f"{snapshot.average_requests_per_sec:10.2f} "
        f"{snapshot.average_kbytes_per_sec:10.2f}"
    )

    errors = tot_errors(snapshot)
    if errors < 0:
        logger.warning(
            "Inconsistent snapshot for %s: %d requests but %d below 400",
            snapshot.region or "<unknown>",
            snapshot.total_requests,
            snapshot.total_requests - errors,
        )
        errors_col = f"{'invalid':>10s}"
    else:
        errors_col = f"{errors:10d}"

    latency = (
        f"  {snapshot.slowest_ns / NANOS_PER_SECOND:7.3f}s "
        f"  {snapshot.fastest_ns / NANOS_PER_SECOND:7.3f}s "
        f"{snapshot.total_timed_out:10d} "
        f"{errors_col}"
    )

    return RegionRows(
        blocks=((THROUGHPUT_HEADING, throughput), (LATENCY_HEADING, latency)),
        errors=errors,
    )

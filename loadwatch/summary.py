"""
Final console summary and optional JSON export.

Runs once, after the aggregation loop has stopped, whatever the outcome.
The console summary mirrors the dashboard's region blocks and adds the
cross-region "Overall" block and a status-code table. The JSON export maps
each region id, plus ``overall``, to the snapshot fields:

    {
      "eu-west-1": {"region": "eu-west-1", "total-reqs": 500, ...},
      "overall": {"region": "overall", "total-reqs": 1000, ...}
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from rich.console import Console

from loadwatch.formatting import format_region
from loadwatch.models import OVERALL_KEY, FinalResult, MonitorOutcome, RegionSnapshot

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No results received"
EXPORT_FILE_MODE = 0o644


def _bold(console: Console, message: str) -> None:
    console.print(message, style="bold", markup=False, highlight=False)


def _plain(console: Console, message: str = "") -> None:
    console.print(message, markup=False, highlight=False)


def print_region(console: Console, snapshot: RegionSnapshot) -> None:
    """Print the two stat blocks for one snapshot."""
    for text, is_heading in format_region(snapshot).lines():
        if is_heading:
            _bold(console, text)
        else:
            _plain(console, text)


def print_summary(result: FinalResult, console: Console | None = None) -> None:
    """Print per-region and overall results to the console."""
    console = console or Console()
    if not result.has_results:
        _bold(console, NO_RESULTS_MESSAGE)
        return

    _bold(console, "Regional results")
    if result.outcome is MonitorOutcome.CANCELLED:
        console.print("(run interrupted; partial results)", style="dim")
    _plain(console)

    for region_id in sorted(result.regions):
        _plain(console, f"Region: {region_id}")
        print_region(console, result.regions[region_id])

    overall = result.overall

    _plain(console)
    _bold(console, "Overall")
    _plain(console)
    print_region(console, overall)

    _bold(console, "HTTPStatus   Requests")
    for status in sorted(overall.statuses):
        _plain(console, f"{status:>10s} {overall.statuses[status]:10d}")
    _plain(console)


def build_export(result: FinalResult) -> dict[str, dict]:
    """Export document: region id -> snapshot fields, plus ``overall``."""
    document = {
        region_id: result.regions[region_id].model_dump(mode="json", by_alias=True)
        for region_id in sorted(result.regions)
    }
    document[OVERALL_KEY] = result.overall.model_dump(mode="json", by_alias=True)
    return document


def save_json_summary(
    path: str | Path, result: FinalResult, console: Console | None = None
) -> bool:
    """Write the JSON export. Failures are reported, never raised.

    Nothing is written when no region data was received.

    Returns:
        True if the file was written.
    """
    if not result.has_results:
        logger.debug("No results; skipping export to %s", path)
        return False

    console = console or Console()
    path = Path(path)
    try:
        payload = json.dumps(build_export(result), indent=2)
        path.write_text(payload + "\n", encoding="utf-8")
        os.chmod(path, EXPORT_FILE_MODE)
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to save results to %s: %s", path, e)
        console.print(f"Failed to save results to {path}: {e}", style="red", markup=False)
        return False

    logger.info("Saved results to %s", path)
    return True


def report_final_result(
    result: FinalResult, output: str = "", console: Console | None = None
) -> None:
    """Print the summary, then export if an output path is configured."""
    console = console or Console()
    print_summary(result, console)
    if output:
        save_json_summary(output, result, console)

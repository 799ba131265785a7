"""Tests for the final console summary and JSON export."""

from __future__ import annotations

import io
import json
import stat
import sys

import pytest
from rich.console import Console

from loadwatch.models import FinalResult, MonitorOutcome
from loadwatch.summary import (
    NO_RESULTS_MESSAGE,
    build_export,
    print_summary,
    report_final_result,
    save_json_summary,
)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120, force_terminal=False)


def output_of(console: Console) -> str:
    return console.file.getvalue()


class TestPrintSummary:
    """Console summary layout."""

    def test_no_results_prints_only_notice(self, console):
        print_summary(FinalResult(), console)
        assert output_of(console).strip() == NO_RESULTS_MESSAGE

    def test_regions_overall_and_statuses(self, console, two_region_envelope):
        print_summary(FinalResult(envelope=two_region_envelope), console)
        lines = output_of(console).splitlines()

        assert lines[0] == "Regional results"
        region_lines = [line for line in lines if line.startswith("Region: ")]
        assert region_lines == ["Region: eu-west-1", "Region: us-east-1"]
        assert "Overall" in lines

        status_start = lines.index("HTTPStatus   Requests")
        assert lines[status_start + 1 : status_start + 4] == [
            "       200        985",
            "       404          5",
            "       500         10",
        ]

    def test_overall_block_sums_regions(self, console, two_region_envelope):
        print_summary(FinalResult(envelope=two_region_envelope), console)
        lines = output_of(console).splitlines()

        overall_at = lines.index("Overall")
        overall_values = lines[overall_at + 3]
        assert overall_values.split()[0] == "1000"

    def test_cancelled_run_is_marked(self, console, two_region_envelope):
        result = FinalResult(
            envelope=two_region_envelope, outcome=MonitorOutcome.CANCELLED
        )
        print_summary(result, console)
        assert "(run interrupted; partial results)" in output_of(console)


class TestBuildExport:
    def test_regions_and_overall(self, two_region_envelope):
        document = build_export(FinalResult(envelope=two_region_envelope))

        assert list(document) == ["eu-west-1", "us-east-1", "overall"]
        assert document["overall"]["total-reqs"] == 1000
        assert document["overall"]["region"] == "overall"
        assert document["us-east-1"]["statuses"] == {"200": 490, "500": 10}
        assert "tot-timedout" in document["eu-west-1"]


class TestSaveJsonSummary:
    """Export file writing."""

    def test_writes_readable_file(self, tmp_path, console, two_region_envelope):
        path = tmp_path / "results.json"
        assert save_json_summary(path, FinalResult(envelope=two_region_envelope), console)

        document = json.loads(path.read_text())
        assert document["overall"]["total-reqs"] == 1000
        assert path.read_text().endswith("}\n")

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_mode(self, tmp_path, console, two_region_envelope):
        path = tmp_path / "results.json"
        save_json_summary(path, FinalResult(envelope=two_region_envelope), console)
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_skipped_without_results(self, tmp_path, console):
        path = tmp_path / "results.json"
        assert not save_json_summary(path, FinalResult(), console)
        assert not path.exists()

    def test_write_failure_is_reported(self, tmp_path, console, two_region_envelope, caplog):
        path = tmp_path / "missing" / "results.json"

        with caplog.at_level("ERROR", logger="loadwatch.summary"):
            written = save_json_summary(
                path, FinalResult(envelope=two_region_envelope), console
            )

        assert not written
        assert "Failed to save results" in output_of(console)
        assert "Failed to save results" in caplog.text


class TestReportFinalResult:
    def test_prints_then_exports(self, tmp_path, console, two_region_envelope):
        path = tmp_path / "out.json"
        report_final_result(FinalResult(envelope=two_region_envelope), str(path), console)

        assert "Regional results" in output_of(console)
        assert path.exists()

    def test_no_export_without_results(self, tmp_path, console):
        path = tmp_path / "out.json"
        report_final_result(FinalResult(), str(path), console)

        assert output_of(console).strip() == NO_RESULTS_MESSAGE
        assert not path.exists()

    def test_no_output_path(self, tmp_path, console, two_region_envelope):
        report_final_result(FinalResult(envelope=two_region_envelope), "", console)
        assert list(tmp_path.iterdir()) == []

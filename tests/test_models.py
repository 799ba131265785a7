"""Tests for the snapshot data model and cross-region summation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from loadwatch.models import (
    OVERALL_KEY,
    AggregateEnvelope,
    FinalResult,
    MonitorOutcome,
    RegionSnapshot,
    sum_region_results,
)
from tests.conftest import envelope, snapshot


class TestRegionSnapshot:
    """Parsing and immutability of RegionSnapshot."""

    def test_accepts_wire_aliases(self):
        """Wire keys map onto the Python field names."""
        snap = RegionSnapshot.model_validate(
            {
                "region": "us-east-1",
                "total-reqs": 10,
                "tot-bytes-read": 2048,
                "ave-time-for-req": 5_000_000,
                "ave-req-per-sec": 2.5,
                "ave-kbytes-per-sec": 1.25,
                "slowest": 9_000_000,
                "fastest": 1_000_000,
                "tot-timedout": 1,
                "statuses": {"200": 9},
            }
        )
        assert snap.total_requests == 10
        assert snap.total_bytes_read == 2048
        assert snap.average_time_ns == 5_000_000
        assert snap.total_timed_out == 1
        assert snap.statuses == {"200": 9}

    def test_accepts_field_names(self):
        snap = RegionSnapshot(region="x", total_requests=3)
        assert snap.total_requests == 3

    def test_ignores_unknown_keys(self):
        snap = RegionSnapshot.model_validate({"region": "x", "fatal-error": "boom"})
        assert snap.region == "x"

    def test_rejects_negative_request_count(self):
        with pytest.raises(ValidationError):
            RegionSnapshot(region="x", total_requests=-1)

    def test_is_frozen(self):
        snap = snapshot()
        with pytest.raises(ValidationError):
            snap.total_requests = 5  # type: ignore[misc]


class TestAggregateEnvelope:
    """Envelope helpers."""

    def test_sorted_region_ids_ignores_arrival_order(self):
        env = envelope(snapshot("us-west-2"), snapshot("ap-south-1"), snapshot("eu-west-1"))
        assert env.sorted_region_ids() == ["ap-south-1", "eu-west-1", "us-west-2"]

    def test_completed_requests_sums_regions(self, two_region_envelope):
        assert two_region_envelope.completed_requests() == 1000

    def test_parses_json_document(self):
        env = AggregateEnvelope.model_validate_json(
            '{"regions": {"eu-west-1": {"total-reqs": 7}}, "total-expected-requests": 70}'
        )
        assert env.total_expected_requests == 70
        assert env.regions["eu-west-1"].total_requests == 7

    def test_expected_defaults_to_unknown(self):
        assert AggregateEnvelope().total_expected_requests == 0


class TestSumRegionResults:
    """OverallSnapshot is the field-wise sum across regions."""

    def test_numeric_fields_are_summed(self):
        a = snapshot(
            "a",
            total_requests=10,
            total_bytes_read=100,
            average_time_ns=1,
            average_requests_per_sec=1.5,
            average_kbytes_per_sec=2.0,
            slowest_ns=30,
            fastest_ns=3,
            total_timed_out=1,
        )
        b = snapshot(
            "b",
            total_requests=20,
            total_bytes_read=200,
            average_time_ns=2,
            average_requests_per_sec=2.5,
            average_kbytes_per_sec=3.0,
            slowest_ns=40,
            fastest_ns=4,
            total_timed_out=2,
        )
        overall = sum_region_results({"a": a, "b": b})

        assert overall.region == OVERALL_KEY
        assert overall.total_requests == 30
        assert overall.total_bytes_read == 300
        assert overall.average_time_ns == 3
        assert overall.average_requests_per_sec == pytest.approx(4.0)
        assert overall.average_kbytes_per_sec == pytest.approx(5.0)
        assert overall.slowest_ns == 70
        assert overall.fastest_ns == 7
        assert overall.total_timed_out == 3

    def test_histograms_merge_per_key(self):
        a = snapshot("a", statuses={"200": 5, "404": 1})
        b = snapshot("b", statuses={"200": 7, "500": 2})
        overall = sum_region_results({"a": a, "b": b})
        assert overall.statuses == {"200": 12, "404": 1, "500": 2}

    def test_empty_regions(self):
        overall = sum_region_results({})
        assert overall.total_requests == 0
        assert overall.statuses == {}


class TestFinalResult:
    """FinalResult accessors."""

    def test_empty_result_has_no_results(self):
        result = FinalResult()
        assert result.regions == {}
        assert not result.has_results
        assert result.outcome is MonitorOutcome.COMPLETED

    def test_overall_from_envelope(self, two_region_envelope):
        result = FinalResult(envelope=two_region_envelope)
        assert result.has_results
        assert result.overall.total_requests == 1000

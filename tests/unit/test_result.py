"""Tests for result envelope construction and serialization."""
from __future__ import annotations

import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from system_agent.executor.result import create_result, failure, metrics_success, success


class TestOutcomes:
    def test_failure_carries_message_and_no_result(self):
        outcome = failure("boom")
        assert outcome.success is False
        assert outcome.error_message == "boom"
        assert outcome.result is None

    def test_failure_message_is_never_empty(self):
        assert failure("").error_message

    def test_success_has_no_message(self):
        outcome = success()
        assert outcome.success is True
        assert outcome.error_message is None

    def test_metrics_success_renders_missing_memory_as_sentinel(self):
        outcome = metrics_success("1.49", None, "{}")
        assert outcome.result.memory_used == "-1"

    def test_metrics_success_keeps_non_json_raw_as_string(self):
        outcome = metrics_success("1.49", 1024, "not json")
        assert outcome.result.raw == "not json"
        assert outcome.result.memory_used == "1024"


class TestCreateResult:
    """Tests for the wire shape of envelopes."""

    def test_failure_envelope(self):
        envelope = create_result("start", "core-data", "docker", failure("Error starting service: x"))
        assert json.loads(envelope.to_json()) == {
            "operation": "start",
            "service": "core-data",
            "executor": "docker",
            "success": False,
            "errorMessage": "Error starting service: x",
        }

    def test_metrics_envelope(self):
        envelope = create_result(
            "metrics", "core-data", "docker", metrics_success("0.25", 2048, '{"pids":"7"}')
        )
        assert json.loads(envelope.to_json())["result"] == {
            "cpuUsedPercent": "0.25",
            "memoryUsed": "2048",
            "raw": {"pids": "7"},
        }

    def test_quotes_and_newlines_are_escaped(self):
        """Messages that would break string-built JSON still decode."""
        message = 'Error: "core-data" \\ failed\nwith {braces}'
        envelope = create_result("stop", 'svc"name', "docker", failure(message))
        decoded = json.loads(envelope.to_json())
        assert decoded["errorMessage"] == message
        assert decoded["service"] == 'svc"name'

    def test_serialization_is_deterministic(self):
        first = create_result("metrics", "core-data", "docker", metrics_success("1", 1, "{}"))
        second = create_result("metrics", "core-data", "docker", metrics_success("1", 1, "{}"))
        assert first.to_json() == second.to_json()

    def test_null_inside_raw_is_preserved(self):
        envelope = create_result("metrics", "core-data", "docker", metrics_success("1", 1, '{"a": null}'))
        assert envelope.to_dict()["result"]["raw"] == {"a": None}

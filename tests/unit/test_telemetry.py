"""Unit tests for the telemetry context factory and reporters."""

import logging

import pytest

from attachment_guard.telemetry import (
    InMemoryReporter,
    TelemetryContext,
    TelemetryReporter,
    telemetry_enabled,
)

pytestmark = pytest.mark.unit


class ExplodingReporter:
    def record_timing(self, scope, duration, **metadata):
        raise RuntimeError("reporter down")

    def record_metric(self, scope, value, **metadata):
        raise RuntimeError("reporter down")


def test_disabled_by_default():
    assert telemetry_enabled() is False
    assert TelemetryContext(InMemoryReporter()) is TelemetryContext()


@pytest.mark.parametrize("var", ["ATTACHMENT_GUARD_TELEMETRY", "DEBUG"])
def test_enabled_through_environment(monkeypatch, var):
    monkeypatch.setenv(var, "1")
    assert telemetry_enabled() is True


def test_enabled_without_reporters_is_still_noop(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_GUARD_TELEMETRY", "1")
    assert TelemetryContext() is TelemetryContext()


def test_noop_context_accepts_everything():
    tele = TelemetryContext()
    with tele("delivery.attempt", attempt=0) as ctx:
        ctx.count("x")
        ctx.gauge("y", 1.0)
        ctx.metric("z", "v")


def test_nested_scopes_and_metrics(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_GUARD_TELEMETRY", "1")
    reporter = InMemoryReporter()
    tele = TelemetryContext(reporter)

    with tele("delivery", run="r1"), tele("attempt"):
        tele.count("bodies", 2)
        tele.count("bodies")
        tele.gauge("queue", 4.0)

    assert set(reporter.timings) == {"delivery", "delivery.attempt"}
    (_, metadata) = reporter.timings["delivery.attempt"][0]
    assert metadata["depth"] == 1
    assert reporter.total("delivery.attempt.bodies") == 3
    assert reporter.metrics["delivery.attempt.queue"][0][1]["metric_type"] == "gauge"
    assert "delivery.attempt" in reporter.get_report()


def test_reporter_failures_are_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setenv("ATTACHMENT_GUARD_TELEMETRY", "1")
    caplog.set_level(logging.ERROR, logger="attachment_guard")
    tele = TelemetryContext(ExplodingReporter())

    with tele("scope"):
        tele.count("n")

    assert sum("reporter down" in r.getMessage() for r in caplog.records) == 2


def test_empty_scope_name_is_rejected(monkeypatch):
    monkeypatch.setenv("ATTACHMENT_GUARD_TELEMETRY", "1")
    tele = TelemetryContext(InMemoryReporter())
    with pytest.raises(ValueError), tele(""):
        pass


def test_in_memory_reporter_satisfies_protocol():
    assert isinstance(InMemoryReporter(), TelemetryReporter)

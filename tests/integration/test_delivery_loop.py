"""Integration tests for the submit, observe, and retry loop.

A scripted executor stands in for the browser page: on each attempt it emits
the network traffic a real chat page would produce and returns the rendered
answer with UI signals.
"""

import asyncio
import json
import logging

import pytest

from attachment_guard import (
    AttachmentDeliveryLoop,
    AttachmentDescriptor,
    SubmissionError,
    SubmissionOutcome,
    UiSignals,
    resolve_config,
)
from attachment_guard.telemetry import InMemoryReporter, TelemetryContext

pytestmark = pytest.mark.integration

UPLOAD_URL = "https://chat.example.com/backend-api/files/upload"
ATTACHMENTS = (
    AttachmentDescriptor(path="/tmp/large.pdf", display_name="large.pdf"),
    AttachmentDescriptor(path="/tmp/small.txt", display_name="small.txt"),
    AttachmentDescriptor(path="/tmp/notes.md", display_name="notes.md"),
)


class ScriptedExecutor:
    """Plays one scripted step per attempt against the fake network source."""

    def __init__(self, source, *steps):
        self.source = source
        self.steps = steps
        self.calls: list[tuple[str, tuple[str, ...], int]] = []

    async def submit(self, prompt, attachments, *, attempt):
        self.calls.append((prompt, tuple(a.display_name for a in attachments), attempt))
        return self.steps[attempt](self.source, attempt)


def rejects(name):
    def step(source, attempt):
        source.finish(
            f"{attempt}-upload",
            UPLOAD_URL,
            body=json.dumps({"error": f"Failed to parse {name}"}),
        )
        return SubmissionOutcome(answer_text=f"Summary from attempt {attempt}.")

    return step


def connection_reset(source, attempt):
    source.fail(f"{attempt}-upload", UPLOAD_URL)
    return SubmissionOutcome(answer_text="Partial summary.")


def clean(source, attempt):
    source.finish(f"{attempt}-upload", UPLOAD_URL, body='{"success": true}')
    return SubmissionOutcome(
        answer_text=f"Full summary from attempt {attempt}.",
        ui=UiSignals(ui_confirmed=True, user_turn_verified=True),
    )


def _config(**overrides):
    return resolve_config(overrides).to_frozen()


@pytest.mark.asyncio
async def test_clean_submission_needs_no_retry(network_source):
    executor = ScriptedExecutor(network_source, clean)
    loop = AttachmentDeliveryLoop(executor, network_source, _config())

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 1
    assert outcome.delivered
    assert outcome.answer_text == "Full summary from attempt 0."
    assert outcome.plans[0].should_retry is False
    assert outcome.plans[0].reason is None
    assert network_source.listeners == []


@pytest.mark.asyncio
async def test_resubmits_only_failed_attachment(network_source):
    executor = ScriptedExecutor(network_source, rejects("large.pdf"), clean)
    loop = AttachmentDeliveryLoop(executor, network_source, _config())

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 2
    assert outcome.delivered
    assert outcome.answer_text == "Full summary from attempt 1."
    assert [p.reason for p in outcome.plans] == ["network-failure", "attempts-exhausted"]
    assert executor.calls == [
        ("Summarize", ("large.pdf", "small.txt", "notes.md"), 0),
        ("Summarize", ("large.pdf",), 1),
    ]


@pytest.mark.asyncio
async def test_exhausted_retries_report_unconfirmed(network_source, caplog):
    caplog.set_level(logging.WARNING, logger="attachment_guard")
    executor = ScriptedExecutor(network_source, rejects("large.pdf"), rejects("large.pdf"))
    loop = AttachmentDeliveryLoop(executor, network_source, _config(max_attempts=1))

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 2
    assert outcome.answer_text == "Summary from attempt 1."
    assert outcome.plans[-1].reason == "attempts-exhausted"
    assert [a.display_name for a in outcome.unconfirmed] == ["large.pdf"]
    assert not outcome.delivered
    assert any("unconfirmed: large.pdf" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_zero_attempts_never_resubmits(network_source):
    executor = ScriptedExecutor(network_source, connection_reset)
    loop = AttachmentDeliveryLoop(executor, network_source, _config(max_attempts=0))

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 1
    assert len(executor.calls) == 1
    assert outcome.unconfirmed == ATTACHMENTS


@pytest.mark.asyncio
async def test_text_failure_with_unconfirmed_ui_is_retried(network_source):
    def text_only(source, attempt):
        return SubmissionOutcome(
            answer_text="Failed to parse file notes.md.", ui=UiSignals(ui_confirmed=False)
        )

    executor = ScriptedExecutor(network_source, text_only, clean)
    loop = AttachmentDeliveryLoop(executor, network_source, _config())

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.plans[0].reason == "parse-failure"
    assert executor.calls[1][1] == ("notes.md",)


@pytest.mark.asyncio
async def test_text_failure_with_healthy_ui_is_accepted(network_source):
    def text_only(source, attempt):
        return SubmissionOutcome(
            answer_text="Failed to parse file notes.md.",
            ui=UiSignals(ui_confirmed=True, user_turn_verified=True),
        )

    executor = ScriptedExecutor(network_source, text_only)
    loop = AttachmentDeliveryLoop(executor, network_source, _config())

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 1
    assert outcome.plans[0].reason == "parse-failure-ui-ok"
    assert outcome.delivered


@pytest.mark.asyncio
async def test_executor_errors_are_wrapped_and_monitor_released(network_source):
    def broken(source, attempt):
        raise RuntimeError("page crashed")

    loop = AttachmentDeliveryLoop(
        ScriptedExecutor(network_source, broken), network_source, _config()
    )

    with pytest.raises(SubmissionError) as exc_info:
        await loop.run("Summarize", ATTACHMENTS)

    assert exc_info.value.attempt == 0
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert network_source.listeners == []


@pytest.mark.asyncio
async def test_cancelled_run_releases_network_source(network_source):
    entered = asyncio.Event()

    class HangingExecutor:
        async def submit(self, prompt, attachments, *, attempt):
            entered.set()
            await asyncio.Event().wait()

    loop = AttachmentDeliveryLoop(HangingExecutor(), network_source, _config())
    task = asyncio.create_task(loop.run("Summarize", ATTACHMENTS))
    await entered.wait()
    assert len(network_source.listeners) == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert network_source.listeners == []


@pytest.mark.asyncio
async def test_ambiguous_failures_write_artifacts(network_source, tmp_path):
    debug_dir = tmp_path / "debug"
    executor = ScriptedExecutor(network_source, connection_reset, clean)
    loop = AttachmentDeliveryLoop(executor, network_source, _config(debug_dir=str(debug_dir)))

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.plans[0].reason == "network-failure-ambiguous"
    assert executor.calls[1][1] == ("large.pdf", "small.txt", "notes.md")
    (artifact,) = outcome.artifacts
    assert artifact.parent == debug_dir
    assert artifact.name.endswith("-a0.json")
    assert json.loads(artifact.read_text(encoding="utf-8"))["ambiguous"] is True


@pytest.mark.asyncio
async def test_attempts_are_timed(network_source, monkeypatch):
    monkeypatch.setenv("ATTACHMENT_GUARD_TELEMETRY", "1")
    reporter = InMemoryReporter()
    executor = ScriptedExecutor(network_source, rejects("small.txt"), clean)
    loop = AttachmentDeliveryLoop(
        executor, network_source, _config(), telemetry=TelemetryContext(reporter)
    )

    await loop.run("Summarize", ATTACHMENTS)

    attempts = [meta["attempt"] for _, meta in reporter.timings["delivery.attempt"]]
    assert attempts == [0, 1]
    assert reporter.total("delivery.attempt.network.failures_recorded") == 1


@pytest.mark.asyncio
async def test_config_is_resolved_when_not_given(network_source, monkeypatch):
    monkeypatch.setenv("ATTACHMENT_GUARD_MAX_ATTEMPTS", "0")
    executor = ScriptedExecutor(network_source, connection_reset)

    outcome = await AttachmentDeliveryLoop(executor, network_source).run("Summarize", ATTACHMENTS)

    assert outcome.attempts == 1
    assert outcome.plans[0].reason == "attempts-exhausted"


@pytest.mark.asyncio
async def test_unwritable_debug_dir_keeps_the_answer(network_source, tmp_path, caplog):
    caplog.set_level(logging.WARNING, logger="attachment_guard")
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    executor = ScriptedExecutor(network_source, connection_reset)
    loop = AttachmentDeliveryLoop(
        executor,
        network_source,
        _config(max_attempts=0, debug_dir=str(blocker / "debug")),
    )

    outcome = await loop.run("Summarize", ATTACHMENTS)

    assert outcome.answer_text == "Partial summary."
    assert outcome.artifacts == ()
    assert outcome.unconfirmed == ATTACHMENTS
    assert any(
        "Could not write attachment failure artifact" in r.getMessage()
        for r in caplog.records
    )

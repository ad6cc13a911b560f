"""Submission loop that resubmits attachments the remote service dropped.

Each attempt is one submission cycle:

1. start a network monitor for the attachments being sent,
2. let the action executor submit the prompt and wait for the answer,
3. stop the monitor and plan a retry from network, text and UI signals,
4. resubmit only the failed subset when the plan says so.

When attempts run out while failures remain, the loop still returns the last
answer together with the attachments whose delivery was never confirmed.
"""

from __future__ import annotations

from collections.abc import Sequence
import dataclasses
import logging
from typing import TYPE_CHECKING, Protocol

from attachment_guard.core.types import (
    AttachmentDescriptor,
    MonitorResult,
    RetryPlan,
    UiSignals,
)
from attachment_guard.debug import FailureArtifactWriter, needs_artifact
from attachment_guard.exceptions import SubmissionError
from attachment_guard.network.monitor import AttachmentNetworkMonitor
from attachment_guard.retry.planner import (
    REASON_EXHAUSTED,
    RETRY_RULES,
    RetryRequest,
    RetryRule,
    plan_attachment_retry,
)
from attachment_guard.telemetry import TelemetryContext, TelemetryContextProtocol

if TYPE_CHECKING:
    from pathlib import Path

    from attachment_guard.config.types import FrozenConfig
    from attachment_guard.network.events import NetworkEventSource
    from attachment_guard.network.policy import MonitorOptions

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    """What the action executor observed after one submission."""

    answer_text: str
    ui: UiSignals = dataclasses.field(default_factory=UiSignals)


class ActionExecutor(Protocol):
    """Submits a prompt with attachments through the live page."""

    async def submit(
        self,
        prompt: str,
        attachments: tuple[AttachmentDescriptor, ...],
        *,
        attempt: int,
    ) -> SubmissionOutcome: ...


@dataclasses.dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Final result of a delivery loop.

    Attributes:
        answer_text: Answer from the last submission.
        attempts: Number of submissions made.
        plans: Retry plan of each submission, in order.
        unconfirmed: Attachments still believed undelivered when retries
            ran out.
        artifacts: Debug artifacts written along the way.
    """

    answer_text: str
    attempts: int
    plans: tuple[RetryPlan, ...]
    unconfirmed: tuple[AttachmentDescriptor, ...] = ()
    artifacts: tuple[Path, ...] = ()

    @property
    def delivered(self) -> bool:
        return not self.unconfirmed


class AttachmentDeliveryLoop:
    """Drives submission cycles until attachments land or attempts run out."""

    def __init__(
        self,
        executor: ActionExecutor,
        source: NetworkEventSource,
        config: FrozenConfig | None = None,
        *,
        artifact_writer: FailureArtifactWriter | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        rules: Sequence[RetryRule] = RETRY_RULES,
    ) -> None:
        if config is None:
            from attachment_guard.config import resolve_config

            config = resolve_config().to_frozen()
        self._executor = executor
        self._source = source
        self._config = config
        self._tele = telemetry or TelemetryContext()
        self._rules = tuple(rules)
        if artifact_writer is None and config.debug_dir is not None:
            artifact_writer = FailureArtifactWriter(config.debug_dir)
        self._writer = artifact_writer

    async def run(
        self, prompt: str, attachments: Sequence[AttachmentDescriptor]
    ) -> DeliveryOutcome:
        """Submit ``prompt`` and resubmit failed attachments as planned.

        Raises:
            SubmissionError: If the executor fails during an attempt.
        """
        options = self._config.monitor_options()
        current = tuple(attachments)
        plans: list[RetryPlan] = []
        artifacts: list[Path] = []
        attempt = 0

        while True:
            with self._tele("delivery.attempt", attempt=attempt):
                outcome, result = await self._submit_once(
                    prompt, current, attempt, options
                )
            if self._writer is not None and needs_artifact(result):
                artifact = self._write_artifact(result, attempt)
                if artifact is not None:
                    artifacts.append(artifact)

            request = RetryRequest.from_signals(
                outcome.answer_text,
                current,
                attempt=attempt,
                max_attempts=self._config.max_attempts,
                monitor_result=result,
                ui=outcome.ui,
            )
            plan = plan_attachment_retry(request, rules=self._rules)
            plans.append(plan)
            log.info(
                "Attachment retry decision for attempt %d: retry=%s reason=%s failed=%s",
                attempt,
                plan.should_retry,
                plan.reason,
                list(plan.failed_names),
            )

            if plan.should_retry:
                current = plan.failed_attachments
                attempt += 1
                continue

            unconfirmed: tuple[AttachmentDescriptor, ...] = ()
            if plan.reason == REASON_EXHAUSTED:
                unconfirmed = self._unconfirmed(request)
                if unconfirmed:
                    log.warning(
                        "Attachment retries exhausted after %d attempt(s); unconfirmed: %s",
                        attempt + 1,
                        ", ".join(a.display_name for a in unconfirmed),
                    )
            return DeliveryOutcome(
                answer_text=outcome.answer_text,
                attempts=attempt + 1,
                plans=tuple(plans),
                unconfirmed=unconfirmed,
                artifacts=tuple(artifacts),
            )

    async def _submit_once(
        self,
        prompt: str,
        attachments: tuple[AttachmentDescriptor, ...],
        attempt: int,
        options: MonitorOptions,
    ) -> tuple[SubmissionOutcome, MonitorResult | None]:
        monitor = AttachmentNetworkMonitor.start(
            self._source,
            [a.display_name for a in attachments],
            options,
            telemetry=self._tele,
        )
        try:
            outcome = await self._executor.submit(prompt, attachments, attempt=attempt)
        except Exception as e:
            await monitor.stop()
            raise SubmissionError(attempt, e) from e
        except BaseException:
            # Cancellation still releases the shared source.
            await monitor.stop()
            raise
        return outcome, await monitor.stop()

    def _write_artifact(self, result: MonitorResult, attempt: int) -> Path | None:
        assert self._writer is not None
        try:
            return self._writer.write(result, attempt=attempt)
        except OSError as e:
            log.warning(
                "Could not write attachment failure artifact to %s: %s",
                self._writer.directory,
                e,
            )
            return None

    def _unconfirmed(self, request: RetryRequest) -> tuple[AttachmentDescriptor, ...]:
        # Re-plan as if one more attempt were allowed to learn what would
        # have been resubmitted.
        hypothetical = dataclasses.replace(request, max_attempts=request.attempt + 1)
        plan = plan_attachment_retry(hypothetical, rules=self._rules)
        return plan.failed_attachments if plan.should_retry else ()

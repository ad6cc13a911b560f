"""Retry decision fusion for attachment delivery.

The planner reconciles three weak signals into one ``RetryPlan``: failures
seen by the network monitor, failure phrasing in the answer text, and UI
confirmation state. The policy is an ordered tuple of rules; each rule
inspects a shared :class:`RetryContext` and either returns a final plan or
None to defer to the next rule. Rules are plain functions so each can be
exercised in isolation.

Reason codes:
- ``attempts-exhausted`` / ``no-attachments``: nothing to retry.
- ``parse-failure-ui-ok``: text-only failure outweighed by a healthy UI.
- ``network-failure[-ambiguous]`` / ``parse-failure[-ambiguous]``: retry.
- ``network-failure-no-match`` / ``parse-failure-no-match``: a failure was
  signaled but no attachment could be selected.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import dataclasses
import logging
from typing import TypeAlias

from attachment_guard.core.types import (
    AttachmentDescriptor,
    MonitorResult,
    ParseFailure,
    RetryPlan,
    UiSignals,
)
from attachment_guard.network.inspection import normalize_attachment_name

from .text_detector import detect_attachment_parse_failures

log = logging.getLogger(__name__)

REASON_EXHAUSTED = "attempts-exhausted"
REASON_NO_ATTACHMENTS = "no-attachments"
REASON_UI_OK = "parse-failure-ui-ok"
NETWORK_FAILURE = "network-failure"
PARSE_FAILURE = "parse-failure"


@dataclasses.dataclass(frozen=True, slots=True)
class RetryRequest:
    """Inputs for one retry decision."""

    answer_text: str
    attachments: tuple[AttachmentDescriptor, ...]
    attempt: int
    max_attempts: int
    monitor_result: MonitorResult | None = None
    ui_confirmed: bool | None = None
    upload_timed_out: bool | None = None
    input_only: bool | None = None
    user_turn_verified: bool | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "attachments", tuple(self.attachments))
        object.__setattr__(self, "answer_text", self.answer_text or "")

    @property
    def ui(self) -> UiSignals:
        return UiSignals(
            ui_confirmed=self.ui_confirmed,
            upload_timed_out=self.upload_timed_out,
            input_only=self.input_only,
            user_turn_verified=self.user_turn_verified,
        )

    @classmethod
    def from_signals(
        cls,
        answer_text: str,
        attachments: Sequence[AttachmentDescriptor],
        *,
        attempt: int,
        max_attempts: int,
        monitor_result: MonitorResult | None = None,
        ui: UiSignals | None = None,
    ) -> RetryRequest:
        ui = ui or UiSignals()
        return cls(
            answer_text=answer_text,
            attachments=tuple(attachments),
            attempt=attempt,
            max_attempts=max_attempts,
            monitor_result=monitor_result,
            ui_confirmed=ui.ui_confirmed,
            upload_timed_out=ui.upload_timed_out,
            input_only=ui.input_only,
            user_turn_verified=ui.user_turn_verified,
        )


@dataclasses.dataclass(slots=True)
class RetryContext:
    """Working state shared by the rules of one decision.

    ``parse_failure`` is filled in by :func:`detect_text_failures`.
    """

    request: RetryRequest
    parse_failure: ParseFailure | None = None

    @property
    def network_failed(self) -> bool:
        result = self.request.monitor_result
        return result is not None and result.has_failure

    @property
    def text_failed(self) -> bool:
        return self.parse_failure is not None


RetryRule: TypeAlias = Callable[[RetryContext], RetryPlan | None]


def normalize_attachment_names(
    attachments: Sequence[AttachmentDescriptor],
) -> list[str]:
    """Return the basename of each attachment's display name."""
    return [normalize_attachment_name(a.display_name) for a in attachments]


def _select(
    attachments: Sequence[AttachmentDescriptor], names: Sequence[str]
) -> tuple[AttachmentDescriptor, ...]:
    wanted = {normalize_attachment_name(n) for n in names}
    return tuple(
        a for a in attachments if normalize_attachment_name(a.display_name) in wanted
    )


# --- Rules, in evaluation order ---


def check_attempt_budget(ctx: RetryContext) -> RetryPlan | None:
    """No retry once attempts are used up or when nothing was attached."""
    if ctx.request.attempt >= ctx.request.max_attempts:
        return RetryPlan(should_retry=False, reason=REASON_EXHAUSTED)
    if not ctx.request.attachments:
        return RetryPlan(should_retry=False, reason=REASON_NO_ATTACHMENTS)
    return None


def detect_text_failures(ctx: RetryContext) -> RetryPlan | None:
    ctx.parse_failure = detect_attachment_parse_failures(
        ctx.request.answer_text,
        [a.display_name for a in ctx.request.attachments],
    )
    return None


def check_failure_signal(ctx: RetryContext) -> RetryPlan | None:
    if not ctx.network_failed and not ctx.text_failed:
        return RetryPlan(should_retry=False)
    return None


def check_ui_health(ctx: RetryContext) -> RetryPlan | None:
    """Suppress a text-only failure when every UI signal looks healthy.

    Absence of network evidence plus a healthy UI outweighs a possibly
    coincidental phrase in the answer.
    """
    if ctx.text_failed and not ctx.network_failed and ctx.request.ui.looks_healthy:
        return RetryPlan(should_retry=False, reason=REASON_UI_OK)
    return None


def select_failed_attachments(ctx: RetryContext) -> RetryPlan | None:
    attachments = ctx.request.attachments
    monitor = ctx.request.monitor_result
    parsed = ctx.parse_failure

    if ctx.network_failed and monitor is not None and not monitor.ambiguous:
        subset = _select(attachments, monitor.failed)
    elif parsed is not None and not parsed.ambiguous:
        subset = _select(attachments, parsed.failed)
    else:
        subset = attachments

    if ctx.network_failed and monitor is not None:
        prefix, ambiguous = NETWORK_FAILURE, monitor.ambiguous
    else:
        prefix, ambiguous = PARSE_FAILURE, parsed is not None and parsed.ambiguous

    if not subset:
        return RetryPlan(should_retry=False, reason=f"{prefix}-no-match")
    reason = f"{prefix}-ambiguous" if ambiguous else prefix
    return RetryPlan(should_retry=True, failed_attachments=subset, reason=reason)


RETRY_RULES: tuple[RetryRule, ...] = (
    check_attempt_budget,
    detect_text_failures,
    check_failure_signal,
    check_ui_health,
    select_failed_attachments,
)


def plan_attachment_retry(
    request: RetryRequest, *, rules: Sequence[RetryRule] = RETRY_RULES
) -> RetryPlan:
    """Decide whether and what to resubmit after one submission attempt."""
    ctx = RetryContext(request=request)
    for rule in rules:
        plan = rule(ctx)
        if plan is not None:
            log.debug(
                "Retry rule %s decided should_retry=%s reason=%s",
                getattr(rule, "__name__", rule),
                plan.should_retry,
                plan.reason,
            )
            return plan
    return RetryPlan(should_retry=False)

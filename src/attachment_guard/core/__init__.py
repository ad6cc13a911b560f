"""Core data model shared by the collector, the detectors, and the planner."""

from .types import (
    AttachmentDescriptor,
    FailureRecord,
    MonitorResult,
    ParseFailure,
    RequestRecord,
    ResponseRecord,
    RetryPlan,
    UiSignals,
)

__all__ = [
    "AttachmentDescriptor",
    "FailureRecord",
    "MonitorResult",
    "ParseFailure",
    "RequestRecord",
    "ResponseRecord",
    "RetryPlan",
    "UiSignals",
]

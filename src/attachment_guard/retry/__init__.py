"""Answer-text failure detection and retry planning."""

from .planner import (
    RETRY_RULES,
    RetryContext,
    RetryRequest,
    RetryRule,
    normalize_attachment_names,
    plan_attachment_retry,
)
from .text_detector import detect_attachment_parse_failures

__all__ = [
    "RETRY_RULES",
    "RetryContext",
    "RetryRequest",
    "RetryRule",
    "detect_attachment_parse_failures",
    "normalize_attachment_names",
    "plan_attachment_retry",
]

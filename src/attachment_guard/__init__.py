"""Attachment delivery reliability for browser-driven chat submissions."""

import importlib.metadata
import logging

from attachment_guard.config import FrozenConfig, ResolvedConfig, resolve_config
from attachment_guard.core.types import (
    AttachmentDescriptor,
    FailureRecord,
    MonitorResult,
    ParseFailure,
    RetryPlan,
    UiSignals,
)
from attachment_guard.debug import FailureArtifactWriter
from attachment_guard.delivery import (
    ActionExecutor,
    AttachmentDeliveryLoop,
    DeliveryOutcome,
    SubmissionOutcome,
)
from attachment_guard.exceptions import (
    AttachmentGuardError,
    ConfigFileError,
    ConfigurationError,
    MonitorStateError,
    SubmissionError,
)
from attachment_guard.network import (
    AttachmentNetworkMonitor,
    CandidatePolicy,
    CdpNetworkSource,
    MonitorOptions,
    NetworkEventSource,
    start_attachment_network_monitor,
)
from attachment_guard.retry import (
    RetryRequest,
    detect_attachment_parse_failures,
    plan_attachment_retry,
)
from attachment_guard.telemetry import TelemetryContext, TelemetryReporter

# Version handling
try:
    __version__ = importlib.metadata.version("attachment-guard")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the consuming app has no logging configured.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Delivery loop
    "AttachmentDeliveryLoop",
    "ActionExecutor",
    "SubmissionOutcome",
    "DeliveryOutcome",
    # Network signal collection
    "AttachmentNetworkMonitor",
    "start_attachment_network_monitor",
    "NetworkEventSource",
    "CdpNetworkSource",
    "MonitorOptions",
    "CandidatePolicy",
    # Text detection and planning
    "detect_attachment_parse_failures",
    "plan_attachment_retry",
    "RetryRequest",
    # Core types
    "AttachmentDescriptor",
    "FailureRecord",
    "MonitorResult",
    "ParseFailure",
    "RetryPlan",
    "UiSignals",
    # Configuration
    "resolve_config",
    "ResolvedConfig",
    "FrozenConfig",
    # Debugging and telemetry
    "FailureArtifactWriter",
    "TelemetryContext",
    "TelemetryReporter",
    # Exceptions
    "AttachmentGuardError",
    "ConfigurationError",
    "ConfigFileError",
    "MonitorStateError",
    "SubmissionError",
]

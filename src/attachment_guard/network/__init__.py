"""Network signal collection for attachment delivery."""

from .cdp import CdpNetworkSource, parse_cdp_event
from .events import (
    LoadingFailed,
    LoadingFinished,
    NetworkEventSource,
    NetworkListener,
    RequestStarted,
    ResponseBody,
    ResponseReceived,
)
from .inspection import detect_failure_from_body, extract_json_error
from .monitor import AttachmentNetworkMonitor, start_attachment_network_monitor
from .policy import CandidatePolicy, MonitorOptions

__all__ = [
    "AttachmentNetworkMonitor",
    "CandidatePolicy",
    "CdpNetworkSource",
    "LoadingFailed",
    "LoadingFinished",
    "MonitorOptions",
    "NetworkEventSource",
    "NetworkListener",
    "RequestStarted",
    "ResponseBody",
    "ResponseReceived",
    "detect_failure_from_body",
    "extract_json_error",
    "parse_cdp_event",
    "start_attachment_network_monitor",
]

"""Network signal collector for one submission cycle.

The monitor subscribes to a network event source, classifies requests that
look attachment-related, and turns transport failures, HTTP errors, and
failure-shaped response bodies into ``FailureRecord`` entries.

Concurrency model:
- All lifecycle callbacks run synchronously on the event loop that owns the
  source, so the metadata maps and failure list need no locking.
- Body inspection is the only asynchronous work. Each read runs as its own
  task held in a pending set; a task removes only itself on completion.
- ``stop()`` is the single barrier. It stops accepting events, then awaits
  every pending read (errors tolerated) before composing the result, so a
  failure discovered by a late body read is never dropped. Reads are never
  cancelled.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import TYPE_CHECKING

from attachment_guard.core.types import (
    FailureRecord,
    MonitorResult,
    RequestRecord,
    ResponseRecord,
)
from attachment_guard.exceptions import MonitorStateError
from attachment_guard.telemetry import TelemetryContext, TelemetryContextProtocol

from .inspection import detect_failure_from_body, normalize_attachment_name
from .policy import MonitorOptions

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .events import (
        LoadingFailed,
        LoadingFinished,
        NetworkEventSource,
        RequestStarted,
        ResponseReceived,
    )

log = logging.getLogger(__name__)


class AttachmentNetworkMonitor:
    """Collects attachment delivery failures from live network events.

    Construct one per submission cycle with :meth:`start` and discard it after
    :meth:`stop`.
    """

    def __init__(
        self,
        source: NetworkEventSource,
        attachment_names: Iterable[str],
        options: MonitorOptions | None = None,
        *,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._source = source
        self._options = options or MonitorOptions()
        self._tele = telemetry or TelemetryContext()
        # Display names keyed by normalized name; first spelling wins.
        self._display: dict[str, str] = {}
        for raw in attachment_names:
            if raw:
                self._display.setdefault(normalize_attachment_name(raw), _basename(raw))
        self._names: tuple[str, ...] = tuple(self._display)

        self._requests: dict[str, RequestRecord] = {}
        self._responses: dict[str, ResponseRecord] = {}
        self._failures: list[FailureRecord] = []
        self._failed_ids: set[str] = set()
        self._pending: set[asyncio.Task[None]] = set()
        self._inspected = 0
        self._active = False
        self._stopped = False
        self._unsubscribe: Callable[[], None] | None = None

    @classmethod
    def start(
        cls,
        source: NetworkEventSource,
        attachment_names: Iterable[str],
        options: MonitorOptions | None = None,
        *,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> AttachmentNetworkMonitor:
        """Create a monitor and bind it to ``source``'s live event stream."""
        monitor = cls(source, tuple(attachment_names), options, telemetry=telemetry)
        monitor._active = True
        monitor._unsubscribe = source.subscribe(monitor)
        log.debug(
            "Attachment network monitor started for %d attachment(s)",
            len(monitor._names),
        )
        return monitor

    @property
    def active(self) -> bool:
        return self._active

    @property
    def pending_reads(self) -> int:
        return len(self._pending)

    # --- NetworkListener ---

    def on_request_started(self, event: RequestStarted) -> None:
        if not self._active:
            return
        self._requests[event.request_id] = RequestRecord(
            url=event.url,
            method=event.method,
            resource_type=event.resource_type,
            initiator=event.initiator,
        )

    def on_response_received(self, event: ResponseReceived) -> None:
        if not self._active:
            return
        self._responses[event.request_id] = ResponseRecord(
            status=event.status,
            mime_type=event.mime_type,
            headers=event.headers or {},
            url=event.url,
        )

    def on_loading_failed(self, event: LoadingFailed) -> None:
        if not self._active:
            return
        info = self._requests.get(event.request_id)
        if info is None or not self._options.policy.is_candidate(info):
            return
        self._record(event.request_id, info.url, event.error_text or "request-failed")

    def on_loading_finished(self, event: LoadingFinished) -> None:
        if not self._active:
            return
        request_id = event.request_id
        info = self._requests.get(request_id)
        if info is None or not self._options.policy.is_candidate(info):
            return
        response = self._responses.get(request_id)
        status = response.status if response is not None else None
        url = (response.url if response is not None else None) or info.url
        if status is not None and status >= 400:
            self._record(request_id, url, f"http-{status}", status=status)
            return
        if response is None or self._inspected >= self._options.max_bodies:
            return
        if not _is_textual(response):
            return
        self._inspected += 1
        self._tele.count("network.bodies_inspected")
        task = asyncio.create_task(
            self._inspect_body(request_id, url, status),
            name=f"attachment-body-{request_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # --- Lifecycle ---

    async def stop(self) -> MonitorResult | None:
        """Stop collecting, drain pending body reads, and compose the result."""
        if self._stopped:
            raise MonitorStateError("Attachment network monitor already stopped")
        self._stopped = True
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)
        self._requests.clear()
        self._responses.clear()
        result = self._compose()
        if result is not None:
            log.debug(
                "Attachment network monitor stopped with %d failure(s); failed=%s ambiguous=%s",
                len(result.failures),
                list(result.failed),
                result.ambiguous,
            )
        return result

    # --- Internals ---

    def _record(
        self,
        request_id: str,
        url: str,
        reason: str,
        matched: Iterable[str] | None = None,
        status: int | None = None,
    ) -> None:
        if request_id in self._failed_ids:
            return
        self._failed_ids.add(request_id)
        display = tuple(self._display.get(n, n) for n in (matched or ()))
        self._failures.append(
            FailureRecord(
                request_id=request_id,
                url=url,
                reason=reason,
                status=status,
                matched_attachments=display or None,
            )
        )
        self._tele.count("network.failures_recorded")
        log.debug("Recorded attachment failure for %s (%s): %s", request_id, url, reason)

    async def _inspect_body(self, request_id: str, url: str, status: int | None) -> None:
        try:
            payload = await self._source.get_body(request_id)
            if payload is None or not payload.body:
                return
            raw = (
                base64.b64decode(payload.body)
                if payload.base64_encoded
                else payload.body.encode("utf-8")
            )
            if len(raw) > self._options.max_body_bytes:
                self._note("Skipping %d-byte body for %s", len(raw), request_id)
                return
            failure = detect_failure_from_body(
                raw.decode("utf-8", errors="replace"), self._names
            )
            if failure is not None:
                self._record(request_id, url, failure.reason, failure.matched, status)
        except ValueError as e:
            self._note("Attachment network monitor could not decode body: %s", e)
        except Exception as e:
            self._note("Attachment network monitor failed to read response body: %s", e)

    def _note(self, message: str, *args: object) -> None:
        level = logging.INFO if self._options.verbose else logging.DEBUG
        log.log(level, message, *args)

    def _compose(self) -> MonitorResult | None:
        if not self._failures:
            return None
        matched: set[str] = set()
        ambiguous = False
        for failure in self._failures:
            if failure.matched_attachments:
                matched.update(
                    normalize_attachment_name(n) for n in failure.matched_attachments
                )
            else:
                ambiguous = True
        failed = tuple(
            display for key, display in self._display.items() if key in matched
        )
        if not failed:
            ambiguous = True
        return MonitorResult(
            failed=failed, ambiguous=ambiguous, failures=tuple(self._failures)
        )


def start_attachment_network_monitor(
    source: NetworkEventSource,
    attachment_names: Iterable[str],
    options: MonitorOptions | None = None,
    *,
    telemetry: TelemetryContextProtocol | None = None,
) -> AttachmentNetworkMonitor:
    """Functional alias for :meth:`AttachmentNetworkMonitor.start`."""
    return AttachmentNetworkMonitor.start(
        source, attachment_names, options, telemetry=telemetry
    )


def _basename(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1].strip() or name


def _is_textual(response: ResponseRecord) -> bool:
    mime_type = (response.mime_type or "").lower()
    content_type = response.content_type.lower()
    return any(kind in mime_type or kind in content_type for kind in ("json", "text"))

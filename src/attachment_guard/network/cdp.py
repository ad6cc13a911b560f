"""Chrome DevTools Protocol adapter for the network event interface.

Binds a CDP session, such as the object returned by Playwright's
``BrowserContext.new_cdp_session(page)``, to :class:`NetworkEventSource`.
The session only needs ``on``/``remove_listener`` for event registration and
an awaitable ``send`` for commands.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any, Protocol

from .events import (
    LoadingFailed,
    LoadingFinished,
    NetworkEvent,
    NetworkListener,
    RequestStarted,
    ResponseBody,
    ResponseReceived,
    dispatch,
)

log = logging.getLogger(__name__)

REQUEST_WILL_BE_SENT = "Network.requestWillBeSent"
RESPONSE_RECEIVED = "Network.responseReceived"
LOADING_FAILED = "Network.loadingFailed"
LOADING_FINISHED = "Network.loadingFinished"
CDP_NETWORK_EVENTS = (
    REQUEST_WILL_BE_SENT,
    RESPONSE_RECEIVED,
    LOADING_FAILED,
    LOADING_FINISHED,
)


class CdpSession(Protocol):
    """Subset of a CDP session used by the adapter."""

    def on(self, event: str, f: Callable[[dict[str, Any]], Any]) -> Any: ...  # noqa: D102
    def remove_listener(  # noqa: D102
        self, event: str, f: Callable[[dict[str, Any]], Any]
    ) -> Any: ...
    async def send(  # noqa: D102
        self, method: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...


def _str_headers(raw: Any) -> dict[str, str]:
    if not isinstance(raw, Mapping):
        return {}
    return {str(k): str(v) for k, v in raw.items()}


def parse_cdp_event(method: str, params: Mapping[str, Any]) -> NetworkEvent | None:
    """Translate a raw CDP network event into a typed notification.

    Returns None for unrelated methods or payloads without a request id.
    """
    request_id = params.get("requestId")
    if not isinstance(request_id, str) or not request_id:
        return None
    if method == REQUEST_WILL_BE_SENT:
        request = params.get("request") or {}
        initiator = params.get("initiator") or {}
        return RequestStarted(
            request_id=request_id,
            url=str(request.get("url") or ""),
            method=str(request.get("method") or "GET"),
            resource_type=params.get("type"),
            initiator=initiator.get("type") if isinstance(initiator, Mapping) else None,
        )
    if method == RESPONSE_RECEIVED:
        response = params.get("response") or {}
        status = response.get("status")
        return ResponseReceived(
            request_id=request_id,
            status=int(status) if isinstance(status, int | float) else None,
            mime_type=response.get("mimeType"),
            headers=_str_headers(response.get("headers")),
            url=response.get("url"),
        )
    if method == LOADING_FAILED:
        return LoadingFailed(
            request_id=request_id, error_text=str(params.get("errorText") or "")
        )
    if method == LOADING_FINISHED:
        return LoadingFinished(request_id=request_id)
    return None


class CdpNetworkSource:
    """Network event source backed by a CDP session.

    Handlers are registered on the session when the first listener subscribes
    and removed when the last one unsubscribes.
    """

    def __init__(self, session: CdpSession) -> None:
        self._session = session
        self._listeners: list[NetworkListener] = []
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {}

    async def enable(self) -> None:
        """Enable the CDP Network domain on the session."""
        await self._session.send("Network.enable", {})

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        if not self._listeners:
            self._attach()
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
            if not self._listeners:
                self._detach()

        return _unsubscribe

    async def get_body(self, request_id: str) -> ResponseBody:
        payload = await self._session.send(
            "Network.getResponseBody", {"requestId": request_id}
        )
        return ResponseBody(
            body=str(payload.get("body") or ""),
            base64_encoded=bool(payload.get("base64Encoded")),
        )

    def _attach(self) -> None:
        for method in CDP_NETWORK_EVENTS:
            handler = self._make_handler(method)
            self._handlers[method] = handler
            self._session.on(method, handler)

    def _detach(self) -> None:
        for method, handler in self._handlers.items():
            self._session.remove_listener(method, handler)
        self._handlers.clear()

    def _make_handler(self, method: str) -> Callable[[dict[str, Any]], None]:
        def _handle(params: dict[str, Any]) -> None:
            event = parse_cdp_event(method, params or {})
            if event is None:
                log.debug("Ignoring CDP %s without a usable request id", method)
                return
            for listener in tuple(self._listeners):
                dispatch(listener, event)

        return _handle

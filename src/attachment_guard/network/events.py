"""Typed notification interface for transport-level network events.

A network event source delivers four lifecycle notifications per request to a
subscribed listener and exposes one asynchronous operation to fetch a
response body once the request has finished loading. Listeners are invoked
synchronously on the event loop that owns the source.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import dataclasses
from typing import Protocol, TypeAlias, runtime_checkable


@dataclasses.dataclass(frozen=True, slots=True)
class RequestStarted:
    request_id: str
    url: str
    method: str = "GET"
    resource_type: str | None = None
    initiator: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class ResponseReceived:
    request_id: str
    status: int | None = None
    mime_type: str | None = None
    headers: Mapping[str, str] | None = None
    url: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class LoadingFailed:
    request_id: str
    error_text: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class LoadingFinished:
    request_id: str


NetworkEvent: TypeAlias = RequestStarted | ResponseReceived | LoadingFailed | LoadingFinished


@dataclasses.dataclass(frozen=True, slots=True)
class ResponseBody:
    """Raw response body as returned by the source."""

    body: str
    base64_encoded: bool = False


@runtime_checkable
class NetworkListener(Protocol):
    """Receives lifecycle notifications from a network event source."""

    def on_request_started(self, event: RequestStarted) -> None: ...  # noqa: D102
    def on_response_received(self, event: ResponseReceived) -> None: ...  # noqa: D102
    def on_loading_failed(self, event: LoadingFailed) -> None: ...  # noqa: D102
    def on_loading_finished(self, event: LoadingFinished) -> None: ...  # noqa: D102


@runtime_checkable
class NetworkEventSource(Protocol):
    """A live stream of network events plus on-demand body retrieval."""

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        ...

    async def get_body(self, request_id: str) -> ResponseBody:
        """Fetch the body of a finished request."""
        ...


def dispatch(listener: NetworkListener, event: NetworkEvent) -> None:
    """Route a single event to the matching listener method."""
    match event:
        case RequestStarted():
            listener.on_request_started(event)
        case ResponseReceived():
            listener.on_response_received(event)
        case LoadingFailed():
            listener.on_loading_failed(event)
        case LoadingFinished():
            listener.on_loading_finished(event)
        case _:
            raise TypeError(f"Unsupported network event: {type(event).__name__}")

"""
Global test configuration with support for different test types.
"""

import asyncio
from collections.abc import Callable
import logging
import os

import pytest

from attachment_guard.network.events import (
    LoadingFailed,
    LoadingFinished,
    NetworkListener,
    RequestStarted,
    ResponseBody,
    ResponseReceived,
    dispatch,
)

# --- Environment Isolation (Autouse) ---


@pytest.fixture(autouse=True)
def isolate_guard_env(request, monkeypatch):
    """Ensure a clean ATTACHMENT_GUARD_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("ATTACHMENT_GUARD_"):
            monkeypatch.delenv(key, raising=False)
    # Avoid DEBUG toggles switching telemetry on
    monkeypatch.delenv("DEBUG", raising=False)


@pytest.fixture(autouse=True)
def neutral_home_config(request, monkeypatch, tmp_path):
    """Point the home-config path to an isolated temp file by default.

    Escape hatch: @pytest.mark.allow_real_home_config uses the real path.
    """
    if request.node.get_closest_marker("allow_real_home_config"):
        return
    fake_home_dir = tmp_path / "home_config_isolated"
    fake_home_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv(
        "ATTACHMENT_GUARD_CONFIG_HOME", str(fake_home_dir / "attachment_guard.toml")
    )


@pytest.fixture(autouse=True)
def neutral_project_root(monkeypatch, tmp_path):
    """Run each test from an empty directory so no real pyproject.toml is found."""
    workdir = tmp_path / "workdir"
    workdir.mkdir(exist_ok=True)
    monkeypatch.chdir(workdir)


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "integration: Component integration tests with scripted browsers",
        "contract: Invariants that must hold across the public surface",
        "allow_env_pollution: Keep ATTACHMENT_GUARD_* variables from the host",
        "allow_real_home_config: Read the developer's real home config",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- Network Fixtures ---


class FakeNetworkSource:
    """In-memory network event source driven directly by tests.

    Bodies are served from ``bodies``; a stored exception is raised instead.
    Setting an ``asyncio.Event`` in ``gates`` holds the body read until the
    event is set.
    """

    def __init__(self) -> None:
        self.listeners: list[NetworkListener] = []
        self.bodies: dict[str, ResponseBody | Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.body_requests: list[str] = []

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        self.listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return _unsubscribe

    async def get_body(self, request_id: str) -> ResponseBody:
        self.body_requests.append(request_id)
        gate = self.gates.get(request_id)
        if gate is not None:
            await gate.wait()
        body = self.bodies.get(request_id)
        if isinstance(body, Exception):
            raise body
        if body is None:
            raise LookupError(f"No resource with given identifier found: {request_id}")
        return body

    def emit(self, event) -> None:
        for listener in tuple(self.listeners):
            dispatch(listener, event)

    def finish(
        self,
        request_id: str,
        url: str,
        *,
        method: str = "POST",
        resource_type: str | None = "fetch",
        status: int | None = 200,
        mime_type: str | None = "application/json",
        headers: dict[str, str] | None = None,
        body: str | ResponseBody | Exception | None = None,
    ) -> None:
        """Emit the full lifecycle of a request that finished loading."""
        if body is not None:
            self.bodies[request_id] = (
                ResponseBody(body=body) if isinstance(body, str) else body
            )
        self.emit(
            RequestStarted(
                request_id=request_id,
                url=url,
                method=method,
                resource_type=resource_type,
            )
        )
        self.emit(
            ResponseReceived(
                request_id=request_id,
                status=status,
                mime_type=mime_type,
                headers=headers,
                url=url,
            )
        )
        self.emit(LoadingFinished(request_id=request_id))

    def fail(
        self,
        request_id: str,
        url: str,
        *,
        method: str = "POST",
        resource_type: str | None = "fetch",
        error_text: str = "net::ERR_CONNECTION_RESET",
    ) -> None:
        """Emit a request that failed at the transport level."""
        self.emit(
            RequestStarted(
                request_id=request_id,
                url=url,
                method=method,
                resource_type=resource_type,
            )
        )
        self.emit(LoadingFailed(request_id=request_id, error_text=error_text))


@pytest.fixture
def network_source():
    """A fresh in-memory network event source."""
    return FakeNetworkSource()


@pytest.fixture
def caplog_guard(caplog):
    """Capture attachment_guard logs at DEBUG level."""
    caplog.set_level(logging.DEBUG, logger="attachment_guard")
    return caplog

"""Core data types scoped to a single submission cycle.

Every entity here is created for one attempt at delivering a prompt with its
attachments and discarded when the attempt has been planned. Types are
immutable; sequences are normalized to tuples and header mappings are frozen
so that records can be shared between the collector, the planner, and debug
artifacts without defensive copies.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from types import MappingProxyType
import typing

if typing.TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

# --- Minimal guard helpers ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def _freeze_headers(headers: Mapping[str, str] | None) -> Mapping[str, str]:
    if headers is None:
        return MappingProxyType({})
    if isinstance(headers, MappingProxyType):
        return headers
    return MappingProxyType({str(k): str(v) for k, v in headers.items()})


def _as_str_tuple(values: Iterable[str] | None, field_name: str) -> tuple[str, ...]:
    items = tuple(values or ())
    _require(
        condition=all(isinstance(v, str) for v in items),
        message="must contain only str values",
        field_name=field_name,
        exc=TypeError,
    )
    return items


# --- Attachments ---


@dataclasses.dataclass(frozen=True, slots=True)
class AttachmentDescriptor:
    """A local file the caller intends to deliver with a prompt.

    Identity for correlation purposes is the display name, compared
    case-insensitively.
    """

    path: str | Path
    display_name: str
    size_bytes: int | None = None

    def __post_init__(self) -> None:
        """Validate descriptor invariants."""
        _require(
            condition=isinstance(self.path, str | Path) and str(self.path).strip() != "",
            message="must be a non-empty str | Path",
            field_name="path",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.display_name, str)
            and self.display_name.strip() != "",
            message="must be a non-empty str",
            field_name="display_name",
            exc=TypeError,
        )
        _require(
            condition=self.size_bytes is None
            or (isinstance(self.size_bytes, int) and self.size_bytes >= 0),
            message="must be an int >= 0 when provided",
            field_name="size_bytes",
        )

    @classmethod
    def from_path(
        cls, path: str | Path, *, display_name: str | None = None
    ) -> AttachmentDescriptor:
        """Build a descriptor for a local file, reading its size when present."""
        p = Path(path)
        size = p.stat().st_size if p.is_file() else None
        return cls(path=p, display_name=display_name or p.name, size_bytes=size)


# --- Transient network metadata ---


@dataclasses.dataclass(frozen=True, slots=True)
class RequestRecord:
    """Metadata captured when a request starts."""

    url: str
    method: str = "GET"
    resource_type: str | None = None
    initiator: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class ResponseRecord:
    """Metadata captured when response headers arrive."""

    status: int | None = None
    mime_type: str | None = None
    headers: Mapping[str, str] = dataclasses.field(
        default_factory=lambda: MappingProxyType({})
    )
    url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze_headers(self.headers))

    @property
    def content_type(self) -> str:
        """Return the ``content-type`` header value, matched case-insensitively."""
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""


# --- Failure evidence ---


@dataclasses.dataclass(frozen=True, slots=True)
class FailureRecord:
    """A single piece of network evidence that an attachment did not land.

    ``matched_attachments`` is None when the evidence could not be tied to a
    specific attachment name.
    """

    request_id: str
    url: str
    reason: str
    status: int | None = None
    matched_attachments: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        """Normalize matches to a tuple, collapsing empty matches to None."""
        _require(
            condition=isinstance(self.request_id, str) and self.request_id != "",
            message="must be a non-empty str",
            field_name="request_id",
            exc=TypeError,
        )
        matched = _as_str_tuple(self.matched_attachments, "matched_attachments")
        object.__setattr__(self, "matched_attachments", matched or None)


@dataclasses.dataclass(frozen=True, slots=True)
class MonitorResult:
    """Outcome of one network monitoring cycle that observed failures.

    When ``ambiguous`` is False, every name in ``failed`` is backed by at
    least one failure record whose ``matched_attachments`` contains it.
    """

    failed: tuple[str, ...]
    ambiguous: bool
    failures: tuple[FailureRecord, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "failed", _as_str_tuple(self.failed, "failed"))
        object.__setattr__(self, "failures", tuple(self.failures))

    @property
    def has_failure(self) -> bool:
        """True when the monitor observed any failure signal."""
        return bool(self.failures or self.failed or self.ambiguous)

    def unmatched_failures(self) -> tuple[FailureRecord, ...]:
        """Return records that could not be attributed to an attachment."""
        return tuple(f for f in self.failures if not f.matched_attachments)


@dataclasses.dataclass(frozen=True, slots=True)
class ParseFailure:
    """Failure phrasing found in rendered answer text."""

    failed: tuple[str, ...]
    ambiguous: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "failed", _as_str_tuple(self.failed, "failed"))


# --- UI signals and plans ---


@dataclasses.dataclass(frozen=True, slots=True)
class UiSignals:
    """Tri-state confirmations observed in the page UI.

    None means the signal was not observed; only an explicit negative counts
    against the UI looking healthy.
    """

    ui_confirmed: bool | None = None
    upload_timed_out: bool | None = None
    input_only: bool | None = None
    user_turn_verified: bool | None = None

    @property
    def looks_healthy(self) -> bool:
        return (
            self.ui_confirmed is not False
            and self.upload_timed_out is not True
            and self.input_only is not True
            and self.user_turn_verified is not False
        )


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPlan:
    """Decision produced once per cycle and consumed by the action executor."""

    should_retry: bool
    failed_attachments: tuple[AttachmentDescriptor, ...] = ()
    reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "failed_attachments", tuple(self.failed_attachments))

    @property
    def failed_names(self) -> tuple[str, ...]:
        return tuple(a.display_name for a in self.failed_attachments)

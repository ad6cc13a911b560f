"""Candidate request classification and per-cycle inspection budgets.

The heuristics here are tuned to upload/chat workflows where attachments are
posted through XHR/fetch calls or URLs that name the upload step. They are
deliberately data-driven so callers can adapt them to other services without
touching the collector.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from collections.abc import Iterable

    from attachment_guard.core.types import RequestRecord

DEFAULT_URL_TOKENS: tuple[str, ...] = (
    "upload",
    "attachment",
    "file",
    "document",
    "parse",
    "extract",
    "ingest",
    "asset",
)
DEFAULT_PASSIVE_METHODS: tuple[str, ...] = ("GET",)
DEFAULT_RESOURCE_TYPES: tuple[str, ...] = ("xhr", "fetch")
DEFAULT_MAX_BODIES = 12
DEFAULT_MAX_BODY_BYTES = 200_000


def normalize_hosts(hosts: Iterable[str] | None) -> tuple[str, ...]:
    """Lower-case and strip host names, dropping blanks."""
    return tuple(h.strip().lower() for h in (hosts or ()) if h and h.strip())


@dataclasses.dataclass(frozen=True, slots=True)
class CandidatePolicy:
    """Decides whether a request is relevant to attachment delivery.

    A request qualifies when its host is allowed and either its URL contains
    one of ``url_tokens`` or it is a non-passive XHR/fetch call.

    Attributes:
        allowed_hosts: Host allow-list; subdomains of an allowed host match.
            Empty means unrestricted.
        url_tokens: Lower-case substrings that mark upload-related URLs.
        passive_methods: Methods that never qualify on method alone.
        resource_types: Lower-case resource types that qualify a non-passive
            request.
    """

    allowed_hosts: tuple[str, ...] = ()
    url_tokens: tuple[str, ...] = DEFAULT_URL_TOKENS
    passive_methods: tuple[str, ...] = DEFAULT_PASSIVE_METHODS
    resource_types: tuple[str, ...] = DEFAULT_RESOURCE_TYPES

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_hosts", normalize_hosts(self.allowed_hosts))
        object.__setattr__(
            self, "url_tokens", tuple(t.lower() for t in self.url_tokens if t)
        )
        object.__setattr__(
            self, "passive_methods", tuple(m.upper() for m in self.passive_methods)
        )
        object.__setattr__(
            self, "resource_types", tuple(t.lower() for t in self.resource_types)
        )

    def is_allowed_host(self, url: str) -> bool:
        if not self.allowed_hosts:
            return True
        try:
            host = (urlsplit(url).hostname or "").lower()
        except ValueError:
            return False
        if not host:
            return False
        return any(host == h or host.endswith(f".{h}") for h in self.allowed_hosts)

    def is_candidate(self, info: RequestRecord | None) -> bool:
        """Return True if the request should be watched for failures."""
        if info is None or not info.url:
            return False
        if not self.is_allowed_host(info.url):
            return False
        lower_url = info.url.lower()
        if any(token in lower_url for token in self.url_tokens):
            return True
        method = (info.method or "GET").upper()
        resource_type = (info.resource_type or "").lower()
        return method not in self.passive_methods and resource_type in self.resource_types


@dataclasses.dataclass(frozen=True, slots=True)
class MonitorOptions:
    """Options for one network monitoring cycle.

    Attributes:
        max_bodies: Maximum number of response bodies inspected per cycle.
        max_body_bytes: Bodies larger than this are skipped as "no signal".
        policy: Candidate classification policy.
        verbose: Log body-read problems at INFO instead of DEBUG.
    """

    max_bodies: int = DEFAULT_MAX_BODIES
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    policy: CandidatePolicy = dataclasses.field(default_factory=CandidatePolicy)
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.max_bodies < 0:
            raise ValueError("MonitorOptions.max_bodies must be >= 0")
        if self.max_body_bytes < 1:
            raise ValueError("MonitorOptions.max_body_bytes must be >= 1")

    @classmethod
    def with_allowed_hosts(
        cls, hosts: Iterable[str], **overrides: int | bool
    ) -> MonitorOptions:
        """Shorthand for options restricted to ``hosts``."""
        policy = CandidatePolicy(allowed_hosts=tuple(hosts))
        return cls(policy=policy, **overrides)  # type: ignore[arg-type]

    @property
    def allowed_hosts(self) -> tuple[str, ...]:
        return self.policy.allowed_hosts

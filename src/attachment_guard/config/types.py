"""Core configuration data types, following the resolve-once, freeze-then-flow pattern."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, NamedTuple

from attachment_guard.network.policy import CandidatePolicy, MonitorOptions

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "file", "home", "default"]
SourceMap = Mapping[str, ConfigOrigin]

FIELD_ORDER: tuple[str, ...] = (
    "max_bodies",
    "max_body_bytes",
    "allowed_hosts",
    "url_tokens",
    "passive_methods",
    "inspect_resource_types",
    "max_attempts",
    "debug_dir",
    "verbose",
)


class ResolvedConfig(NamedTuple):
    """Configuration after merging every source, with per-field origins.

    Logically immutable; use :meth:`with_overrides` for variants and
    :meth:`to_frozen` for the form handed to runtime components.
    """

    max_bodies: int
    max_body_bytes: int
    allowed_hosts: tuple[str, ...]
    url_tokens: tuple[str, ...]
    passive_methods: tuple[str, ...]
    inspect_resource_types: tuple[str, ...]
    max_attempts: int
    debug_dir: Path | None
    verbose: bool

    origin: SourceMap

    def to_frozen(self) -> FrozenConfig:
        """Drop audit metadata and return the immutable runtime configuration."""
        return FrozenConfig(**{name: getattr(self, name) for name in FIELD_ORDER})

    def with_overrides(self, **overrides: object) -> ResolvedConfig:
        """Return a copy with programmatic overrides applied.

        Unknown fields are ignored. Values are not re-validated.
        """
        new_values = self._asdict()
        new_origin = dict(self.origin)
        for field, value in overrides.items():
            if field in FIELD_ORDER:
                new_values[field] = value
                new_origin[field] = "programmatic"
        new_values["origin"] = new_origin
        return ResolvedConfig(**new_values)

    def audit(self) -> str:
        """Human-readable report of each field's value and where it came from."""
        lines = []
        for field in FIELD_ORDER:
            origin = self.origin.get(field, "default")
            value = getattr(self, field)
            if isinstance(value, tuple):
                value = ",".join(value) or "<any>"
            if origin == "env":
                lines.append(f"{field}: env:ATTACHMENT_GUARD_{field.upper()}={value}")
            else:
                lines.append(f"{field}: {origin}:{value}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration consumed by the monitor and the delivery loop."""

    max_bodies: int
    max_body_bytes: int
    allowed_hosts: tuple[str, ...]
    url_tokens: tuple[str, ...]
    passive_methods: tuple[str, ...]
    inspect_resource_types: tuple[str, ...]
    max_attempts: int
    debug_dir: Path | None
    verbose: bool

    def candidate_policy(self) -> CandidatePolicy:
        return CandidatePolicy(
            allowed_hosts=self.allowed_hosts,
            url_tokens=self.url_tokens,
            passive_methods=self.passive_methods,
            resource_types=self.inspect_resource_types,
        )

    def monitor_options(self) -> MonitorOptions:
        """Build per-cycle monitor options from this configuration."""
        return MonitorOptions(
            max_bodies=self.max_bodies,
            max_body_bytes=self.max_body_bytes,
            policy=self.candidate_policy(),
            verbose=self.verbose,
        )

"""Configuration schema and validation using Pydantic.

Defines the settings that steer network monitoring and retry planning. Values
from environment variables (``ATTACHMENT_GUARD_`` prefix), TOML files and
programmatic overrides are validated and coerced here.
"""

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from attachment_guard.network.policy import (
    DEFAULT_MAX_BODIES,
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_PASSIVE_METHODS,
    DEFAULT_RESOURCE_TYPES,
    DEFAULT_URL_TOKENS,
)

ENV_PREFIX = "ATTACHMENT_GUARD_"

StrList = Annotated[tuple[str, ...], NoDecode]


class GuardSettings(BaseSettings):
    """Pydantic settings schema for attachment-guard configuration.

    List-valued fields accept either sequences or comma-separated strings,
    which is the natural shape for environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    max_bodies: int = Field(
        default=DEFAULT_MAX_BODIES,
        description="Maximum response bodies inspected per submission cycle",
        ge=0,
    )

    max_body_bytes: int = Field(
        default=DEFAULT_MAX_BODY_BYTES,
        description="Response bodies larger than this are not inspected",
        ge=1,
    )

    allowed_hosts: StrList = Field(
        default=(),
        description="Hosts whose requests are monitored (empty = any host)",
    )

    url_tokens: StrList = Field(
        default=DEFAULT_URL_TOKENS,
        description="URL substrings that mark attachment-related requests",
        min_length=1,
    )

    passive_methods: StrList = Field(
        default=DEFAULT_PASSIVE_METHODS,
        description="HTTP methods that never qualify a request on their own",
    )

    inspect_resource_types: StrList = Field(
        default=DEFAULT_RESOURCE_TYPES,
        description="Resource types that qualify a non-passive request",
    )

    max_attempts: int = Field(
        default=1,
        description="Number of resubmissions allowed after the first attempt",
        ge=0,
    )

    debug_dir: Path | None = Field(
        default=None,
        description="Directory for unresolved failure artifacts (disabled when unset)",
    )

    verbose: bool = Field(
        default=False,
        description="Surface body-read problems at INFO level",
    )

    # --- Validation Rules ---

    @field_validator(
        "allowed_hosts",
        "url_tokens",
        "passive_methods",
        "inspect_resource_types",
        mode="before",
    )
    @classmethod
    def split_list(cls, v: Any) -> Any:
        """Accept comma-separated strings for list-valued fields."""
        if isinstance(v, str):
            return tuple(part for part in v.split(",") if part.strip())
        if isinstance(v, list | set | frozenset):
            return tuple(v)
        return v

    @field_validator("allowed_hosts", "url_tokens", "inspect_resource_types")
    @classmethod
    def lower_items(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip().lower() for item in v if item.strip())

    @field_validator("passive_methods")
    @classmethod
    def upper_methods(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip().upper() for item in v if item.strip())

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for source tracking."""
        return {name: getattr(self, name) for name in type(self).model_fields}

"""Configuration resolution with precedence handling.

Precedence, highest first:
Programmatic > Environment > Project file > Home file > Defaults
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from attachment_guard.exceptions import ConfigFileError, ConfigurationError

from .loaders import EnvironmentConfigLoader, FileConfigLoader, get_effective_profile
from .schema import GuardSettings
from .types import ConfigOrigin, ResolvedConfig

log = logging.getLogger(__name__)


class SourceTracker:
    """Records which source supplied each configuration field."""

    def __init__(self) -> None:
        self._origins: dict[str, ConfigOrigin] = {}

    def set_origin(self, field: str, origin: ConfigOrigin) -> None:
        self._origins[field] = origin

    def get_source_map(self) -> dict[str, ConfigOrigin]:
        return dict(self._origins)


class ConfigResolver:
    """Merges configuration sources and validates the result once."""

    def __init__(self) -> None:
        self.file_loader = FileConfigLoader()
        self.env_loader = EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: dict[str, Any] | None = None,
        *,
        profile: str | None = None,
        use_env_file: str | Path | None = None,
        project_root: Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources.

        Raises:
            ConfigurationError: If the merged values fail validation.
            ConfigFileError: If the project file exists but is malformed.
        """
        tracker = SourceTracker()
        profile = get_effective_profile(profile)
        merged: dict[str, Any] = GuardSettings.model_construct().to_dict()
        for field in merged:
            tracker.set_origin(field, "default")

        try:
            home = self.file_loader.load_home_config(profile=profile)
        except ConfigFileError as e:
            # Home config errors are non-fatal
            log.warning("Ignoring home configuration: %s", e)
            home = {}

        layers: list[tuple[ConfigOrigin, dict[str, Any]]] = [
            ("home", home),
            ("file", self.file_loader.load_project_config(project_root, profile)),
            ("env", self.env_loader.load_env_config(use_env_file)),
            ("programmatic", dict(programmatic or {})),
        ]
        for origin, values in layers:
            for field, value in values.items():
                if field in merged:  # Only override known fields
                    merged[field] = value
                    tracker.set_origin(field, origin)

        try:
            settings = GuardSettings.model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid attachment-guard configuration: {e}") from e

        return ResolvedConfig(**settings.to_dict(), origin=tracker.get_source_map())

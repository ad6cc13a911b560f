"""Configuration management for attachment-guard.

Configuration is resolved once from all sources, validated, and frozen before
it is handed to runtime components:

- ResolvedConfig: merged values with per-field origin for audit
- FrozenConfig: immutable values that build monitor options
"""

from pathlib import Path
from typing import Any

from .loaders import (
    EnvironmentConfigLoader,
    FileConfigLoader,
    get_effective_profile,
    get_home_config_path,
)
from .resolver import ConfigResolver, SourceTracker
from .schema import ENV_PREFIX, GuardSettings
from .types import ConfigOrigin, FrozenConfig, ResolvedConfig, SourceMap

_resolver = ConfigResolver()


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    profile: str | None = None,
    use_env_file: str | Path | None = None,
    project_root: Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration from all sources with proper precedence.

    Args:
        programmatic: Overrides with the highest precedence. Unknown keys are
            ignored.
        profile: Profile overlay to apply from configuration files. Defaults
            to ``ATTACHMENT_GUARD_PROFILE``.
        use_env_file: Optional ``.env`` file read before the environment.
        project_root: Directory to start the pyproject.toml search from.

    Returns:
        ResolvedConfig with merged values and source tracking.

    Raises:
        ConfigurationError: If validation fails.
        ConfigFileError: If the project configuration file is malformed.

    Example:
        config = resolve_config({"max_attempts": 2}).to_frozen()
        options = config.monitor_options()
    """
    return _resolver.resolve(
        programmatic,
        profile=profile,
        use_env_file=use_env_file,
        project_root=project_root,
    )


def list_available_profiles(project_root: Path | None = None) -> dict[str, list[str]]:
    """List profile names defined in the project and home configuration files."""
    return _resolver.file_loader.list_profiles(project_root)


__all__ = [
    "ENV_PREFIX",
    "ConfigOrigin",
    "ConfigResolver",
    "EnvironmentConfigLoader",
    "FileConfigLoader",
    "FrozenConfig",
    "GuardSettings",
    "ResolvedConfig",
    "SourceMap",
    "SourceTracker",
    "get_effective_profile",
    "get_home_config_path",
    "list_available_profiles",
    "resolve_config",
]

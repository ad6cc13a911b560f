"""Configuration loaders for environment variables and TOML files.

Loaders return plain dictionaries of raw values; validation happens once, in
the resolver, against :class:`GuardSettings`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import tomllib
from typing import Any

from dotenv import dotenv_values

from attachment_guard.exceptions import ConfigFileError

from .schema import ENV_PREFIX, GuardSettings

log = logging.getLogger(__name__)

CONFIG_TOOL_NAME = "attachment_guard"
HOME_CONFIG_ENV = f"{ENV_PREFIX}CONFIG_HOME"
PROFILE_ENV = f"{ENV_PREFIX}PROFILE"


def get_home_config_path() -> Path:
    """Return the home config path, honoring ``ATTACHMENT_GUARD_CONFIG_HOME``."""
    override = os.getenv(HOME_CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / f"{CONFIG_TOOL_NAME}.toml"


def get_effective_profile(profile: str | None = None) -> str | None:
    return profile or os.getenv(PROFILE_ENV) or None


def _field_names() -> tuple[str, ...]:
    return tuple(GuardSettings.model_fields)


class EnvironmentConfigLoader:
    """Loads ``ATTACHMENT_GUARD_*`` variables, optionally seeded from a .env file."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Return raw values for fields that are set in the environment.

        Values from ``env_file`` never override variables already present in
        the process environment.

        Raises:
            FileNotFoundError: If ``env_file`` is given but does not exist.
        """
        environ: dict[str, str] = {}
        if env_file is not None:
            env_path = Path(env_file)
            if not env_path.exists():
                raise FileNotFoundError(f"Environment file not found: {env_path}")
            environ.update(
                {k: v for k, v in dotenv_values(env_path).items() if v is not None}
            )
        environ.update(os.environ)

        values: dict[str, Any] = {}
        for field in _field_names():
            key = f"{ENV_PREFIX}{field.upper()}"
            if key in environ:
                values[field] = environ[key]
        return values


class FileConfigLoader:
    """Loads configuration from ``pyproject.toml`` and the home config file.

    Project files use a ``[tool.attachment_guard]`` table; the home file keeps
    the same keys at top level. Both support ``profiles.<name>`` overlays.
    """

    def load_project_config(
        self, project_root: Path | None = None, profile: str | None = None
    ) -> dict[str, Any]:
        """Load the ``[tool.attachment_guard]`` table of the nearest pyproject.toml.

        Raises:
            ConfigFileError: If the file exists but cannot be parsed.
        """
        path = self.find_pyproject_toml(project_root)
        if path is None:
            return {}
        data = self._read_toml(path)
        section = data.get("tool", {}).get(CONFIG_TOOL_NAME, {})
        return self._extract(section, path, profile)

    def load_home_config(self, profile: str | None = None) -> dict[str, Any]:
        """Load the home config file.

        Raises:
            ConfigFileError: If the file exists but cannot be parsed.
        """
        path = get_home_config_path()
        if not path.is_file():
            return {}
        return self._extract(self._read_toml(path), path, profile)

    def list_profiles(self, project_root: Path | None = None) -> dict[str, list[str]]:
        """Return profile names found in the project and home files."""
        found: dict[str, list[str]] = {"project": [], "home": []}
        project = self.find_pyproject_toml(project_root)
        if project is not None:
            section = self._read_toml(project).get("tool", {}).get(CONFIG_TOOL_NAME, {})
            found["project"] = sorted(section.get("profiles", {}))
        home = get_home_config_path()
        if home.is_file():
            found["home"] = sorted(self._read_toml(home).get("profiles", {}))
        return found

    @staticmethod
    def find_pyproject_toml(project_root: Path | None = None) -> Path | None:
        """Search ``project_root`` (default: cwd) and its parents for pyproject.toml."""
        start = (project_root or Path.cwd()).resolve()
        for directory in (start, *start.parents):
            candidate = directory / "pyproject.toml"
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def _read_toml(path: Path) -> dict[str, Any]:
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigFileError(path, f"Failed to parse TOML: {e}", cause=e) from e

    @staticmethod
    def _extract(
        section: dict[str, Any], path: Path, profile: str | None
    ) -> dict[str, Any]:
        if not isinstance(section, dict):
            raise ConfigFileError(path, f"[{CONFIG_TOOL_NAME}] must be a table")
        config = {k: v for k, v in section.items() if k != "profiles"}
        effective = get_effective_profile(profile)
        if effective:
            overlay = section.get("profiles", {}).get(effective)
            if overlay is None:
                log.debug("Profile '%s' not present in %s", effective, path)
            elif isinstance(overlay, dict):
                config.update(overlay)
            else:
                raise ConfigFileError(path, f"Profile '{effective}' must be a table")
        return config

"""CLI entry point for configuration introspection.

Usage:
    python -m attachment_guard.config
    python -m attachment_guard.config --check
    python -m attachment_guard.config --json
"""

from __future__ import annotations

import argparse
import json
import sys

from attachment_guard.exceptions import ConfigurationError

from . import list_available_profiles, resolve_config

# ruff: noqa: T201


def main(argv: list[str] | None = None) -> int:
    """Print the effective configuration; return a process exit code."""
    parser = argparse.ArgumentParser(
        description="Inspect attachment-guard configuration",
        prog="python -m attachment_guard.config",
    )
    parser.add_argument("--profile", help="Configuration profile to use")
    parser.add_argument("--env-file", help="Optional .env file to load first")
    parser.add_argument(
        "--json", action="store_true", help="Output as JSON instead of text"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only validate configuration (exit code 0=valid, 1=invalid)",
    )
    args = parser.parse_args(argv)

    try:
        resolved = resolve_config(profile=args.profile, use_env_file=args.env_file)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    if args.check:
        return 0

    if args.json:
        values = resolved._asdict()
        values["debug_dir"] = str(resolved.debug_dir) if resolved.debug_dir else None
        values["origin"] = dict(resolved.origin)
        values["profiles"] = list_available_profiles()
        print(json.dumps(values, indent=2))
    else:
        print(resolved.audit())
    return 0


if __name__ == "__main__":
    sys.exit(main())

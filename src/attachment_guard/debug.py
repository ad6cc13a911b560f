"""Postmortem artifacts for unresolved attachment failures.

When the network monitor reports failures it could not attribute to an
attachment, callers can persist the raw failure records for later analysis.
Files are written atomically (temp file + rename) and named by timestamp and
attempt so that successive cycles never overwrite each other.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime
import json
import logging
from pathlib import Path
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import os

    from attachment_guard.core.types import MonitorResult

log = logging.getLogger(__name__)

_LABEL_RE = re.compile(r"[^a-zA-Z0-9]+")


def needs_artifact(result: MonitorResult | None) -> bool:
    """True when ``result`` holds ambiguous or unattributed failures."""
    return result is not None and (result.ambiguous or bool(result.unmatched_failures()))


def _slug(label: str) -> str:
    return _LABEL_RE.sub("-", label).strip("-").lower()


class FailureArtifactWriter:
    """Writes failure records as timestamped JSON files under ``directory``."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def write(
        self,
        result: MonitorResult,
        *,
        attempt: int,
        label: str | None = None,
        now: datetime | None = None,
    ) -> Path:
        """Persist ``result`` and return the artifact path."""
        now = now or datetime.now(UTC)
        stamp = now.strftime("%Y%m%d-%H%M%S")
        name = f"attachment-failures-{stamp}-a{attempt}"
        if label and _slug(label):
            name += f"-{_slug(label)}"
        path = self._directory / f"{name}.json"

        payload: dict[str, Any] = {
            "attempt": attempt,
            "label": label,
            "written_at": now.isoformat(),
            "failed": list(result.failed),
            "ambiguous": result.ambiguous,
            "failures": [asdict(f) for f in result.failures],
        }
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(path)
        log.info("Saved unresolved attachment failures to %s", path)
        return path

"""Failure detectors for attachment-related response bodies.

Two detectors run over each inspected body:

- Structured: the body is parsed as JSON and walked to a bounded depth looking
  for explicit failure flags (``success: false``, ``ok: false``, an error
  ``status``) or populated error fields.
- Textual: the lower-cased body is tested against a list of failure phrases,
  and attachment names are matched independently.

A body is reported as a failure only when the structured detector fires, or a
phrase matches together with a file/upload hint or an attachment name. Both
detectors are pure and never raise on malformed input.
"""

from __future__ import annotations

import dataclasses
import json
from pathlib import PurePath
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

ERROR_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"failed to parse",
        r"could not parse",
        r"couldn't parse",
        r"unable to parse",
        r"failed to read",
        r"could not read",
        r"couldn't read",
        r"unable to read",
        r"failed to process",
        r"could not process",
        r"couldn't process",
        r"unable to process",
        r"failed to upload",
        r"upload failed",
        r"unsupported file",
        r"invalid file",
        r"file too large",
        r"payload too large",
        r"corrupt",
        r"virus",
        r"malware",
        r"timeout",
        r"permission",
        r"access denied",
        r"\berror\b",
    )
)

FILE_HINTS: tuple[str, ...] = ("file", "attachment", "upload", "parse")
ERROR_FIELDS = frozenset({"error", "errors", "message", "detail", "reason"})
FAILURE_STATUSES = frozenset({"error", "failed", "failure"})
MAX_JSON_DEPTH = 4

_EXTENSION_RE = re.compile(r"\.[a-z0-9]{1,10}$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value.lower()).strip()


def normalize_attachment_name(value: str) -> str:
    """Reduce a path or display name to its lower-cased basename."""
    return normalize_text(PurePath(value.replace("\\", "/")).name or value)


def strip_extension(name: str) -> str:
    return _EXTENSION_RE.sub("", name)


def has_error_phrase(text: str) -> bool:
    return any(p.search(text) for p in ERROR_PATTERNS)


def find_attachment_matches(text: str, names: Iterable[str]) -> list[str]:
    """Return the names that appear in ``text``, in input order.

    Both sides are expected to be lower-cased already. A name also matches
    when its extension-stripped form (at least four characters) appears.
    """
    matches: list[str] = []
    for name in names:
        if not name or name in matches:
            continue
        if name in text:
            matches.append(name)
            continue
        stem = strip_extension(name)
        if len(stem) >= 4 and stem in text:
            matches.append(name)
    return matches


@dataclasses.dataclass(slots=True)
class StructuredError:
    """Result of walking a parsed JSON document for failure markers."""

    has_error: bool = False
    messages: list[str] = dataclasses.field(default_factory=list)


def extract_json_error(document: Any) -> StructuredError:
    """Walk a parsed JSON value looking for explicit failure markers."""
    found = StructuredError()

    def record_string(raw: Any) -> None:
        if isinstance(raw, str) and raw.strip():
            found.messages.append(raw.strip())

    def visit(node: Any, depth: int) -> None:
        if not node or depth > MAX_JSON_DEPTH:
            return
        if isinstance(node, list):
            for item in node:
                visit(item, depth + 1)
            return
        if not isinstance(node, dict):
            return
        for key, raw in node.items():
            lowered = str(key).lower()
            if lowered in ("success", "ok") and raw is False:
                found.has_error = True
            elif lowered == "status" and isinstance(raw, str):
                if raw.lower() in FAILURE_STATUSES:
                    found.has_error = True
                    found.messages.append(raw)
            elif lowered in ERROR_FIELDS:
                if raw:
                    found.has_error = True
                if isinstance(raw, list):
                    for entry in raw:
                        if isinstance(entry, str):
                            record_string(entry)
                        else:
                            visit(entry, depth + 1)
                elif isinstance(raw, str):
                    record_string(raw)
                elif isinstance(raw, dict):
                    visit(raw, depth + 1)
            elif isinstance(raw, dict | list):
                visit(raw, depth + 1)

    visit(document, 0)
    return found


def _parse_structured(body_text: str) -> StructuredError | None:
    trimmed = body_text.strip()
    looks_json = (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    )
    if not looks_json:
        return None
    try:
        document = json.loads(trimmed)
    except ValueError:
        return None
    return extract_json_error(document)


@dataclasses.dataclass(frozen=True, slots=True)
class BodyFailure:
    """A failure detected in a response body.

    ``matched`` holds normalized attachment names found in the body.
    """

    matched: tuple[str, ...]
    reason: str


def detect_failure_from_body(
    body_text: str, normalized_names: Sequence[str]
) -> BodyFailure | None:
    """Run both detectors over ``body_text``; return None when there is no signal."""
    lowered = body_text.lower()
    matched = find_attachment_matches(lowered, normalized_names)
    phrase_hit = has_error_phrase(lowered)

    structured = _parse_structured(body_text)
    structured_hit = structured is not None and structured.has_error

    file_hint = bool(matched) or any(hint in lowered for hint in FILE_HINTS)
    if not structured_hit and not (phrase_hit and file_hint):
        return None

    messages = structured.messages if structured is not None and structured_hit else []
    if messages:
        reason = messages[0]
    elif phrase_hit:
        reason = "attachment processing error"
    else:
        reason = "attachment error"
    return BodyFailure(matched=tuple(matched), reason=reason)

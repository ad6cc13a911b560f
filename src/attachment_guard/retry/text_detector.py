"""Failure phrasing detection in rendered answer text.

Chat services that fail to ingest an attachment often say so in the answer
itself ("Failed to parse file report.pdf"). This detector scans the answer
line by line for such phrasing and correlates matching lines with attachment
names. It is a pure function of its inputs.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from attachment_guard.core.types import ParseFailure
from attachment_guard.network.inspection import (
    find_attachment_matches,
    normalize_attachment_name,
    normalize_text,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

_NEGATION = r"(?:failed|unable|could\s?not|couldn['’]t|cannot|can['’]t|can\s+not)"
_ACTION = r"(?:parse|read|extract|process)"

PARSE_FAILURE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b{_NEGATION}\s+(?:to\s+)?(?:be\s+)?{_ACTION}"),
    re.compile(r"\berror\s+(?:while\s+|when\s+)?(?:parsing|reading|extracting|processing)"),
    re.compile(r"\b(?:parse|parsing|read|extraction|processing)\s+(?:error|failed|failure)"),
    re.compile(r"\bunsupported\s+file"),
)


def _failure_lines(text: str) -> list[str]:
    lines = (normalize_text(line) for line in text.splitlines())
    return [
        line for line in lines if line and any(p.search(line) for p in PARSE_FAILURE_PATTERNS)
    ]


def detect_attachment_parse_failures(
    answer_text: str, attachment_names: Iterable[str]
) -> ParseFailure | None:
    """Detect attachment processing failures reported in ``answer_text``.

    Returns None when no line carries failure phrasing. Otherwise, names that
    appear on a failing line (directly or without their extension) are
    reported; when none do, every attachment is reported and the result is
    marked ambiguous.
    """
    if not answer_text:
        return None
    lines = _failure_lines(answer_text)
    if not lines:
        return None

    names: dict[str, str] = {}
    for name in attachment_names:
        if name:
            names.setdefault(normalize_attachment_name(name), name)

    matched: set[str] = set()
    for line in lines:
        matched.update(find_attachment_matches(line, names))
    failed = tuple(display for key, display in names.items() if key in matched)
    if failed:
        return ParseFailure(failed=failed, ambiguous=False)
    return ParseFailure(failed=tuple(names.values()), ambiguous=True)

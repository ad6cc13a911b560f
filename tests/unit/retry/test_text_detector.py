"""Unit tests for answer-text failure detection."""

import pytest

from attachment_guard.retry.text_detector import detect_attachment_parse_failures

pytestmark = pytest.mark.unit

ATTACHMENT_NAMES = ["large.pdf", "small.txt", "notes.md"]


class TestDetectAttachmentParseFailures:
    def test_explicit_file_parse_failure(self):
        result = detect_attachment_parse_failures(
            "Failed to parse file large.pdf. Please try again.", ATTACHMENT_NAMES
        )
        assert result is not None
        assert result.failed == ("large.pdf",)
        assert result.ambiguous is False

    def test_name_without_extension(self):
        result = detect_attachment_parse_failures("Could not parse file Large.", ATTACHMENT_NAMES)
        assert result is not None
        assert result.failed == ("large.pdf",)

    def test_unnamed_failure_reports_all_attachments(self):
        result = detect_attachment_parse_failures(
            "Unable to parse uploaded file.", ATTACHMENT_NAMES
        )
        assert result is not None
        assert sorted(result.failed) == sorted(ATTACHMENT_NAMES)
        assert result.ambiguous is True

    @pytest.mark.parametrize(
        "text",
        [
            "All good. Attachments processed successfully.",
            "Everything looks good.",
            "",
        ],
    )
    def test_no_failure_phrasing(self, text):
        assert detect_attachment_parse_failures(text, ATTACHMENT_NAMES) is None

    @pytest.mark.parametrize(
        "text",
        [
            "I couldn't read small.txt, it appears empty.",
            "I can’t extract text from small.txt.",
            "small.txt could not be processed",
            "There was an error while parsing small.txt",
            "Extraction failed for small.txt",
            "Unsupported file type: small.txt",
        ],
    )
    def test_phrasing_variants(self, text):
        result = detect_attachment_parse_failures(text, ATTACHMENT_NAMES)
        assert result is not None
        assert result.failed == ("small.txt",)

    def test_only_failing_lines_are_correlated(self):
        text = "Here is a summary of notes.md.\nHowever, I was unable to read large.pdf."
        result = detect_attachment_parse_failures(text, ATTACHMENT_NAMES)
        assert result is not None
        assert result.failed == ("large.pdf",)

    def test_multiple_names_keep_attachment_order(self):
        text = "Failed to process notes.md and large.pdf"
        result = detect_attachment_parse_failures(text, ATTACHMENT_NAMES)
        assert result is not None
        assert result.failed == ("large.pdf", "notes.md")

    def test_no_attachments_gives_empty_ambiguous_result(self):
        result = detect_attachment_parse_failures("Failed to parse the file.", [])
        assert result is not None
        assert result.failed == ()
        assert result.ambiguous is True

    def test_is_pure(self):
        names = list(ATTACHMENT_NAMES)
        first = detect_attachment_parse_failures("Failed to parse large.pdf", names)
        second = detect_attachment_parse_failures("Failed to parse large.pdf", names)
        assert first == second
        assert names == ATTACHMENT_NAMES

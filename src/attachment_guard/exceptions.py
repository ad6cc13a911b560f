"""Exceptions for attachment delivery monitoring and retry planning"""  # noqa: D415

from __future__ import annotations

from pathlib import Path


class AttachmentGuardError(Exception):
    """Base exception for attachment-guard errors"""  # noqa: D415


class ConfigurationError(AttachmentGuardError):
    """Raised when resolved configuration values fail validation"""  # noqa: D415


class ConfigFileError(ConfigurationError):
    """Raised when a configuration file exists but cannot be loaded."""

    def __init__(
        self, file_path: Path, message: str, cause: Exception | None = None
    ) -> None:
        """Initialize with file path, message, and optional cause.

        Args:
            file_path: The file that failed to load
            message: Human-readable error message
            cause: The underlying exception that caused the failure
        """
        self.file_path = file_path
        self.message = message
        self.cause = cause
        super().__init__(f"Config file error in {file_path}: {message}")


class MonitorStateError(AttachmentGuardError):
    """Raised when a network monitor is used outside its start/stop lifecycle"""  # noqa: D415


class SubmissionError(AttachmentGuardError):
    """Raised when the action executor fails during a submission attempt."""

    def __init__(self, attempt: int, cause: Exception) -> None:
        """Initialize with the failing attempt number and underlying error."""
        self.attempt = attempt
        self.cause = cause
        super().__init__(f"Submission attempt {attempt} failed: {cause}")

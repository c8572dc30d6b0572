"""commitlink exception hierarchy."""

from __future__ import annotations


class CommitLinkError(Exception):
    """Base exception for all commitlink errors."""


class ConfigurationError(CommitLinkError):
    """Raised when configuration is missing, invalid, or names an unsupported backend."""


class ConfigNotFoundError(ConfigurationError):
    """Raised when an explicitly requested configuration file does not exist."""


class ProviderError(CommitLinkError):
    """Raised when a text-generation backend answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ProviderError):
    """Raised on 401/403 from a backend or the issue tracker."""


class NetworkError(CommitLinkError):
    """Raised when a remote host cannot be reached."""


class ProviderResponseError(CommitLinkError):
    """Raised when a success response lacks the expected text field."""


class CancelledError(CommitLinkError):
    """Raised at a suspend point once the user has cancelled the run."""


class ClassificationParseError(CommitLinkError):
    """Backend classification output could not be parsed or validated."""


class IssueOperationError(CommitLinkError):
    """Raised inside the issue client when a tracker call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DiffUnavailableError(CommitLinkError):
    """Raised when the pending change cannot be read from version control."""

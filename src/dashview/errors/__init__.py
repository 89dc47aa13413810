"""Custom exception hierarchy for dashview."""

from __future__ import annotations


class DashviewError(Exception):
    """Base class for all custom errors raised by dashview."""


# --- Request lifecycle ---

class CancellationError(DashviewError):
    """Raised inside a fetch whose request has been superseded or aborted.

    Never surfaced to the user; the request coordinator absorbs it.
    """


class NetworkError(DashviewError):
    """Raised when the transport cannot complete a request."""

    retryable: bool = True


class HttpStatusError(NetworkError):
    """Raised when the server answers with a non-success status code."""

    def __init__(self, message: str, status: int, payload: object | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status >= 500 or self.status == 429


class AuthExpiredError(DashviewError):
    """Raised when credentials cannot be refreshed and the session is over."""


class ShapeMismatchError(DashviewError):
    """Raised when a response does not have the shape an adapter expects."""


class FilterValidationError(DashviewError, ValueError):
    """Raised when a filter or query value is rejected before any fetch."""

    def __init__(self, message: str, data_key: str | None = None) -> None:
        super().__init__(message)
        self.data_key = data_key


# --- DI-specific errors ---

class CircularDependencyError(DashviewError):
    """Raised when a circular dependency is detected during resolution."""


class ResolutionError(DashviewError):
    """Raised when a dependency cannot be resolved."""


# --- Settings ---

class SettingsError(DashviewError):
    """Base class for settings related failures."""


class SettingsLoadError(SettingsError):
    """Raised when the settings file cannot be parsed or loaded."""


class SettingsValidationError(SettingsError):
    """Raised when settings data fails schema validation."""

"""
Custom exception classes for the hotswap monitor.

Construction-time problems are raised as ``ConfigurationError``. Failures that
happen while a scan is running are never raised out of the detector: they are
wrapped in one of the scan-time errors below and handed to an error sink.
"""

from typing import Any


class BaseError(Exception):
    """
    Base exception class for all hotswap monitor errors.

    All custom exceptions in the package inherit from this base class so that
    error sinks and callers can handle them uniformly.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    @property
    def path(self) -> str | None:
        """Path the error relates to, if any."""
        return self.context.get("path")

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"context={self.context})"
        )


class ConfigurationError(BaseError):
    """Raised when a watch root or a setting is invalid. Always fatal."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class FileAccessError(BaseError):
    """Reported when a single filesystem read fails during a scan."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        underlying_error: BaseException | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="FILE_ACCESS_ERROR",
            context=context,
            cause=underlying_error,
        )


class ArchiveReadError(BaseError):
    """Reported when an archive cannot be opened or enumerated."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        entry: str | None = None,
        operation: str | None = None,
        underlying_error: BaseException | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if entry:
            context["entry"] = entry
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="ARCHIVE_READ_ERROR",
            context=context,
            cause=underlying_error,
        )


class ListenerError(BaseError):
    """Reported when a registered listener raises while handling an event."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        entry: str | None = None,
        listener: str | None = None,
        underlying_error: BaseException | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if entry:
            context["entry"] = entry
        if listener:
            context["listener"] = listener

        super().__init__(
            message,
            error_code="LISTENER_ERROR",
            context=context,
            cause=underlying_error,
        )


class MonitoringError(BaseError):
    """Raised or reported when monitoring lifecycle operations fail."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        underlying_error: BaseException | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="MONITORING_ERROR",
            context=context,
            cause=underlying_error,
        )


def raise_config_error(
    message: str,
    config_key: str,
    expected_type: str | None = None,
    actual_value: Any | None = None,
) -> None:
    """Raise a configuration error with context."""
    raise ConfigurationError(
        message=message,
        config_key=config_key,
        expected_type=expected_type,
        actual_value=actual_value,
    )

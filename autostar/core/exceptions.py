"""Structured exception hierarchy for request binding and route registration.

This module defines the complete exception system for AutoStar, providing a
rich error model that supports debugging, monitoring, and client
communication.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **AutoStarError**: Base exception with rich context and fingerprinting
- **Specialized exceptions**: Parse, request validation, response validation,
  registration and coercion failures
- **FieldError**: The field-level detail record carried by validation errors

The hierarchy separates failures caused by the client (parse and request
validation, LOW severity), failures caused by the service contradicting its
own declared contract (response validation, HIGH severity), and programmer
errors detected while the application is being assembled (registration,
CRITICAL severity).
"""

import hashlib
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for AutoStar.

    These error codes provide consistent identification of error types
    across the binding pipeline, enabling proper error handling and monitoring.
    """

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""

    # Request errors
    PARSE_ERROR = "PARSE_ERROR"
    """A value could not be extracted from the request or converted to its type."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """The extracted request record violated one or more validation rules."""

    # Response errors
    RESPONSE_VALIDATION_ERROR = "RESPONSE_VALIDATION_ERROR"
    """A handler returned a value that violates the declared response schema."""

    # Startup errors
    REGISTRATION_ERROR = "REGISTRATION_ERROR"
    """A route, handler or record type could not be registered."""

    COERCION_ERROR = "COERCION_ERROR"
    """A raw value could not be converted to the requested static type."""


class Severity(Enum):
    """Severity levels for AutoStar errors.

    These severity levels help categorize the impact and urgency of errors,
    enabling appropriate handling, monitoring, and alerting strategies.
    """

    LOW = "LOW"
    """Expected errors caused by client input."""

    MEDIUM = "MEDIUM"
    """Errors that affect a single operation but not the service as a whole."""

    HIGH = "HIGH"
    """Errors where the service serves data contradicting its own contract."""

    CRITICAL = "CRITICAL"
    """Errors that must stop the application from starting."""


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single field-level failure.

    Attributes:
        field: Dotted path of wire keys (``address.city``, ``items[0].name``).
        message: Human-readable description of the failure.
        tag: Name of the failing rule, if any.
    """

    field: str
    message: str
    tag: str | None = None


class AutoStarError(Exception):
    """Base exception class for all AutoStar exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    # Subclasses raised on hot paths skip the stack capture
    capture_stack: bool = True

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time, excluding this frame
        self.stack_trace = traceback.format_stack()[:-1] if self.capture_stack else []

        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Returns:
            str: A hash string built from the error type and the raising location
        """
        max_frames = 5
        relevant_frames = (
            self.stack_trace[-max_frames:]
            if len(self.stack_trace) > max_frames
            else self.stack_trace
        )

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"

        for frame in relevant_frames:
            if "site-packages" not in frame and "autostar/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Determine if this is an expected error based on severity.

        Returns:
            bool: True if the error is expected (LOW or MEDIUM severity)
        """
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    @property
    def should_alert(self) -> bool:
        """Determine if this error should trigger alerts.

        Returns:
            bool: True if the error should trigger alerts (HIGH or CRITICAL severity)
        """
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    @property
    def details(self) -> list[FieldError]:
        """Field-level details for the wire representation."""
        return []

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception.

        Returns:
            str: A string showing the class name, error code, message, severity,
                and context
        """
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ParseError(AutoStarError):
    """Exception raised when a single field cannot be extracted or converted.

    Args:
        field: Wire key of the failing field (``body`` for body decoding failures)
        source: Source the value was read from (body, query, path, ...)
        message: Description of the failure
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        field: str,
        source: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        self.field = field
        self.source = source
        super().__init__(
            ErrorCode.PARSE_ERROR,
            message,
            Severity.LOW,
            {"field": field, "source": source},
            cause,
        )

    @property
    def details(self) -> list[FieldError]:
        return [FieldError(field=self.field, message=self.message, tag="parse")]

    def __str__(self) -> str:
        return f"{self.field} ({self.source}): {self.message}"


class RequestValidationError(AutoStarError):
    """Exception raised when an extracted request record violates its rules.

    Args:
        details: Every rule violation found on the record
        message: Summary message (defaults to "Validation failed")
    """

    def __init__(
        self,
        details: list[FieldError],
        message: str = "Validation failed",
    ) -> None:
        self._details = list(details)
        super().__init__(
            ErrorCode.VALIDATION_ERROR,
            message,
            Severity.LOW,
            {"fields": [detail.field for detail in self._details]},
        )

    @property
    def details(self) -> list[FieldError]:
        return list(self._details)


class ResponseValidationError(AutoStarError):
    """Exception raised when a handler's return value violates the response schema.

    This is a programmer error: the service is about to serve data that
    contradicts its own declared contract.

    Args:
        details: Every rule violation found on the returned value
        message: Summary message (defaults to "Response validation failed")
    """

    def __init__(
        self,
        details: list[FieldError],
        message: str = "Response validation failed",
    ) -> None:
        self._details = list(details)
        super().__init__(
            ErrorCode.RESPONSE_VALIDATION_ERROR,
            message,
            Severity.HIGH,
            {"fields": [detail.field for detail in self._details]},
        )

    @property
    def details(self) -> list[FieldError]:
        return list(self._details)


class RegistrationError(AutoStarError):
    """Exception raised when a route cannot be registered.

    Raised while the application is being assembled, for example when a
    handler does not match one of the two supported shapes. It is fatal and
    must stop process startup.

    Args:
        message: Description of the problem
        route: ``METHOD path`` of the offending route, if known
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        route: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.route = route
        if route:
            message = f"{route}: {message}"
        super().__init__(
            ErrorCode.REGISTRATION_ERROR,
            message,
            Severity.CRITICAL,
            {"route": route} if route else None,
            cause,
        )


class CoercionError(AutoStarError):
    """Exception raised when a raw value cannot be converted to a static type.

    The extractor converts it into a ParseError naming the field and source.
    Raised once per failed union arm, so no stack trace is captured.

    Args:
        message: Description of the conversion failure
        target: Name of the requested type
        value: The offending raw value
    """

    capture_stack = False

    def __init__(
        self,
        message: str,
        target: str | None = None,
        value: Any = None,  # noqa: ANN401 - any raw request value
    ) -> None:
        self.target = target
        self.value = value
        super().__init__(
            ErrorCode.COERCION_ERROR,
            message,
            Severity.LOW,
            {"target": target} if target else None,
        )

"""Custom exceptions for MyBillPort.

This module provides a hierarchy of exception classes for consistent error
handling across the bill analysis layer. All exceptions inherit from
BillPortError, making it easy to catch all application-specific errors.

Example:
    try:
        insight = generator.generate(history, biller_name="Rogers")
    except InsightUnavailableError as e:
        if e.recoverable:
            # Fall back to the rule-based analyzer
            insight = analyze(history, biller_name="Rogers")
        else:
            raise
    except BillPortError as e:
        logger.error("operation_failed", error=str(e))
"""

from typing import Any, Optional


class BillPortError(Exception):
    """Base exception for all MyBillPort errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the error is potentially recoverable.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize BillPortError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the error is potentially recoverable through
                retry or alternative approaches. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class ValidationError(BillPortError):
    """Error raised when a caller passes invalid arguments.

    Bad-but-present data inside records (an unparseable amount in a
    transaction feed, for example) is dropped rather than raised. This
    exception is reserved for misuse such as a missing due date or a
    negative due-soon window.

    Example:
        >>> raise ValidationError(
        ...     "Payment amount must be positive",
        ...     field="amount",
        ...     value="-5",
        ...     constraint="amount > 0",
        ... )
        ValidationError: Payment amount must be positive
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize ValidationError.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            value: The invalid value (avoid including sensitive data).
            constraint: Description of the validation rule violated.
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed by user correction.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.field = field
        self.value = value
        self.constraint = constraint

        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = value
        if constraint:
            self.details["constraint"] = constraint


class InsightUnavailableError(BillPortError):
    """Error raised when the generative insight path cannot produce a result.

    Network errors, non-2xx responses, unparsable JSON and missing fields
    all collapse into this one condition. InsightService catches it and
    falls back to the deterministic analyzer, so it never reaches end users.

    Example:
        >>> raise InsightUnavailableError(
        ...     "Model response did not contain a JSON object",
        ...     provider="anthropic",
        ...     operation="generate_insight",
        ... )
        InsightUnavailableError: Model response did not contain a JSON object
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        api_error: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize InsightUnavailableError.

        Args:
            message: Human-readable error description.
            provider: Identifier of the generative-text provider.
            operation: The specific operation being attempted.
            api_error: The underlying API error message, if any.
            details: Optional dictionary with additional context.
            recoverable: Whether a fallback can still produce a result.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.provider = provider
        self.operation = operation
        self.api_error = api_error

        if provider:
            self.details["provider"] = provider
        if operation:
            self.details["operation"] = operation
        if api_error:
            self.details["api_error"] = api_error


class ConfigurationError(BillPortError):
    """Error raised when configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError(
        ...     "Missing required API key",
        ...     config_key="ANTHROPIC_API_KEY",
        ...     expected="Valid Anthropic API key",
        ... )
        ConfigurationError: Missing required API key
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            config_key: The name of the configuration key that is problematic.
            expected: Description of what value was expected.
            actual: The actual value found (avoid including secrets).
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed at runtime.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "BillPortError",
    "ValidationError",
    "InsightUnavailableError",
    "ConfigurationError",
]

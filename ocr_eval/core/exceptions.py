"""Unified exception hierarchy for the OCR evaluation toolkit.

Only programmer errors and invalid configuration raise. Data-quality
problems degrade scores instead, and operational problems are reported
through the alert channels.
"""

from typing import Optional, Dict, Any


class OcrEvalError(Exception):
    """Base exception for all OCR evaluation errors.

    All custom exceptions inherit from this to enable
    catch-all error handling when needed.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        """Initialize error.

        Args:
            message: Human-readable error message
            details: Additional context (optional)
            recoverable: Whether the error can be recovered from
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/display.

        Returns:
            Dictionary with error details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details
        }


class OperationNotFoundError(OcrEvalError, KeyError):
    """An operation id was completed or failed without being started.

    Raised when:
    - complete_operation() is called with an unknown id
    - record_error() is called with an unknown id
    - the same operation is completed twice

    This is a caller bug, never a data problem.
    """

    def __init__(self, operation_id: str, **kwargs):
        """Initialize operation-not-found error.

        Args:
            operation_id: The id that is not being tracked
            **kwargs: Additional details
        """
        details = {
            "operation_id": operation_id,
            **kwargs
        }
        super().__init__(
            f"Operation {operation_id} not found",
            details=details,
            recoverable=False
        )
        self.operation_id = operation_id


class EmptyBenchmarkError(OcrEvalError, ValueError):
    """A report was requested for an empty benchmark collection.

    A zero-valued report would be indistinguishable from a genuinely
    perfect or terrible run, so aggregation refuses to produce one.
    """

    def __init__(self, message: str = "Cannot generate report from empty benchmarks list", **kwargs):
        super().__init__(message, details=dict(kwargs), recoverable=False)


class ConfigurationError(OcrEvalError):
    """Configuration or settings errors.

    Raised when:
    - config.yaml invalid or unreadable
    - Unknown profile requested
    - Incompatible settings combinations
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_value: Optional[str] = None,
        **kwargs
    ):
        """Initialize configuration error.

        Args:
            message: Error description
            config_key: Configuration key with issue
            expected_value: What the value should be
            **kwargs: Additional details
        """
        details = {
            "config_key": config_key,
            "expected_value": expected_value,
            **kwargs
        }
        super().__init__(message, details=details, recoverable=True)

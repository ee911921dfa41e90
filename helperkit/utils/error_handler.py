"""
Error taxonomy and handling for helperkit.

Three kinds of failure cross the package boundary:

- misuse errors (wrong key length, missing transform) raised immediately,
- integrity errors from the field codec,
- aggregate errors from `transform_all`, which name the failing key.

"Absence" (an empty plaintext, blob or key) is never an error; the codec
returns None for it.
"""

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Hashable, Optional

from fastapi.responses import JSONResponse

from helperkit.utils import metrics
from helperkit.utils.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels for categorization and alerting"""

    LOW = "low"  # Minor issues, logging only
    MEDIUM = "medium"  # Important issues, monitoring alerts
    HIGH = "high"  # Critical issues, immediate attention
    CRITICAL = "critical"  # Security-relevant events


class ErrorCategory(str, Enum):
    """Error categories for systematic handling"""

    CONFIGURATION = "configuration"
    MISUSE = "misuse"  # Caller passed arguments the API cannot accept
    INTEGRITY = "integrity"  # Tampered, truncated or wrong-key ciphertext
    AGGREGATE = "aggregate"  # One entry of a keyed transform failed
    NETWORK = "network"
    VALIDATION = "validation"
    SYSTEM = "system"
    TIMEOUT = "timeout"


class ErrorContext:
    """Container for error context information"""

    def __init__(
        self,
        error: Exception,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        user_message: Optional[str] = None,
        technical_details: Optional[Dict[str, Any]] = None,
        entry_key: Optional[str] = None,
    ):
        self.error = error
        self.severity = severity
        self.category = category
        self.user_message = user_message or self._generate_user_message()
        self.technical_details = technical_details or {}
        self.entry_key = entry_key
        self.timestamp = datetime.now(timezone.utc)
        self.error_id = f"err_{int(self.timestamp.timestamp())}"

    def _generate_user_message(self) -> str:
        """Generate user-friendly error message based on error type"""
        error_type = type(self.error).__name__

        user_messages = {
            "InvalidKeyError": "The encryption key is missing or has the wrong length.",
            "IntegrityError": "Encrypted data could not be verified and must not be trusted.",
            "TransformUsageError": "A value was supplied without a transform to apply to it.",
            "KeyedTransformError": "One field of a bulk operation failed.",
            "GeoLookupError": "Geo data for the address could not be fetched.",
        }

        return user_messages.get(
            error_type,
            "An unexpected error occurred. Please try again or contact support.",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging/serialization"""
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
            "severity": self.severity.value,
            "category": self.category.value,
            "user_message": self.user_message,
            "technical_details": self.technical_details,
            "entry_key": self.entry_key,
            "traceback": traceback.format_exc()
            if self.severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]
            else None,
        }


# === Custom Exception Classes ===


class HelperKitError(Exception):
    """Base exception for helperkit errors"""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        technical_details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.severity = severity
        self.category = category
        self.technical_details = technical_details or {}


class InvalidKeyError(HelperKitError, ValueError):
    """Raised when a symmetric key is not exactly 32 bytes"""

    def __init__(self, message: Optional[str] = None, *, length: Optional[int] = None):
        message = message or f"key must be 32 bytes, got {length}"
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.MISUSE,
            technical_details={"key_length": length},
        )


class IntegrityError(HelperKitError):
    """Raised when a blob is malformed or fails tag verification"""

    def __init__(self, message: str = "Ciphertext failed integrity check", **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.INTEGRITY,
            **kwargs,
        )


class TransformUsageError(HelperKitError, TypeError):
    """Raised when a plain value reaches transform_all without a transform"""

    def __init__(self, key: Hashable):
        super().__init__(
            f"No transform supplied for non-awaitable value at key {key!r}",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.MISUSE,
            technical_details={"key": repr(key)},
        )
        self.key = key


class KeyedTransformError(HelperKitError):
    """Raised by transform_all when one entry fails; carries the entry key"""

    def __init__(self, key: Hashable, cause: BaseException):
        super().__init__(
            f"Transform failed for key {key!r}: {type(cause).__name__}: {cause}",
            severity=getattr(cause, "severity", ErrorSeverity.MEDIUM),
            category=ErrorCategory.AGGREGATE,
            technical_details={"key": repr(key), "cause": type(cause).__name__},
        )
        self.key = key
        self.cause = cause


class GeoLookupError(HelperKitError):
    """Raised when the geo lookup service returns no usable data"""

    def __init__(self, message: str = "Failed to fetch geo data", **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NETWORK,
            **kwargs,
        )


# === Error Handler Class ===


class ErrorHandler:
    """Centralized error categorization and logging"""

    def __init__(self):
        self._error_counts: Dict[str, int] = {}

    def handle_error(
        self, error: Exception, context: Optional[Dict[str, Any]] = None
    ) -> ErrorContext:
        """
        Categorize, log and count an error.

        Args:
            error: The exception that occurred
            context: Additional context information

        Returns:
            ErrorContext with detailed error information
        """
        context = context or {}

        error_context = self._categorize_error(error, context)
        self._log_error(error_context)
        self._record_error_metrics(error_context)

        return error_context

    def _categorize_error(
        self, error: Exception, context: Dict[str, Any]
    ) -> ErrorContext:
        """Categorize error and determine severity"""

        if isinstance(error, HelperKitError):
            entry_key = getattr(error, "key", None)
            return ErrorContext(
                error=error,
                severity=error.severity,
                category=error.category,
                technical_details={**error.technical_details, **context},
                entry_key=repr(entry_key) if entry_key is not None else None,
            )

        error_mappings = {
            ConnectionError: (ErrorSeverity.MEDIUM, ErrorCategory.NETWORK),
            TimeoutError: (ErrorSeverity.MEDIUM, ErrorCategory.TIMEOUT),
            ValueError: (ErrorSeverity.LOW, ErrorCategory.VALIDATION),
            KeyError: (ErrorSeverity.LOW, ErrorCategory.VALIDATION),
            TypeError: (ErrorSeverity.LOW, ErrorCategory.VALIDATION),
        }

        severity, category = error_mappings.get(
            type(error), (ErrorSeverity.MEDIUM, ErrorCategory.SYSTEM)
        )

        return ErrorContext(
            error=error,
            severity=severity,
            category=category,
            technical_details=context,
        )

    def _log_error(self, error_context: ErrorContext):
        """Log error with a level chosen by severity"""

        log_data = {
            "error_id": error_context.error_id,
            "error_type": type(error_context.error).__name__,
            "category": error_context.category.value,
            "severity": error_context.severity.value,
            "entry_key": error_context.entry_key,
            "technical_details": error_context.technical_details,
        }

        if error_context.severity == ErrorSeverity.CRITICAL:
            logger.critical(error_context.user_message, **log_data)
        elif error_context.severity == ErrorSeverity.HIGH:
            logger.error(error_context.user_message, **log_data)
        elif error_context.severity == ErrorSeverity.MEDIUM:
            logger.warning(error_context.user_message, **log_data)
        else:  # LOW
            logger.info(error_context.user_message, **log_data)

    def _record_error_metrics(self, error_context: ErrorContext):
        metrics.ERRORS_HANDLED_TOTAL.labels(
            category=error_context.category.value,
            severity=error_context.severity.value,
        ).inc()

        error_key = (
            f"{type(error_context.error).__name__}:{error_context.category.value}"
        )
        self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1

        if self._error_counts[error_key] > 5:
            logger.warning(
                "High frequency error detected",
                error_key=error_key,
                count=self._error_counts[error_key],
                error_id=error_context.error_id,
            )


# === Global Error Handler Instance ===

error_handler = ErrorHandler()


# === Utility Functions ===

_STATUS_CODE_MAP = {
    ErrorSeverity.LOW: 400,
    ErrorSeverity.MEDIUM: 500,
    ErrorSeverity.HIGH: 500,
    ErrorSeverity.CRITICAL: 500,
}


def create_error_response(
    error: Exception, context: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Create standardized error response for APIs"""

    error_context = error_handler.handle_error(error, context)
    status_code = _STATUS_CODE_MAP.get(error_context.severity, 500)

    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "id": error_context.error_id,
                "message": error_context.user_message,
                "category": error_context.category.value,
                "severity": error_context.severity.value,
                "timestamp": error_context.timestamp.isoformat(),
            }
        },
    )

"""Error Hierarchy: typed exceptions for caller contract violations.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Bad domain data is NEVER raised; it is reported as ValidationIssue or
      Inconsistency values. Only wrong argument shapes (programming errors) raise.
    - to_response() produces the uniform error envelope used by the audit surface

Design Decisions:
    - Single hierarchy rooted at RetailOpsError so shells can catch everything
    - ContractViolationError is also a TypeError: callers that only know the
      builtin still catch it
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONTRACT = "contract"


@dataclass
class ErrorContext:
    """Context attached to a raised error for logging and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str | None = None
    argument: str | None = None
    collection: str | None = None


class RetailOpsError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_response(self) -> dict:
        """Convert to the standardized error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "operation": self.context.operation,
                    "argument": self.context.argument,
                    "collection": self.context.collection,
                },
            }
        }


class ContractViolationError(RetailOpsError, TypeError):
    """An argument has the wrong shape (e.g. a non-sequence where a sequence is required)."""

    def __init__(
        self,
        operation: str,
        argument: str,
        expected: str,
        received: object,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = operation
        ctx.argument = argument
        super().__init__(
            f"{operation}() expected {argument} to be {expected}, "
            f"got {type(received).__name__}",
            "CONTRACT_VIOLATION", ErrorCategory.CONTRACT,
            ErrorSeverity.ERROR, ctx,
        )
        self.operation = operation
        self.argument = argument
        self.expected = expected


# ─── Argument guards ─────────────────────────────────────────────

def require_sequence(value: object, operation: str, argument: str) -> None:
    """Raise ContractViolationError unless value is a list or tuple."""
    if not isinstance(value, (list, tuple)):
        raise ContractViolationError(operation, argument, "a list or tuple", value)


def require_mapping(value: object, operation: str, argument: str) -> None:
    """Raise ContractViolationError unless value is a dict-like mapping."""
    if not isinstance(value, Mapping):
        raise ContractViolationError(operation, argument, "a mapping", value)

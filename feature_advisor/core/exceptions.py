"""
Advisor Exceptions
==================

Only a handful of conditions are ever raised to callers:
- configuration that was explicitly supplied but cannot be used
- ranking preconditions (no features discovered, missing/stale blocker check)
- an implementation plan whose task graph is not a DAG

Everything else (unreadable files, failed git or validator subprocesses,
unparsable optional business files) is absorbed into degraded evidence and
logged, never raised.

Every AdvisorError carries a stable ``error_code`` for logs and JSON output,
plus a category and severity.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    TIMEOUT = "timeout"
    RESOURCE = "resource"
    EXTERNAL_TOOL = "external_tool"
    SECURITY = "security"
    INTERNAL = "internal"


class ErrorSeverity(Enum):
    """How far an error reaches."""

    LOW = "low"  # evidence for one check is missing
    MEDIUM = "medium"  # a stage degrades
    HIGH = "high"  # a stage cannot produce a result
    CRITICAL = "critical"  # the run stops


@dataclass
class ErrorContext:
    """Where an error happened: stage, feature and any extra keys."""

    operation: str = ""
    component: str = ""
    feature: str = ""
    stage: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Set fields only, with ``extra`` merged in flat."""
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name)
        }
        data.update(self.extra)
        return data


class AdvisorError(Exception):
    """
    Root of every error the advisor raises on purpose.

    Subclasses override the class attributes; instances add a message, an
    optional ErrorContext and the underlying cause.
    """

    error_code: str = "ADVISOR_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    retryable: bool = False

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context if context is not None else ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        text = self.message
        if self.context.operation:
            text += f" [operation={self.context.operation}]"
        if self.cause is not None:
            text += f" [caused by: {type(self.cause).__name__}: {self.cause}]"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "message": self.message,
            "context": self.context.to_dict(),
            "cause": None if self.cause is None else str(self.cause),
        }


# -- configuration -----------------------------------------------------------


class ConfigurationError(AdvisorError):
    """Settings or catalog files that were asked for cannot be used."""

    error_code = "CONFIG_ERROR"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.HIGH


class MissingConfigError(ConfigurationError):
    error_code = "MISSING_CONFIG"


class InvalidConfigError(ConfigurationError):
    error_code = "INVALID_CONFIG"


# -- structural validation ---------------------------------------------------


class ValidationError(AdvisorError):
    error_code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW


class PlanValidationError(ValidationError):
    """Duplicate task ids, unknown dependencies or a cycle in a plan."""

    error_code = "PLAN_VALIDATION_ERROR"
    severity = ErrorSeverity.HIGH


# -- ranking preconditions ---------------------------------------------------


class PreconditionError(AdvisorError):
    """Ranking cannot run because an upstream result is absent or unusable."""

    error_code = "PRECONDITION_ERROR"
    category = ErrorCategory.PRECONDITION
    severity = ErrorSeverity.HIGH


class MissingPreconditionError(PreconditionError):
    """Ranking was called without a blocker check."""

    error_code = "MISSING_PRECONDITION"


class StalePreconditionError(PreconditionError):
    """
    The blocker check is older than the freshness window.

    Retryable: run the blocker check again and rank.
    """

    error_code = "STALE_PRECONDITION"
    retryable = True

    def __init__(
        self,
        message: str,
        age_seconds: float,
        max_age_seconds: float,
        context: ErrorContext | None = None,
    ):
        super().__init__(message, context)
        self.age_seconds = age_seconds
        self.max_age_seconds = max_age_seconds


class NoFeaturesDiscoveredError(PreconditionError):
    """The features directory holds no feature units."""

    error_code = "NO_FEATURES_DISCOVERED"


# -- external tools ----------------------------------------------------------


class ExternalToolError(AdvisorError):
    """git, the linter or the type checker misbehaved."""

    error_code = "EXTERNAL_TOOL_ERROR"
    category = ErrorCategory.EXTERNAL_TOOL
    retryable = True


class SubprocessError(ExternalToolError):
    error_code = "SUBPROCESS_ERROR"


class CommandBlockedError(SubprocessError):
    """safe_run refused the command; it was never started."""

    error_code = "COMMAND_BLOCKED"
    category = ErrorCategory.SECURITY
    severity = ErrorSeverity.HIGH
    retryable = False

    def __init__(self, command: str, reason: str, context: ErrorContext | None = None):
        super().__init__(f"Command blocked: {reason}", context)
        self.command = command
        self.reason = reason


class CommandTimeoutError(SubprocessError):
    error_code = "COMMAND_TIMEOUT"
    category = ErrorCategory.TIMEOUT


def get_error_code(error: BaseException) -> str:
    """``error_code`` for advisor errors, the upper-cased class name otherwise."""
    return getattr(error, "error_code", None) or type(error).__name__.upper()


def wrap_error(
    error: BaseException,
    wrapper_class: type[AdvisorError],
    message: str | None = None,
    context: ErrorContext | None = None,
) -> AdvisorError:
    """
    Re-raise-ready AdvisorError around a foreign exception.

    Args:
        error: The original exception, kept as ``cause``
        wrapper_class: AdvisorError subclass to build
        message: Message for the wrapper; defaults to ``str(error)``
        context: Optional error context

    Returns:
        The wrapper instance (not raised)
    """
    return wrapper_class(
        message=str(error) if message is None else message, context=context, cause=error
    )

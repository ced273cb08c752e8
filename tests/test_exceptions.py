"""
Tests for core/exceptions.py
=============================

Tests for the advisor exception hierarchy and error utilities.
"""

from __future__ import annotations

import pytest

from feature_advisor.core.exceptions import (
    AdvisorError,
    CommandBlockedError,
    CommandTimeoutError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ExternalToolError,
    InvalidConfigError,
    MissingPreconditionError,
    NoFeaturesDiscoveredError,
    PlanValidationError,
    PreconditionError,
    StalePreconditionError,
    ValidationError,
    get_error_code,
    wrap_error,
)


class TestErrorContext:
    """Tests for ErrorContext dataclass."""

    def test_empty_context(self) -> None:
        """Test empty context produces empty dict."""
        assert ErrorContext().to_dict() == {}

    def test_full_context(self) -> None:
        """Test that set fields and extras are flattened."""
        ctx = ErrorContext(
            operation="rank_features",
            component="ranking",
            feature="orders",
            stage="rank",
            extra={"age": 301},
        )

        assert ctx.to_dict() == {
            "operation": "rank_features",
            "component": "ranking",
            "feature": "orders",
            "stage": "rank",
            "age": 301,
        }


class TestAdvisorError:
    """Tests for the base AdvisorError."""

    def test_basic_error(self) -> None:
        """Test basic error creation."""
        error = AdvisorError("Something failed")

        assert str(error) == "Something failed"
        assert error.cause is None
        assert error.error_code == "ADVISOR_ERROR"

    def test_context_and_cause_in_str(self) -> None:
        """Test that operation and cause are rendered."""
        original = ValueError("bad value")
        error = AdvisorError(
            "Wrapped", context=ErrorContext(operation="load_settings"), cause=original
        )

        assert "[operation=load_settings]" in str(error)
        assert "ValueError: bad value" in str(error)

    def test_to_dict(self) -> None:
        """Test conversion to dictionary."""
        result = InvalidConfigError("bad").to_dict()

        assert result["error_code"] == "INVALID_CONFIG"
        assert result["category"] == "configuration"
        assert result["severity"] == "high"
        assert result["retryable"] is False
        assert result["cause"] is None


class TestHierarchy:
    """Tests for subclass relationships and class attributes."""

    @pytest.mark.parametrize(
        "error_class,parent",
        [
            (InvalidConfigError, ConfigurationError),
            (PlanValidationError, ValidationError),
            (MissingPreconditionError, PreconditionError),
            (StalePreconditionError, PreconditionError),
            (NoFeaturesDiscoveredError, PreconditionError),
            (CommandTimeoutError, ExternalToolError),
        ],
    )
    def test_subclasses(self, error_class: type, parent: type) -> None:
        """Test that every error descends from its family and AdvisorError."""
        assert issubclass(error_class, parent)
        assert issubclass(error_class, AdvisorError)

    def test_stale_precondition_is_retryable(self) -> None:
        """Test that a stale check carries its ages and can be retried."""
        error = StalePreconditionError("old", age_seconds=400, max_age_seconds=300)

        assert error.retryable is True
        assert error.age_seconds == 400
        assert error.max_age_seconds == 300
        assert error.category is ErrorCategory.PRECONDITION

    def test_command_blocked(self) -> None:
        """Test that blocked commands are security errors and not retryable."""
        error = CommandBlockedError("rm -rf /", "not allowed")

        assert str(error) == "Command blocked: not allowed"
        assert error.command == "rm -rf /"
        assert error.retryable is False
        assert error.severity is ErrorSeverity.HIGH
        assert error.category is ErrorCategory.SECURITY

    def test_timeout_category(self) -> None:
        """Test that timeouts are retryable external tool failures."""
        error = CommandTimeoutError("git log timed out")

        assert error.category is ErrorCategory.TIMEOUT
        assert error.retryable is True


class TestHelpers:
    """Tests for get_error_code and wrap_error."""

    def test_get_error_code(self) -> None:
        """Test codes for advisor and foreign exceptions."""
        assert get_error_code(NoFeaturesDiscoveredError("none")) == "NO_FEATURES_DISCOVERED"
        assert get_error_code(KeyError("x")) == "KEYERROR"

    def test_wrap_error(self) -> None:
        """Test wrapping keeps the cause and defaults the message."""
        original = OSError("disk full")

        wrapped = wrap_error(original, ExternalToolError)

        assert isinstance(wrapped, ExternalToolError)
        assert wrapped.cause is original
        assert wrapped.message == "disk full"

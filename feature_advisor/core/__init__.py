"""
Core Framework Module
=====================

Ambient infrastructure shared by every analysis stage.

- Caching: in-run LRU cache and the per-run validator cache
- Logging: Structured logging with run ID and stage/feature context
- Exceptions: Typed exception hierarchy (preconditions, config, plan validation)
- Safe I/O: total reads and atomic writes
- Safe Subprocess: bounded execution for git / linter / type checker
"""

# Lazy imports keep `import feature_advisor.core` cheap for callers that only
# need one utility.

__all__ = [
    # Cache
    "LRUCache",
    "ValidatorCache",
    # Logging
    "get_logger",
    "configure_logging",
    "set_run_id",
    "get_run_id",
    "log_context",
    "Timer",
    "timed",
    "log_exception",
    # Exceptions
    "AdvisorError",
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
    "PreconditionError",
    "MissingPreconditionError",
    "StalePreconditionError",
    "NoFeaturesDiscoveredError",
    "PlanValidationError",
    # I/O
    "safe_read_text",
    "safe_read_json",
    "safe_write_text",
    "safe_write_json",
    # Subprocess
    "safe_run",
    "safe_run_capture",
]


def __getattr__(name):
    """Lazy imports to avoid circular dependencies."""
    if name in ("LRUCache", "ValidatorCache"):
        from . import cache as _cache

        return getattr(_cache, name)
    elif name in (
        "get_logger",
        "configure_logging",
        "set_run_id",
        "get_run_id",
        "log_context",
        "Timer",
        "timed",
        "log_exception",
    ):
        from . import logging as _logging

        return getattr(_logging, name)
    elif name in (
        "AdvisorError",
        "ConfigurationError",
        "InvalidConfigError",
        "MissingConfigError",
        "PreconditionError",
        "MissingPreconditionError",
        "StalePreconditionError",
        "NoFeaturesDiscoveredError",
        "PlanValidationError",
    ):
        from . import exceptions as _exceptions

        return getattr(_exceptions, name)
    elif name in (
        "safe_read_text",
        "safe_read_json",
        "safe_write_text",
        "safe_write_json",
    ):
        from . import safe_io as _safe_io

        return getattr(_safe_io, name)
    elif name in ("safe_run", "safe_run_capture"):
        from . import safe_subprocess as _safe_subprocess

        return getattr(_safe_subprocess, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

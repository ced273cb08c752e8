"""
External validators.

Optionally runs the project's linter and type checker for a feature and turns
the outcome into a VALIDATED code-quality score. Results are memoized in the
run's ValidatorCache so a feature is validated at most once per run.

Validator failures (missing tool, timeout, unparsable output) never abort
scoring. The affected result is marked ``executed=False`` and scoring falls
back to the regex estimate.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from .config import AdvisorSettings
from .core.cache import ValidatorCache
from .core.exceptions import SubprocessError
from .core.logging import get_logger
from .core.safe_subprocess import safe_run
from .models import FeatureScan

logger = get_logger(__name__)

MAX_REPORTED_TYPE_ERRORS = 5


@dataclass
class LintResult:
    passed: bool = True
    # False when the linter could not be run or its output was unusable
    executed: bool = True
    error_count: int = 0
    warning_count: int = 0
    details: list[str] = field(default_factory=list)


@dataclass
class TypeCheckResult:
    passed: bool = True
    executed: bool = True
    error_count: int = 0
    details: list[str] = field(default_factory=list)


@dataclass
class ValidationResults:
    """Linter + type checker outcome for one feature."""

    lint: LintResult
    typecheck: TypeCheckResult

    @property
    def passed(self) -> bool:
        return self.lint.passed and self.typecheck.passed

    @property
    def executed(self) -> bool:
        """Both tools ran and produced usable output."""
        return self.lint.executed and self.typecheck.executed

    @property
    def score(self) -> int:
        """Code-quality score on the 0-25 scale."""
        score = 10
        if self.lint.passed:
            score += 8
        elif self.lint.error_count <= 5:
            score += 5
        elif self.lint.error_count <= 10:
            score += 2

        if self.lint.warning_count == 0:
            score += 2

        if self.typecheck.passed:
            score += 5
        elif self.typecheck.error_count <= 3:
            score += 2

        return min(25, score)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lint": vars(self.lint),
            "typecheck": vars(self.typecheck),
            "passed": self.passed,
            "executed": self.executed,
            "score": self.score,
        }


def run_lint(feature: FeatureScan, settings: AdvisorSettings) -> LintResult:
    result = LintResult()
    if not feature.source_files:
        result.details.append("No TypeScript files to lint")
        return result

    files = [str(path) for path in feature.source_files[: settings.max_lint_files]]
    try:
        completed = safe_run(
            [*settings.lint_command, *files],
            cwd=settings.project_root,
            timeout=settings.lint_timeout,
        )
    except (SubprocessError, OSError) as e:
        logger.warning(f"Linter failed for {feature.name}: {e}")
        result.passed = False
        result.executed = False
        result.details.append(f"Linter execution failed: {e}")
        return result

    try:
        parsed = json.loads(completed.stdout)
    except json.JSONDecodeError:
        result.passed = False
        result.executed = False
        result.details.append("Linter ran but output could not be parsed")
        return result

    if not isinstance(parsed, list):
        result.passed = False
        result.executed = False
        result.details.append("Linter output was not a JSON result list")
        return result
    for entry in parsed:
        if isinstance(entry, dict):
            result.error_count += int(entry.get("errorCount") or 0)
            result.warning_count += int(entry.get("warningCount") or 0)
    result.passed = result.error_count == 0
    result.details.extend(
        [
            f"Files checked: {len(files)}",
            f"Errors: {result.error_count}",
            f"Warnings: {result.warning_count}",
        ]
    )
    return result


def _tsconfig(settings: AdvisorSettings) -> str:
    for name in settings.tsconfig_files:
        if settings.resolve(name).is_file():
            return name
    return settings.tsconfig_files[0] if settings.tsconfig_files else "tsconfig.json"


def run_typecheck(settings: AdvisorSettings) -> TypeCheckResult:
    result = TypeCheckResult()
    try:
        completed = safe_run(
            [*settings.typecheck_command, _tsconfig(settings)],
            cwd=settings.project_root,
            timeout=settings.typecheck_timeout,
        )
    except (SubprocessError, OSError) as e:
        logger.warning(f"Type check failed to run: {e}")
        result.passed = False
        result.executed = False
        result.details.append(f"Type check execution failed: {e}")
        return result

    if completed.returncode == 0:
        result.details.append("Type check passed")
        return result

    output = f"{completed.stdout}\n{completed.stderr}"
    error_lines = [line for line in output.splitlines() if "error TS" in line]
    result.passed = False
    result.error_count = len(error_lines)
    result.details.append(f"Type errors: {result.error_count}")
    if 0 < result.error_count <= MAX_REPORTED_TYPE_ERRORS:
        result.details.extend(line.strip() for line in error_lines)
    return result


def run_validators(feature: FeatureScan, settings: AdvisorSettings) -> ValidationResults:
    """Run linter and type checker for ``feature`` (uncached)."""
    logger.info(f"Running validators for {feature.name}", extra={"feature": feature.name})
    return ValidationResults(lint=run_lint(feature, settings), typecheck=run_typecheck(settings))


def get_validation_results(
    feature: FeatureScan,
    settings: AdvisorSettings,
    cache: ValidatorCache,
) -> ValidationResults | None:
    """
    Validator results for ``feature``, or None when validators are disabled.

    Args:
        feature: Feature to validate
        settings: Run settings (``run_validators`` gates execution)
        cache: The run's validator cache

    Returns:
        Cached or freshly computed ValidationResults, or None
    """
    if not settings.run_validators:
        return None
    return cache.get_or_set(feature.name, lambda: run_validators(feature, settings))

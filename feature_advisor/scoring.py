"""
Completeness Scorer
===================

Converts per-feature evidence into four bounded, confidence-tagged scores
(implementation, test signal, accessibility, code quality; 0-25 each) and a
0-100 total with a human interpretation.

Missing input always produces a zero with an explicit reason in the details,
never an exception.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any

from .catalogs import (
    A11Y_MARKERS,
    ASSERTION_PATTERNS,
    BRANCH_TOKEN_PATTERN,
    COMPONENT_SELECTOR_PATTERN,
    FUNCTION_TOKEN_PATTERN,
    KEYBOARD_MARKERS,
    QUALITY_TODO_PATTERN,
    TEST_BLOCK_PATTERNS,
    TESTABLE_ELEMENT_PATTERNS,
)
from .config import AdvisorSettings
from .core.cache import ValidatorCache
from .core.logging import get_logger
from .models import (
    Confidence,
    FeatureScan,
    LinterThresholds,
    ProjectScan,
    ScoreDetail,
    weakest_confidence,
)
from .validation import ValidationResults, get_validation_results

logger = get_logger(__name__)

MAX_DIMENSION_SCORE = 25
MAX_TOTAL_SCORE = 100

# (lower bound, label), checked top-down
INTERPRETATION_BANDS: list[tuple[int, str]] = [
    (90, "Production-ready, no work needed"),
    (75, "Minor improvements needed"),
    (60, "Needs polishing and testing"),
    (45, "Significant work required"),
]
LOWEST_INTERPRETATION = "Major rework or incomplete"


# =============================================================================
# Text helpers
# =============================================================================


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def count_lines(text: str) -> int:
    if not text:
        return 0
    return len(re.split(r"\r?\n", text))


def count_matches(text: str, pattern: re.Pattern[str]) -> int:
    if not text:
        return 0
    return sum(1 for _ in pattern.finditer(text))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def interpret_completeness(total: int) -> str:
    for lower_bound, label in INTERPRETATION_BANDS:
        if total >= lower_bound:
            return label
    return LOWEST_INTERPRETATION


def extract_component_selectors(html: str) -> list[str]:
    """``x`` for every ``<app-x`` tag in ``html``."""
    return COMPONENT_SELECTOR_PATTERN.findall(html)


@dataclass
class TestFileAnalysis:
    """Counts pulled from one spec file."""

    __test__ = False

    test_count: int = 0
    lines: int = 0
    assertions: int = 0


def analyze_test_file(text: str) -> TestFileAnalysis:
    if not text:
        return TestFileAnalysis()
    return TestFileAnalysis(
        test_count=sum(count_matches(text, p) for p in TEST_BLOCK_PATTERNS),
        lines=count_lines(text),
        assertions=sum(count_matches(text, p) for p in ASSERTION_PATTERNS),
    )


def estimate_testable_elements(text: str) -> int:
    """Public methods, handlers, getters and computed signals (at least 1)."""
    if not text:
        return 0
    count = sum(count_matches(text, p) for p in TESTABLE_ELEMENT_PATTERNS)
    return max(1, count)


def estimate_complexity(text: str) -> int:
    """Branch tokens per function token; a regex estimate, not cyclomatic."""
    branches = count_matches(text, BRANCH_TOKEN_PATTERN)
    functions = max(1, count_matches(text, FUNCTION_TOKEN_PATTERN))
    return max(1, round_half_up(branches / functions))


# =============================================================================
# Dimensions
# =============================================================================


def score_implementation(feature: FeatureScan, scan: ProjectScan) -> ScoreDetail:
    """
    Score how structurally complete a feature is.

    Args:
        feature: Feature evidence
        scan: Project scan (routes file and shared components)

    Returns:
        PATTERN-BASED ScoreDetail
    """
    components = feature.component_files
    component_count = len(components)
    template_count = sum(1 for c in components if c.has_template)
    style_count = sum(1 for c in components if c.has_style)
    template_ratio = template_count / component_count if component_count else 0.0
    style_ratio = style_count / component_count if component_count else 0.0
    main = feature.main_component

    details = [
        f"Components: {component_count}",
        f"HTML coverage: {template_count}/{component_count}",
        f"SCSS coverage: {style_count}/{component_count}",
        f"Main component: {main.path.name if main else 'not detected'}",
    ]
    source = "File system scan + template analysis"

    if component_count == 0:
        details.append("No component files detected.")
        return ScoreDetail(0, details, Confidence.PATTERN_BASED, source)

    score = 10
    if main is not None and main.has_template:
        score = 20
        if component_count > 1 and template_ratio >= 0.9 and style_ratio >= 0.9:
            score = 25
    elif template_ratio >= 0.5:
        score = 15

    if not feature.doc_files:
        score = max(0, score - 5)
        details.append("No README or feature docs detected.")
    else:
        details.append(f"Docs found: {len(feature.doc_files)} markdown file(s).")

    if scan.routes_exist:
        if f"features/{feature.name}/" in scan.routes_text:
            details.append("Feature route detected.")
        else:
            details.append("Feature route not detected.")
            score = max(0, score - 5)
    else:
        details.append("Routing file not found; route check skipped.")

    known = feature.component_names() | set(scan.shared_components)
    unresolved: list[str] = []
    for path in feature.template_files:
        for selector in extract_component_selectors(feature.read(path)):
            if selector not in known and selector not in unresolved:
                unresolved.append(selector)
    if unresolved:
        score = max(0, score - 5)
        details.append(f"Template references missing components: {', '.join(unresolved)}.")

    return ScoreDetail(score, details, Confidence.PATTERN_BASED, source)


def score_test_signal(feature: FeatureScan) -> ScoreDetail:
    """Score test depth from spec content (it/test/expect counting)."""
    components = feature.component_files
    component_count = len(components)
    spec_count = sum(1 for c in components if c.has_spec)
    spec_ratio = spec_count / component_count if component_count else 0.0

    details = [
        f"Spec files: {spec_count}/{component_count} ({round_half_up(spec_ratio * 100)}% coverage)"
    ]
    presence_source = "Spec file detection (presence only)"
    if component_count == 0:
        details.append("No components detected.")
        return ScoreDetail(0, details, Confidence.PATTERN_BASED, presence_source)
    if spec_count == 0:
        details.append("No test files detected.")
        return ScoreDetail(0, details, Confidence.PATTERN_BASED, presence_source)

    tests = assertions = testable = spec_lines = component_lines = 0
    for component in components:
        if component.has_spec:
            analysis = analyze_test_file(feature.read(component.spec_path))
            tests += analysis.test_count
            assertions += analysis.assertions
            spec_lines += analysis.lines
        if component.source:
            component_lines += count_lines(component.source)
            testable += estimate_testable_elements(component.source)

    depth = tests / testable if testable else 0.0
    code_ratio = spec_lines / component_lines if component_lines else 0.0
    details.extend(
        [
            f"Test cases found: {tests}",
            f"Assertions: {assertions}",
            f"Testable elements: ~{testable}",
            f"Test LOC: {spec_lines}",
            f"Component LOC: {component_lines}",
            f"Test depth: {depth * 100:.0f}% (tests/testable)",
            f"Test-to-code ratio: {code_ratio * 100:.0f}%",
        ]
    )

    score = 5
    if depth >= 2.0:
        score += 15
    elif depth >= 1.0:
        score += 12
    elif depth >= 0.5:
        score += 8
    elif depth >= 0.25:
        score += 4
    else:
        score += 1

    if spec_ratio >= 0.9:
        score += 5
    elif spec_ratio >= 0.7:
        score += 3
    elif spec_ratio >= 0.5:
        score += 2
    else:
        score += 1

    per_test = assertions / tests if tests else 0.0
    if per_test >= 3:
        score += 5
    elif per_test >= 2:
        score += 3
    elif per_test >= 1:
        score += 2

    if depth < 0.5:
        details.append(
            "NOTE: Test coverage is LOW. Consider adding more test cases for critical paths."
        )

    return ScoreDetail(
        min(MAX_DIMENSION_SCORE, score),
        details,
        Confidence.ESTIMATED,
        "Test content analysis (it/test/expect counting)",
    )


def score_accessibility(feature: FeatureScan) -> ScoreDetail:
    source = "Accessibility marker detection (aria/keyboard/skip-link)"
    total = len(feature.template_files)
    if total == 0:
        return ScoreDetail(
            0,
            [
                "No HTML templates detected.",
                "NOTE: This is accessibility pattern detection, NOT a WCAG audit.",
            ],
            Confidence.PATTERN_BASED,
            source,
        )

    with_a11y = with_keyboard = 0
    for path in feature.template_files:
        html = feature.read(path)
        if not html:
            continue
        if any(marker.search(html) for marker in A11Y_MARKERS):
            with_a11y += 1
        if any(marker.search(html) for marker in KEYBOARD_MARKERS):
            with_keyboard += 1

    ratio = with_a11y / total
    if ratio >= 0.9:
        score = 25
    elif ratio >= 0.7:
        score = 20
    elif ratio >= 0.5:
        score = 15
    elif ratio > 0:
        score = 10
    else:
        score = 0

    details = [
        f"HTML files: {total}",
        f"Files with a11y markers: {with_a11y}",
        f"Files with keyboard handlers: {with_keyboard}",
        "NOTE: This is accessibility pattern detection, NOT a WCAG audit.",
        "Verify focus rings, keyboard navigation, and skip links manually.",
    ]
    return ScoreDetail(score, details, Confidence.PATTERN_BASED, source)


def score_code_quality(
    feature: FeatureScan,
    thresholds: LinterThresholds,
    validation: ValidationResults | None = None,
) -> ScoreDetail:
    """
    Score code quality from validator output when present, else by estimate.

    Args:
        feature: Feature evidence
        thresholds: Linter thresholds parsed from the project config
        validation: Cached validator results, or None

    Returns:
        VALIDATED when both tools ran, else the ESTIMATED regex score
    """
    if not feature.source_files:
        return ScoreDetail(
            0,
            ["No TypeScript files detected."],
            Confidence.ESTIMATED,
            "Regex-based complexity estimation + TODO counting",
        )

    if validation is not None and validation.executed:
        details = [
            "=== VALIDATED RESULTS ===",
            f"Lint: {'PASSED' if validation.lint.passed else 'FAILED'}",
            *validation.lint.details,
            f"Type check: {'PASSED' if validation.typecheck.passed else 'FAILED'}",
            *validation.typecheck.details,
        ]
        return ScoreDetail(
            validation.score, details, Confidence.VALIDATED, "Linter + type checker validation"
        )

    fallback_notes: list[str] = []
    if validation is not None:
        fallback_notes = [
            "Validators did not run; using regex estimate.",
            *validation.lint.details,
            *validation.typecheck.details,
        ]

    complexities: list[int] = []
    todo_count = 0
    max_lines = 0
    for path in feature.source_files:
        text = feature.read(path)
        if not text:
            continue
        complexities.append(estimate_complexity(text))
        todo_count += count_matches(text, QUALITY_TODO_PATTERN)
        max_lines = max(max_lines, count_lines(text))

    max_complexity = max(complexities, default=0)
    if max_complexity <= 5:
        score = 25
    elif max_complexity <= 10:
        score = 20
    elif max_complexity <= 15:
        score = 15
    else:
        score = 10

    details: list[str] = list(fallback_notes)
    if thresholds.complexity and max_complexity > thresholds.complexity:
        score = max(0, score - 5)
        details.append(
            f"Complexity exceeds linter threshold ({max_complexity}/{thresholds.complexity})."
        )
    if todo_count > 3:
        score = max(0, score - 5)
        details.append(f"TODO/FIXME count high ({todo_count}).")

    details.extend(
        [
            f"Max complexity: {max_complexity}",
            f"Max lines: {max_lines}",
            f"TODO/FIXME count: {todo_count}",
            "NOTE: Complexity estimated via regex (not AST). Enable validators for accurate analysis.",
        ]
    )
    return ScoreDetail(
        score,
        details,
        Confidence.ESTIMATED,
        "Regex-based complexity estimation + TODO counting",
    )


# =============================================================================
# Totals
# =============================================================================


@dataclass
class CompletenessScore:
    """Four dimension scores plus the 0-100 total for one feature."""

    feature: str
    implementation: ScoreDetail
    test_signal: ScoreDetail
    accessibility: ScoreDetail
    code_quality: ScoreDetail
    total: int = 0
    interpretation: str = ""
    notes: list[str] = field(default_factory=list)

    @property
    def dimensions(self) -> dict[str, ScoreDetail]:
        return {
            "implementation": self.implementation,
            "test_signal": self.test_signal,
            "accessibility": self.accessibility,
            "code_quality": self.code_quality,
        }

    @property
    def confidence(self) -> Confidence:
        """Weakest confidence across the four dimensions."""
        return weakest_confidence([d.confidence for d in self.dimensions.values()])

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            **{name: detail.to_dict() for name, detail in self.dimensions.items()},
            "total": self.total,
            "interpretation": self.interpretation,
            "confidence": self.confidence.value,
            "notes": list(self.notes),
        }


def score_feature(
    feature: FeatureScan,
    scan: ProjectScan,
    validation: ValidationResults | None = None,
) -> CompletenessScore:
    implementation = score_implementation(feature, scan)
    test_signal = score_test_signal(feature)
    accessibility = score_accessibility(feature)
    code_quality = score_code_quality(feature, scan.linter_thresholds, validation)

    total = int(
        clamp(
            implementation.score + test_signal.score + accessibility.score + code_quality.score,
            0,
            MAX_TOTAL_SCORE,
        )
    )
    notes = []
    if not feature.doc_files:
        notes.append("No feature docs detected.")
    if not feature.spec_files:
        notes.append("No spec files detected.")

    return CompletenessScore(
        feature=feature.name,
        implementation=implementation,
        test_signal=test_signal,
        accessibility=accessibility,
        code_quality=code_quality,
        total=total,
        interpretation=interpret_completeness(total),
        notes=notes,
    )


def analyze_completeness(
    scan: ProjectScan,
    settings: AdvisorSettings,
    validator_cache: ValidatorCache,
) -> list[CompletenessScore]:
    """
    Score every discovered feature.

    Args:
        scan: Project scan
        settings: Run settings (validator toggle and commands)
        validator_cache: The run's validator cache

    Returns:
        One CompletenessScore per feature, in scan order
    """
    scores = []
    for feature in scan.features:
        validation = get_validation_results(feature, settings, validator_cache)
        score = score_feature(feature, scan, validation)
        logger.debug(
            f"{feature.name}: {score.total}/100 ({score.interpretation})",
            extra={"feature": feature.name},
        )
        scores.append(score)
    return scores

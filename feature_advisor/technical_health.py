"""
Technical Health
================

Project-wide health signals that sit beside per-feature completeness:

- linter rule thresholds read from the linter config
- declared-vs-imported package comparison (import scan only)
- security-sensitive source patterns
- structural / test / quality gaps rolled up into technical debt items
"""

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .catalogs import (
    ALWAYS_USED_PACKAGES,
    ALWAYS_USED_PREFIXES,
    IMPORT_PATTERN,
    LINTER_RULES,
    NODE_BUILTINS,
    SECURITY_PATTERNS,
)
from .core.logging import get_logger
from .core.safe_io import safe_read_text
from .models import (
    LinterThresholds,
    ManifestScan,
    ProjectScan,
    SecurityFinding,
    SourceLocation,
)
from .scoring import (
    analyze_test_file,
    count_lines,
    estimate_complexity,
    estimate_testable_elements,
)

if TYPE_CHECKING:
    from .dependencies import DependencyAnalysis

logger = get_logger(__name__)

# Features with fewer tests than this (but more than zero) are flagged
MIN_TESTS_PER_FEATURE = 10
# Tests per testable element below which depth is flagged
MIN_TEST_DEPTH_RATIO = 0.3

MAX_REPORTED_LOCATIONS = 5


class DebtPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass
class TechnicalDebtItem:
    """One remediation candidate with risk/blocking/value scored 0-10."""

    issue: str
    risk: int
    blocking: int
    remediation_hours: int
    value: int

    @property
    def priority(self) -> DebtPriority:
        if self.risk >= 8 or self.blocking >= 8:
            return DebtPriority.HIGH
        if self.risk >= 5:
            return DebtPriority.MEDIUM
        return DebtPriority.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue,
            "risk": self.risk,
            "blocking": self.blocking,
            "remediation_hours": self.remediation_hours,
            "value": self.value,
            "priority": self.priority.value,
        }


@dataclass
class TechnicalHealthReport:
    structural_gaps: list[str] = field(default_factory=list)
    test_gaps: list[str] = field(default_factory=list)
    quality_notes: list[str] = field(default_factory=list)
    dependency_issues: list[str] = field(default_factory=list)
    security_notes: list[str] = field(default_factory=list)
    debt_items: list[TechnicalDebtItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "structural_gaps": list(self.structural_gaps),
            "test_gaps": list(self.test_gaps),
            "quality_notes": list(self.quality_notes),
            "dependency_issues": list(self.dependency_issues),
            "security_notes": list(self.security_notes),
            "debt_items": [item.to_dict() for item in self.debt_items],
        }


# =============================================================================
# Linter thresholds
# =============================================================================


def _parse_rule_threshold(config_text: str, rule_name: str) -> int | None:
    rule = rf"['\"]?{re.escape(rule_name)}['\"]?"
    direct = re.search(
        rf"{rule}\s*:\s*\[\s*['\"]\w+['\"]\s*,\s*(\d+)", config_text, re.MULTILINE
    )
    if direct:
        return int(direct.group(1))
    object_max = re.search(
        rf"{rule}\s*:\s*\[\s*['\"]\w+['\"]\s*,\s*\{{[^}}]*\bmax\s*:\s*(\d+)",
        config_text,
        re.MULTILINE,
    )
    if object_max:
        return int(object_max.group(1))
    return None


def extract_linter_thresholds(config_text: str) -> LinterThresholds:
    """
    Read numeric rule thresholds from linter config text.

    Accepts both ``rule: ['error', N]`` and ``rule: ['error', { max: N }]``.
    Rules that are absent stay None.
    """
    return LinterThresholds(
        **{
            attr: _parse_rule_threshold(config_text, rule)
            for attr, rule in LINTER_RULES.items()
        }
    )


# =============================================================================
# Package manifest
# =============================================================================


def _package_name(specifier: str) -> str:
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def scan_package_manifest(
    root: Path,
    source_files: Iterable[Path],
    manifest: str = "package.json",
    workspace_scopes: Iterable[str] = (),
) -> ManifestScan:
    """
    Compare declared packages with packages imported by the source tree.

    This is an import scan, not a resolver: dynamic or config-only usage is
    invisible to it, so results are heuristic.

    Args:
        root: Project root
        source_files: Files whose imports count as usage
        manifest: Manifest path relative to root
        workspace_scopes: Import prefixes belonging to the workspace itself

    Returns:
        ManifestScan (``available`` is False when the manifest is missing or
        unparsable)
    """
    manifest_path = Path(root) / manifest
    text = safe_read_text(manifest_path)
    if not text.strip():
        return ManifestScan()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Unparsable package manifest {manifest_path}: {e}")
        return ManifestScan()
    if not isinstance(parsed, dict):
        return ManifestScan()

    dependencies = parsed.get("dependencies") or {}
    dev_dependencies = parsed.get("devDependencies") or {}
    scripts = parsed.get("scripts") or {}
    if not all(isinstance(d, dict) for d in (dependencies, dev_dependencies, scripts)):
        logger.warning(f"Unexpected package manifest shape: {manifest_path}")
        return ManifestScan()

    scopes = tuple(workspace_scopes)
    declared = set(dependencies) | set(dev_dependencies)
    used: set[str] = set()

    for path in source_files:
        for match in IMPORT_PATTERN.finditer(safe_read_text(path)):
            raw = match.group(1) or match.group(2) or match.group(3)
            if not raw or raw.startswith((".", "/")):
                continue
            name = _package_name(raw)
            if name in NODE_BUILTINS or name.startswith("node:"):
                continue
            if scopes and name.startswith(scopes):
                continue
            used.add(name)

    script_text = " ".join(str(value) for value in scripts.values())
    if script_text:
        used.update(dep for dep in declared if dep in script_text)

    unused = sorted(
        dep
        for dep in dependencies
        if dep not in used
        and dep not in ALWAYS_USED_PACKAGES
        and not dep.startswith(ALWAYS_USED_PREFIXES)
    )
    missing = sorted(pkg for pkg in used if pkg not in declared)

    return ManifestScan(
        available=True,
        unused=unused,
        missing=missing,
        total_dependencies=len(dependencies) + len(dev_dependencies),
        total_used=len(used),
    )


# =============================================================================
# Security
# =============================================================================


def scan_security(files: Iterable[Path], root: Path | None = None) -> list[SecurityFinding]:
    """Report security-sensitive regex hits with their locations."""
    texts: list[tuple[str, list[str]]] = []
    for path in files:
        text = safe_read_text(path)
        if not text:
            continue
        display = Path(path)
        if root is not None:
            try:
                display = display.relative_to(root)
            except ValueError:
                pass
        texts.append((display.as_posix(), text.splitlines()))

    findings: list[SecurityFinding] = []
    for name, pattern in SECURITY_PATTERNS.items():
        count = 0
        locations: list[SourceLocation] = []
        for display, lines in texts:
            for number, line in enumerate(lines, start=1):
                hits = len(pattern.findall(line))
                if hits:
                    count += hits
                    locations.append(SourceLocation(display, number, line.strip()[:120]))
        if count:
            findings.append(SecurityFinding(pattern=name, count=count, locations=locations))
    return findings


def format_security_findings(
    findings: list[SecurityFinding], max_locations: int = MAX_REPORTED_LOCATIONS
) -> list[str]:
    lines: list[str] = []
    for finding in findings:
        shown = ", ".join(
            f"{loc.path}:{loc.line}" for loc in finding.locations[:max_locations]
        )
        extra = len(finding.locations) - max_locations
        suffix = f" (+{extra} more)" if extra > 0 else ""
        lines.append(f"{finding.pattern}: {finding.count} hit(s) at {shown}{suffix}")
    return lines


# =============================================================================
# Gap analysis
# =============================================================================


def _relative(path: Path, root: Path) -> str:
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return Path(path).as_posix()


def build_structural_gaps(scan: ProjectScan) -> list[str]:
    gaps = []
    for component in scan.app_components:
        missing = []
        if not component.has_template:
            missing.append("missing html")
        if not component.has_style:
            missing.append("missing scss")
        if missing:
            gaps.append(
                f"Component structure gap: {_relative(component.path, scan.project_root)}"
                f" ({', '.join(missing)})"
            )
    return gaps


def build_test_gaps(scan: ProjectScan) -> list[str]:
    gaps = [
        f"Missing test file: {_relative(component.spec_path, scan.project_root)}"
        for component in scan.app_components
        if not component.has_spec
    ]

    for feature in scan.features:
        tests = 0
        testable = 0
        for component in feature.component_files:
            if component.has_spec:
                tests += analyze_test_file(feature.read(component.spec_path)).test_count
            testable += estimate_testable_elements(component.source)
        depth = tests / testable if testable else 0.0
        if 0 < tests < MIN_TESTS_PER_FEATURE:
            gaps.append(
                f"Low test coverage in {feature.name}: {tests} tests "
                f"(need {MIN_TESTS_PER_FEATURE}+, depth {depth * 100:.0f}%)"
            )
        elif tests > 0 and depth < MIN_TEST_DEPTH_RATIO:
            gaps.append(
                f"Insufficient test depth in {feature.name}: {depth * 100:.0f}% "
                f"(need {MIN_TEST_DEPTH_RATIO * 100:.0f}%+)"
            )
    return gaps


def build_quality_notes(scan: ProjectScan) -> list[str]:
    thresholds = scan.linter_thresholds
    if not thresholds.max_lines and not thresholds.complexity:
        return ["No linter max-lines/complexity rules detected; threshold checks skipped."]

    notes = []
    for feature in scan.features:
        for path in feature.source_files:
            text = feature.read(path)
            if not text:
                continue
            display = _relative(path, scan.project_root)
            lines = count_lines(text)
            if thresholds.max_lines and lines > thresholds.max_lines:
                notes.append(f"{display} is {lines} lines (max-lines {thresholds.max_lines}).")
            complexity = estimate_complexity(text)
            if thresholds.complexity and complexity > thresholds.complexity:
                notes.append(
                    f"{display} estimated complexity {complexity} "
                    f"(complexity {thresholds.complexity})."
                )
    return notes


def build_dependency_issues(
    scan: ProjectScan, dependency_analysis: "DependencyAnalysis | None" = None
) -> list[str]:
    issues = []
    manifest = scan.manifest
    if manifest.unused:
        sample = ", ".join(manifest.unused[:8])
        issues.append(
            "Unused dependencies detected (heuristic, import scan only): "
            f"{len(manifest.unused)} (sample: {sample})."
        )
    if manifest.missing:
        sample = ", ".join(manifest.missing[:8])
        issues.append(
            "Missing dependencies detected (heuristic, import scan only): "
            f"{len(manifest.missing)} (sample: {sample})."
        )
    if dependency_analysis is not None:
        for cycle in dependency_analysis.cycles:
            issues.append(f"Circular feature dependency: {' -> '.join(cycle)}")
    return issues


def build_technical_health(
    scan: ProjectScan, dependency_analysis: "DependencyAnalysis | None" = None
) -> TechnicalHealthReport:
    """
    Roll structural, test, quality, dependency and security signals into debt items.

    Args:
        scan: Project scan
        dependency_analysis: Optional feature graph (adds cycle issues)

    Returns:
        TechnicalHealthReport
    """
    report = TechnicalHealthReport(
        structural_gaps=build_structural_gaps(scan),
        test_gaps=build_test_gaps(scan),
        quality_notes=build_quality_notes(scan),
        dependency_issues=build_dependency_issues(scan, dependency_analysis),
        security_notes=format_security_findings(scan.security_findings),
    )

    if report.structural_gaps:
        n = len(report.structural_gaps)
        report.debt_items.append(
            TechnicalDebtItem(f"Structural gaps detected ({n}).", 6, 6, min(12, n * 2), 6)
        )
    if report.test_gaps:
        n = len(report.test_gaps)
        report.debt_items.append(
            TechnicalDebtItem(
                f"Test coverage gaps detected ({n}).", 5, 3, min(24, n * 3), 6
            )
        )
    if scan.security_findings:
        n = len(scan.security_findings)
        report.debt_items.append(
            TechnicalDebtItem(
                f"Security-sensitive patterns detected ({n}).", 8, 6, min(20, n * 4), 7
            )
        )
    if report.dependency_issues:
        report.debt_items.append(
            TechnicalDebtItem(
                f"Dependency hygiene issues detected ({len(report.dependency_issues)}).",
                4,
                3,
                4,
                4,
            )
        )

    logger.debug(f"Technical health: {len(report.debt_items)} debt item(s)")
    return report

"""
Decision Matrix
===============

Weighted multi-criteria ranking that picks the single feature to build next.

Five factors, each scored on [0, 1] and weighted by the normalized
RankingWeights:

    user_impact          user_value / 10               (business config)
    business_value       business_impact / 10          (business config)
    strategic_alignment  strategic_importance / 10     (business config)
    completeness         completeness total / 100      (scorer)
    technical_blocking   dependents / blocked status   (dependency graph)

A candidate missing any business input is scored on technical evidence alone
(the technical rubric) and flagged ``technical_fallback``. Every feature is
vetoed while a blocks-all blocker is unresolved.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .blockers import BlockerCheck
from .business import BusinessValues
from .config import AdvisorSettings, RankingWeights
from .core.exceptions import (
    ErrorContext,
    MissingPreconditionError,
    NoFeaturesDiscoveredError,
    StalePreconditionError,
)
from .core.logging import get_logger
from .dependencies import DependencyAnalysis
from .models import Confidence, FeatureScan, ProjectScan, weakest_confidence
from .scoring import CompletenessScore
from .technical_health import TechnicalHealthReport

logger = get_logger(__name__)

MAX_RUNNER_UPS = 3
RUBRIC_MAX = 25

FACTOR_LABELS: dict[str, str] = {
    "user_impact": "user impact",
    "business_value": "business value",
    "strategic_alignment": "strategic alignment",
    "completeness": "completeness",
    "technical_blocking": "technical blocking",
}

RUBRIC_LABELS: dict[str, str] = {
    "user_impact": "user impact",
    "risk_reduction": "risk reduction",
    "effort": "effort",
    "architectural_leverage": "architectural leverage",
    "time_to_value": "time-to-value",
}

# factor -> BusinessValue attribute
BUSINESS_FACTORS: dict[str, str] = {
    "user_impact": "user_value",
    "business_value": "business_impact",
    "strategic_alignment": "strategic_importance",
}


@dataclass
class DecisionFactor:
    name: str
    score: float | None
    weight: float
    weighted_score: float | None
    evidence: list[str] = field(default_factory=list)
    confidence: Confidence = Confidence.UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "weight": self.weight,
            "weighted_score": self.weighted_score,
            "evidence": list(self.evidence),
            "confidence": self.confidence.value,
        }


# =============================================================================
# Technical rubric (fallback scoring)
# =============================================================================


def _rubric_value(value: float) -> float:
    return min(5.0, max(1.0, round(value * 10) / 10))


@dataclass
class TechnicalRubric:
    """Five 1-5 sub-scores from technical evidence only (max 25)."""

    user_impact: float
    risk_reduction: float
    effort: float
    architectural_leverage: float
    time_to_value: float
    rationale: list[str] = field(default_factory=list)

    @property
    def total(self) -> float:
        return round(
            (
                self.user_impact
                + self.risk_reduction
                + self.effort
                + self.architectural_leverage
                + self.time_to_value
            )
            * 10
        ) / 10

    @property
    def ratio(self) -> float:
        return self.total / RUBRIC_MAX

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_impact": self.user_impact,
            "risk_reduction": self.risk_reduction,
            "effort": self.effort,
            "architectural_leverage": self.architectural_leverage,
            "time_to_value": self.time_to_value,
            "total": self.total,
            "rationale": list(self.rationale),
        }


def architectural_leverage(feature: FeatureScan | None, shared_components: list[str]) -> float:
    score = 2.5
    if feature is None:
        return score

    components = len(feature.component_files)
    if components >= 5:
        score += 1.0
    elif components >= 3:
        score += 0.6
    elif components >= 2:
        score += 0.3

    specs = len(feature.spec_files)
    if specs >= 3:
        score += 0.8
    elif specs >= 2:
        score += 0.5
    elif specs >= 1:
        score += 0.3

    templates = len(feature.template_files)
    if templates >= 3:
        score += 0.4
    elif templates >= 1:
        score += 0.2

    if any(
        shared in component.path.as_posix()
        for shared in shared_components
        for component in feature.component_files
    ):
        score += 0.3
    return _rubric_value(score)


def score_technical_rubric(
    completeness: CompletenessScore,
    feature: FeatureScan | None,
    health: TechnicalHealthReport,
    shared_components: list[str],
) -> TechnicalRubric:
    """
    Score a feature on technical evidence alone.

    Args:
        completeness: The feature's completeness score
        feature: The feature's scan (for leverage), if known
        health: Project technical health
        shared_components: Shared component names

    Returns:
        TechnicalRubric
    """
    implementation = completeness.implementation.score
    accessibility = completeness.accessibility.score
    tests = completeness.test_signal.score
    quality = completeness.code_quality.score

    user_impact = 1 + implementation / 25 * 2 + accessibility / 25 * 2
    if accessibility >= 23:
        user_impact += 0.3

    risk_reduction = 1 + tests / 25 * 2 + quality / 25 * 2
    if len(health.security_notes) > 2:
        risk_reduction -= 0.5
    elif health.security_notes:
        risk_reduction -= 0.25
    if len(health.debt_items) > 5:
        risk_reduction -= 0.4
    elif len(health.debt_items) > 2:
        risk_reduction -= 0.2
    if tests >= 23:
        risk_reduction += 0.3

    ratio = completeness.total / 100
    rubric = TechnicalRubric(
        user_impact=_rubric_value(user_impact),
        risk_reduction=_rubric_value(risk_reduction),
        effort=_rubric_value(1 + ratio * 4),
        architectural_leverage=architectural_leverage(feature, shared_components),
        time_to_value=_rubric_value(1 + ratio * ratio * 4),
    )

    rubric.rationale.append(
        f"Technical rubric: {rubric.total:g}/25 (User Impact: {rubric.user_impact:g}, "
        f"Risk Reduction: {rubric.risk_reduction:g}, Effort: {rubric.effort:g}, "
        f"Arch Leverage: {rubric.architectural_leverage:g}, "
        f"Time-to-Value: {rubric.time_to_value:g})"
    )
    if tests < 15:
        rubric.rationale.append(
            f"Low test signal ({tests}/25) - high risk reduction potential"
        )
    if accessibility < 15:
        rubric.rationale.append(
            f"Accessibility gaps ({accessibility}/25) - user impact improvement needed"
        )
    if implementation < 15:
        rubric.rationale.append(
            f"Implementation incomplete ({implementation}/25) - core functionality needed"
        )
    return rubric


# =============================================================================
# Candidates
# =============================================================================


@dataclass
class DecisionCandidate:
    feature: str
    factors: dict[str, DecisionFactor]
    total_score: float
    technical_fallback: bool = False
    rubric: TechnicalRubric | None = None
    why_not_others: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> Confidence:
        if self.technical_fallback:
            return Confidence.HEURISTIC
        return weakest_confidence([f.confidence for f in self.factors.values()])

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            "total_score": round(self.total_score, 4),
            "technical_fallback": self.technical_fallback,
            "confidence": self.confidence.value,
            "factors": {name: f.to_dict() for name, f in self.factors.items()},
            "rubric": self.rubric.to_dict() if self.rubric else None,
            "why_not_others": list(self.why_not_others),
        }


@dataclass
class DecisionMatrix:
    candidates: list[DecisionCandidate] = field(default_factory=list)
    winner: DecisionCandidate | None = None
    runner_ups: list[DecisionCandidate] = field(default_factory=list)
    vetoed: list[str] = field(default_factory=list)
    veto_reason: str | None = None
    decision_rationale: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": [c.to_dict() for c in self.candidates],
            "winner": self.winner.feature if self.winner else None,
            "runner_ups": [c.feature for c in self.runner_ups],
            "vetoed": list(self.vetoed),
            "veto_reason": self.veto_reason,
            "decision_rationale": list(self.decision_rationale),
        }


def technical_blocking_score(dependents: int, blocked: bool) -> float:
    """Raw 0-10 score: features others depend on (or that are blocked) rank higher."""
    if dependents >= 3:
        score = 10
    elif dependents == 2:
        score = 8
    elif dependents == 1:
        score = 6
    else:
        score = 3
    if blocked:
        score = max(score, 7)
    return score / 10


def build_factors(
    completeness: CompletenessScore,
    business: BusinessValues,
    dependencies: DependencyAnalysis,
    weights: dict[str, float],
) -> dict[str, DecisionFactor]:
    name = completeness.feature
    value = business.get(name)
    factors: dict[str, DecisionFactor] = {}

    for factor, attribute in BUSINESS_FACTORS.items():
        raw = getattr(value, attribute)
        if raw is None:
            factors[factor] = DecisionFactor(
                name=factor,
                score=None,
                weight=weights[factor],
                weighted_score=None,
                evidence=["UNKNOWN"],
                confidence=Confidence.UNAVAILABLE,
            )
            continue
        score = min(1.0, max(0.0, raw / 10))
        factors[factor] = DecisionFactor(
            name=factor,
            score=score,
            weight=weights[factor],
            weighted_score=score * weights[factor],
            evidence=[f"{attribute} = {raw:g}/10 ({value.source})"],
            confidence=Confidence.MEASURED,
        )

    ratio = completeness.total / 100
    factors["completeness"] = DecisionFactor(
        name="completeness",
        score=ratio,
        weight=weights["completeness"],
        weighted_score=ratio * weights["completeness"],
        evidence=[f"Completeness {completeness.total}/100 ({completeness.interpretation})"],
        confidence=completeness.confidence,
    )

    dependents = dependencies.dependent_count(name)
    blocked = dependencies.is_blocked(name)
    blocking = technical_blocking_score(dependents, blocked)
    evidence = [f"Depended on by {dependents} feature(s)"]
    if blocked:
        missing = ", ".join(dependencies.missing_dependencies.get(name, []))
        evidence.append(f"Blocked by missing: {missing}")
    factors["technical_blocking"] = DecisionFactor(
        name="technical_blocking",
        score=blocking,
        weight=weights["technical_blocking"],
        weighted_score=blocking * weights["technical_blocking"],
        evidence=evidence,
        confidence=Confidence.PATTERN_BASED,
    )
    return factors


def _factor_deltas(winner: DecisionCandidate, runner_up: DecisionCandidate) -> list[tuple[float, str]]:
    deltas = []
    for name, factor in winner.factors.items():
        other = runner_up.factors.get(name)
        if other is None or factor.weighted_score is None or other.weighted_score is None:
            continue
        weighted_delta = factor.weighted_score - other.weighted_score
        if weighted_delta > 0:
            raw_delta = (factor.score or 0) - (other.score or 0)
            deltas.append((weighted_delta, f"{raw_delta * 100:.0f}% higher {FACTOR_LABELS[name]}"))
    return deltas


def _rubric_deltas(winner: TechnicalRubric, runner_up: TechnicalRubric) -> list[tuple[float, str]]:
    deltas = []
    for name, label in RUBRIC_LABELS.items():
        delta = getattr(winner, name) - getattr(runner_up, name)
        if delta > 0:
            deltas.append((delta / RUBRIC_MAX, f"+{delta:g} rubric {label}"))
    return deltas


def _why_not(winner: DecisionCandidate, runner_up: DecisionCandidate) -> str:
    # Fallback totals are rubric ratios; only rubric sub-scores explain the gap
    if winner.technical_fallback != runner_up.technical_fallback:
        reasons = "weighted business score compared with technical rubric score"
    else:
        if not winner.technical_fallback:
            deltas = _factor_deltas(winner, runner_up)
        elif winner.rubric is not None and runner_up.rubric is not None:
            deltas = _rubric_deltas(winner.rubric, runner_up.rubric)
        else:
            deltas = []
        deltas.sort(key=lambda item: item[0], reverse=True)
        reasons = ", ".join(text for _, text in deltas) or "equal scores, ordered by name"
    gap = (winner.total_score - runner_up.total_score) * 100
    return f'"{winner.feature}" scores {gap:.1f}% higher than "{runner_up.feature}": {reasons}'


def _rationale(winner: DecisionCandidate, runner_ups: list[DecisionCandidate]) -> list[str]:
    lines = [f'Selected "{winner.feature}" with weighted score: {winner.total_score * 100:.1f}/100']
    for name, factor in winner.factors.items():
        label = FACTOR_LABELS[name].title()
        if factor.score is None:
            lines.append(f"{label} ({factor.weight * 100:.0f}%): UNKNOWN")
        else:
            lines.append(
                f"{label} ({factor.weight * 100:.0f}%): {factor.score * 100:.0f}% -> "
                f"{(factor.weighted_score or 0) * 100:.1f} points"
            )
    if winner.technical_fallback and winner.rubric is not None:
        lines.append(
            f"Business inputs incomplete; scored on technical rubric "
            f"({winner.rubric.total:g}/25) [HEURISTIC]"
        )
    if runner_ups:
        lines.append(
            "Runner-ups: "
            + ", ".join(f'"{c.feature}" ({c.total_score * 100:.1f})' for c in runner_ups)
        )
    return lines


def build_decision_matrix(
    scan: ProjectScan,
    completeness: list[CompletenessScore],
    dependencies: DependencyAnalysis,
    business: BusinessValues,
    health: TechnicalHealthReport,
    blocker_check: BlockerCheck | None = None,
    weights: RankingWeights | None = None,
) -> DecisionMatrix:
    """
    Rank features and pick the one to build next.

    Args:
        scan: Project scan
        completeness: Completeness scores, one per feature
        dependencies: Feature dependency graph
        business: Normalized business inputs
        health: Technical health report (rubric penalties)
        blocker_check: Phase gate; unresolved blocks-all blockers veto everything
        weights: Factor weights (normalized here)

    Returns:
        DecisionMatrix with candidates sorted by total, descending
    """
    normalized = (weights or RankingWeights()).normalized()

    candidates = []
    for score in completeness:
        factors = build_factors(score, business, dependencies, normalized)
        rubric = score_technical_rubric(
            score, scan.feature(score.feature), health, scan.shared_components
        )
        fallback = any(factors[name].score is None for name in BUSINESS_FACTORS)
        if fallback:
            total = rubric.ratio
        else:
            total = sum(f.weighted_score or 0.0 for f in factors.values())
        candidates.append(
            DecisionCandidate(
                feature=score.feature,
                factors=factors,
                total_score=total,
                technical_fallback=fallback,
                rubric=rubric,
            )
        )
    candidates.sort(key=lambda c: (-c.total_score, c.feature))
    matrix = DecisionMatrix(candidates=candidates)

    active = blocker_check.active_blockers if blocker_check is not None else []
    if active:
        matrix.vetoed = [c.feature for c in candidates]
        matrix.veto_reason = "Unresolved blocks-all blocker(s): " + ", ".join(
            f"{b.id} ({b.name})" for b in active
        )
        matrix.decision_rationale = [f"No feature selected. {matrix.veto_reason}"]
        logger.info(matrix.decision_rationale[0], extra={"stage": "rank"})
        return matrix

    if not candidates:
        matrix.decision_rationale = ["No eligible features available for decision"]
        return matrix

    winner = candidates[0]
    matrix.winner = winner
    matrix.runner_ups = candidates[1 : 1 + MAX_RUNNER_UPS]
    winner.why_not_others = [_why_not(winner, other) for other in matrix.runner_ups]
    matrix.decision_rationale = _rationale(winner, matrix.runner_ups)
    logger.info(
        f"Selected {winner.feature} ({winner.total_score * 100:.1f}/100)",
        extra={"stage": "rank", "feature": winner.feature},
    )
    return matrix


def ensure_fresh_blocker_check(
    blocker_check: BlockerCheck | None,
    max_age_seconds: float,
    now: datetime | None = None,
) -> BlockerCheck:
    """
    Require a blocker check performed within ``max_age_seconds``.

    Raises:
        MissingPreconditionError: If no check was performed
        StalePreconditionError: If the check is too old
    """
    context = ErrorContext(operation="rank_features", stage="rank")
    if blocker_check is None:
        raise MissingPreconditionError(
            "Blocker check must run before ranking features", context=context
        )
    age = blocker_check.age_seconds(now or datetime.now(timezone.utc))
    if age > max_age_seconds:
        raise StalePreconditionError(
            f"Blocker check is {age:.0f}s old (max {max_age_seconds:.0f}s); re-run it",
            age_seconds=age,
            max_age_seconds=max_age_seconds,
            context=context,
        )
    return blocker_check


def rank_features(
    scan: ProjectScan,
    blocker_check: BlockerCheck | None,
    completeness: list[CompletenessScore],
    dependencies: DependencyAnalysis,
    business: BusinessValues,
    health: TechnicalHealthReport,
    settings: AdvisorSettings,
    now: datetime | None = None,
) -> DecisionMatrix:
    """
    Validate ranking preconditions, then build the decision matrix.

    Raises:
        NoFeaturesDiscoveredError: If the scan found no features
        MissingPreconditionError: If ``blocker_check`` is None
        StalePreconditionError: If ``blocker_check`` is older than the freshness window
    """
    if not scan.features:
        raise NoFeaturesDiscoveredError(
            f"No features discovered under {scan.features_dir}",
            context=ErrorContext(operation="rank_features", stage="rank"),
        )
    ensure_fresh_blocker_check(blocker_check, settings.blocker_freshness_seconds, now)
    return build_decision_matrix(
        scan,
        completeness,
        dependencies,
        business,
        health,
        blocker_check=blocker_check,
        weights=settings.weights,
    )

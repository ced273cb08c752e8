"""
Effort estimation.

A feature-level hours estimate: a base derived from how incomplete the feature
is, scaled by size, test-gap and integration multipliers.
"""

from dataclasses import dataclass, field
from typing import Any

from .models import Confidence

MIN_HOURS = 8
HOURS_PER_MISSING_POINT = 0.6


@dataclass
class EffortEstimate:
    hours: int
    base_hours: float
    multipliers: dict[str, float] = field(default_factory=dict)
    confidence: Confidence = Confidence.ESTIMATED
    source: str = "Completeness gap x size/test/integration multipliers"

    def to_dict(self) -> dict[str, Any]:
        return {
            "hours": self.hours,
            "base_hours": round(self.base_hours, 1),
            "multipliers": dict(self.multipliers),
            "confidence": self.confidence.value,
            "source": self.source,
        }


def _loc_multiplier(lines: int) -> float:
    if lines > 1000:
        return 1.4
    if lines > 500:
        return 1.2
    if lines > 200:
        return 1.1
    return 1.0


def _component_multiplier(components: int) -> float:
    if components > 5:
        return 1.4
    if components > 3:
        return 1.2
    if components > 1:
        return 1.1
    return 1.0


def _test_gap_multiplier(test_score: int) -> float:
    if test_score <= 10:
        return 1.5
    if test_score <= 15:
        return 1.3
    if test_score <= 20:
        return 1.1
    return 1.0


def _integration_multiplier(dependents: int) -> float:
    if dependents >= 3:
        return 1.3
    if dependents >= 1:
        return 1.1
    return 1.0


def estimate_effort(
    completeness: int,
    line_count: int = 0,
    component_count: int = 0,
    test_score: int = 25,
    dependent_count: int = 0,
) -> EffortEstimate:
    """
    Estimate remaining hours for a feature.

    Args:
        completeness: Completeness total (0-100)
        line_count: Feature lines of code
        component_count: Number of components
        test_score: Test-signal score (0-25)
        dependent_count: Features that depend on this one

    Returns:
        EffortEstimate; HEURISTIC when two or more multipliers apply
    """
    completeness = max(0, min(100, completeness))
    base = (100 - completeness) * HOURS_PER_MISSING_POINT
    multipliers = {
        "loc": _loc_multiplier(line_count),
        "components": _component_multiplier(component_count),
        "test_gap": _test_gap_multiplier(test_score),
        "integration": _integration_multiplier(dependent_count),
    }

    product = 1.0
    for value in multipliers.values():
        product *= value
    hours = max(MIN_HOURS, int(base * product + 0.5))

    applied = sum(1 for value in multipliers.values() if value != 1.0)
    confidence = Confidence.HEURISTIC if applied >= 2 else Confidence.ESTIMATED
    return EffortEstimate(
        hours=hours, base_hours=base, multipliers=multipliers, confidence=confidence
    )

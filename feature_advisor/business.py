"""
Business configuration.

Normalizes the optional business inputs (priority overrides, roadmap order,
customer requests, revenue impact) into one BusinessValue per feature.

Each file is reduced once, at the boundary, to ``(name, record)`` pairs; shapes
that are not recognized are ignored. A dimension with no data stays None
(rendered UNKNOWN) and is never defaulted to zero.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import AdvisorSettings
from .core.logging import get_logger
from .core.safe_io import safe_read_json
from .models import Confidence

logger = get_logger(__name__)

NAME_KEYS = ("feature", "name", "title")
CONTAINER_KEYS = ("features", "items", "roadmap", "requests", "issues")
OVERRIDE_CONTAINER_KEYS = ("features", "items", "roadmap")

# field -> accepted keys in business-priority.json, first match wins
OVERRIDE_KEYS: dict[str, tuple[str, ...]] = {
    "priority": ("priority", "rank", "order"),
    "user_value": ("user_value", "userValue"),
    "business_impact": ("business_value", "businessImpact"),
    "strategic_importance": ("strategic_value", "strategicImportance", "strategic"),
    "customer_requests": ("customer_requests", "customerRequests", "requests"),
    "market_differentiation": ("market_differentiation", "marketDifferentiation", "market"),
}

VALUE_FIELDS = (
    "user_value",
    "business_impact",
    "strategic_importance",
    "customer_requests",
    "market_differentiation",
)

UNKNOWN = "UNKNOWN"


def _is_number(value: Any) -> bool:
    # json accepts Infinity and NaN; those count as missing
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _first(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _clamp(value: float, low: int, high: int) -> int:
    return max(low, min(high, _round_half_up(value)))


def normalize_relative(value: float, max_value: float) -> int:
    """Scale ``value`` against ``max_value`` onto 0-10."""
    if max_value <= 0:
        return 0
    return _clamp(value / max_value * 10, 0, 10)


def strategic_from_priority(priority: float, max_priority: float) -> int:
    """Priority 1 maps to 10, the lowest priority maps to 1."""
    return _clamp(10 - (priority - 1) / max(1, max_priority - 1) * 9, 1, 10)


def _list_records(items: list[Any]) -> list[tuple[str, Any]]:
    records = []
    for item in items:
        if isinstance(item, str):
            records.append((item, {}))
        elif isinstance(item, dict):
            name = _first(item, NAME_KEYS)
            if isinstance(name, str):
                records.append((name, item))
    return records


def extract_records(
    data: Any, container_keys: tuple[str, ...] = CONTAINER_KEYS
) -> list[tuple[str, Any]]:
    """
    Reduce a business JSON document to ``(name, record)`` pairs.

    Recognized shapes: a list of names, a list of records named by
    feature/name/title, or an object holding either of those (or a keyed
    object) under one of ``container_keys``.
    """
    if isinstance(data, list):
        return _list_records(data)
    if not isinstance(data, dict):
        return []
    container = _first(data, container_keys)
    if isinstance(container, list):
        return _list_records(container)
    if isinstance(container, dict):
        return [(name, item) for name, item in container.items() if isinstance(name, str)]
    return []


def extract_overrides(data: Any) -> dict[str, dict[str, float]]:
    """Numeric overrides per feature from ``business-priority.json``."""
    overrides: dict[str, dict[str, float]] = {}
    for name, item in extract_records(data, OVERRIDE_CONTAINER_KEYS):
        if _is_number(item):
            overrides[name] = {"priority": item}
            continue
        if not isinstance(item, dict):
            continue
        overrides[name] = {
            field_name: value
            for field_name, keys in OVERRIDE_KEYS.items()
            if _is_number(value := _first(item, keys))
        }
    return overrides


@dataclass
class BusinessValue:
    """Business inputs for one feature; None means UNKNOWN."""

    feature: str
    user_value: int | float | None = None
    business_impact: int | float | None = None
    strategic_importance: int | float | None = None
    customer_requests: int | float | None = None
    market_differentiation: int | float | None = None
    notes: list[str] = field(default_factory=list)
    source: str = "Business config files"

    @property
    def missing_fields(self) -> list[str]:
        return [name for name in VALUE_FIELDS if getattr(self, name) is None]

    @property
    def complete(self) -> bool:
        return not self.missing_fields

    @property
    def confidence(self) -> Confidence:
        return Confidence.MEASURED if self.complete else Confidence.UNAVAILABLE

    @property
    def total(self) -> float | None:
        """Sum of the five inputs, or None while any is unknown."""
        if not self.complete:
            return None
        return sum(getattr(self, name) for name in VALUE_FIELDS)

    def display(self, name: str) -> str:
        value = getattr(self, name)
        return UNKNOWN if value is None else f"{value:g}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            **{name: getattr(self, name) for name in VALUE_FIELDS},
            "total": self.total,
            "missing_fields": self.missing_fields,
            "confidence": self.confidence.value,
            "source": self.source,
            "notes": list(self.notes),
        }


@dataclass
class BusinessValues:
    """All business inputs for a run."""

    available: bool = False
    values: dict[str, BusinessValue] = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)

    def get(self, feature: str) -> BusinessValue:
        """Values for ``feature``; an all-UNKNOWN record when it has none."""
        if feature in self.values:
            return self.values[feature]
        reason = "No business data for feature." if self.available else "No business config found."
        return BusinessValue(feature=feature, notes=[reason])

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "sources": list(self.sources),
            "values": {name: value.to_dict() for name, value in self.values.items()},
        }


def _load(root: Path, relative: str, sources: list[str]) -> Any:
    data = safe_read_json(root / relative)
    if data is not None:
        sources.append(relative)
    return data


def load_business_values(root: Path | str, settings: AdvisorSettings) -> BusinessValues:
    """
    Read and normalize the optional business inputs under ``root``.

    Args:
        root: Project root
        settings: Run settings (file names)

    Returns:
        BusinessValues; ``available`` is False when no file could be read
    """
    root = Path(root)
    sources: list[str] = []
    priority_data = _load(root, settings.business_priority_file, sources)
    roadmap_data = _load(root, settings.roadmap_file, sources)
    request_data = _load(root, settings.requests_file, sources)
    revenue_data = _load(root, settings.revenue_file, sources)

    if not sources:
        logger.info("No business config found; business factors are UNKNOWN")
        return BusinessValues(available=False)

    overrides = extract_overrides(priority_data)

    priorities: dict[str, float] = {
        name: values["priority"] for name, values in overrides.items() if "priority" in values
    }
    for index, (name, item) in enumerate(extract_records(roadmap_data), start=1):
        raw = _first(item, ("priority", "rank")) if isinstance(item, dict) else None
        if _is_number(item):
            raw = item
        try:
            priority = float(raw) if raw is not None else float(index)
        except (TypeError, ValueError):
            priority = float(index)
        if not math.isfinite(priority):
            priority = float(index)
        priorities[name] = priority

    requests: dict[str, int] = {}
    for name, _ in extract_records(request_data):
        requests[name] = requests.get(name, 0) + 1

    revenue: dict[str, float] = {}
    revenue_records = extract_records(revenue_data)
    for index, (name, item) in enumerate(revenue_records):
        if isinstance(item, dict) and item:
            value = _first(item, ("revenue", "value", "impact"))
            if _is_number(value):
                revenue[name] = value
        elif item == {}:
            revenue[name] = len(revenue_records) - index
        elif _is_number(item):
            revenue[name] = item

    max_priority = max(priorities.values(), default=0)
    max_requests = max(requests.values(), default=0)
    max_revenue = max(revenue.values(), default=0)

    names = list(dict.fromkeys([*overrides, *priorities, *requests, *revenue]))
    values: dict[str, BusinessValue] = {}
    for name in names:
        override = overrides.get(name, {})
        value = BusinessValue(
            feature=name,
            **{key: override[key] for key in VALUE_FIELDS if key in override},
        )
        for key in VALUE_FIELDS:
            if key in override:
                label = key.replace("_", " ").capitalize()
                value.notes.append(f"{label} override detected ({override[key]:g}).")

        priority = priorities.get(name)
        if priority is not None and max_priority > 0:
            if value.strategic_importance is None:
                value.strategic_importance = strategic_from_priority(priority, max_priority)
                value.notes.append(f"Roadmap priority detected ({priority:g}/{max_priority:g}).")
            else:
                value.notes.append(
                    f"Roadmap priority detected ({priority:g}/{max_priority:g}); "
                    f"strategic importance override preserved ({value.strategic_importance:g})."
                )

        count = requests.get(name)
        if count is not None and max_requests > 0:
            if value.customer_requests is None:
                value.customer_requests = normalize_relative(count, max_requests)
            value.notes.append(f"Customer request count detected ({count}).")

        impact = revenue.get(name)
        if impact is not None and max_revenue > 0:
            if value.business_impact is None:
                value.business_impact = normalize_relative(impact, max_revenue)
            value.notes.append(f"Revenue impact detected ({impact:g}).")

        if value.missing_fields:
            value.notes.append(f"Missing business inputs: {', '.join(value.missing_fields)}.")
        values[name] = value

    logger.info(
        f"Business values loaded for {len(values)} feature(s) from {', '.join(sources)}",
        extra={"stage": "business"},
    )
    return BusinessValues(available=True, values=values, sources=sources)

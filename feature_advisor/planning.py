"""
Implementation Plan Generator
=============================

Turns the selected feature into a dependency-ordered task plan with concrete
file paths (derived from the configured project layout), hour estimates,
acceptance criteria, success metrics and risks.

The plan's ``build_order`` is a dependency-first ordering of task ids. It is
exposed as ``critical_path`` for report compatibility but is not a
duration-weighted longest path.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .catalogs import PATTERN_RULES, PatternRule
from .config import AdvisorSettings
from .core.exceptions import ErrorContext, PlanValidationError
from .core.logging import get_logger
from .core.safe_io import safe_write_json
from .dependencies import DependencyAnalysis
from .effort import EffortEstimate, estimate_effort
from .models import Confidence, FeatureScan, ProjectScan
from .scoring import CompletenessScore

logger = get_logger(__name__)


class TaskCategory(str, Enum):
    PREREQUISITE = "PREREQUISITE"
    CORE = "CORE"
    TESTING = "TESTING"
    DESIGN_SYSTEM = "DESIGN_SYSTEM"
    UI_REFACTOR = "UI_REFACTOR"


class Operation(str, Enum):
    CREATE = "CREATE"
    MODIFY = "MODIFY"
    DELETE = "DELETE"


@dataclass
class TaskDependency:
    task_id: str
    reason: str


@dataclass
class ImplementationTask:
    id: str
    category: TaskCategory
    description: str
    file_path: str
    operation: Operation
    estimated_hours: float
    dependencies: list[TaskDependency] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    line_number: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "description": self.description,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "operation": self.operation.value,
            "estimated_hours": self.estimated_hours,
            "dependencies": [vars(dep) for dep in self.dependencies],
            "acceptance_criteria": list(self.acceptance_criteria),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImplementationTask":
        return cls(
            id=data["id"],
            category=TaskCategory(data["category"]),
            description=data.get("description", ""),
            file_path=data.get("file_path", ""),
            line_number=data.get("line_number"),
            operation=Operation(data.get("operation", Operation.CREATE.value)),
            estimated_hours=data.get("estimated_hours", 0),
            dependencies=[TaskDependency(**dep) for dep in data.get("dependencies", [])],
            acceptance_criteria=list(data.get("acceptance_criteria", [])),
        )


@dataclass
class SuccessMetric:
    name: str
    target: str
    measurement: str
    type: str


@dataclass
class PlanRisk:
    description: str
    likelihood: str
    impact: str
    mitigation: str


@dataclass
class ImplementationPlan:
    """Ordered task plan for one feature."""

    feature: str
    tasks: list[ImplementationTask] = field(default_factory=list)
    build_order: list[str] = field(default_factory=list)
    total_effort: dict[str, float] = field(default_factory=dict)
    effort_estimate: EffortEstimate | None = None
    acceptance_criteria: list[str] = field(default_factory=list)
    success_metrics: list[SuccessMetric] = field(default_factory=list)
    risks: list[PlanRisk] = field(default_factory=list)
    pattern_rules: list[PatternRule] = field(default_factory=list)

    @property
    def critical_path(self) -> list[str]:
        return self.build_order

    def task(self, task_id: str) -> ImplementationTask | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def ordered_tasks(self) -> list[ImplementationTask]:
        by_id = {task.id: task for task in self.tasks}
        return [by_id[task_id] for task_id in self.build_order if task_id in by_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature": self.feature,
            "tasks": [task.to_dict() for task in self.tasks],
            "build_order": list(self.build_order),
            "critical_path": list(self.build_order),
            "total_effort": dict(self.total_effort),
            "effort_estimate": self.effort_estimate.to_dict() if self.effort_estimate else None,
            "acceptance_criteria": list(self.acceptance_criteria),
            "success_metrics": [vars(metric) for metric in self.success_metrics],
            "risks": [vars(risk) for risk in self.risks],
            "pattern_rules": [
                {
                    "name": rule.name,
                    "rules": list(rule.rules),
                    "acceptance_criteria": list(rule.acceptance_criteria),
                }
                for rule in self.pattern_rules
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImplementationPlan":
        """Rebuild a plan saved with to_dict()."""
        rules_by_name = {rule.name: rule for rule in PATTERN_RULES}
        estimate = data.get("effort_estimate")
        return cls(
            feature=data["feature"],
            tasks=[ImplementationTask.from_dict(task) for task in data.get("tasks", [])],
            build_order=list(data.get("build_order") or data.get("critical_path") or []),
            total_effort=dict(data.get("total_effort", {})),
            effort_estimate=EffortEstimate(
                hours=estimate["hours"],
                base_hours=estimate["base_hours"],
                multipliers=dict(estimate.get("multipliers", {})),
                confidence=Confidence(estimate["confidence"]),
                source=estimate.get("source", ""),
            )
            if estimate
            else None,
            acceptance_criteria=list(data.get("acceptance_criteria", [])),
            success_metrics=[SuccessMetric(**m) for m in data.get("success_metrics", [])],
            risks=[PlanRisk(**r) for r in data.get("risks", [])],
            pattern_rules=[
                rules_by_name[r["name"]]
                for r in data.get("pattern_rules", [])
                if r.get("name") in rules_by_name
            ],
        )

    def save(self, path: Path | str) -> Path:
        """Write the plan as JSON atomically."""
        safe_write_json(path, self.to_dict())
        logger.info(f"Saved implementation plan for {self.feature} to {path}")
        return Path(path)


# =============================================================================
# Ordering
# =============================================================================


def build_order(tasks: list[ImplementationTask]) -> list[str]:
    """
    Dependency-first ordering of task ids (post-order DFS).

    Every dependency precedes its dependents. Unknown dependency ids are
    ignored.

    Raises:
        PlanValidationError: If the dependencies contain a cycle
    """
    by_id = {task.id: task for task in tasks}
    done: set[str] = set()
    visiting: list[str] = []
    order: list[str] = []

    def visit(task_id: str) -> None:
        if task_id in done or task_id not in by_id:
            return
        if task_id in visiting:
            cycle = visiting[visiting.index(task_id) :] + [task_id]
            raise PlanValidationError(
                f"Task dependency cycle: {' -> '.join(cycle)}",
                context=ErrorContext(operation="build_order", extra={"cycle": cycle}),
            )
        visiting.append(task_id)
        for dependency in by_id[task_id].dependencies:
            visit(dependency.task_id)
        visiting.pop()
        done.add(task_id)
        order.append(task_id)

    for task in tasks:
        visit(task.id)
    return order


def validate_plan(plan: ImplementationPlan) -> None:
    """
    Check unique task ids, known dependency ids and acyclicity.

    Raises:
        PlanValidationError: On the first violation found
    """
    context = ErrorContext(operation="validate_plan", feature=plan.feature)
    duplicates = [task_id for task_id, n in Counter(t.id for t in plan.tasks).items() if n > 1]
    if duplicates:
        raise PlanValidationError(f"Duplicate task ids: {', '.join(duplicates)}", context=context)

    known = {task.id for task in plan.tasks}
    for task in plan.tasks:
        unknown = [dep.task_id for dep in task.dependencies if dep.task_id not in known]
        if unknown:
            raise PlanValidationError(
                f"{task.id} depends on unknown task(s): {', '.join(unknown)}",
                context=context,
            )

    build_order(plan.tasks)


# =============================================================================
# Plan content
# =============================================================================


def _component_text(feature: FeatureScan) -> str:
    return "\n".join(f"{c.template}\n{c.source}" for c in feature.component_files)


def get_applicable_pattern_rules(feature: FeatureScan | None) -> list[PatternRule]:
    """Pattern rules whose trigger matches the feature's evidence."""
    if feature is None:
        return []

    content = _component_text(feature)
    applicable = []
    for rule in PATTERN_RULES:
        if rule.name == "component":
            applies = bool(feature.component_files)
        elif rule.name == "stores":
            applies = bool(feature.stores) or any(
                path.name.endswith(".store.ts") for path in feature.source_files
            )
        elif rule.name == "tests":
            applies = bool(feature.spec_files)
        else:
            applies = bool(rule.risk_domain and rule.risk_domain in feature.risk_domains) or bool(
                rule.content_pattern and rule.content_pattern.search(content)
            )
        if applies:
            applicable.append(rule)
    return applicable


SUCCESS_METRICS = [
    SuccessMetric(
        "Feature Completeness", "100%", "All acceptance criteria met, no blockers", "TECHNICAL"
    ),
    SuccessMetric("Quality Gates", "Pass", "Lint, tests, build and type check pass", "TECHNICAL"),
    SuccessMetric(
        "Accessibility",
        "WCAG 2.1 AA focus/keyboard/skip links",
        "Manual verification of focus, keyboard and skip links",
        "USER",
    ),
    SuccessMetric(
        "Design Consistency",
        "Design system guidance applied",
        "Review against the project design system",
        "DESIGN",
    ),
]

PLAN_RISKS = [
    PlanRisk(
        'RTL support relies on CSS logical properties and dir="rtl" usage',
        "MEDIUM",
        "MEDIUM",
        "Validate layouts in both text directions",
    ),
    PlanRisk(
        "Accessibility gaps may exist (focus/keyboard/skip links)",
        "MEDIUM",
        "MEDIUM",
        "Verify keyboard navigation and focus states manually",
    ),
    PlanRisk(
        "State ownership drift between the store and components",
        "LOW",
        "MEDIUM",
        "Keep data state in the store and UI state in components",
    ),
]

PLAN_ACCEPTANCE_CRITERIA = [
    "All tasks completed and acceptance criteria met",
    "Tests passing (quality gates)",
    "Lint and type check pass (quality gates)",
    "WCAG 2.1 AA focus/keyboard/skip links verified",
    "Design system guidance applied",
    'RTL support verified with CSS logical properties and dir="rtl" when applicable',
]


def _file_operation(settings: AdvisorSettings, relative: str) -> Operation:
    return Operation.MODIFY if settings.resolve(relative).is_file() else Operation.CREATE


class _TaskIds:
    def __init__(self) -> None:
        self.counter = 0

    def next(self) -> str:
        self.counter += 1
        return f"TASK-{self.counter}"


def build_tasks(
    feature: str,
    settings: AdvisorSettings,
    exists: bool,
    needs_navigation_refactor: bool = False,
    needs_design_system: bool = False,
) -> list[ImplementationTask]:
    """Standard task list for ``feature``; files already on disk get MODIFY tasks."""
    ids = _TaskIds()
    tasks: list[ImplementationTask] = []
    feature_dir = f"{settings.features_dir}/{feature}"
    store_dir = f"{settings.state_dir}/{feature}"

    navigation: ImplementationTask | None = None
    if needs_navigation_refactor:
        navigation = ImplementationTask(
            id=ids.next(),
            category=TaskCategory.UI_REFACTOR,
            description="Add sidebar navigation pattern (heuristic)",
            file_path=settings.app_dir,
            line_number=1,
            operation=Operation.MODIFY,
            estimated_hours=12,
            acceptance_criteria=[
                "Navigation follows existing routing patterns",
                "CSS logical properties for RTL support",
                "Keyboard navigation and focus states implemented",
                "Skip links added where main content exists",
            ],
        )
        tasks.append(navigation)

    if needs_design_system:
        tasks.append(
            ImplementationTask(
                id=ids.next(),
                category=TaskCategory.DESIGN_SYSTEM,
                description="Align components with design system guidance and RTL/accessibility rules",
                file_path=settings.global_styles_file,
                line_number=1,
                operation=Operation.MODIFY,
                estimated_hours=12,
                acceptance_criteria=[
                    "Design system guidance reviewed and applied where relevant",
                    "Physical properties converted to logical properties for RTL support",
                    "Skip link guidance reviewed where applicable",
                    "WCAG 2.1 AA focus/keyboard guidance reviewed",
                ],
            )
        )

    dto = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.PREREQUISITE,
        description=f"Create/update DTO for {feature} in shared library",
        file_path=f"{settings.dto_dir}/{feature}-api.dto.ts",
        operation=Operation.MODIFY if exists else Operation.CREATE,
        estimated_hours=2,
        acceptance_criteria=[
            "DTOs and enums live in the shared DTO library",
            "DTOs align with API contract docs when available",
            "Frontend and backend share types consistently",
        ],
    )
    api = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.PREREQUISITE,
        description=f"Update ApiService with {feature} endpoints",
        file_path=settings.api_service_file,
        line_number=50,
        operation=Operation.MODIFY,
        estimated_hours=3,
        dependencies=[TaskDependency(dto.id, "Requires DTO types")],
        acceptance_criteria=[
            "ApiService methods added for required endpoints",
            "Error handling aligns with existing ApiService usage",
            "Endpoint paths follow existing API contract docs when available",
        ],
    )
    store_path = f"{store_dir}/{feature}.store.ts"
    store = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.CORE,
        description=f"Create SignalStore for {feature} state management",
        file_path=store_path,
        operation=_file_operation(settings, store_path),
        estimated_hours=6,
        dependencies=[
            TaskDependency(dto.id, "Uses DTO types"),
            TaskDependency(api.id, "Calls ApiService methods"),
        ],
        acceptance_criteria=[
            "SignalStore pattern aligns with existing stores",
            "Data state and API calls live in the store",
            "UI state remains in components",
            "Computed selectors for derived data",
        ],
    )
    component_deps = [TaskDependency(store.id, "Injects SignalStore")]
    if navigation is not None:
        component_deps.append(TaskDependency(navigation.id, "Uses sidebar for navigation"))
    component = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.CORE,
        description=f"Create {feature} component (standalone)",
        file_path=f"{feature_dir}/{feature}.component.ts",
        operation=_file_operation(settings, f"{feature_dir}/{feature}.component.ts"),
        estimated_hours=8,
        dependencies=component_deps,
        acceptance_criteria=[
            "Standalone component with reactive signals",
            "UI state lives in components; data state lives in the store",
            "Keyboard navigation supported for interactive elements",
            "Focus states visible (WCAG 2.1 AA target)",
            "Skip link added when main content is present",
        ],
    )
    template = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.CORE,
        description=f"Create {feature} template aligned with design system guidance",
        file_path=f"{feature_dir}/{feature}.component.html",
        operation=_file_operation(settings, f"{feature_dir}/{feature}.component.html"),
        estimated_hours=4,
        dependencies=[TaskDependency(component.id, "Template for component")],
        acceptance_criteria=[
            "CSS logical properties for RTL support",
            'Respect dir="rtl" at document or component scope when applicable',
            "Keyboard navigation supported for interactive elements",
            "Skip link to main content when applicable",
        ],
    )
    styles = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.CORE,
        description=f"Align {feature} styles with design system guidance",
        file_path=f"{feature_dir}/{feature}.component.scss",
        operation=_file_operation(settings, f"{feature_dir}/{feature}.component.scss"),
        estimated_hours=3,
        dependencies=[TaskDependency(template.id, "Styles for template")],
        acceptance_criteria=[
            "Uses design system guidance where applicable",
            "Use CSS logical properties for RTL support",
            "Focus states with visible outline (WCAG 2.1 AA target)",
        ],
    )
    routing = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.CORE,
        description=f"Add {feature} route to app routing",
        file_path=settings.routes_file,
        line_number=10,
        operation=Operation.MODIFY,
        estimated_hours=1,
        dependencies=[TaskDependency(component.id, "Routes to component")],
        acceptance_criteria=[
            "Route path defined following existing route patterns",
            "Route wired to the feature component",
        ],
    )
    component_spec_path = f"{feature_dir}/{feature}.component.spec.ts"
    component_spec_op = _file_operation(settings, component_spec_path)
    component_spec = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.TESTING,
        description=(
            f"Extend unit tests for {feature}.component"
            if component_spec_op is Operation.MODIFY
            else f"Create unit tests for {feature}.component"
        ),
        file_path=component_spec_path,
        operation=component_spec_op,
        estimated_hours=6,
        dependencies=[
            TaskDependency(component.id, "Tests component logic"),
            TaskDependency(template.id, "Tests template rendering"),
        ],
        acceptance_criteria=[
            "Component instantiation test",
            "User interaction tests (click, input)",
            "Store method call verification",
            "Error state rendering tests",
            "Edge cases covered",
        ],
    )
    store_spec_path = f"{store_dir}/{feature}.store.spec.ts"
    store_spec_op = _file_operation(settings, store_spec_path)
    store_spec = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.TESTING,
        description=(
            f"Extend unit tests for {feature}.store"
            if store_spec_op is Operation.MODIFY
            else f"Create unit tests for {feature}.store"
        ),
        file_path=store_spec_path,
        operation=store_spec_op,
        estimated_hours=5,
        dependencies=[TaskDependency(store.id, "Tests store logic")],
        acceptance_criteria=[
            "API success and failure scenarios",
            "Optimistic update rollback tests",
            "Concurrent operation handling",
            "State consistency validation",
        ],
    )
    readme = ImplementationTask(
        id=ids.next(),
        category=TaskCategory.TESTING,
        description=f"Document {feature} implementation",
        file_path=f"{feature_dir}/README.md",
        operation=_file_operation(settings, f"{feature_dir}/README.md"),
        estimated_hours=2,
        dependencies=[TaskDependency(component.id, "Documents component")],
        acceptance_criteria=[
            "Feature description and user flows",
            "Component API documentation",
            "State management patterns",
            "Known limitations and future work",
        ],
    )
    tasks.extend(
        [dto, api, store, component, template, styles, routing, component_spec, store_spec, readme]
    )
    return tasks


def total_effort(tasks: list[ImplementationTask]) -> dict[str, float]:
    totals = {category.value: 0.0 for category in TaskCategory}
    for task in tasks:
        totals[task.category.value] += task.estimated_hours
    totals["total"] = sum(task.estimated_hours for task in tasks)
    return totals


def build_implementation_plan(
    feature: str,
    scan: ProjectScan,
    settings: AdvisorSettings,
    completeness: CompletenessScore | None = None,
    dependencies: DependencyAnalysis | None = None,
    needs_navigation_refactor: bool = False,
    needs_design_system: bool = False,
) -> ImplementationPlan:
    """
    Build the task plan for ``feature``.

    Args:
        feature: Feature name (need not exist yet)
        scan: Project scan
        settings: Run settings (layout paths)
        completeness: The feature's completeness score, if it exists
        dependencies: Feature graph (integration multiplier)
        needs_navigation_refactor: Prepend a navigation refactor task
        needs_design_system: Prepend a design-system alignment task

    Returns:
        A validated ImplementationPlan
    """
    feature_scan = scan.feature(feature)
    tasks = build_tasks(
        feature,
        settings,
        exists=feature_scan is not None,
        needs_navigation_refactor=needs_navigation_refactor,
        needs_design_system=needs_design_system,
    )

    effort = estimate_effort(
        completeness.total if completeness else 0,
        line_count=feature_scan.metrics.line_count if feature_scan else 0,
        component_count=len(feature_scan.component_files) if feature_scan else 0,
        test_score=completeness.test_signal.score if completeness else 0,
        dependent_count=dependencies.dependent_count(feature) if dependencies else 0,
    )

    plan = ImplementationPlan(
        feature=feature,
        tasks=tasks,
        build_order=build_order(tasks),
        total_effort=total_effort(tasks),
        effort_estimate=effort,
        acceptance_criteria=list(PLAN_ACCEPTANCE_CRITERIA),
        success_metrics=list(SUCCESS_METRICS),
        risks=list(PLAN_RISKS),
        pattern_rules=get_applicable_pattern_rules(feature_scan),
    )
    validate_plan(plan)
    logger.info(
        f"Plan for {feature}: {len(tasks)} task(s), {plan.total_effort['total']:g}h "
        f"(feature estimate {effort.hours}h [{effort.confidence.value}])",
        extra={"stage": "plan", "feature": feature},
    )
    return plan

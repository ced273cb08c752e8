"""Tests for implementation plan generation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from feature_advisor.core.exceptions import PlanValidationError
from feature_advisor.dependencies import analyze_dependencies
from feature_advisor.planning import (
    ImplementationPlan,
    ImplementationTask,
    Operation,
    TaskCategory,
    TaskDependency,
    build_implementation_plan,
    build_order,
    get_applicable_pattern_rules,
    validate_plan,
)
from feature_advisor.scanner import scan_project
from feature_advisor.scoring import score_feature

from conftest import write


def _task(task_id: str, *deps: str) -> ImplementationTask:
    return ImplementationTask(
        id=task_id,
        category=TaskCategory.CORE,
        description=task_id,
        file_path=f"{task_id}.ts",
        operation=Operation.CREATE,
        estimated_hours=1,
        dependencies=[TaskDependency(dep, "needs it") for dep in deps],
    )


class TestBuildOrder:
    """Tests for dependency-first ordering."""

    def test_dependencies_come_first(self) -> None:
        """Test that every dependency precedes its dependent."""
        tasks = [_task("c", "b"), _task("b", "a"), _task("a"), _task("d", "a", "c")]

        order = build_order(tasks)

        assert order == ["a", "b", "c", "d"]
        for task in tasks:
            for dep in task.dependencies:
                assert order.index(dep.task_id) < order.index(task.id)

    def test_unknown_dependency_ignored(self) -> None:
        """Test that ordering skips ids with no task."""
        assert build_order([_task("a", "ghost")]) == ["a"]

    def test_cycle_raises(self) -> None:
        """Test that a dependency cycle is a PlanValidationError."""
        with pytest.raises(PlanValidationError, match="a -> b -> a"):
            build_order([_task("a", "b"), _task("b", "a")])


class TestValidatePlan:
    """Tests for validate_plan."""

    def test_duplicate_ids(self) -> None:
        """Test that duplicate task ids are rejected."""
        plan = ImplementationPlan(feature="x", tasks=[_task("a"), _task("a")])

        with pytest.raises(PlanValidationError, match="Duplicate task ids: a"):
            validate_plan(plan)

    def test_unknown_dependency(self) -> None:
        """Test that dangling dependency ids are rejected."""
        plan = ImplementationPlan(feature="x", tasks=[_task("a", "ghost")])

        with pytest.raises(PlanValidationError, match="unknown task"):
            validate_plan(plan)

    def test_cycle(self) -> None:
        """Test that cycles are rejected."""
        plan = ImplementationPlan(feature="x", tasks=[_task("a", "b"), _task("b", "a")])

        with pytest.raises(PlanValidationError):
            validate_plan(plan)


class TestBuildImplementationPlan:
    """Tests for build_implementation_plan on the synthetic workspace."""

    @pytest.fixture
    def scan(self, settings):
        return scan_project(settings)

    def test_default_plan(self, scan, settings) -> None:
        """Test the ten standard tasks, their order and effort totals."""
        plan = build_implementation_plan("orders", scan, settings)

        assert len(plan.tasks) == 10
        assert plan.build_order == [f"TASK-{i}" for i in range(1, 11)]
        assert plan.critical_path == plan.build_order
        assert plan.total_effort["total"] == 40
        assert plan.total_effort["PREREQUISITE"] == 5
        assert plan.total_effort["TESTING"] == 13
        assert plan.task("TASK-1").operation is Operation.MODIFY
        assert plan.task("TASK-3").file_path == "src/app/state/orders/orders.store.ts"
        assert plan.task("TASK-7").file_path == settings.routes_file
        assert plan.task("TASK-7").line_number == 10

    def test_new_feature_creates_dto(self, scan, settings) -> None:
        """Test that a feature not yet on disk gets CREATE operations."""
        plan = build_implementation_plan("reports", scan, settings)

        assert plan.task("TASK-1").operation is Operation.CREATE
        assert plan.pattern_rules == []

    def test_existing_files_are_modified(self, workspace: Path, settings) -> None:
        """Test that files already on disk become MODIFY tasks instead of CREATE."""
        write(workspace, "src/app/state/orders/orders.store.spec.ts", 'describe("store", () => {});\n')

        plan = build_implementation_plan("orders", scan_project(settings), settings)
        by_path = {task.file_path.rsplit("/", 1)[-1]: task for task in plan.tasks}

        assert by_path["orders.component.ts"].operation is Operation.MODIFY
        assert by_path["orders.component.html"].operation is Operation.MODIFY
        assert by_path["orders.component.scss"].operation is Operation.CREATE
        assert by_path["orders.store.ts"].operation is Operation.MODIFY
        assert by_path["orders.component.spec.ts"].operation is Operation.MODIFY
        assert by_path["orders.component.spec.ts"].description == "Extend unit tests for orders.component"
        assert by_path["orders.store.spec.ts"].operation is Operation.MODIFY
        assert by_path["README.md"].operation is Operation.CREATE

    def test_new_feature_creates_every_file(self, scan, settings) -> None:
        """Test that a feature with nothing on disk only gets CREATE file tasks."""
        plan = build_implementation_plan("reports", scan, settings)
        feature_tasks = [task for task in plan.tasks if "reports" in task.file_path]

        assert feature_tasks
        assert {task.operation for task in feature_tasks} == {Operation.CREATE}
        assert plan.task("TASK-8").description == "Create unit tests for reports.component"

    def test_navigation_and_design_tasks(self, scan, settings) -> None:
        """Test that optional refactor tasks come first and gate the component."""
        plan = build_implementation_plan(
            "orders", scan, settings, needs_navigation_refactor=True, needs_design_system=True
        )

        assert plan.task("TASK-1").category is TaskCategory.UI_REFACTOR
        assert plan.task("TASK-2").category is TaskCategory.DESIGN_SYSTEM
        component = plan.task("TASK-6")
        assert component.file_path.endswith("orders.component.ts")
        assert "TASK-1" in [dep.task_id for dep in component.dependencies]
        assert plan.build_order.index("TASK-1") < plan.build_order.index("TASK-6")
        assert plan.total_effort["total"] == 64

    def test_effort_estimate_uses_evidence(self, scan, settings) -> None:
        """Test that completeness and dependents feed the feature estimate."""
        score = score_feature(scan.feature("orders"), scan)
        dependencies = analyze_dependencies(scan)

        plan = build_implementation_plan(
            "orders", scan, settings, completeness=score, dependencies=dependencies
        )

        assert plan.effort_estimate.multipliers["integration"] == 1.1
        assert plan.effort_estimate.multipliers["test_gap"] == 1.3
        assert plan.effort_estimate.hours >= 8

    def test_pattern_rules_follow_evidence(self, scan) -> None:
        """Test rule triggers for stores, specs and forms."""
        orders = [rule.name for rule in get_applicable_pattern_rules(scan.feature("orders"))]
        checkout = [rule.name for rule in get_applicable_pattern_rules(scan.feature("checkout"))]

        assert {"component", "stores", "tests"} <= set(orders)
        assert "forms" not in orders
        assert {"component", "forms"} <= set(checkout)
        assert "tests" not in checkout
        assert get_applicable_pattern_rules(None) == []

    def test_save_and_reload(self, scan, settings, tmp_path: Path) -> None:
        """Test that a saved plan reloads with the same tasks and order."""
        plan = build_implementation_plan("checkout", scan, settings, needs_design_system=True)

        path = plan.save(tmp_path / "plans" / "checkout.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        restored = ImplementationPlan.from_dict(data)

        assert data["critical_path"] == plan.build_order
        assert restored.build_order == plan.build_order
        assert [t.id for t in restored.tasks] == [t.id for t in plan.tasks]
        assert restored.task("TASK-1").category is TaskCategory.DESIGN_SYSTEM
        assert [r.name for r in restored.pattern_rules] == [r.name for r in plan.pattern_rules]
        assert restored.effort_estimate.hours == plan.effort_estimate.hours

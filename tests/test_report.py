"""Tests for the markdown report."""

from __future__ import annotations

from pathlib import Path

from feature_advisor.engine import AdvisorRun
from feature_advisor.report import (
    QUALITY_GATES,
    format_list,
    render_blocker_status,
    render_business,
    render_decision_matrix,
    render_layout,
    render_report,
)

from conftest import write_business

SECTION_ORDER = [
    "# Feature Advisor Report",
    "## Blocker Status",
    "## Evidence Pack",
    "## Codebase Summary",
    "## Feature Completeness",
    "## Dependency Analysis",
    "## Business Value",
    "## Technical Health",
    "## UI Layout",
    "## Recommendations",
    "## Decision Matrix",
    "## Implementation Plan",
    "## Next Steps",
]


class TestHelpers:
    """Tests for small rendering helpers."""

    def test_format_list(self) -> None:
        """Test bullets and the empty marker."""
        assert format_list(["a", "b"]) == "- a\n- b"
        assert format_list([]) == "- (none)"

    def test_missing_sections_render_unknown(self) -> None:
        """Test that absent stage outputs are shown as UNKNOWN."""
        assert "UNKNOWN: blocker check was not performed." in render_blocker_status(None)
        assert "UNKNOWN: ranking was not performed." in render_decision_matrix(None)
        assert render_business(None, ["orders"])[1].startswith("UNKNOWN: No business config")
        assert "UNKNOWN: layout was not analyzed." in render_layout(None)


class TestRenderReport:
    """Tests for the full report over real runs."""

    def test_sections_in_order(self, unblocked_settings) -> None:
        """Test the fixed section order and the run id line."""
        text = AdvisorRun(unblocked_settings, run_id="run-42").report()

        positions = [text.index(heading) for heading in SECTION_ORDER]
        assert positions == sorted(positions)
        assert "Run: run-42" in text

    def test_blocked_report(self, settings) -> None:
        """Test that an unresolved blocks-all blocker dominates the report."""
        text = AdvisorRun(settings).report()

        assert "**Current Phase**: Phase 0 (Pre-Foundation)" in text
        assert "### Active Blockers (must resolve before shipping)" in text
        assert "BLOCKED BY PHASE 1 FOUNDATION" in text
        assert "Vetoed: Unresolved blocks-all blocker(s)" in text
        assert "1. SHIPPING BLOCKED: 3 critical blocker(s) must be resolved first." in text
        assert "Winner:" not in text
        assert QUALITY_GATES not in text

    def test_unblocked_report_without_business(self, unblocked_settings) -> None:
        """Test the technical-fallback recommendation and next steps."""
        run = AdvisorRun(unblocked_settings)
        result = run.run()
        text = render_report(result)

        assert "All critical blockers resolved. Features can proceed to production." in text
        assert "UNKNOWN: No business config files found." in text
        assert "1. catalog (Score: " in text
        assert "technical rubric) [HEURISTIC]" in text
        assert "Winner: **catalog**" in text
        assert "Feature: **catalog**" in text
        assert "1. Build: catalog (score " in text
        assert f"2. {QUALITY_GATES}" in text

    def test_layout_section(self, unblocked_settings) -> None:
        """Test the navigation pattern and design-first decision lines."""
        text = AdvisorRun(unblocked_settings).report()

        assert "Navigation: none (3 feature(s), capacity 3)" in text
        assert "Design system signal score: 20%" in text
        assert "Build sidebar first: NO" in text
        assert "Design-system work first: YES" in text
        assert "- Skip link not detected" in text

    def test_business_section_with_config(self, workspace: Path, unblocked_settings) -> None:
        """Test per-feature business lines with UNKNOWN gaps."""
        write_business(workspace, {"orders": {"user_value": 10, "business_value": 10, "strategic_value": 10}})

        text = AdvisorRun(unblocked_settings).report()

        assert "  - User value: 10/10" in text
        assert "  - Customer requests: UNKNOWN" in text
        assert "  - TOTAL: UNKNOWN" in text
        assert "- Missing business data for: catalog, checkout" in text
        assert "- Sources: business-priority.json" in text

    def test_plan_lists_needed_improvements(self, workspace: Path, unblocked_settings) -> None:
        """Test that the plan section carries verified improvements."""
        write_business(
            workspace,
            {
                "orders": {"user_value": 10, "business_value": 10, "strategic_value": 10},
                "catalog": {"user_value": 1, "business_value": 1, "strategic_value": 1},
                "checkout": {"user_value": 1, "business_value": 1, "strategic_value": 1},
            },
        )

        text = AdvisorRun(unblocked_settings).report()

        assert "Feature: **orders**" in text
        assert "Build order:" in text
        assert "[TASK-1] Align components with design system guidance" in text
        assert "[TASK-2] Create/update DTO for orders" in text
        assert "- error-handling-ui: No error-handling-ui patterns found in" in text

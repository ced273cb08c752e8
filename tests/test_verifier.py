"""Tests for the pattern verifier."""

from __future__ import annotations

import pytest

from feature_advisor.scanner import scan_project
from feature_advisor.verifier import (
    IMPROVEMENT_SCOPE,
    SCOPE_ASSEMBLERS,
    ImprovementCategory,
    SearchScope,
    verify_feature,
    verify_improvement,
)


@pytest.fixture
def scan(settings):
    return scan_project(settings)


class TestScopes:
    """Tests for category-to-scope mapping."""

    def test_every_category_has_an_assembler(self) -> None:
        """Test that each category maps to a scope with an assembler."""
        for category in ImprovementCategory:
            assert IMPROVEMENT_SCOPE[category] in SCOPE_ASSEMBLERS

    def test_tests_search_specs_only(self) -> None:
        """Test that the tests category searches spec files only."""
        assert IMPROVEMENT_SCOPE[ImprovementCategory.TESTS] is SearchScope.SPEC_ONLY


class TestVerifyImprovement:
    """Tests for verify_improvement."""

    def test_orders_needs_error_ui(self, scan, settings) -> None:
        """Test that orders lacks both error-UI patterns."""
        result = verify_improvement(
            scan.feature("orders"), ImprovementCategory.ERROR_HANDLING_UI, settings
        )

        assert result.needed is True
        assert result.existing_patterns == []
        assert len(result.missing_patterns) == 2
        assert result.evidence.startswith("No error-handling-ui patterns found in")
        assert result.search_scope is SearchScope.TEMPLATE_AND_COMPONENT

    def test_shared_store_counts_for_transport_errors(self, scan, settings) -> None:
        """Test that catchError in an imported shared store satisfies the category."""
        result = verify_improvement(
            scan.feature("orders"), "error-handling-transport", settings
        )

        assert result.needed is False
        assert result.evidence.startswith("All 2 error-handling-transport patterns found")
        assert "<STATE_DIR>" in result.searched_files

    def test_form_validation_not_applicable_without_forms(self, scan, settings) -> None:
        """Test the N/A short-circuit for features with no form elements."""
        result = verify_improvement(
            scan.feature("orders"), ImprovementCategory.FORM_VALIDATION, settings
        )

        assert result.needed is False
        assert result.existing_patterns == ["N/A - no forms"]
        assert result.searched_patterns == []

    def test_form_validation_checked_when_forms_exist(self, scan, settings) -> None:
        """Test that checkout's form is fully validated."""
        result = verify_improvement(
            scan.feature("checkout"), ImprovementCategory.FORM_VALIDATION, settings
        )

        assert result.needed is False
        assert all(p.found for p in result.searched_patterns)

    def test_partial_coverage_evidence(self, scan, settings) -> None:
        """Test the partial evidence wording."""
        result = verify_improvement(
            scan.feature("catalog"), ImprovementCategory.ACCESSIBILITY, settings
        )

        assert result.needed is True
        assert "Partial accessibility coverage (2/3)" in result.evidence
        assert result.missing_patterns == ["Form labels and associations"]

    def test_unknown_category_rejected(self, scan, settings) -> None:
        """Test that an unknown category string raises ValueError."""
        with pytest.raises(ValueError):
            verify_improvement(scan.feature("orders"), "performance", settings)


class TestVerifyFeature:
    """Tests for verify_feature."""

    def test_covers_all_categories(self, scan, settings) -> None:
        """Test that every category is verified and serializable."""
        results = verify_feature(scan.feature("orders"), settings)

        assert set(results) == set(ImprovementCategory)
        data = results[ImprovementCategory.TESTS].to_dict()
        assert data["category"] == "tests"
        assert data["search_scope"] == "spec-only"
        assert data["needed"] is False

"""Tests for business input normalization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from feature_advisor.business import (
    UNKNOWN,
    extract_overrides,
    extract_records,
    load_business_values,
    normalize_relative,
    strategic_from_priority,
)
from feature_advisor.models import Confidence

from conftest import write, write_business


class TestNormalization:
    """Tests for the 0-10 scaling helpers."""

    def test_relative_scale(self) -> None:
        """Test proportional scaling with half-up rounding."""
        assert normalize_relative(2, 2) == 10
        assert normalize_relative(1, 2) == 5
        assert normalize_relative(25, 100) == 3
        assert normalize_relative(5, 0) == 0

    @pytest.mark.parametrize("priority,expected", [(1, 10), (2, 6), (3, 1)])
    def test_strategic_from_priority(self, priority: int, expected: int) -> None:
        """Test that priority 1 is most strategic and the last is least."""
        assert strategic_from_priority(priority, 3) == expected

    def test_single_priority_is_top(self) -> None:
        """Test that a one-entry roadmap does not divide by zero."""
        assert strategic_from_priority(1, 1) == 10


class TestExtraction:
    """Tests for accepted JSON shapes."""

    def test_list_of_names_and_records(self) -> None:
        """Test plain names and feature/name/title keyed records."""
        data = ["orders", {"title": "catalog"}, {"other": "x"}, 3]

        assert [name for name, _ in extract_records(data)] == ["orders", "catalog"]

    def test_keyed_container(self) -> None:
        """Test an object keyed by feature name under a container key."""
        data = {"items": {"orders": {"priority": 1}}}

        assert extract_records(data) == [("orders", {"priority": 1})]

    def test_unrecognized_shape_is_empty(self) -> None:
        """Test that unknown shapes are ignored rather than raising."""
        assert extract_records("orders") == []
        assert extract_records({"unrelated": []}) == []

    def test_overrides_accept_aliases(self) -> None:
        """Test snake_case and camelCase keys and numeric shorthand."""
        data = {
            "features": {
                "orders": {"userValue": 7, "business_value": 6, "strategic": "high"},
                "catalog": 2,
            }
        }

        assert extract_overrides(data) == {
            "orders": {"user_value": 7, "business_impact": 6},
            "catalog": {"priority": 2},
        }


class TestLoadBusinessValues:
    """Tests for load_business_values against files on disk."""

    def test_no_files_is_unavailable(self, workspace: Path, settings) -> None:
        """Test that missing config leaves every value UNKNOWN."""
        business = load_business_values(workspace, settings)

        assert business.available is False
        value = business.get("orders")
        assert value.total is None
        assert value.display("user_value") == UNKNOWN
        assert value.confidence is Confidence.UNAVAILABLE
        assert value.notes == ["No business config found."]

    def test_overrides_applied(self, workspace: Path, settings) -> None:
        """Test that explicit overrides populate fields with notes."""
        write_business(
            workspace, {"orders": {"user_value": 9, "business_value": 8, "strategic_value": 7}}
        )

        value = load_business_values(workspace, settings).get("orders")

        assert (value.user_value, value.business_impact, value.strategic_importance) == (9, 8, 7)
        assert "User value override detected (9)." in value.notes
        assert value.missing_fields == ["customer_requests", "market_differentiation"]
        assert value.total is None

    def test_complete_inputs_are_measured(self, workspace: Path, settings) -> None:
        """Test that all five inputs give a total and MEASURED confidence."""
        write_business(
            workspace,
            {
                "orders": {
                    "user_value": 9,
                    "business_value": 8,
                    "strategic_value": 7,
                    "customer_requests": 6,
                    "market_differentiation": 5,
                }
            },
        )

        value = load_business_values(workspace, settings).get("orders")

        assert value.total == 35
        assert value.confidence is Confidence.MEASURED

    def test_roadmap_requests_and_revenue(self, workspace: Path, settings) -> None:
        """Test that secondary files fill strategic, requests and impact."""
        write(
            workspace,
            settings.roadmap_file,
            json.dumps({"features": [{"name": "orders", "priority": 1}, {"name": "catalog", "priority": 3}]}),
        )
        write(
            workspace,
            settings.requests_file,
            json.dumps([{"feature": "orders"}, {"feature": "orders"}, {"feature": "catalog"}]),
        )
        write(
            workspace,
            settings.revenue_file,
            json.dumps({"features": {"orders": {"revenue": 100}, "catalog": {"revenue": 25}}}),
        )

        business = load_business_values(workspace, settings)
        orders = business.get("orders")
        catalog = business.get("catalog")

        assert business.sources == [settings.roadmap_file, settings.requests_file, settings.revenue_file]
        assert (orders.strategic_importance, orders.customer_requests, orders.business_impact) == (10, 10, 10)
        assert (catalog.strategic_importance, catalog.customer_requests, catalog.business_impact) == (1, 5, 3)

    def test_override_beats_roadmap(self, workspace: Path, settings) -> None:
        """Test that a strategic override is preserved over roadmap priority."""
        write_business(workspace, {"orders": {"strategic_value": 4}})
        write(workspace, settings.roadmap_file, json.dumps(["orders", "catalog"]))

        orders = load_business_values(workspace, settings).get("orders")

        assert orders.strategic_importance == 4
        assert any("override preserved" in note for note in orders.notes)

    def test_invalid_json_treated_as_missing(self, workspace: Path, settings, caplog) -> None:
        """Test that unparseable JSON is ignored with a warning."""
        write(workspace, settings.business_priority_file, "{not json")

        business = load_business_values(workspace, settings)

        assert business.available is False
        assert "Ignoring invalid JSON" in caplog.text

    def test_unlisted_feature_has_reason(self, workspace: Path, settings) -> None:
        """Test the note for a feature absent from available config."""
        write_business(workspace, {"orders": {"user_value": 1}})

        assert load_business_values(workspace, settings).get("catalog").notes == [
            "No business data for feature."
        ]

    def test_non_finite_numbers_are_unknown(self, workspace: Path, settings) -> None:
        """Test that Infinity/NaN entries are dropped instead of aborting the load."""
        write(
            workspace,
            settings.revenue_file,
            '[{"feature": "orders", "revenue": Infinity}, {"feature": "catalog", "revenue": 5}]',
        )
        write(
            workspace,
            settings.roadmap_file,
            '[{"name": "orders", "priority": NaN}, {"name": "catalog", "priority": 2}]',
        )
        write_business(workspace, {"checkout": {"user_value": float("inf"), "strategic_value": 6}})

        business = load_business_values(workspace, settings)

        assert business.get("orders").business_impact is None
        assert business.get("catalog").business_impact == 10
        assert business.get("orders").strategic_importance == 10
        assert business.get("checkout").user_value is None
        assert business.get("checkout").strategic_importance == 6

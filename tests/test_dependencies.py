"""Tests for the feature dependency graph."""

from __future__ import annotations

import logging
from pathlib import Path

from feature_advisor.dependencies import (
    MAX_CHAINS,
    analyze_dependencies,
    detect_store_usage,
    extract_imports,
    find_cycles,
)
from feature_advisor.scanner import scan_project

from conftest import FEATURES, write


class TestImports:
    """Tests for import extraction."""

    def test_extracts_all_import_forms(self) -> None:
        """Test from/require/dynamic import specifiers."""
        text = (
            "import { A } from './a';\n"
            "const b = require('../b');\n"
            "const c = () => import('./features/c/c.component');\n"
        )

        assert extract_imports(text) == ["./a", "../b", "./features/c/c.component"]

    def test_store_usage_symbols_and_basename(self) -> None:
        """Test that store imports yield *Store symbols or the module basename."""
        text = (
            "import { OrdersStore } from '../state/orders/orders.store';\n"
            "import { selectCart } from '../state/cart/cart.store';\n"
            "import { Http } from '@angular/common/http';\n"
        )

        assert detect_store_usage(text) == ["OrdersStore", "cart.store"]


class TestFindCycles:
    """Tests for cycle detection."""

    def test_reports_each_cycle_once(self) -> None:
        """Test that a two-node cycle is reported once, closed."""
        cycles = find_cycles({"a": ["b"], "b": ["a"], "c": []})

        assert cycles == [["a", "b", "a"]]

    def test_acyclic_graph(self) -> None:
        """Test that a DAG has no cycles."""
        assert find_cycles({"a": ["b"], "b": ["c"], "c": []}) == []


class TestAnalyzeDependencies:
    """Tests for analyze_dependencies over the synthetic workspace."""

    def test_dependencies_and_dependents(self, settings) -> None:
        """Test the checkout -> catalog -> orders graph."""
        analysis = analyze_dependencies(scan_project(settings))

        assert analysis.dependencies == {
            "catalog": ["orders"],
            "checkout": ["catalog"],
            "orders": [],
        }
        assert analysis.dependents["orders"] == ["catalog"]
        assert analysis.dependent_count("catalog") == 1
        assert analysis.dependent_count("checkout") == 0

    def test_chain_covers_transitive_edge(self, settings) -> None:
        """Test that A imports B imports C produces a chain covering A -> B."""
        analysis = analyze_dependencies(scan_project(settings))

        assert "checkout -> catalog -> orders" in analysis.chains
        assert len(analysis.chains) <= MAX_CHAINS

    def test_blocking_entries(self, settings) -> None:
        """Test that depended-on features are listed as blocking."""
        analysis = analyze_dependencies(scan_project(settings))

        assert "orders (depended on by 1 feature(s))" in analysis.blocking
        assert "catalog (depended on by 1 feature(s))" in analysis.blocking

    def test_dangling_feature_import_blocks(self, workspace: Path, settings) -> None:
        """Test blocked iff a features/<x> import has no folder; removing it unblocks."""
        service = write(
            workspace,
            f"{FEATURES}/orders/orders.service.ts",
            "import { Report } from '../../features/analytics/analytics.models';\n",
        )

        analysis = analyze_dependencies(scan_project(settings))
        assert analysis.is_blocked("orders")
        assert analysis.blocked == ["orders (missing: analytics)"]

        service.unlink()
        analysis = analyze_dependencies(scan_project(settings))
        assert not analysis.is_blocked("orders")
        assert analysis.blocked == []

    def test_shared_store_reported_first(self, workspace: Path, settings) -> None:
        """Test that a store used by two features leads the blocking list."""
        write(
            workspace,
            f"{FEATURES}/checkout/checkout.service.ts",
            "import { OrdersStore } from '../../state/orders/orders.store';\n",
        )

        analysis = analyze_dependencies(scan_project(settings))

        assert analysis.shared_store_users == {"OrdersStore": ["checkout", "orders"]}
        assert analysis.blocking[0] == "OrdersStore (used by 2 feature(s))"

    def test_cycle_logged(self, workspace: Path, settings, caplog) -> None:
        """Test that a circular feature dependency is reported and logged."""
        write(
            workspace,
            f"{FEATURES}/orders/orders.service.ts",
            "import { CatalogItem } from '../catalog/catalog.models';\n",
        )

        with caplog.at_level(logging.WARNING):
            analysis = analyze_dependencies(scan_project(settings))

        assert ["catalog", "orders", "catalog"] in analysis.cycles
        assert "Circular feature dependency" in caplog.text

    def test_shared_component_notes(self, settings) -> None:
        """Test that shared component usage shows up in notes."""
        analysis = analyze_dependencies(scan_project(settings))

        assert "button used by catalog" in analysis.notes

"""Tests for navigation and design-system layout analysis."""

from __future__ import annotations

from pathlib import Path

from feature_advisor.layout import (
    NavigationPattern,
    assess_layout,
    detect_layout_components,
)
from feature_advisor.scanner import scan_project

from conftest import FEATURES, write


def add_features(root: Path, *names: str) -> None:
    for name in names:
        write(root, f"{FEATURES}/{name}/{name}.component.ts", f"export class {name.title()}Component {{}}\n")


class TestLayoutComponents:
    """Tests for detect_layout_components."""

    def test_shell_pieces_found(self, workspace: Path, settings) -> None:
        """Test that shell, sidebar, header, drawer and layout store are located."""
        write(workspace, "src/app/layout/layout-shell.component.ts", "export class LayoutShellComponent {}\n")
        write(workspace, "src/app/layout/sidebar.component.ts", "export class SidebarComponent {}\n")
        write(workspace, "src/app/layout/header/header.component.ts", "export class HeaderComponent {}\n")
        write(workspace, "src/app/layout/mobile-drawer.component.ts", "export class DrawerComponent {}\n")
        write(workspace, "src/app/state/layout/layout.store.ts", "export class LayoutStore {}\n")

        components = detect_layout_components(scan_project(settings))

        assert components.layout_shell == "src/app/layout/layout-shell.component.ts"
        assert components.sidebar == "src/app/layout/sidebar.component.ts"
        assert components.header == "src/app/layout/header/header.component.ts"
        assert components.mobile_drawer == "src/app/layout/mobile-drawer.component.ts"
        assert components.layout_store == "src/app/state/layout/layout.store.ts"

    def test_placeholder_sidebar_ignored(self, workspace: Path, settings) -> None:
        """Test that a placeholder sidebar does not count as a sidebar."""
        write(workspace, "src/app/layout/sidebar-placeholder.component.ts", "export class P {}\n")

        scan = scan_project(settings)

        assert detect_layout_components(scan).sidebar is None
        assert assess_layout(scan).pattern is NavigationPattern.NONE


class TestNavigationPattern:
    """Tests for the detected navigation pattern."""

    def test_workspace_has_no_navigation(self, settings) -> None:
        """Test that the synthetic workspace has no navigation component."""
        layout = assess_layout(scan_project(settings))

        assert layout.pattern is NavigationPattern.NONE
        assert layout.capacity == 3
        assert layout.refactoring_required
        assert not layout.sidebar_required

    def test_tabs_and_menu(self, workspace: Path, settings) -> None:
        """Test tab detection by name segment and menu detection."""
        write(workspace, "src/app/shared/components/data-table.component.ts", "export class T {}\n")
        assert assess_layout(scan_project(settings)).pattern is NavigationPattern.NONE

        write(workspace, "src/app/shared/components/top-nav.component.ts", "export class N {}\n")
        assert assess_layout(scan_project(settings)).pattern is NavigationPattern.HORIZONTAL_MENU

        write(workspace, "src/app/shared/components/tabs.component.ts", "export class Tabs {}\n")
        assert assess_layout(scan_project(settings)).pattern is NavigationPattern.TABS


class TestDesignSignals:
    """Tests for the design-system signal score."""

    def test_workspace_score(self, settings) -> None:
        """Test that only the keyboard handler in the catalog template scores."""
        layout = assess_layout(scan_project(settings))

        assert layout.design.keyboard_navigation
        assert layout.design.score == 20
        assert layout.refactor_design_first
        assert "Focus styles not detected" in layout.design.issues

    def test_full_signals_clear_design_work(self, workspace: Path, settings) -> None:
        """Test that logical properties, focus styles and a skip link reach 100."""
        write(
            workspace,
            f"{FEATURES}/orders/orders.component.scss",
            """
            button { margin-inline-start: 8px; padding-inline-start: 4px; }
            button:focus-visible { outline: 2px solid; }
            """,
        )
        write(
            workspace,
            "src/app/app.component.html",
            '<a class="skip-link" href="#main">Skip</a><main id="main" dir="rtl"></main>\n',
        )
        write(workspace, "src/app/app.component.ts", "export class AppComponent {}\n")

        layout = assess_layout(scan_project(settings))

        assert layout.design.rtl_supported
        assert layout.design.dir_attribute
        assert layout.design.score == 100
        assert not layout.refactor_design_first
        assert layout.design.issues == []

    def test_physical_properties_outweigh_logical(self, workspace: Path, settings) -> None:
        """Test that RTL support needs more logical than physical properties."""
        write(
            workspace,
            f"{FEATURES}/orders/orders.component.scss",
            "a { margin-inline-start: 1px; margin-left: 1px; padding-right: 2px; }\n",
        )

        design = assess_layout(scan_project(settings)).design

        assert design.logical_properties == 1
        assert design.physical_properties == 2
        assert not design.rtl_supported


class TestAssessLayout:
    """Tests for the sidebar-first decision."""

    def test_many_features_without_sidebar(self, workspace: Path, settings) -> None:
        """Test that six features and no navigation put the sidebar first."""
        add_features(workspace, "reports", "billing", "admin")

        layout = assess_layout(scan_project(settings))

        assert layout.feature_count == 6
        assert layout.build_sidebar_first
        assert layout.plan_options() == {
            "needs_navigation_refactor": True,
            "needs_design_system": True,
        }
        assert layout.reasoning[0] == "Feature count (6) exceeds current navigation capacity (3)"

    def test_existing_sidebar_holds_features(self, workspace: Path, settings) -> None:
        """Test that a sidebar component removes the sidebar-first task."""
        add_features(workspace, "reports", "billing", "admin")
        write(workspace, "src/app/layout/sidenav.component.ts", "export class SidenavComponent {}\n")

        layout = assess_layout(scan_project(settings))

        assert layout.pattern is NavigationPattern.SIDEBAR
        assert not layout.sidebar_required
        assert not layout.build_sidebar_first

    def test_to_dict(self, settings) -> None:
        """Test the serialized decision fields."""
        data = assess_layout(scan_project(settings)).to_dict()

        assert data["pattern"] == "none"
        assert data["design"]["score"] == 20
        assert data["build_sidebar_first"] is False
        assert data["refactor_design_first"] is True

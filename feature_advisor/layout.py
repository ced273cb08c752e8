"""
UI Layout Analysis
==================

Decides whether the app shell has to change before another feature lands.

Two signals feed the implementation plan:

- navigation capacity: the detected navigation pattern (sidebar, tabs,
  horizontal menu or none) can hold a limited number of features. Past that
  limit, and with more than ``SIDEBAR_FEATURE_THRESHOLD`` features, a sidebar
  is built first.
- design-system signals: RTL-friendly logical properties, focus styles,
  keyboard handlers and skip links across app components. A combined score
  under ``DESIGN_SIGNAL_THRESHOLD`` puts a design-system task first.

Shell components are found by file name and design signals by regex over
loaded sources. Nothing is rendered or executed.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .core.logging import get_logger
from .models import ComponentFile, ProjectScan

logger = get_logger(__name__)


class NavigationPattern(str, Enum):
    SIDEBAR = "sidebar"
    TABS = "tabs"
    HORIZONTAL_MENU = "horizontal-menu"
    NONE = "none"


# Features each pattern holds before the layout needs rework
NAVIGATION_CAPACITY = {
    NavigationPattern.NONE: 3,
    NavigationPattern.HORIZONTAL_MENU: 7,
    NavigationPattern.TABS: 5,
    NavigationPattern.SIDEBAR: 15,
}

SIDEBAR_FEATURE_THRESHOLD = 5
DESIGN_SIGNAL_THRESHOLD = 70

SIDEBAR_NAME = re.compile(r"side-?bar|sidenav")
TABS_NAME = re.compile(r"(?:^|[/._-])tabs?(?:[/._-]|$)")
MENU_NAME = re.compile(r"menu|nav")
HEADER_NAME = re.compile(r"(?:^|/)header/|header\.component\.ts$")

LOGICAL_PROPERTIES = re.compile(r"margin-inline-start|padding-inline-start|inset-inline")
PHYSICAL_PROPERTIES = re.compile(r"margin-left|margin-right|padding-left|padding-right")
FOCUS_STYLES = re.compile(r":focus|focus-visible")
KEYBOARD_HANDLERS = re.compile(r"keydown|keypress|keyup|tabindex|aria-keyshortcuts", re.IGNORECASE)
SKIP_LINK = re.compile(r"skip[- ]?link|href=['\"]#(?:main|content)['\"]", re.IGNORECASE)
RTL_DIR = re.compile(r"dir\s*=\s*['\"]rtl['\"]", re.IGNORECASE)


@dataclass
class LayoutComponents:
    """Shell pieces found in the app tree, as project-relative paths."""

    layout_shell: str | None = None
    sidebar: str | None = None
    header: str | None = None
    layout_store: str | None = None
    mobile_drawer: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "layout_shell": self.layout_shell,
            "sidebar": self.sidebar,
            "header": self.header,
            "layout_store": self.layout_store,
            "mobile_drawer": self.mobile_drawer,
        }


@dataclass
class DesignSignals:
    rtl_supported: bool = False
    dir_attribute: bool = False
    focus_styles: bool = False
    keyboard_navigation: bool = False
    skip_link: bool = False
    logical_properties: int = 0
    physical_properties: int = 0

    @property
    def score(self) -> int:
        return (
            (50 if self.rtl_supported else 0)
            + (20 if self.focus_styles else 0)
            + (20 if self.keyboard_navigation else 0)
            + (10 if self.skip_link else 0)
        )

    @property
    def issues(self) -> list[str]:
        issues = []
        if not self.rtl_supported:
            issues.append("CSS logical properties not dominant for RTL support")
        if not self.dir_attribute:
            issues.append('dir="rtl" not detected in templates')
        if self.physical_properties > 10:
            issues.append(f"{self.physical_properties} physical property usages found")
        if not self.focus_styles:
            issues.append("Focus styles not detected")
        if not self.keyboard_navigation:
            issues.append("Keyboard navigation handlers not detected")
        if not self.skip_link:
            issues.append("Skip link not detected")
        return issues

    def to_dict(self) -> dict[str, Any]:
        return {**vars(self), "score": self.score, "issues": self.issues}


@dataclass
class LayoutAssessment:
    """Navigation and design-system readiness, plus the resulting decision."""

    pattern: NavigationPattern
    feature_count: int
    components: LayoutComponents
    design: DesignSignals
    reasoning: list[str] = field(default_factory=list)

    @property
    def capacity(self) -> int:
        return NAVIGATION_CAPACITY[self.pattern]

    @property
    def sidebar_required(self) -> bool:
        return (
            self.feature_count > SIDEBAR_FEATURE_THRESHOLD
            and self.pattern is not NavigationPattern.SIDEBAR
        )

    @property
    def refactoring_required(self) -> bool:
        return self.feature_count >= self.capacity

    @property
    def build_sidebar_first(self) -> bool:
        return self.sidebar_required and self.refactoring_required

    @property
    def refactor_design_first(self) -> bool:
        return self.design.score < DESIGN_SIGNAL_THRESHOLD

    @property
    def proceed_with_current_ui(self) -> bool:
        return not (self.build_sidebar_first or self.refactor_design_first)

    def plan_options(self) -> dict[str, bool]:
        """Keyword arguments for build_implementation_plan."""
        return {
            "needs_navigation_refactor": self.build_sidebar_first,
            "needs_design_system": self.refactor_design_first,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.value,
            "feature_count": self.feature_count,
            "capacity": self.capacity,
            "components": self.components.to_dict(),
            "design": self.design.to_dict(),
            "sidebar_required": self.sidebar_required,
            "refactoring_required": self.refactoring_required,
            "build_sidebar_first": self.build_sidebar_first,
            "refactor_design_first": self.refactor_design_first,
            "reasoning": list(self.reasoning),
        }


def _relative(path: Path, root: Path) -> str:
    try:
        return Path(path).relative_to(root).as_posix().lower()
    except ValueError:
        return Path(path).as_posix().lower()


def _first(paths: list[str], predicate) -> str | None:
    return next((path for path in paths if predicate(path)), None)


def detect_layout_components(scan: ProjectScan) -> LayoutComponents:
    """Find the layout shell, sidebar, header, layout store and mobile drawer."""
    components = [_relative(c.path, scan.project_root) for c in scan.app_components]
    sources = [_relative(path, scan.project_root) for path in scan.source_files]
    return LayoutComponents(
        layout_shell=_first(components, lambda p: "layout-shell" in p),
        sidebar=_first(
            components, lambda p: SIDEBAR_NAME.search(p) is not None and "placeholder" not in p
        ),
        header=_first(components, lambda p: HEADER_NAME.search(p) is not None),
        layout_store=_first(sources, lambda p: "layout" in p and p.endswith(".store.ts")),
        mobile_drawer=_first(
            components, lambda p: "mobile-drawer" in p or "mobile-nav-drawer" in p
        ),
    )


def detect_navigation_pattern(scan: ProjectScan, components: LayoutComponents) -> NavigationPattern:
    names = [_relative(c.path, scan.project_root) for c in scan.app_components]
    names.extend(name.lower() for name in scan.shared_components)
    if components.sidebar or any(
        SIDEBAR_NAME.search(name) and "placeholder" not in name for name in names
    ):
        return NavigationPattern.SIDEBAR
    if any(TABS_NAME.search(name) for name in names):
        return NavigationPattern.TABS
    if any(MENU_NAME.search(name) for name in names):
        return NavigationPattern.HORIZONTAL_MENU
    return NavigationPattern.NONE


def collect_design_signals(components: list[ComponentFile]) -> DesignSignals:
    signals = DesignSignals()
    for component in components:
        signals.logical_properties += len(LOGICAL_PROPERTIES.findall(component.style))
        signals.physical_properties += len(PHYSICAL_PROPERTIES.findall(component.style))
        signals.focus_styles |= bool(FOCUS_STYLES.search(component.style))
        signals.dir_attribute |= bool(RTL_DIR.search(component.template))
        signals.skip_link |= bool(SKIP_LINK.search(component.template))
        signals.keyboard_navigation |= bool(
            KEYBOARD_HANDLERS.search(f"{component.source}\n{component.template}")
        )
    signals.rtl_supported = signals.logical_properties > signals.physical_properties
    return signals


def assess_layout(scan: ProjectScan) -> LayoutAssessment:
    """
    Assess whether navigation and design-system work should precede the next feature.

    Args:
        scan: Project scan (app components, shared components and features)

    Returns:
        LayoutAssessment whose ``plan_options()`` feed the implementation plan
    """
    components = detect_layout_components(scan)
    assessment = LayoutAssessment(
        pattern=detect_navigation_pattern(scan, components),
        feature_count=len(scan.features),
        components=components,
        design=collect_design_signals(scan.app_components),
    )

    if assessment.build_sidebar_first:
        assessment.reasoning.append(
            f"Feature count ({assessment.feature_count}) exceeds current navigation "
            f"capacity ({assessment.capacity})"
        )
        assessment.reasoning.append("Sidebar needed before adding more features")
    if assessment.refactor_design_first:
        assessment.reasoning.append(
            f"Design system signal score at {assessment.design.score}% "
            f"(target: >={DESIGN_SIGNAL_THRESHOLD}%)"
        )
    if assessment.proceed_with_current_ui:
        assessment.reasoning.append("Current navigation and design signals can take a new feature")

    logger.debug(
        f"Layout: {assessment.pattern.value} navigation, design score {assessment.design.score}, "
        f"sidebar first={assessment.build_sidebar_first}"
    )
    return assessment

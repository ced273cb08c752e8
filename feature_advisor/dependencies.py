"""
Feature dependency graph.

Builds feature-to-feature edges from import specifiers, flags dangling
``features/<x>`` references, finds stores shared between features and
reports (never raises on) dependency cycles.
"""

from dataclasses import dataclass, field
from typing import Any

from .catalogs import (
    FEATURE_REFERENCE_PATTERN,
    IMPORT_PATTERN,
    NAMED_IMPORT_PATTERN,
    STORE_NAME_PATTERN,
)
from .core.logging import get_logger
from .models import FeatureScan, ProjectScan

logger = get_logger(__name__)

MAX_CHAINS = 5


def extract_imports(text: str) -> list[str]:
    """Module specifiers from ``from '…'``, ``require('…')`` and ``import('…')``."""
    imports = []
    for match in IMPORT_PATTERN.finditer(text):
        raw = match.group(1) or match.group(2) or match.group(3)
        if raw:
            imports.append(raw)
    return imports


def is_store_specifier(specifier: str) -> bool:
    return "state/" in specifier or specifier.endswith(".store") or ".store." in specifier


def detect_store_usage(text: str) -> list[str]:
    """
    Store keys a source file depends on.

    A named import from a ``state/…`` or ``*.store`` module contributes its
    ``*Store`` symbols, or the module basename when it exports none.
    """
    stores: list[str] = []
    for match in NAMED_IMPORT_PATTERN.finditer(text):
        names, specifier = match.groups()
        if not is_store_specifier(specifier):
            continue
        symbols = STORE_NAME_PATTERN.findall(names) or [specifier.rsplit("/", 1)[-1]]
        for symbol in symbols:
            if symbol not in stores:
                stores.append(symbol)
    return stores


@dataclass
class DependencyAnalysis:
    """Feature graph derived from import statements."""

    dependencies: dict[str, list[str]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)
    missing_dependencies: dict[str, list[str]] = field(default_factory=dict)
    blocking: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)
    chains: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    shared_store_users: dict[str, list[str]] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)

    def dependent_count(self, feature: str) -> int:
        return len(self.dependents.get(feature, []))

    def is_blocked(self, feature: str) -> bool:
        return bool(self.missing_dependencies.get(feature))

    def to_dict(self) -> dict[str, Any]:
        return {
            "dependencies": self.dependencies,
            "dependents": self.dependents,
            "missing_dependencies": self.missing_dependencies,
            "blocking": self.blocking,
            "blocked": self.blocked,
            "chains": self.chains,
            "cycles": self.cycles,
            "shared_store_users": self.shared_store_users,
            "notes": self.notes,
        }


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """
    Elementary cycles reachable by DFS, each reported once.

    Cycles are rotated to start at their smallest node and closed by repeating
    it, e.g. ``["a", "b", "a"]``.
    """
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()

    def visit(node: str, path: list[str], on_path: set[str]) -> None:
        for neighbour in graph.get(node, []):
            if neighbour in on_path:
                cycle = path[path.index(neighbour) :]
                start = cycle.index(min(cycle))
                rotated = tuple(cycle[start:] + cycle[:start])
                if rotated not in seen:
                    seen.add(rotated)
                    cycles.append([*rotated, rotated[0]])
                continue
            path.append(neighbour)
            on_path.add(neighbour)
            visit(neighbour, path, on_path)
            on_path.discard(neighbour)
            path.pop()

    for start in sorted(graph):
        visit(start, [start], {start})
    return cycles


def _check_store_consistency(feature: FeatureScan, stores: list[str]) -> None:
    scanner_uses_store = bool(feature.stores)
    graph_uses_store = bool(stores)
    if scanner_uses_store != graph_uses_store:
        logger.warning(
            f"Store detection disagrees for {feature.name}: "
            f"scanner={feature.stores or 'none'}, imports={stores or 'none'}",
            extra={"feature": feature.name},
        )


def analyze_dependencies(scan: ProjectScan) -> DependencyAnalysis:
    """
    Build the feature dependency graph for ``scan``.

    Args:
        scan: Project scan

    Returns:
        DependencyAnalysis
    """
    names = scan.feature_names
    known = set(names)
    dependencies: dict[str, set[str]] = {name: set() for name in names}
    missing: dict[str, set[str]] = {name: set() for name in names}
    store_users: dict[str, list[str]] = {}
    shared_component_users: dict[str, list[str]] = {}

    for feature in scan.features:
        feature_stores: list[str] = []
        for path in feature.source_files:
            text = feature.read(path)
            if not text:
                continue
            for specifier in extract_imports(text):
                for candidate in names:
                    if candidate != feature.name and candidate in specifier:
                        dependencies[feature.name].add(candidate)
                reference = FEATURE_REFERENCE_PATTERN.search(specifier)
                if reference and reference.group(1) not in known:
                    missing[feature.name].add(reference.group(1))
            for store in detect_store_usage(text):
                if store not in feature_stores:
                    feature_stores.append(store)

        _check_store_consistency(feature, feature_stores)
        for store in feature_stores:
            store_users.setdefault(store, []).append(feature.name)

        for path in feature.template_files:
            html = feature.read(path)
            for shared in scan.shared_components:
                if f"app-{shared}" in html:
                    users = shared_component_users.setdefault(shared, [])
                    if feature.name not in users:
                        users.append(feature.name)

    dependents: dict[str, set[str]] = {name: set() for name in names}
    for feature, deps in dependencies.items():
        for dep in deps:
            dependents[dep].add(feature)

    analysis = DependencyAnalysis(
        dependencies={name: sorted(deps) for name, deps in dependencies.items()},
        dependents={name: sorted(users) for name, users in dependents.items()},
        missing_dependencies={name: sorted(refs) for name, refs in missing.items()},
        shared_store_users={s: u for s, u in store_users.items() if len(u) > 1},
    )

    analysis.blocking = [
        f"{name} (depended on by {len(dependents[name])} feature(s))"
        for name in names
        if dependents[name]
    ]
    shared_entries = [
        f"{store} (used by {len(users)} feature(s))"
        for store, users in analysis.shared_store_users.items()
    ]
    analysis.blocking[:0] = shared_entries

    analysis.blocked = [
        f"{name} (missing: {', '.join(analysis.missing_dependencies[name])})"
        for name in names
        if analysis.missing_dependencies[name]
    ]

    for name in names:
        for dep in analysis.dependencies[name]:
            secondary = analysis.dependencies.get(dep, [])
            analysis.chains.append(
                f"{name} -> {dep} -> {secondary[0]}" if secondary else f"{name} -> {dep}"
            )
            if len(analysis.chains) >= MAX_CHAINS:
                break
        if len(analysis.chains) >= MAX_CHAINS:
            break

    analysis.cycles = find_cycles(analysis.dependencies)
    for cycle in analysis.cycles:
        logger.warning(f"Circular feature dependency: {' -> '.join(cycle)}")

    analysis.notes.extend(
        f"{component} used by {', '.join(users)}"
        for component, users in shared_component_users.items()
    )
    analysis.notes.extend(
        f"{store} used by: {', '.join(users)}" for store, users in store_users.items()
    )
    return analysis

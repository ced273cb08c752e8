"""
Pattern Verifier
================

Checks whether a proposed improvement is actually needed for a feature by
searching a category-specific slice of its content for required patterns.

Each improvement category maps to a SearchScope, and each scope maps to an
assembler that builds the searched text from the feature's files.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .catalogs import (
    FORM_ELEMENT_PATTERN,
    IMPROVEMENT_PATTERNS,
    SHARED_STORE_PATH_PATTERN,
    STORE_PATH_IMPORT_PATTERN,
)
from .config import AdvisorSettings
from .core.logging import get_logger
from .core.safe_io import safe_read_text
from .models import FeatureScan

logger = get_logger(__name__)


class ImprovementCategory(str, Enum):
    ERROR_HANDLING_TRANSPORT = "error-handling-transport"
    ERROR_HANDLING_UI = "error-handling-ui"
    LOADING_STATE = "loading-state"
    EMPTY_STATE = "empty-state"
    ACCESSIBILITY = "accessibility"
    TESTS = "tests"
    ASYNC_CLEANUP = "async-cleanup"
    FORM_VALIDATION = "form-validation"
    CONFIRMATION_DIALOGS = "confirmation-dialogs"


class SearchScope(Enum):
    """Which slice of a feature's files a category is searched in."""

    TEMPLATE_AND_COMPONENT = "template-and-component"
    SPEC_ONLY = "spec-only"
    SOURCE_AND_SHARED_STATE = "source-and-shared-state"
    ALL_CONTENT = "all-content"


# (content, description of the searched files)
AssembledContent = tuple[str, str]


def assemble_template_and_component(
    feature: FeatureScan, settings: AdvisorSettings
) -> AssembledContent:
    parts = []
    for component in feature.component_files:
        parts.extend([component.template, component.source])
    return (
        "\n".join(parts),
        "<FEATURE_ROOT>/**/*.component.html, <FEATURE_ROOT>/**/*.component.ts",
    )


def assemble_spec_only(feature: FeatureScan, settings: AdvisorSettings) -> AssembledContent:
    return (
        "\n".join(feature.read(path) for path in feature.spec_files),
        "<FEATURE_ROOT>/**/*.spec.ts",
    )


def resolve_shared_stores(feature: FeatureScan, settings: AdvisorSettings) -> list[str]:
    """Content of ``state/<folder>/<name>.store`` files imported by components."""
    state_dir = settings.resolve(settings.state_dir)
    contents = []
    seen = set()
    for component in feature.component_files:
        for import_path in STORE_PATH_IMPORT_PATTERN.findall(component.source):
            match = SHARED_STORE_PATH_PATTERN.search(import_path)
            if not match:
                continue
            folder, store_name = match.groups()
            store_path = state_dir / folder / f"{store_name}.store.ts"
            if store_path in seen:
                continue
            seen.add(store_path)
            text = safe_read_text(store_path)
            if text:
                contents.append(text)
    return contents


def assemble_source_and_shared_state(
    feature: FeatureScan, settings: AdvisorSettings
) -> AssembledContent:
    parts = [component.source for component in feature.component_files]
    parts.extend(feature.read(path) for path in feature.source_files)
    parts.extend(resolve_shared_stores(feature, settings))
    return (
        "\n".join(parts),
        "<FEATURE_ROOT>/**/*.component.ts, <FEATURE_ROOT>/**/*.service.ts, "
        "<FEATURE_ROOT>/**/*.store.ts, <STATE_DIR>/**/*.store.ts (via imports)",
    )


def assemble_all_content(feature: FeatureScan, settings: AdvisorSettings) -> AssembledContent:
    parts = []
    for component in feature.component_files:
        parts.extend([component.source, component.template, component.style])
    return (
        "\n".join(parts),
        "<FEATURE_ROOT>/**/*.component.ts, <FEATURE_ROOT>/**/*.component.html, "
        "<FEATURE_ROOT>/**/*.component.scss",
    )


SCOPE_ASSEMBLERS: dict[
    SearchScope, Callable[[FeatureScan, AdvisorSettings], AssembledContent]
] = {
    SearchScope.TEMPLATE_AND_COMPONENT: assemble_template_and_component,
    SearchScope.SPEC_ONLY: assemble_spec_only,
    SearchScope.SOURCE_AND_SHARED_STATE: assemble_source_and_shared_state,
    SearchScope.ALL_CONTENT: assemble_all_content,
}

IMPROVEMENT_SCOPE: dict[ImprovementCategory, SearchScope] = {
    ImprovementCategory.ERROR_HANDLING_TRANSPORT: SearchScope.SOURCE_AND_SHARED_STATE,
    ImprovementCategory.ERROR_HANDLING_UI: SearchScope.TEMPLATE_AND_COMPONENT,
    ImprovementCategory.LOADING_STATE: SearchScope.TEMPLATE_AND_COMPONENT,
    ImprovementCategory.EMPTY_STATE: SearchScope.TEMPLATE_AND_COMPONENT,
    ImprovementCategory.ACCESSIBILITY: SearchScope.TEMPLATE_AND_COMPONENT,
    ImprovementCategory.TESTS: SearchScope.SPEC_ONLY,
    ImprovementCategory.ASYNC_CLEANUP: SearchScope.SOURCE_AND_SHARED_STATE,
    ImprovementCategory.FORM_VALIDATION: SearchScope.TEMPLATE_AND_COMPONENT,
    ImprovementCategory.CONFIRMATION_DIALOGS: SearchScope.ALL_CONTENT,
}


@dataclass
class SearchedPattern:
    pattern: str
    description: str
    found: bool


@dataclass
class VerificationResult:
    """Outcome of checking one improvement category against a feature."""

    category: ImprovementCategory
    needed: bool
    evidence: str
    existing_patterns: list[str] = field(default_factory=list)
    missing_patterns: list[str] = field(default_factory=list)
    searched_patterns: list[SearchedPattern] = field(default_factory=list)
    search_scope: SearchScope = SearchScope.TEMPLATE_AND_COMPONENT
    searched_files: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "needed": self.needed,
            "evidence": self.evidence,
            "existing_patterns": list(self.existing_patterns),
            "missing_patterns": list(self.missing_patterns),
            "searched_patterns": [vars(p) for p in self.searched_patterns],
            "search_scope": self.search_scope.value,
            "searched_files": self.searched_files,
        }


def has_form_elements(feature: FeatureScan) -> bool:
    return any(
        FORM_ELEMENT_PATTERN.search(component.template)
        or FORM_ELEMENT_PATTERN.search(component.source)
        for component in feature.component_files
    )


def verify_improvement(
    feature: FeatureScan,
    category: ImprovementCategory | str,
    settings: AdvisorSettings,
) -> VerificationResult:
    """
    Check whether ``category`` still needs work in ``feature``.

    An improvement is needed iff at least one of its required patterns is
    absent from the scoped content.

    Args:
        feature: Feature evidence
        category: Improvement category (enum or its string value)
        settings: Run settings (used to resolve shared stores)

    Returns:
        VerificationResult
    """
    category = ImprovementCategory(category)
    scope = IMPROVEMENT_SCOPE[category]
    name = category.value

    if category is ImprovementCategory.FORM_VALIDATION and not has_form_elements(feature):
        _, searched_files = SCOPE_ASSEMBLERS[scope](feature, settings)
        return VerificationResult(
            category=category,
            needed=False,
            evidence=f"{name}: N/A (component has no form elements)",
            existing_patterns=["N/A - no forms"],
            search_scope=scope,
            searched_files=searched_files,
        )

    content, searched_files = SCOPE_ASSEMBLERS[scope](feature, settings)
    result = VerificationResult(
        category=category,
        needed=False,
        evidence="",
        search_scope=scope,
        searched_files=searched_files,
    )
    for required in IMPROVEMENT_PATTERNS[name]:
        found = required.regex.search(content) is not None
        result.searched_patterns.append(
            SearchedPattern(required.regex.pattern, required.description, found)
        )
        if found:
            result.existing_patterns.append(required.description)
        else:
            result.missing_patterns.append(required.description)

    total = len(result.searched_patterns)
    existing = len(result.existing_patterns)
    missing = ", ".join(result.missing_patterns)
    result.needed = bool(result.missing_patterns)
    if not result.needed:
        result.evidence = f"All {total} {name} patterns found in {searched_files}"
    elif existing == 0:
        result.evidence = f"No {name} patterns found in {searched_files}. Missing: {missing}"
    else:
        result.evidence = (
            f"Partial {name} coverage ({existing}/{total}) in {searched_files}. "
            f"Has: {', '.join(result.existing_patterns)}. Missing: {missing}"
        )
    return result


def verify_feature(
    feature: FeatureScan, settings: AdvisorSettings
) -> dict[ImprovementCategory, VerificationResult]:
    """Verify every improvement category for ``feature``."""
    results = {
        category: verify_improvement(feature, category, settings)
        for category in ImprovementCategory
    }
    needed = [c.value for c, r in results.items() if r.needed]
    logger.debug(
        f"{feature.name}: {len(needed)} improvement(s) needed",
        extra={"feature": feature.name},
    )
    return results

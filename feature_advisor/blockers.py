"""
Blocker Detection
=================

Detects the status of foundation blockers (auth, user schema, permissions,
...) by scanning the project for required files and content patterns, rather
than trusting a hand-maintained status table.

The catalog of blockers is data: a built-in default that a project can replace
with a ``blockers.yaml`` file. The detection report drives the phase gate
(ranking veto) and can be rendered to ``docs/BLOCKERS.md``.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .core.exceptions import ErrorContext, InvalidConfigError
from .core.logging import get_logger
from .core.safe_io import safe_read_text, safe_write_text

logger = get_logger(__name__)

COMPLETION_THRESHOLD = 80
PHASE_PRE_FOUNDATION = "Phase 0 (Pre-Foundation)"
PHASE_FOUNDATION = "Phase 1: Foundation (In Progress)"
PHASE_FEATURES = "Phase 2: Features (Ready)"
FEATURES_READY_MIN_COMPLETED = 4


class BlockerStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


# =============================================================================
# Catalog
# =============================================================================


class BlockerPattern(BaseModel):
    """A regex that must match inside a project file (case-insensitive)."""

    model_config = ConfigDict(frozen=True)

    file: str
    pattern: str

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}") from e
        return value

    @property
    def regex(self) -> re.Pattern[str]:
        return re.compile(self.pattern, re.I)

    def label(self) -> str:
        return f"{self.file}: /{self.pattern}/i"


class BlockerCriteria(BaseModel):
    """What has to exist in the tree for a blocker to count as resolved."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    effort: str
    blocks_all: bool = False
    description: str = ""
    required_files: list[str] = Field(default_factory=list)
    optional_files: list[str] = Field(default_factory=list)
    required_patterns: list[BlockerPattern] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    unblocks: list[str] = Field(default_factory=list)


_AUTH = "apps/api/src/app/auth"
_ENTITIES = "libs/data-access/src/lib/entities"
_ENVIRONMENTS = "apps/manager-dashboard/src/environments"

DEFAULT_BLOCKER_CATALOG: list[BlockerCriteria] = [
    BlockerCriteria(
        id="BLOCKER-1",
        name="Authentication System",
        effort="20-30h",
        blocks_all=True,
        description="JWT authentication with login, register, refresh, logout endpoints",
        required_files=[
            f"{_AUTH}/auth.controller.ts",
            f"{_AUTH}/auth.service.ts",
            f"{_AUTH}/strategies/jwt.strategy.ts",
            f"{_AUTH}/guards/jwt-auth.guard.ts",
        ],
        required_patterns=[
            BlockerPattern(file=f"{_AUTH}/auth.service.ts", pattern=r"login|authenticate"),
            BlockerPattern(file=f"{_AUTH}/auth.service.ts", pattern=r"register|signup"),
            BlockerPattern(file=f"{_AUTH}/auth.controller.ts", pattern=r"@Post.*login"),
        ],
    ),
    BlockerCriteria(
        id="BLOCKER-2",
        name="User Database Schema",
        effort="8-10h",
        blocks_all=True,
        description="User entity with ORM decorators, roles, and password storage",
        required_files=[f"{_ENTITIES}/user.entity.ts"],
        required_patterns=[
            BlockerPattern(
                file=f"{_ENTITIES}/user.entity.ts", pattern=r"@Entity|@PrimaryGeneratedColumn"
            ),
            BlockerPattern(file=f"{_ENTITIES}/user.entity.ts", pattern=r"passwordHash|password"),
            BlockerPattern(file=f"{_ENTITIES}/user.entity.ts", pattern=r"role|UserRole"),
        ],
        depends_on=["BLOCKER-1"],
        unblocks=["All user-facing features"],
    ),
    BlockerCriteria(
        id="BLOCKER-3",
        name="Permission System",
        effort="6-8h",
        blocks_all=True,
        description="Role-based access control with guards and decorators",
        required_files=[f"{_AUTH}/guards/roles.guard.ts"],
        optional_files=[
            f"{_AUTH}/decorators/roles.decorator.ts",
            f"{_AUTH}/guards/optional-auth.guard.ts",
        ],
        required_patterns=[
            BlockerPattern(file=f"{_AUTH}/guards/roles.guard.ts", pattern=r"RolesGuard|CanActivate"),
            BlockerPattern(
                file=f"{_AUTH}/decorators/roles.decorator.ts", pattern=r"@Roles|SetMetadata"
            ),
        ],
        depends_on=["BLOCKER-1"],
        unblocks=["Admin features", "Manager features"],
    ),
    BlockerCriteria(
        id="BLOCKER-4",
        name="Audit Logging",
        effort="4-6h",
        blocks_all=False,
        description="Audit log entity for tracking mutations",
        required_files=[f"{_ENTITIES}/audit-log.entity.ts"],
        required_patterns=[
            BlockerPattern(file=f"{_ENTITIES}/audit-log.entity.ts", pattern=r"@Entity|AuditLog"),
        ],
        depends_on=["BLOCKER-1"],
        unblocks=["Compliance reporting"],
    ),
    BlockerCriteria(
        id="BLOCKER-5",
        name="Environment Configuration",
        effort="2-3h",
        blocks_all=False,
        description="Environment-based API URL configuration",
        required_files=[
            f"{_ENVIRONMENTS}/environment.ts",
            f"{_ENVIRONMENTS}/environment.prod.ts",
        ],
        required_patterns=[
            BlockerPattern(file=f"{_ENVIRONMENTS}/environment.ts", pattern=r"apiUrl|API_URL"),
        ],
        unblocks=["Production deployment"],
    ),
]


def load_blocker_catalog(path: Path | str | None) -> list[BlockerCriteria]:
    """
    Load a blocker catalog from YAML, falling back to the default catalog.

    The file holds either a list of blocker entries or a mapping with a
    ``blockers`` list.

    Args:
        path: Catalog file (missing file or None means the default catalog)

    Returns:
        List of BlockerCriteria

    Raises:
        InvalidConfigError: If the file exists but is malformed
    """
    if path is None or not Path(path).is_file():
        return list(DEFAULT_BLOCKER_CATALOG)

    context = ErrorContext(operation="load_blocker_catalog", extra={"path": str(path)})
    try:
        data = yaml.safe_load(safe_read_text(path))
    except yaml.YAMLError as e:
        raise InvalidConfigError(
            f"Malformed blocker catalog: {path}", context=context, cause=e
        ) from e

    if isinstance(data, dict):
        data = data.get("blockers")
    if not isinstance(data, list):
        raise InvalidConfigError(
            f"Blocker catalog must be a list of blockers: {path}", context=context
        )

    try:
        catalog = [BlockerCriteria(**entry) for entry in data]
    except (PydanticValidationError, TypeError) as e:
        raise InvalidConfigError(
            f"Invalid blocker entry in {path}", context=context, cause=e
        ) from e

    ids = [criteria.id for criteria in catalog]
    if len(ids) != len(set(ids)):
        raise InvalidConfigError(f"Duplicate blocker ids in {path}", context=context)

    logger.debug(f"Loaded {len(catalog)} blocker(s) from {path}")
    return catalog


# =============================================================================
# Detection
# =============================================================================


@dataclass
class BlockerEvidence:
    files_found: list[str] = field(default_factory=list)
    files_missing: list[str] = field(default_factory=list)
    patterns_matched: list[str] = field(default_factory=list)
    patterns_missing: list[str] = field(default_factory=list)
    completion_percentage: int = 0


@dataclass
class BlockerDetectionResult:
    """Detected status of one blocker."""

    id: str
    name: str
    status: BlockerStatus
    effort: str
    blocks_all: bool
    detected_at: datetime
    evidence: BlockerEvidence = field(default_factory=BlockerEvidence)

    @property
    def completed(self) -> bool:
        return self.status is BlockerStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "effort": self.effort,
            "blocks_all": self.blocks_all,
            "detected_at": self.detected_at.isoformat(),
            "evidence": vars(self.evidence),
        }


@dataclass
class BlockerSummary:
    total_blockers: int
    completed: int
    in_progress: int
    not_started: int
    critical_blockers_resolved: bool
    can_ship_features: bool
    current_phase: str


@dataclass
class BlockerReport:
    timestamp: datetime
    project_root: Path
    blockers: list[BlockerDetectionResult]
    summary: BlockerSummary
    catalog: list[BlockerCriteria] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "project_root": str(self.project_root),
            "blockers": [blocker.to_dict() for blocker in self.blockers],
            "summary": vars(self.summary),
        }


def detect_blocker(criteria: BlockerCriteria, root: Path | str) -> BlockerDetectionResult:
    """
    Detect one blocker's status from the files under ``root``.

    Completion is the share of required files plus required patterns found.
    Optional files count as found when present and are never reported missing.
    """
    root = Path(root)
    evidence = BlockerEvidence()

    for relative in criteria.required_files:
        if (root / relative).is_file():
            evidence.files_found.append(relative)
        else:
            evidence.files_missing.append(relative)
    required_found = len(evidence.files_found)

    for relative in criteria.optional_files:
        if (root / relative).is_file():
            evidence.files_found.append(relative)

    for required in criteria.required_patterns:
        text = safe_read_text(root / required.file)
        if text and required.regex.search(text):
            evidence.patterns_matched.append(required.label())
        else:
            evidence.patterns_missing.append(required.label())

    total_checks = len(criteria.required_files) + len(criteria.required_patterns)
    passed = required_found + len(evidence.patterns_matched)
    evidence.completion_percentage = (
        int(passed * 100 / total_checks + 0.5) if total_checks else 0
    )

    if evidence.completion_percentage >= COMPLETION_THRESHOLD and not evidence.files_missing:
        status = BlockerStatus.COMPLETED
    elif evidence.completion_percentage > 0 or evidence.files_found:
        status = BlockerStatus.IN_PROGRESS
    else:
        status = BlockerStatus.NOT_STARTED

    return BlockerDetectionResult(
        id=criteria.id,
        name=criteria.name,
        status=status,
        effort=criteria.effort,
        blocks_all=criteria.blocks_all,
        detected_at=datetime.now(timezone.utc),
        evidence=evidence,
    )


def detect_all_blockers(
    root: Path | str, catalog: list[BlockerCriteria] | None = None
) -> BlockerReport:
    """Detect every blocker in ``catalog`` and summarize the project phase."""
    catalog = DEFAULT_BLOCKER_CATALOG if catalog is None else catalog
    blockers = [detect_blocker(criteria, root) for criteria in catalog]

    completed = sum(1 for b in blockers if b.status is BlockerStatus.COMPLETED)
    in_progress = sum(1 for b in blockers if b.status is BlockerStatus.IN_PROGRESS)
    not_started = sum(1 for b in blockers if b.status is BlockerStatus.NOT_STARTED)
    critical_resolved = all(b.completed for b in blockers if b.blocks_all)

    if not critical_resolved:
        phase = PHASE_PRE_FOUNDATION
    elif completed >= FEATURES_READY_MIN_COMPLETED:
        phase = PHASE_FEATURES
    else:
        phase = PHASE_FOUNDATION

    logger.info(
        f"Blockers: {completed} completed, {in_progress} in progress, "
        f"{not_started} not started ({phase})",
        extra={"stage": "blockers"},
    )
    return BlockerReport(
        timestamp=datetime.now(timezone.utc),
        project_root=Path(root),
        blockers=blockers,
        summary=BlockerSummary(
            total_blockers=len(blockers),
            completed=completed,
            in_progress=in_progress,
            not_started=not_started,
            critical_blockers_resolved=critical_resolved,
            can_ship_features=critical_resolved,
            current_phase=phase,
        ),
        catalog=list(catalog),
    )


@dataclass
class BlockerCheck:
    """Phase gate consumed by ranking; must be fresh when ranking runs."""

    status: str
    active_blockers: list[BlockerDetectionResult]
    all_blockers: list[BlockerDetectionResult]
    can_ship_features: bool
    current_phase: str
    required_actions: list[str]
    estimated_effort_to_ship: str
    timestamp: datetime

    @property
    def blocked(self) -> bool:
        return self.status == "blocked"

    def age_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.timestamp).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "active_blockers": [b.to_dict() for b in self.active_blockers],
            "all_blockers": [b.to_dict() for b in self.all_blockers],
            "can_ship_features": self.can_ship_features,
            "current_phase": self.current_phase,
            "required_actions": list(self.required_actions),
            "estimated_effort_to_ship": self.estimated_effort_to_ship,
            "timestamp": self.timestamp.isoformat(),
        }


def build_blocker_check(report: BlockerReport) -> BlockerCheck:
    active = [b for b in report.blockers if b.blocks_all and not b.completed]
    if active:
        actions = [
            f"Complete {b.name} ({b.id}): {len(b.evidence.files_missing)} files missing"
            for b in active
        ]
        effort = " + ".join(b.effort for b in active)
    else:
        actions = ["All critical blockers resolved - ready for feature work"]
        effort = "0h (ready to ship)"

    return BlockerCheck(
        status="blocked" if active else "ok",
        active_blockers=active,
        all_blockers=list(report.blockers),
        can_ship_features=report.summary.can_ship_features,
        current_phase=report.summary.current_phase,
        required_actions=actions,
        estimated_effort_to_ship=effort,
        timestamp=report.timestamp,
    )


def check_blockers(
    root: Path | str, catalog: list[BlockerCriteria] | None = None
) -> BlockerCheck:
    """Scan the project and return the phase gate."""
    return build_blocker_check(detect_all_blockers(root, catalog))


# =============================================================================
# BLOCKERS.md
# =============================================================================


def _render_dependency_graph(catalog: list[BlockerCriteria]) -> list[str]:
    by_id = {criteria.id: criteria for criteria in catalog}
    children: dict[str, list[BlockerCriteria]] = {criteria.id: [] for criteria in catalog}
    roots = []
    for criteria in catalog:
        parents = [p for p in criteria.depends_on if p in by_id]
        if not parents:
            roots.append(criteria)
        for parent in parents:
            children[parent].append(criteria)

    lines: list[str] = []

    def render(criteria: BlockerCriteria, prefix: str, visited: set[str]) -> None:
        items: list[BlockerCriteria | str] = [*children[criteria.id], *criteria.unblocks]
        for index, item in enumerate(items):
            last = index == len(items) - 1
            branch = "└─ " if last else "├─ "
            if isinstance(item, str):
                lines.append(f"{prefix}{branch}{item}")
                continue
            lines.append(f"{prefix}{branch}{item.name} ({item.id})")
            if item.id not in visited:
                render(item, prefix + ("   " if last else "│  "), visited | {item.id})

    for position, criteria in enumerate(roots):
        if position:
            lines.append("")
        lines.append(f"{criteria.name} ({criteria.id})")
        render(criteria, "", {criteria.id})
    return lines


def render_blocker_markdown(report: BlockerReport) -> str:
    """Render a detection report as the BLOCKERS.md document."""
    summary = report.summary
    total = summary.total_blockers
    lines = [
        "# Blocker Matrix & Dependency Tracking",
        "",
        "**Status**: ACTIVE",
        f"**Last Updated**: {report.timestamp.date().isoformat()}",
        "**Auto-Generated**: This file is generated from codebase scanning",
        "**Purpose**: Track what blocks what and identify the build order",
        "",
        "---",
        "",
        f"## Current Status: {summary.current_phase}",
        "",
        f"- **Critical Blockers Resolved**: {'YES' if summary.critical_blockers_resolved else 'NO'}",
        f"- **Can Ship Features**: {'YES' if summary.can_ship_features else 'NO'}",
        f"- **Completed**: {summary.completed}/{total}",
        f"- **In Progress**: {summary.in_progress}/{total}",
        f"- **Not Started**: {summary.not_started}/{total}",
        "",
        "---",
        "",
    ]

    completed = [b for b in report.blockers if b.status is BlockerStatus.COMPLETED]
    in_progress = [b for b in report.blockers if b.status is BlockerStatus.IN_PROGRESS]
    not_started = [b for b in report.blockers if b.status is BlockerStatus.NOT_STARTED]

    if completed:
        lines += ["## RESOLVED BLOCKERS", ""]
        for b in completed:
            lines += [
                f"### {b.id}: {b.name}",
                "",
                "**Status**: COMPLETED",
                f"**Effort**: {b.effort} (completed)",
                f"**Blocks All**: {'YES (was)' if b.blocks_all else 'No'}",
                f"**Completion**: {b.evidence.completion_percentage}%",
                "",
                "**Evidence Found**:",
                *[f"- [x] `{path}`" for path in b.evidence.files_found],
                "",
                "---",
                "",
            ]

    if in_progress:
        lines += ["## IN PROGRESS BLOCKERS", ""]
        for b in in_progress:
            lines += [
                f"### {b.id}: {b.name}",
                "",
                "**Status**: IN PROGRESS",
                f"**Effort**: {b.effort}",
                f"**Blocks All**: {'YES' if b.blocks_all else 'No'}",
                f"**Completion**: {b.evidence.completion_percentage}%",
                "",
                "**Files Found**:",
                *[f"- [x] `{path}`" for path in b.evidence.files_found],
                "",
                "**Files Missing**:",
                *[f"- [ ] `{path}`" for path in b.evidence.files_missing],
                "",
                "---",
                "",
            ]

    if not_started:
        lines += ["## NOT STARTED BLOCKERS", ""]
        for b in not_started:
            lines += [
                f"### {b.id}: {b.name}",
                "",
                "**Status**: NOT STARTED",
                f"**Priority**: {'CRITICAL' if b.blocks_all else 'HIGH'}",
                f"**Effort**: {b.effort}",
                f"**Blocks All**: {'YES' if b.blocks_all else 'No'}",
                "",
                "**Required Files**:",
                *[f"- [ ] `{path}`" for path in b.evidence.files_missing],
                "",
                "---",
                "",
            ]

    catalog = report.catalog or DEFAULT_BLOCKER_CATALOG
    lines += ["## DEPENDENCY GRAPH", "", "```", *_render_dependency_graph(catalog), "```", ""]
    return "\n".join(lines)


def update_blockers_doc(
    root: Path | str,
    report: BlockerReport,
    doc_path: str = "docs/BLOCKERS.md",
) -> Path:
    """
    Write the rendered report to ``doc_path`` under ``root`` atomically.

    Returns:
        The written path
    """
    target = Path(root) / doc_path
    safe_write_text(target, render_blocker_markdown(report))
    s = report.summary
    logger.info(
        f"Updated {doc_path} with {s.completed} completed, {s.in_progress} in progress, "
        f"{s.not_started} not started blocker(s)"
    )
    return target

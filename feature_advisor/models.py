"""
Data models for the feature advisor.

Everything here is created fresh from a filesystem snapshot at the start of a
run and discarded once the report is produced.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from .core.safe_io import safe_read_text


class Confidence(str, Enum):
    """How much a score or fact can be trusted."""

    MEASURED = "MEASURED"  # Ground truth (counted, read from config)
    VALIDATED = "VALIDATED"  # Produced by a real external tool
    ESTIMATED = "ESTIMATED"  # Heuristic estimate from content analysis
    PATTERN_BASED = "PATTERN-BASED"  # Regex presence detection
    HEURISTIC = "HEURISTIC"  # Several heuristics combined
    UNAVAILABLE = "UNAVAILABLE"  # Input missing; value is unknown


# Lower rank = weaker evidence
CONFIDENCE_RANK: dict[Confidence, int] = {
    Confidence.UNAVAILABLE: 0,
    Confidence.HEURISTIC: 1,
    Confidence.PATTERN_BASED: 2,
    Confidence.ESTIMATED: 3,
    Confidence.VALIDATED: 4,
    Confidence.MEASURED: 5,
}


def weakest_confidence(levels: list[Confidence]) -> Confidence:
    """Return the least trustworthy confidence of ``levels``."""
    if not levels:
        return Confidence.UNAVAILABLE
    return min(levels, key=lambda level: CONFIDENCE_RANK[level])


def _rel(path: Path | None, root: Path | None) -> str | None:
    if path is None:
        return None
    if root is not None:
        try:
            return Path(path).relative_to(root).as_posix()
        except ValueError:
            pass
    return Path(path).as_posix()


@dataclass
class ScoreDetail:
    """One bounded, confidence-tagged score with its evidence lines."""

    score: int
    details: list[str] = field(default_factory=list)
    confidence: Confidence = Confidence.PATTERN_BASED
    source: str = ""
    max_score: int = 25

    def __post_init__(self) -> None:
        self.score = max(0, min(self.max_score, int(self.score)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "details": list(self.details),
            "confidence": self.confidence.value,
            "source": self.source,
        }


@dataclass
class ComponentFile:
    """A component source file plus its template/style/spec siblings."""

    path: Path
    template_path: Path
    style_path: Path
    spec_path: Path
    has_template: bool = False
    has_style: bool = False
    has_spec: bool = False
    source: str = ""
    template: str = ""
    style: str = ""

    @property
    def name(self) -> str:
        return self.path.name.replace(".component.ts", "")

    @classmethod
    def from_path(
        cls, path: Path, reader: Callable[[Path], str] = safe_read_text
    ) -> "ComponentFile":
        """Build from a ``*.component.ts`` path, loading content eagerly."""
        base = str(path)[: -len(".component.ts")]
        template_path = Path(f"{base}.component.html")
        style_path = Path(f"{base}.component.scss")
        spec_path = Path(f"{base}.component.spec.ts")
        return cls(
            path=path,
            template_path=template_path,
            style_path=style_path,
            spec_path=spec_path,
            has_template=template_path.is_file(),
            has_style=style_path.is_file(),
            has_spec=spec_path.is_file(),
            source=reader(path),
            template=reader(template_path),
            style=reader(style_path),
        )

    def to_dict(self, root: Path | None = None) -> dict[str, Any]:
        return {
            "path": _rel(self.path, root),
            "template_path": _rel(self.template_path, root),
            "style_path": _rel(self.style_path, root),
            "spec_path": _rel(self.spec_path, root),
            "has_template": self.has_template,
            "has_style": self.has_style,
            "has_spec": self.has_spec,
        }


@dataclass
class TodoMarker:
    """A TODO/FIXME/HACK/XXX line."""

    path: str
    line: int
    text: str


@dataclass
class FeatureMetrics:
    """Cheap per-feature counts gathered during the scan."""

    line_count: int = 0
    source_line_count: int = 0
    todo_markers: list[TodoMarker] = field(default_factory=list)
    click_handlers: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_count": self.line_count,
            "source_line_count": self.source_line_count,
            "todo_count": len(self.todo_markers),
            "todo_markers": [vars(marker) for marker in self.todo_markers],
            "click_handlers": self.click_handlers,
        }


@dataclass
class FeatureScan:
    """Everything the scanner knows about one feature folder."""

    name: str
    path: Path
    component_files: list[ComponentFile] = field(default_factory=list)
    template_files: list[Path] = field(default_factory=list)
    source_files: list[Path] = field(default_factory=list)  # non-spec .ts
    spec_files: list[Path] = field(default_factory=list)
    style_files: list[Path] = field(default_factory=list)
    doc_files: list[Path] = field(default_factory=list)
    main_component: ComponentFile | None = None
    stores: list[str] = field(default_factory=list)
    risk_domains: list[str] = field(default_factory=list)
    metrics: FeatureMetrics = field(default_factory=FeatureMetrics)
    _content: dict[Path, str] = field(default_factory=dict, repr=False)

    def read(self, path: Path) -> str:
        """Read a file once per run; missing files read as ''."""
        path = Path(path)
        if path not in self._content:
            self._content[path] = safe_read_text(path)
        return self._content[path]

    @property
    def all_files(self) -> list[Path]:
        return [
            *self.source_files,
            *self.spec_files,
            *self.template_files,
            *self.style_files,
            *self.doc_files,
        ]

    def component_names(self) -> set[str]:
        return {component.name for component in self.component_files}

    def combined_content(self) -> str:
        """Component, template and non-spec source content joined."""
        parts: list[str] = []
        seen: set[Path] = set()
        for component in self.component_files:
            parts.append(component.source)
            parts.append(component.template)
            seen.update({component.path, component.template_path})
        for path in [*self.template_files, *self.source_files]:
            if path not in seen:
                parts.append(self.read(path))
        return "\n".join(parts)

    def to_dict(self, root: Path | None = None) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": _rel(self.path, root),
            "components": [c.to_dict(root) for c in self.component_files],
            "template_files": [_rel(p, root) for p in self.template_files],
            "source_files": [_rel(p, root) for p in self.source_files],
            "spec_files": [_rel(p, root) for p in self.spec_files],
            "doc_files": [_rel(p, root) for p in self.doc_files],
            "main_component": _rel(self.main_component.path, root)
            if self.main_component
            else None,
            "stores": list(self.stores),
            "risk_domains": list(self.risk_domains),
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class CommitRecord:
    """A recent commit tagged with the features it touched."""

    hash: str
    message: str
    files: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)


@dataclass
class GitHistory:
    """Recent version-control history; ``available`` is False when git failed."""

    available: bool = False
    commits: list[CommitRecord] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "reason": self.reason,
            "commits": [vars(commit) for commit in self.commits],
        }


@dataclass
class LinterThresholds:
    """Numeric rule thresholds pulled from the linter config."""

    complexity: int | None = None
    max_lines: int | None = None
    max_lines_per_function: int | None = None
    max_statements: int | None = None
    max_depth: int | None = None
    max_params: int | None = None


@dataclass
class ManifestScan:
    """Declared-vs-imported package comparison (import scan only)."""

    available: bool = False
    unused: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    total_dependencies: int = 0
    total_used: int = 0


@dataclass
class SourceLocation:
    path: str
    line: int
    excerpt: str = ""


@dataclass
class SecurityFinding:
    """Occurrences of one security-sensitive pattern."""

    pattern: str
    count: int
    locations: list[SourceLocation] = field(default_factory=list)


@dataclass
class ProjectScan:
    """Output of the evidence scanner for a whole project."""

    project_root: Path
    features_dir: Path
    features: list[FeatureScan] = field(default_factory=list)
    shared_components: list[str] = field(default_factory=list)
    app_components: list[ComponentFile] = field(default_factory=list)
    source_files: list[Path] = field(default_factory=list)
    routes_exist: bool = False
    routes_text: str = ""
    linter_thresholds: LinterThresholds = field(default_factory=LinterThresholds)
    manifest: ManifestScan = field(default_factory=ManifestScan)
    security_findings: list[SecurityFinding] = field(default_factory=list)
    git_history: GitHistory = field(default_factory=GitHistory)
    scanned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def feature_names(self) -> list[str]:
        return [feature.name for feature in self.features]

    def feature(self, name: str) -> FeatureScan | None:
        for feature in self.features:
            if feature.name == name:
                return feature
        return None

    def to_dict(self) -> dict[str, Any]:
        root = self.project_root
        return {
            "project_root": str(root),
            "features_dir": _rel(self.features_dir, root),
            "scanned_at": self.scanned_at.isoformat(),
            "features": [feature.to_dict(root) for feature in self.features],
            "shared_components": list(self.shared_components),
            "app_component_count": len(self.app_components),
            "source_file_count": len(self.source_files),
            "routes_exist": self.routes_exist,
            "linter_thresholds": vars(self.linter_thresholds),
            "manifest": vars(self.manifest),
            "security_findings": [
                {
                    "pattern": finding.pattern,
                    "count": finding.count,
                    "locations": [vars(loc) for loc in finding.locations],
                }
                for finding in self.security_findings
            ],
            "git_history": self.git_history.to_dict(),
        }

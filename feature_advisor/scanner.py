"""
Evidence Scanner
================

Discovers feature units under the configured features directory and turns
their files into structured evidence (components, stores, risk domains,
TODO markers, click handlers, recent git history).

Scanning is total: missing or unreadable paths degrade to empty evidence and
never raise.
"""

import os
from collections.abc import Callable, Iterable
from pathlib import Path

from .catalogs import (
    CLICK_HANDLER_PATTERN,
    IGNORED_DIRS,
    RISK_DOMAIN_PATTERNS,
    STORE_IMPORT_PATTERN,
    STORE_NAME_PATTERN,
    TODO_PATTERN,
)
from .config import AdvisorSettings
from .core.exceptions import SubprocessError
from .core.logging import get_logger, timed
from .core.safe_io import safe_read_text
from .core.safe_subprocess import safe_run
from .models import (
    CommitRecord,
    ComponentFile,
    FeatureMetrics,
    FeatureScan,
    GitHistory,
    ProjectScan,
    TodoMarker,
)
from .scoring import count_lines
from .technical_health import (
    extract_linter_thresholds,
    scan_package_manifest,
    scan_security,
)

logger = get_logger(__name__)

COMPONENT_SUFFIX = ".component.ts"
SOURCE_SUFFIXES = (".ts", ".js", ".html")
FEATURE_SUFFIXES = (".ts", ".html", ".scss", ".css", ".md")


def list_dirs(path: Path | str) -> list[str]:
    """Sorted names of the immediate sub-directories of ``path`` ([] on error)."""
    try:
        with os.scandir(path) as entries:
            return sorted(entry.name for entry in entries if entry.is_dir())
    except OSError:
        return []


def list_components(path: Path | str) -> list[str]:
    """Component names (``x`` for ``x.component.ts``) directly inside ``path``."""
    try:
        with os.scandir(path) as entries:
            return sorted(
                entry.name[: -len(COMPONENT_SUFFIX)]
                for entry in entries
                if entry.name.endswith(COMPONENT_SUFFIX)
            )
    except OSError:
        return []


def walk_files(
    root: Path | str,
    suffixes: Iterable[str],
    ignored_dirs: frozenset[str] = IGNORED_DIRS,
) -> list[Path]:
    """
    Recursively list files under ``root`` ending in any of ``suffixes``.

    Ignored directory names are skipped and unreadable directories are
    tolerated. Results are in sorted directory order.
    """
    suffixes = tuple(suffixes)
    results: list[Path] = []
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError:
        return results

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in ignored_dirs:
                    continue
                results.extend(walk_files(entry.path, suffixes, ignored_dirs))
            elif entry.is_file() and entry.name.endswith(suffixes):
                results.append(Path(entry.path))
        except OSError:
            continue
    return results


def collect_component_files(
    root: Path | str,
    reader: Callable[[Path], str] = safe_read_text,
) -> list[ComponentFile]:
    """Every ``*.component.ts`` under ``root`` with its sibling files loaded."""
    return [
        ComponentFile.from_path(path, reader)
        for path in walk_files(root, (COMPONENT_SUFFIX,))
    ]


def detect_store_imports(texts: Iterable[str]) -> list[str]:
    """Names of ``*Store`` symbols imported by any of ``texts``, first-seen order."""
    stores: list[str] = []
    for text in texts:
        for statement in STORE_IMPORT_PATTERN.finditer(text):
            for name in STORE_NAME_PATTERN.findall(statement.group(0)):
                if name not in stores:
                    stores.append(name)
    return stores


def detect_risk_domains(content: str) -> list[str]:
    """
    Flag risk domains whose patterns match anywhere in ``content``.

    A domain is flagged if any one of its case-insensitive patterns matches.
    Returned in catalog order.
    """
    return [
        domain
        for domain, patterns in RISK_DOMAIN_PATTERNS.items()
        if any(pattern.search(content) for pattern in patterns)
    ]


def compute_metrics(feature: FeatureScan, root: Path | None = None) -> FeatureMetrics:
    """Line counts, TODO markers and click-handler counts for a feature."""
    metrics = FeatureMetrics()
    for path in [
        *feature.source_files,
        *feature.spec_files,
        *feature.template_files,
        *feature.style_files,
    ]:
        text = feature.read(path)
        if not text:
            continue
        metrics.line_count += count_lines(text)
        display = path
        if root is not None:
            try:
                display = path.relative_to(root)
            except ValueError:
                pass
        for number, line in enumerate(text.splitlines(), start=1):
            if TODO_PATTERN.search(line):
                metrics.todo_markers.append(
                    TodoMarker(path=display.as_posix(), line=number, text=line.strip())
                )

    metrics.source_line_count = sum(
        count_lines(feature.read(path)) for path in feature.source_files
    )
    metrics.click_handlers = sum(
        len(CLICK_HANDLER_PATTERN.findall(feature.read(path)))
        for path in feature.template_files
    )
    return metrics


def scan_feature(name: str, path: Path, root: Path | None = None) -> FeatureScan:
    """
    Build the evidence record for one feature folder.

    Args:
        name: Feature (folder) name
        path: Feature folder
        root: Project root, used only to relativize reported paths

    Returns:
        FeatureScan
    """
    feature = FeatureScan(name=name, path=path)
    feature.component_files = collect_component_files(path, feature.read)

    for file_path in walk_files(path, FEATURE_SUFFIXES):
        file_name = file_path.name
        if file_name.endswith(".spec.ts"):
            feature.spec_files.append(file_path)
        elif file_name.endswith(".ts"):
            feature.source_files.append(file_path)
        elif file_name.endswith(".html"):
            feature.template_files.append(file_path)
        elif file_name.endswith((".scss", ".css")):
            feature.style_files.append(file_path)
        elif file_name.endswith(".md"):
            feature.doc_files.append(file_path)

    main_name = f"{name}{COMPONENT_SUFFIX}"
    feature.main_component = next(
        (c for c in feature.component_files if c.path.name == main_name), None
    )
    feature.stores = detect_store_imports(feature.read(p) for p in feature.source_files)
    feature.risk_domains = detect_risk_domains(feature.combined_content())
    feature.metrics = compute_metrics(feature, root)
    return feature


def _parse_git_log(output: str, feature_names: list[str]) -> list[CommitRecord]:
    commits: list[CommitRecord] = []
    current: CommitRecord | None = None
    for line in output.splitlines():
        if line.startswith("COMMIT:"):
            if current is not None:
                commits.append(current)
            commit_hash, _, message = line[len("COMMIT:") :].partition("|")
            current = CommitRecord(hash=commit_hash, message=message)
        elif line.strip() and current is not None:
            file_path = line.strip()
            current.files.append(file_path)
            for name in feature_names:
                if f"features/{name}/" in file_path and name not in current.features:
                    current.features.append(name)
    if current is not None:
        commits.append(current)
    return commits


def collect_git_history(
    root: Path,
    feature_names: list[str],
    limit: int = 20,
    timeout: float = 15.0,
) -> GitHistory:
    """
    Recent commits tagged with the features they touched.

    Any failure (no git, not a repository, timeout) yields
    ``GitHistory(available=False)`` and a warning; it never raises.
    """
    if limit <= 0:
        return GitHistory(available=False, reason="git history disabled")

    command = ["git", "log", "-n", str(limit), "--name-only", "--format=COMMIT:%h|%s"]
    try:
        result = safe_run(command, cwd=root, timeout=timeout)
    except (SubprocessError, OSError) as e:
        logger.warning(f"Git history unavailable: {e}")
        return GitHistory(available=False, reason=str(e))

    if result.returncode != 0:
        reason = (result.stderr or "").strip().splitlines()
        reason_text = reason[0] if reason else f"git exited with {result.returncode}"
        logger.warning(f"Git history unavailable: {reason_text}")
        return GitHistory(available=False, reason=reason_text)

    return GitHistory(available=True, commits=_parse_git_log(result.stdout, feature_names))


@timed(logger)
def scan_project(settings: AdvisorSettings) -> ProjectScan:
    """
    Scan the project described by ``settings``.

    Total over any input tree: an absent features directory yields zero
    features rather than an error.
    """
    root = Path(settings.project_root)
    features_dir = settings.resolve(settings.features_dir)

    features = [
        scan_feature(name, features_dir / name, root) for name in list_dirs(features_dir)
    ]
    if not features:
        logger.warning(f"No features discovered under {features_dir}")

    source_files = sorted(
        {
            path
            for source_root in settings.source_roots
            for path in walk_files(settings.resolve(source_root), SOURCE_SUFFIXES)
        }
    )

    routes_path = settings.resolve(settings.routes_file)
    routes_text = safe_read_text(routes_path)

    scan = ProjectScan(
        project_root=root,
        features_dir=features_dir,
        features=features,
        shared_components=list_components(settings.resolve(settings.shared_components_dir)),
        app_components=collect_component_files(settings.resolve(settings.app_dir)),
        source_files=source_files,
        routes_exist=routes_path.is_file(),
        routes_text=routes_text,
        linter_thresholds=extract_linter_thresholds(
            safe_read_text(settings.resolve(settings.linter_config))
        ),
        manifest=scan_package_manifest(
            root,
            source_files,
            manifest=settings.package_manifest,
            workspace_scopes=settings.workspace_scopes,
        ),
        security_findings=scan_security(source_files, root),
        git_history=collect_git_history(
            root,
            [feature.name for feature in features],
            limit=settings.git_history_limit,
            timeout=settings.git_timeout,
        ),
    )
    logger.info(
        f"Scanned {len(features)} feature(s), {len(source_files)} source file(s)",
        extra={"stage": "scan"},
    )
    return scan

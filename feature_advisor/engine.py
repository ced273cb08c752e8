"""
Advisor Engine
==============

Orchestrates one analysis run: scan, blocker check, completeness scoring,
dependency analysis, business values, technical health, layout analysis,
verification, ranking, planning and reporting.

Each AdvisorRun owns its own ValidatorCache and run id, so nothing is shared
between runs. Stage results are memoized on the run; calling a stage twice
returns the same object.

Usage:
    run = AdvisorRun(load_settings("/path/to/project"))
    result = run.run()
    print(run.report())
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .blockers import (
    BlockerCheck,
    BlockerReport,
    build_blocker_check,
    detect_all_blockers,
    load_blocker_catalog,
    update_blockers_doc,
)
from .business import BusinessValues, load_business_values
from .config import AdvisorSettings, load_settings
from .core.cache import ValidatorCache
from .core.exceptions import PreconditionError
from .core.logging import Timer, get_logger, log_context, log_exception, set_run_id
from .dependencies import DependencyAnalysis, analyze_dependencies
from .layout import LayoutAssessment, assess_layout
from .models import ProjectScan
from .planning import ImplementationPlan, build_implementation_plan
from .ranking import DecisionMatrix, rank_features
from .report import render_report
from .scanner import scan_project
from .scoring import CompletenessScore, analyze_completeness
from .technical_health import TechnicalHealthReport, build_technical_health
from .verifier import ImprovementCategory, VerificationResult, verify_feature

logger = get_logger(__name__)


@dataclass
class AnalysisResult:
    """Every stage output of one run."""

    run_id: str
    settings: AdvisorSettings
    scan: ProjectScan
    blocker_check: BlockerCheck | None = None
    completeness: list[CompletenessScore] = field(default_factory=list)
    dependencies: DependencyAnalysis | None = None
    business: BusinessValues | None = None
    health: TechnicalHealthReport | None = None
    layout: LayoutAssessment | None = None
    verification: dict[str, dict[ImprovementCategory, VerificationResult]] = field(
        default_factory=dict
    )
    matrix: DecisionMatrix | None = None
    plan: ImplementationPlan | None = None
    stage_durations_ms: dict[str, float] = field(default_factory=dict)

    @property
    def winner(self) -> str | None:
        if self.matrix is None or self.matrix.winner is None:
            return None
        return self.matrix.winner.feature

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "project_root": str(self.settings.project_root),
            "scan": self.scan.to_dict(),
            "blocker_check": self.blocker_check.to_dict() if self.blocker_check else None,
            "completeness": [score.to_dict() for score in self.completeness],
            "dependencies": self.dependencies.to_dict() if self.dependencies else None,
            "business": self.business.to_dict() if self.business else None,
            "technical_health": self.health.to_dict() if self.health else None,
            "layout": self.layout.to_dict() if self.layout else None,
            "verification": {
                feature: {category.value: r.to_dict() for category, r in results.items()}
                for feature, results in self.verification.items()
            },
            "decision_matrix": self.matrix.to_dict() if self.matrix else None,
            "plan": self.plan.to_dict() if self.plan else None,
            "winner": self.winner,
            "stage_durations_ms": dict(self.stage_durations_ms),
        }


class AdvisorRun:
    """One invocation of the advisor against a project."""

    def __init__(
        self,
        settings: AdvisorSettings,
        validator_cache: ValidatorCache | None = None,
        run_id: str | None = None,
    ):
        self.settings = settings
        self.validator_cache = validator_cache if validator_cache is not None else ValidatorCache()
        self.run_id = set_run_id(run_id)
        self.stage_durations_ms: dict[str, float] = {}

        self._scan: ProjectScan | None = None
        self._blocker_report: BlockerReport | None = None
        self._blocker_check: BlockerCheck | None = None
        self._completeness: list[CompletenessScore] | None = None
        self._dependencies: DependencyAnalysis | None = None
        self._business: BusinessValues | None = None
        self._health: TechnicalHealthReport | None = None
        self._layout: LayoutAssessment | None = None
        self._verification: dict[str, dict[ImprovementCategory, VerificationResult]] | None = None
        self._result: AnalysisResult | None = None

    def _timed_stage(self, stage: str, func, *args, **kwargs):
        with log_context(stage=stage), Timer(stage) as timer:
            value = func(*args, **kwargs)
        self.stage_durations_ms[stage] = timer.duration_ms
        logger.debug(
            f"Stage {stage} finished in {timer.duration_ms:.1f}ms",
            extra={"stage": stage, "duration_ms": timer.duration_ms},
        )
        return value

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def scan(self) -> ProjectScan:
        if self._scan is None:
            self._scan = self._timed_stage("scan", scan_project, self.settings)
        return self._scan

    def check_blockers(self) -> BlockerCheck:
        """Run a fresh blocker check and keep it for ranking."""
        catalog = load_blocker_catalog(self.settings.resolve(self.settings.blocker_catalog))
        report = self._timed_stage(
            "blockers", detect_all_blockers, self.settings.project_root, catalog
        )
        self._blocker_report = report
        self._blocker_check = build_blocker_check(report)
        return self._blocker_check

    def update_blockers_doc(self, doc_path: str | None = None) -> Path:
        """Write BLOCKERS.md from the latest blocker check (running one if needed)."""
        if self._blocker_report is None:
            self.check_blockers()
        return update_blockers_doc(
            self.settings.project_root,
            self._blocker_report,
            doc_path or self.settings.blockers_doc,
        )

    def analyze_completeness(self) -> list[CompletenessScore]:
        if self._completeness is None:
            self._completeness = self._timed_stage(
                "completeness",
                analyze_completeness,
                self.scan(),
                self.settings,
                self.validator_cache,
            )
        return self._completeness

    def analyze_dependencies(self) -> DependencyAnalysis:
        if self._dependencies is None:
            self._dependencies = self._timed_stage(
                "dependencies", analyze_dependencies, self.scan()
            )
        return self._dependencies

    def business_values(self) -> BusinessValues:
        if self._business is None:
            self._business = self._timed_stage(
                "business", load_business_values, self.settings.project_root, self.settings
            )
        return self._business

    def technical_health(self) -> TechnicalHealthReport:
        if self._health is None:
            self._health = self._timed_stage(
                "health", build_technical_health, self.scan(), self.analyze_dependencies()
            )
        return self._health

    def layout(self) -> LayoutAssessment:
        if self._layout is None:
            self._layout = self._timed_stage("layout", assess_layout, self.scan())
        return self._layout

    def verify(self) -> dict[str, dict[ImprovementCategory, VerificationResult]]:
        if self._verification is None:
            self._verification = self._timed_stage(
                "verify",
                lambda: {
                    feature.name: verify_feature(feature, self.settings)
                    for feature in self.scan().features
                },
            )
        return self._verification

    def rank(self, blocker_check: BlockerCheck | None) -> DecisionMatrix:
        """
        Rank features behind the blocker gate.

        Raises:
            NoFeaturesDiscoveredError: If the scan found no features
            MissingPreconditionError: If ``blocker_check`` is None
            StalePreconditionError: If ``blocker_check`` is too old
        """
        return self._timed_stage(
            "rank",
            rank_features,
            self.scan(),
            blocker_check,
            self.analyze_completeness(),
            self.analyze_dependencies(),
            self.business_values(),
            self.technical_health(),
            self.settings,
        )

    def plan(self, feature: str, **options: bool) -> ImplementationPlan:
        """Build the implementation plan for ``feature`` (existing or new)."""
        completeness = next(
            (score for score in self.analyze_completeness() if score.feature == feature), None
        )
        with log_context(feature=feature):
            return self._timed_stage(
                "plan",
                build_implementation_plan,
                feature,
                self.scan(),
                self.settings,
                completeness=completeness,
                dependencies=self.analyze_dependencies(),
                **options,
            )

    def run(self) -> AnalysisResult:
        """
        Run every stage in order.

        Returns:
            AnalysisResult; ``plan`` is None when no feature was selected

        Raises:
            NoFeaturesDiscoveredError: If the scan found no features
        """
        logger.info(f"Analyzing {self.settings.project_root}")
        scan = self.scan()
        blocker_check = self.check_blockers()
        self.analyze_completeness()
        self.analyze_dependencies()
        self.business_values()
        self.technical_health()
        layout = self.layout()
        self.verify()
        try:
            matrix = self.rank(blocker_check)
        except PreconditionError as e:
            log_exception(logger, "Ranking preconditions not met", e, stage="rank")
            raise
        plan = (
            self.plan(matrix.winner.feature, **layout.plan_options())
            if matrix.winner is not None
            else None
        )

        self._result = AnalysisResult(
            run_id=self.run_id,
            settings=self.settings,
            scan=scan,
            blocker_check=blocker_check,
            completeness=self.analyze_completeness(),
            dependencies=self.analyze_dependencies(),
            business=self.business_values(),
            health=self.technical_health(),
            layout=layout,
            verification=self.verify(),
            matrix=matrix,
            plan=plan,
            stage_durations_ms=dict(self.stage_durations_ms),
        )
        logger.info(
            f"Analysis complete: {len(scan.features)} feature(s), "
            f"winner {self._result.winner or 'none'}",
            extra={"duration_ms": sum(self.stage_durations_ms.values())},
        )
        return self._result

    def report(self) -> str:
        """Markdown report for this run (runs the analysis if needed)."""
        result = self._result or self.run()
        return render_report(result)


def analyze_and_recommend(
    project_root: Path | str, settings_file: Path | str | None = None
) -> str:
    """
    Analyze the project at ``project_root`` and return the markdown report.

    Raises:
        NoFeaturesDiscoveredError: If the project has no features
        ConfigurationError: If an explicit settings file is missing or invalid
    """
    settings = load_settings(project_root, settings_file)
    return AdvisorRun(settings).report()

"""
Recommendation Report
=====================

Renders an AnalysisResult as one markdown document. Sections appear in a fixed
order; a section whose input is missing is rendered as UNKNOWN rather than
omitted.
"""

from typing import TYPE_CHECKING

from .blockers import BlockerCheck
from .business import UNKNOWN, VALUE_FIELDS, BusinessValues
from .dependencies import DependencyAnalysis
from .layout import LayoutAssessment
from .models import ProjectScan
from .planning import ImplementationPlan
from .ranking import FACTOR_LABELS, DecisionMatrix
from .scoring import MAX_DIMENSION_SCORE, CompletenessScore
from .technical_health import DebtPriority, TechnicalHealthReport

if TYPE_CHECKING:
    from .engine import AnalysisResult

NONE = "- (none)"
MAX_TECH_DEBT_ITEMS = 3
MAX_TODO_LINES = 5
QUALITY_GATES = "Run quality gates: lint, tests, build and type check."

DIMENSION_LABELS = {
    "implementation": "Implementation",
    "test_signal": "Test signal",
    "accessibility": "Accessibility signal",
    "code_quality": "Code quality signal",
}

BUSINESS_LABELS = {
    "user_value": "User value",
    "business_impact": "Business impact",
    "strategic_importance": "Strategic importance",
    "customer_requests": "Customer requests",
    "market_differentiation": "Market differentiation",
}

_PRIORITY_ORDER = {DebtPriority.HIGH: 3, DebtPriority.MEDIUM: 2, DebtPriority.LOW: 1}


def format_list(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items) if items else NONE


def _yes_no(value: bool) -> str:
    return "YES" if value else "NO"


def _is_vetoed(blocker_check: BlockerCheck | None, matrix: DecisionMatrix | None) -> bool:
    if matrix is not None and matrix.vetoed:
        return True
    return bool(blocker_check and blocker_check.active_blockers)


# =============================================================================
# Sections
# =============================================================================


def render_blocker_status(blocker_check: BlockerCheck | None) -> list[str]:
    lines = ["## Blocker Status", ""]
    if blocker_check is None:
        lines.append(f"{UNKNOWN}: blocker check was not performed.")
        return lines

    lines.extend(
        [
            f"**Current Phase**: {blocker_check.current_phase}",
            f"**Can Ship Features**: {_yes_no(blocker_check.can_ship_features)}",
            f"**Estimated Effort to Ship**: {blocker_check.estimated_effort_to_ship}",
            f"**Checked At**: {blocker_check.timestamp.isoformat()}",
            "",
        ]
    )
    if not blocker_check.active_blockers:
        lines.append("All critical blockers resolved. Features can proceed to production.")
        return lines

    lines.extend(["### Active Blockers (must resolve before shipping)", ""])
    for index, blocker in enumerate(blocker_check.active_blockers, start=1):
        lines.extend(
            [
                f"{index}. **{blocker.id}: {blocker.name}**",
                f"   - Status: {blocker.status.value}",
                f"   - Completion: {blocker.evidence.completion_percentage}%",
                f"   - Effort: {blocker.effort}",
                f"   - Blocks All Features: {_yes_no(blocker.blocks_all)}",
            ]
        )
    lines.extend(["", "### Required Actions"])
    lines.extend(
        f"{index}. {action}"
        for index, action in enumerate(blocker_check.required_actions, start=1)
    )
    return lines


def render_evidence_pack(scan: ProjectScan) -> list[str]:
    lines = ["## Evidence Pack", "", f"Features discovered: {len(scan.features)}"]
    for feature in scan.features:
        metrics = feature.metrics
        lines.append(f"- {feature.name}")
        lines.append(f"  - Risk domains: {', '.join(feature.risk_domains) or '(none)'}")
        lines.append(f"  - Store usage: {', '.join(feature.stores) or '(none)'}")
        lines.append(f"  - Click handlers: {metrics.click_handlers}")
        lines.append(f"  - TODO/FIXME markers: {len(metrics.todo_markers)}")
        for marker in metrics.todo_markers[:MAX_TODO_LINES]:
            lines.append(f"    - {marker.path}:{marker.line} {marker.text}")

    history = scan.git_history
    lines.append("")
    if history.available:
        lines.append(f"Git data: available ({len(history.commits)} recent commit(s))")
        touched: dict[str, int] = {}
        for commit in history.commits:
            for name in commit.features:
                touched[name] = touched.get(name, 0) + 1
        for name, count in sorted(touched.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"- {name}: {count} recent commit(s)")
    else:
        reason = f" ({history.reason})" if history.reason else ""
        lines.append(f"Git data: {UNKNOWN}{reason}")
    return lines


def render_codebase_summary(scan: ProjectScan) -> list[str]:
    root = scan.project_root
    try:
        features_root = scan.features_dir.relative_to(root).as_posix()
    except ValueError:
        features_root = scan.features_dir.as_posix()
    manifest = scan.manifest
    items = [
        f"Features discovered: {len(scan.features)}",
        f"Features root: {features_root}",
        f"Shared components: {', '.join(scan.shared_components) or '(none)'}",
        f"App components: {len(scan.app_components)}",
        f"Source files: {len(scan.source_files)}",
        f"Routes file present: {_yes_no(scan.routes_exist)}",
        (
            f"Package manifest: {manifest.total_used}/{manifest.total_dependencies} "
            "declared dependencies imported"
            if manifest.available
            else f"Package manifest: {UNKNOWN}"
        ),
    ]
    return ["## Codebase Summary", format_list(items)]


def render_completeness(completeness: list[CompletenessScore]) -> list[str]:
    lines = ["## Feature Completeness"]
    if not completeness:
        lines.append(NONE)
        return lines
    for score in completeness:
        lines.append(
            f"- {score.feature}: {score.total}/100 ({score.interpretation}) "
            f"[{score.confidence.value}]"
        )
        for name, detail in score.dimensions.items():
            lines.append(
                f"  - {DIMENSION_LABELS[name]}: {detail.score}/{MAX_DIMENSION_SCORE} "
                f"[{detail.confidence.value}]"
            )
        for note in score.notes:
            lines.append(f"  - Note: {note}")
    return lines


def _format_mapping(mapping: dict[str, list[str]]) -> list[str]:
    return [f"{name}: {', '.join(values)}" for name, values in mapping.items() if values]


def render_dependencies(dependencies: DependencyAnalysis | None) -> list[str]:
    lines = ["## Dependency Analysis"]
    if dependencies is None:
        lines.append(f"{UNKNOWN}: dependency analysis was not performed.")
        return lines
    groups = [
        ("Dependencies (feature imports)", _format_mapping(dependencies.dependencies)),
        ("Dependents (feature coupling)", _format_mapping(dependencies.dependents)),
        ("Missing feature references", _format_mapping(dependencies.missing_dependencies)),
        ("Shared dependencies", dependencies.blocking),
        ("Blocked features", dependencies.blocked),
        ("Dependency chains", dependencies.chains),
        ("Cycles", [" -> ".join(cycle) for cycle in dependencies.cycles]),
        ("Notable cross-feature uses", dependencies.notes),
    ]
    for title, items in groups:
        lines.extend(["", f"{title}:", format_list(items)])
    return lines


def render_business(business: BusinessValues | None, feature_names: list[str]) -> list[str]:
    lines = ["## Business Value"]
    if business is None or not business.available:
        lines.append(
            f"{UNKNOWN}: No business config files found. "
            "Ranking falls back to the technical rubric."
        )
        return lines

    for name, value in business.values.items():
        lines.append(f"- {name}")
        for field_name in VALUE_FIELDS:
            shown = value.display(field_name)
            suffix = "" if shown == UNKNOWN else "/10"
            lines.append(f"  - {BUSINESS_LABELS[field_name]}: {shown}{suffix}")
        total = f"{value.total:g}/50" if value.total is not None else UNKNOWN
        lines.append(f"  - TOTAL: {total}")
        lines.append(f"  - Confidence: {value.confidence.value} ({value.source})")
        if value.notes:
            lines.append(f"  - Notes: {' '.join(value.notes)}")

    missing = [name for name in feature_names if name not in business.values]
    if missing:
        lines.append(f"- Missing business data for: {', '.join(missing)}")
    lines.append(f"- Sources: {', '.join(business.sources)}")
    return lines


def render_technical_health(health: TechnicalHealthReport | None) -> list[str]:
    lines = ["## Technical Health"]
    if health is None:
        lines.append(f"{UNKNOWN}: technical health was not analyzed.")
        return lines
    groups = [
        ("Structural gaps", health.structural_gaps),
        ("Test gaps", health.test_gaps),
        ("Code quality notes", health.quality_notes),
        ("Dependency hygiene signals (packages)", health.dependency_issues),
        ("Security signals", health.security_notes),
    ]
    for title, items in groups:
        lines.extend(["", f"{title}:", format_list(items)])
    return lines


def render_layout(layout: LayoutAssessment | None) -> list[str]:
    lines = ["## UI Layout"]
    if layout is None:
        lines.append(f"{UNKNOWN}: layout was not analyzed.")
        return lines
    lines.append(
        f"Navigation: {layout.pattern.value} ({layout.feature_count} feature(s), "
        f"capacity {layout.capacity})"
    )
    lines.append(f"Design system signal score: {layout.design.score}%")
    lines.append(f"Build sidebar first: {_yes_no(layout.build_sidebar_first)}")
    lines.append(f"Design-system work first: {_yes_no(layout.refactor_design_first)}")
    lines.extend(["", "Reasoning:", format_list(layout.reasoning)])
    lines.extend(["", "Design signal gaps:", format_list(layout.design.issues)])
    return lines


def _top_debt(health: TechnicalHealthReport | None) -> list[str]:
    if health is None:
        return []
    items = sorted(health.debt_items, key=lambda item: -_PRIORITY_ORDER[item.priority])
    return [
        f"{item.issue} (priority {item.priority.value}, remediation {item.remediation_hours}h)"
        for item in items[:MAX_TECH_DEBT_ITEMS]
    ]


def render_recommendations(result: "AnalysisResult") -> list[str]:
    blocker_check = result.blocker_check
    matrix = result.matrix
    vetoed = _is_vetoed(blocker_check, matrix)

    tier1: list[str] = []
    if blocker_check is not None:
        tier1 = [
            f"{b.id}: {b.name} ({b.effort}, {b.evidence.completion_percentage}% complete)"
            for b in blocker_check.active_blockers
        ]
    if result.health is not None:
        tier1.extend(result.health.security_notes)

    lines = [
        "## Recommendations",
        "",
        "### Tier 1: Critical Blockers",
        format_list(tier1),
        "",
        "### Tier 2: High-Value Features",
    ]
    if vetoed and blocker_check is not None:
        lines.append("BLOCKED BY PHASE 1 FOUNDATION")
        lines.append("")
        lines.append("Feature recommendations are blocked until critical dependencies are resolved:")
        for blocker in blocker_check.active_blockers:
            lines.append(f"- {blocker.id}: {blocker.name} ({blocker.effort})")
            lines.append("  Blocks: All production features")
        lines.append("")
        lines.append("Focus on Phase 1 Foundation first.")
    elif matrix is not None and matrix.candidates:
        for index, candidate in enumerate(matrix.candidates[: 1 + len(matrix.runner_ups)], 1):
            kind = "technical rubric" if candidate.technical_fallback else "weighted factors"
            lines.append(
                f"{index}. {candidate.feature} (Score: {candidate.total_score * 100:.1f}/100, "
                f"{kind}) [{candidate.confidence.value}]"
            )
    else:
        lines.append(NONE)

    lines.extend(["", "### Tier 3: Technical Debt"])
    lines.append(NONE if vetoed else format_list(_top_debt(result.health)))
    return lines


def _factor_cell(score: float | None) -> str:
    return UNKNOWN if score is None else f"{score:.2f}"


def render_decision_matrix(matrix: DecisionMatrix | None) -> list[str]:
    lines = ["## Decision Matrix"]
    if matrix is None:
        lines.append(f"{UNKNOWN}: ranking was not performed.")
        return lines
    if matrix.candidates:
        header = ["Feature", *(FACTOR_LABELS[name].title() for name in FACTOR_LABELS), "Total"]
        lines.append("| " + " | ".join(header) + " |")
        lines.append("|" + "---|" * len(header))
        for candidate in matrix.candidates:
            cells = [candidate.feature]
            cells.extend(
                _factor_cell(candidate.factors[name].score) if name in candidate.factors else "-"
                for name in FACTOR_LABELS
            )
            total = f"{candidate.total_score * 100:.1f}"
            if candidate.technical_fallback:
                total += " (rubric)"
            cells.append(total)
            lines.append("| " + " | ".join(cells) + " |")
        lines.append("")

    if matrix.veto_reason:
        lines.append(f"Vetoed: {matrix.veto_reason}")
    if matrix.winner is not None:
        lines.append(f"Winner: **{matrix.winner.feature}**")
        rubric = matrix.winner.rubric
        if matrix.winner.technical_fallback and rubric is not None:
            lines.append(f"Technical rubric: {rubric.total:g}/25")
            lines.extend(f"- {reason}" for reason in rubric.rationale)
    lines.extend(["", "Rationale:", format_list(matrix.decision_rationale)])
    if matrix.winner is not None and matrix.winner.why_not_others:
        lines.extend(["", "Why not others:", format_list(matrix.winner.why_not_others)])
    return lines


def render_plan(plan: ImplementationPlan | None, result: "AnalysisResult") -> list[str]:
    lines = ["## Implementation Plan"]
    if plan is None:
        lines.append(NONE)
        return lines

    lines.append(f"Feature: **{plan.feature}**")
    estimate = plan.effort_estimate
    if estimate is not None:
        lines.append(
            f"Feature effort estimate: {estimate.hours}h [{estimate.confidence.value}]"
        )
    lines.append(f"Planned task hours: {plan.total_effort.get('total', 0):g}h")
    lines.append("")
    lines.append("Build order:")
    for index, task in enumerate(plan.ordered_tasks(), start=1):
        location = task.file_path
        if task.line_number is not None:
            location += f":{task.line_number}"
        lines.append(
            f"{index}. [{task.id}] {task.description} ({task.operation.value} `{location}`, "
            f"{task.estimated_hours:g}h)"
        )
        for dependency in task.dependencies:
            lines.append(f"   - after {dependency.task_id}: {dependency.reason}")

    verification = result.verification.get(plan.feature, {})
    needed = [r for r in verification.values() if r.needed]
    lines.extend(["", "Verified improvements needed:"])
    lines.append(format_list([f"{r.category.value}: {r.evidence}" for r in needed]))

    if plan.pattern_rules:
        lines.extend(["", "Pattern-based rules:"])
        for rule in plan.pattern_rules:
            lines.append(f"- {rule.name}")
            lines.extend(f"  - {text}" for text in rule.rules)

    lines.extend(["", "Acceptance criteria:", format_list(plan.acceptance_criteria)])
    lines.extend(
        [
            "",
            "Risks:",
            format_list(
                [
                    f"{risk.description} (likelihood {risk.likelihood}, impact {risk.impact})"
                    for risk in plan.risks
                ]
            ),
        ]
    )
    return lines


def render_next_steps(result: "AnalysisResult") -> list[str]:
    blocker_check = result.blocker_check
    matrix = result.matrix
    if _is_vetoed(blocker_check, matrix) and blocker_check is not None:
        steps = [
            f"SHIPPING BLOCKED: {len(blocker_check.active_blockers)} critical blocker(s) "
            "must be resolved first.",
            *blocker_check.required_actions,
            f"Estimated effort: {blocker_check.estimated_effort_to_ship}",
        ]
    else:
        winner = matrix.winner if matrix is not None else None
        steps = [
            f"Build: {winner.feature} (score {winner.total_score * 100:.1f}/100)."
            if winner is not None
            else "No top recommendation identified.",
            QUALITY_GATES,
        ]
    return ["## Next Steps"] + [f"{index}. {step}" for index, step in enumerate(steps, 1)]


def render_report(result: "AnalysisResult") -> str:
    """
    Render the full recommendation report.

    Args:
        result: Output of AdvisorRun.run()

    Returns:
        Markdown text
    """
    sections = [
        ["# Feature Advisor Report", "", f"Run: {result.run_id}"],
        render_blocker_status(result.blocker_check),
        render_evidence_pack(result.scan),
        render_codebase_summary(result.scan),
        render_completeness(result.completeness),
        render_dependencies(result.dependencies),
        render_business(result.business, result.scan.feature_names),
        render_technical_health(result.health),
        render_layout(result.layout),
        render_recommendations(result),
        render_decision_matrix(result.matrix),
        render_plan(result.plan, result),
        render_next_steps(result),
    ]
    return "\n\n".join("\n".join(section) for section in sections) + "\n"

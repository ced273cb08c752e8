"""
Feature Advisor
===============

Evidence-based "what should we build next" analysis for an Angular-style
frontend workspace.

The advisor scans the feature tree, scores each feature's completeness,
builds the cross-feature dependency graph, checks foundational blockers,
ranks candidates in a weighted decision matrix and emits an ordered
implementation plan plus a markdown report.

Usage:
    from feature_advisor import analyze_and_recommend

    print(analyze_and_recommend("/path/to/workspace"))
"""

__version__ = "0.1.0"

__all__ = [
    # Engine
    "AdvisorRun",
    "AnalysisResult",
    "analyze_and_recommend",
    # Config
    "AdvisorSettings",
    "RankingWeights",
    "load_settings",
    # Stage entry points
    "scan_project",
    "check_blockers",
    "update_blockers_doc",
    "analyze_completeness",
    "analyze_dependencies",
    "load_business_values",
    "build_technical_health",
    "estimate_effort",
    "verify_feature",
    "rank_features",
    "build_implementation_plan",
    "render_report",
    # Shared types
    "Confidence",
]

_EXPORTS = {
    "AdvisorRun": "engine",
    "AnalysisResult": "engine",
    "analyze_and_recommend": "engine",
    "AdvisorSettings": "config",
    "RankingWeights": "config",
    "load_settings": "config",
    "scan_project": "scanner",
    "check_blockers": "blockers",
    "update_blockers_doc": "blockers",
    "analyze_completeness": "scoring",
    "analyze_dependencies": "dependencies",
    "load_business_values": "business",
    "build_technical_health": "technical_health",
    "estimate_effort": "effort",
    "verify_feature": "verifier",
    "rank_features": "ranking",
    "build_implementation_plan": "planning",
    "render_report": "report",
    "Confidence": "models",
}


def __getattr__(name):
    """Lazy imports so `import feature_advisor` stays cheap."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(f".{module_name}", __name__), name)

"""
Advisor Settings
================

Runtime configuration for an analysis run.

Settings come from three places, highest precedence first:
1. keyword overrides passed to load_settings()
2. environment variables prefixed ``FEATURE_ADVISOR_`` (nested fields use ``__``,
   e.g. ``FEATURE_ADVISOR_WEIGHTS__COMPLETENESS=0.4``)
3. an optional YAML settings file (``feature-advisor.yaml`` in the project root)

Nested mappings such as ``weights`` are merged key by key across the layers.

All layout paths are relative to ``project_root``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict, SettingsError

from .core.exceptions import ErrorContext, InvalidConfigError, MissingConfigError
from .core.logging import get_logger
from .core.safe_io import safe_read_text

logger = get_logger(__name__)

DEFAULT_SETTINGS_FILE = "feature-advisor.yaml"


class RankingWeights(BaseModel):
    """Relative weights of the decision-matrix factors (normalized before use)."""

    user_impact: float = Field(default=0.30, ge=0)
    business_value: float = Field(default=0.25, ge=0)
    strategic_alignment: float = Field(default=0.20, ge=0)
    completeness: float = Field(default=0.15, ge=0)
    technical_blocking: float = Field(default=0.10, ge=0)

    def normalized(self) -> dict[str, float]:
        """
        Return the weights scaled to sum to 1.

        Raises:
            InvalidConfigError: If every weight is zero
        """
        raw = self.model_dump()
        total = sum(raw.values())
        if total <= 0:
            raise InvalidConfigError(
                "Ranking weights must not all be zero",
                context=ErrorContext(operation="normalize_weights", extra=raw),
            )
        return {name: value / total for name, value in raw.items()}


class AdvisorSettings(BaseSettings):
    """Settings for one advisor run."""

    model_config = SettingsConfigDict(
        env_prefix="FEATURE_ADVISOR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    project_root: Path = Path(".")

    # Project layout
    app_dir: str = "src/app"
    features_dir: str = "src/app/features"
    state_dir: str = "src/app/state"
    shared_components_dir: str = "src/app/shared/components"
    routes_file: str = "src/app/app.routes.ts"
    api_service_file: str = "src/app/shared/services/api.service.ts"
    global_styles_file: str = "src/styles.scss"
    dto_dir: str = "libs/shared-dtos/src/lib/dtos"
    source_roots: list[str] = Field(default_factory=lambda: ["apps", "libs", "src"])
    linter_config: str = "eslint.config.mjs"
    package_manifest: str = "package.json"
    tsconfig_files: list[str] = Field(
        default_factory=lambda: ["tsconfig.json", "tsconfig.base.json"]
    )
    # Import scopes that belong to the workspace itself (e.g. "@acme/")
    workspace_scopes: list[str] = Field(default_factory=list)

    # Blockers
    blocker_catalog: str = "blockers.yaml"
    blockers_doc: str = "docs/BLOCKERS.md"
    blocker_freshness_seconds: float = Field(default=300.0, gt=0)

    # Business inputs
    business_priority_file: str = "business-priority.json"
    roadmap_file: str = "feature-list.json"
    requests_file: str = "issues.json"
    revenue_file: str = "feature-revenue.json"

    # External validators
    run_validators: bool = False
    lint_command: list[str] = Field(
        default_factory=lambda: [
            "npx",
            "eslint",
            "--format",
            "json",
            "--no-error-on-unmatched-pattern",
        ]
    )
    typecheck_command: list[str] = Field(
        default_factory=lambda: ["npx", "tsc", "--noEmit", "--project"]
    )
    lint_timeout: float = Field(default=30.0, gt=0)
    typecheck_timeout: float = Field(default=60.0, gt=0)
    max_lint_files: int = Field(default=20, gt=0)

    # Version control
    git_history_limit: int = Field(default=20, ge=0)
    git_timeout: float = Field(default=15.0, gt=0)

    weights: RankingWeights = Field(default_factory=RankingWeights)

    def resolve(self, relative: str | Path) -> Path:
        """Resolve a layout path against the project root."""
        return Path(self.project_root) / relative


def _load_yaml_settings(path: Path, required: bool) -> dict[str, Any]:
    if not path.is_file():
        if required:
            raise MissingConfigError(
                f"Settings file not found: {path}",
                context=ErrorContext(operation="load_settings"),
            )
        return {}

    try:
        data = yaml.safe_load(safe_read_text(path))
    except yaml.YAMLError as e:
        raise InvalidConfigError(
            f"Malformed settings file: {path}",
            context=ErrorContext(operation="load_settings"),
            cause=e,
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError(
            f"Settings file must contain a mapping: {path}",
            context=ErrorContext(operation="load_settings"),
        )
    logger.debug(f"Loaded settings from {path}")
    return data


def _merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _environment_settings() -> dict[str, Any]:
    try:
        return EnvSettingsSource(AdvisorSettings)()
    except SettingsError as e:
        raise InvalidConfigError(
            "Invalid FEATURE_ADVISOR_ environment variable",
            context=ErrorContext(operation="load_settings"),
            cause=e,
        ) from e


def load_settings(
    project_root: Path | str | None = None,
    settings_file: Path | str | None = None,
    **overrides: Any,
) -> AdvisorSettings:
    """
    Build settings for a run.

    Args:
        project_root: Root of the analyzed project (defaults to env or cwd)
        settings_file: Explicit YAML settings file; must exist when given
        **overrides: Field values that take precedence over environment and YAML

    Returns:
        Validated AdvisorSettings

    Raises:
        MissingConfigError: If an explicit settings_file does not exist
        InvalidConfigError: If the YAML, an environment variable or any field value is invalid
    """
    root = Path(project_root) if project_root is not None else AdvisorSettings().project_root

    if settings_file is not None:
        data = _load_yaml_settings(Path(settings_file), required=True)
    else:
        data = _load_yaml_settings(root / DEFAULT_SETTINGS_FILE, required=False)

    data = _merge(_merge(data, _environment_settings()), overrides)
    data["project_root"] = root

    try:
        return AdvisorSettings(**data)
    except PydanticValidationError as e:
        raise InvalidConfigError(
            f"Invalid advisor settings: {e.error_count()} error(s)",
            context=ErrorContext(operation="load_settings"),
            cause=e,
        ) from e


@lru_cache
def get_settings() -> AdvisorSettings:
    """Default settings from the environment (cached)."""
    return AdvisorSettings()

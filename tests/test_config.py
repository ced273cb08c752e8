"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from feature_advisor.config import DEFAULT_SETTINGS_FILE, AdvisorSettings, load_settings
from feature_advisor.core.exceptions import ConfigurationError, InvalidConfigError, MissingConfigError

from conftest import write


class TestLoadSettings:
    """Tests for load_settings precedence and failures."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Test the default layout and validator toggle."""
        settings = load_settings(tmp_path)

        assert settings.project_root == tmp_path
        assert settings.features_dir == "src/app/features"
        assert settings.run_validators is False
        assert settings.blocker_freshness_seconds == 300
        assert settings.resolve("a/b.ts") == tmp_path / "a" / "b.ts"

    def test_project_yaml_picked_up(self, tmp_path: Path) -> None:
        """Test that feature-advisor.yaml in the project root is read."""
        write(
            tmp_path,
            DEFAULT_SETTINGS_FILE,
            """
            features_dir: web/features
            weights:
              completeness: 0.5
            """,
        )

        settings = load_settings(tmp_path)

        assert settings.features_dir == "web/features"
        assert settings.weights.completeness == 0.5
        assert settings.weights.user_impact == 0.30

    def test_overrides_win(self, tmp_path: Path) -> None:
        """Test that keyword overrides beat the YAML file."""
        write(tmp_path, DEFAULT_SETTINGS_FILE, "git_history_limit: 50\n")

        assert load_settings(tmp_path, git_history_limit=3).git_history_limit == 3

    def test_explicit_file_must_exist(self, tmp_path: Path) -> None:
        """Test that a named settings file that is missing raises."""
        with pytest.raises(MissingConfigError):
            load_settings(tmp_path, tmp_path / "nope.yaml")

    @pytest.mark.parametrize("content", ["weights: [\n", "- a\n- b\n", "git_history_limit: -1\n"])
    def test_invalid_settings(self, tmp_path: Path, content: str) -> None:
        """Test that malformed YAML or values raise InvalidConfigError."""
        path = write(tmp_path, "advisor.yaml", content)

        with pytest.raises(InvalidConfigError) as excinfo:
            load_settings(tmp_path, path)

        assert isinstance(excinfo.value, ConfigurationError)
        assert excinfo.value.to_dict()["error_code"] == "INVALID_CONFIG"

    def test_empty_file_is_defaults(self, tmp_path: Path) -> None:
        """Test that an empty YAML file means no overrides."""
        path = write(tmp_path, "advisor.yaml", "")

        assert load_settings(tmp_path, path).features_dir == "src/app/features"

    def test_environment_prefix(self, tmp_path: Path, monkeypatch) -> None:
        """Test FEATURE_ADVISOR_ variables, including nested weights."""
        monkeypatch.setenv("FEATURE_ADVISOR_RUN_VALIDATORS", "true")
        monkeypatch.setenv("FEATURE_ADVISOR_WEIGHTS__TECHNICAL_BLOCKING", "0.4")

        settings = load_settings(tmp_path)

        assert settings.run_validators is True
        assert settings.weights.technical_blocking == 0.4

    def test_environment_beats_yaml(self, tmp_path: Path, monkeypatch) -> None:
        """Test env over YAML, overrides over env, and per-key merging of weights."""
        write(
            tmp_path,
            DEFAULT_SETTINGS_FILE,
            """
            git_history_limit: 50
            features_dir: web/features
            weights:
              completeness: 0.5
            """,
        )
        monkeypatch.setenv("FEATURE_ADVISOR_GIT_HISTORY_LIMIT", "7")
        monkeypatch.setenv("FEATURE_ADVISOR_WEIGHTS__TECHNICAL_BLOCKING", "0.4")

        settings = load_settings(tmp_path)

        assert settings.git_history_limit == 7
        assert settings.features_dir == "web/features"
        assert settings.weights.completeness == 0.5
        assert settings.weights.technical_blocking == 0.4
        assert load_settings(tmp_path, git_history_limit=3).git_history_limit == 3

    def test_invalid_environment_value(self, tmp_path: Path, monkeypatch) -> None:
        """Test that a bad environment value raises InvalidConfigError."""
        monkeypatch.setenv("FEATURE_ADVISOR_GIT_HISTORY_LIMIT", "-5")

        with pytest.raises(InvalidConfigError):
            load_settings(tmp_path)

    def test_settings_are_independent(self) -> None:
        """Test that default list fields are not shared between instances."""
        first = AdvisorSettings()
        second = AdvisorSettings()
        first.source_roots.append("extra")

        assert "extra" not in second.source_roots

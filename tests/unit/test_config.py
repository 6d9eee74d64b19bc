"""Tests for configuration loading, validation and environment overrides."""

import pytest
import yaml

from inlinepatch.config import (
    ConfigError,
    EngineConfig,
    InlinePatchConfig,
    ScoringConfig,
    ServiceConfig,
    apply_env_overrides,
    load_config,
    save_config,
)

ENV_VARS = (
    "INLINEPATCH_MODE",
    "INLINEPATCH_PROJECT_ROOT",
    "INLINEPATCH_STORE",
    "SYNC_SECRET_TOKEN",
    "GITHUB_ACTIONS_TOKEN",
    "GITHUB_REPOSITORY",
    "INLINEPATCH_SITE_URL",
    "NEXT_PUBLIC_SITE_URL",
    "INLINEPATCH_ALLOWED_ORIGINS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_scoring_defaults(self):
        s = ScoringConfig()
        assert s.base_score == 3.0
        assert s.confidence_divisor == 4.0
        assert s.acceptance_threshold == 0.5
        assert s.uniqueness_points == 3.0
        assert s.conflict_confidence_factor == 0.9

    def test_engine_defaults(self):
        config = EngineConfig()
        assert "tsx" in config.extensions
        assert "node_modules" in config.excluded_dirs
        assert config.source_dirs == ["src", "app", "pages", "components"]

    def test_extensions_are_normalised(self):
        assert EngineConfig(extensions=[".TSX", "js"]).extensions == ["tsx", "js"]

    def test_invalid_values(self):
        with pytest.raises(ConfigError):
            EngineConfig(max_workers=0)
        with pytest.raises(ConfigError):
            EngineConfig(extensions=[])
        with pytest.raises(ConfigError):
            ServiceConfig(mode="staging")
        with pytest.raises(ConfigError):
            ScoringConfig(conflict_confidence_factor=0)
        with pytest.raises(ConfigError):
            ScoringConfig.from_dict({"conflict_confidence_factor": 1.5})

    def test_store_path_defaults_under_home(self):
        assert ServiceConfig().store_path.endswith("edits.jsonl")


class TestLoadSave:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config.service.mode == "development"

    def test_round_trip(self, tmp_path):
        config = InlinePatchConfig()
        config.engine.max_workers = 2
        config.engine.scoring.acceptance_threshold = 0.6
        config.service.mode = "production"
        path = save_config(config, tmp_path / "config.yaml")
        loaded = load_config(path, env=False)
        assert loaded.engine.max_workers == 2
        assert loaded.engine.scoring.acceptance_threshold == 0.6
        assert loaded.service.is_production is True

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"engine": {"max_workers": 3, "colour": "blue"}}), encoding="utf-8")
        assert load_config(path).engine.max_workers == 3

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("engine: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestEnvironment:
    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("INLINEPATCH_MODE", "production")
        monkeypatch.setenv("SYNC_SECRET_TOKEN", "s3cret")
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/site")
        monkeypatch.setenv("NEXT_PUBLIC_SITE_URL", "https://acme.test")
        monkeypatch.setenv("INLINEPATCH_ALLOWED_ORIGINS", "https://a.test, https://b.test")
        service = apply_env_overrides(ServiceConfig())
        assert service.is_production
        assert service.sync_secret_token == "s3cret"
        assert service.github_repository == "acme/site"
        assert service.site_url == "https://acme.test"
        assert service.allowed_origins == ["https://a.test", "https://b.test"]

    def test_invalid_mode_from_env(self, monkeypatch):
        monkeypatch.setenv("INLINEPATCH_MODE", "qa")
        with pytest.raises(ConfigError):
            apply_env_overrides(ServiceConfig())

    def test_env_skipped_when_disabled(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INLINEPATCH_MODE", "production")
        assert load_config(tmp_path / "nope.yaml", env=False).service.mode == "development"

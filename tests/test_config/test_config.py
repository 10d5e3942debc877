"""Tests for config.py: defaults, TOML loading, env overrides, validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from event_matchmaker.config import (
    AppConfig,
    CacheConfig,
    DedupConfig,
    LoggingConfig,
    RecommendationConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DB_PATH", "LOG_LEVEL", "CACHE_BACKEND", "REDIS_URL", "DEBUG"):
        monkeypatch.delenv(f"EVENT_MATCHMAKER_{name}", raising=False)


class TestDefaults:
    def test_load_default_toml(self):
        cfg = load_config()
        assert isinstance(cfg, AppConfig)
        assert cfg.cache.backend == "memory"
        assert cfg.cache.ttl_recommendations_s == 1800
        assert cfg.dedup.block_threshold == 0.8
        assert cfg.recommendations.min_score == 0.1
        assert cfg.notifications.high_value_expiry_hours == 24
        assert cfg.debug is False

    def test_model_defaults_match_toml(self):
        assert load_config() == AppConfig()


class TestEnvOverrides:
    def test_cache_backend_and_level(self, monkeypatch):
        monkeypatch.setenv("EVENT_MATCHMAKER_CACHE_BACKEND", "disabled")
        monkeypatch.setenv("EVENT_MATCHMAKER_LOG_LEVEL", "debug")
        cfg = load_config()
        assert cfg.cache.backend == "disabled"
        assert cfg.logging.level == "DEBUG"

    def test_debug_and_paths(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EVENT_MATCHMAKER_DEBUG", "true")
        monkeypatch.setenv("EVENT_MATCHMAKER_DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("EVENT_MATCHMAKER_REDIS_URL", "redis://cache:6379/2")
        cfg = load_config()
        assert cfg.debug is True
        assert cfg.database.db_path == str(tmp_path / "x.db")
        assert cfg.cache.redis_url == "redis://cache:6379/2"


class TestExplicitFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[recommendations]\nmax_results = 5\n")
        cfg = load_config(path)
        assert cfg.recommendations.max_results == 5
        assert cfg.recommendations.page_size == 500

    def test_local_overrides_merge(self, tmp_path):
        (tmp_path / "custom.toml").write_text("[dedup]\nblock_threshold = 0.9\nsuggest_threshold = 0.4\n")
        (tmp_path / "local.toml").write_text("[dedup]\nsuggest_threshold = 0.6\n")
        cfg = load_config(tmp_path / "custom.toml")
        assert cfg.dedup.block_threshold == 0.9
        assert cfg.dedup.suggest_threshold == 0.6

    def test_inverted_thresholds_rejected(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[dedup]\nblock_threshold = 0.4\nsuggest_threshold = 0.6\n")
        with pytest.raises(ValidationError):
            load_config(path)


class TestValidators:
    def test_ttl_positive(self):
        with pytest.raises(ValidationError):
            CacheConfig(ttl_statistics_s=0)

    def test_min_score_range(self):
        with pytest.raises(ValidationError):
            RecommendationConfig(min_score=1.5)

    def test_worker_concurrency_positive(self):
        with pytest.raises(ValidationError):
            RecommendationConfig(worker_concurrency=0)

    def test_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_dedup_thresholds(self):
        with pytest.raises(ValidationError):
            DedupConfig(block_threshold=1.2)

"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``EVENT_MATCHMAKER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Every component (generator, deduplicator, cache layer, notification planner)
receives its own config section at construction time, never raw dicts or
scattered env var lookups.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite settings for the reference store implementation."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/event_matchmaker.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class CacheConfig(BaseModel):
    """Cache backend selection and per-use-case TTLs (seconds).

    ``backend = "disabled"`` runs every ``get_or_compute`` straight through
    to its compute function; correctness never depends on the cache.
    """

    model_config = ConfigDict(frozen=True)

    backend: Literal["memory", "redis", "disabled"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    socket_timeout_s: float = 2.0

    ttl_default_s: int = 3600
    ttl_recommendations_s: int = 1800       # 30 min
    ttl_checkin_status_s: int = 7200        # 2 h
    ttl_queue_snapshot_s: int = 3600        # 1 h
    ttl_statistics_s: int = 300             # 5 min
    ttl_session_s: int = 86400              # 24 h

    @field_validator(
        "ttl_default_s",
        "ttl_recommendations_s",
        "ttl_checkin_status_s",
        "ttl_queue_snapshot_s",
        "ttl_statistics_s",
        "ttl_session_s",
    )
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Cache TTLs must be positive seconds, got {v}.")
        return v


class ScoringConfig(BaseModel):
    """History-signal lookback used when pre-fetching scoring inputs."""

    model_config = ConfigDict(frozen=True)

    activity_lookback_days: int = 30


class DedupConfig(BaseModel):
    """Duplicate-detection windows and thresholds."""

    model_config = ConfigDict(frozen=True)

    fuzzy_lookback_days: int = 30
    similar_lookback_days: int = 7
    block_threshold: float = 0.8
    suggest_threshold: float = 0.5
    similar_threshold: float = 0.6
    max_similar_suggestions: int = 3

    @model_validator(mode="after")
    def validate_thresholds(self) -> "DedupConfig":
        if not 0.0 <= self.suggest_threshold <= self.block_threshold <= 1.0:
            raise ValueError(
                "Dedup thresholds must satisfy 0 <= suggest_threshold <= "
                f"block_threshold <= 1, got suggest={self.suggest_threshold}, "
                f"block={self.block_threshold}."
            )
        return self


class RecommendationConfig(BaseModel):
    """Batch generation parameters."""

    model_config = ConfigDict(frozen=True)

    min_score: float = 0.1
    max_results: int = 100
    include_existing: bool = False
    worker_concurrency: int = 8
    page_size: int = 500

    @field_validator("min_score")
    @classmethod
    def validate_min_score(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"min_score must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("max_results", "worker_concurrency", "page_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class NotificationConfig(BaseModel):
    """Outbox expiry windows (hours) and escalation switch."""

    model_config = ConfigDict(frozen=True)

    high_value_expiry_hours: int = 24
    default_expiry_hours: int = 72
    critical_expiry_hours: int = 12
    escalation_enabled: bool = True


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/event_matchmaker.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    cache: CacheConfig = CacheConfig()
    scoring: ScoringConfig = ScoringConfig()
    dedup: DedupConfig = DedupConfig()
    recommendations: RecommendationConfig = RecommendationConfig()
    notifications: NotificationConfig = NotificationConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_PREFIX = "EVENT_MATCHMAKER_"


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply EVENT_MATCHMAKER_* env vars to the raw config dict.

    Supported overrides:
      EVENT_MATCHMAKER_DB_PATH        → raw["database"]["db_path"]
      EVENT_MATCHMAKER_LOG_LEVEL      → raw["logging"]["level"]
      EVENT_MATCHMAKER_CACHE_BACKEND  → raw["cache"]["backend"]
      EVENT_MATCHMAKER_REDIS_URL      → raw["cache"]["redis_url"]
      EVENT_MATCHMAKER_DEBUG          → raw["debug"]
    """
    if db_path := os.environ.get(f"{_ENV_PREFIX}DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get(f"{_ENV_PREFIX}LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if backend := os.environ.get(f"{_ENV_PREFIX}CACHE_BACKEND"):
        raw.setdefault("cache", {})["backend"] = backend

    if redis_url := os.environ.get(f"{_ENV_PREFIX}REDIS_URL"):
        raw.setdefault("cache", {})["redis_url"] = redis_url

    if debug := os.environ.get(f"{_ENV_PREFIX}DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        cache=CacheConfig(**raw.get("cache", {})),
        scoring=ScoringConfig(**raw.get("scoring", {})),
        dedup=DedupConfig(**raw.get("dedup", {})),
        recommendations=RecommendationConfig(**raw.get("recommendations", {})),
        notifications=NotificationConfig(**raw.get("notifications", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )

# InlinePatch
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of InlinePatch.
#
# InlinePatch is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""InlinePatch configuration.

Engine heuristics and service settings live in one YAML file:

    Config location: $INLINEPATCH_HOME/config.yaml  (default ~/.inlinepatch)

Every scoring constant is configurable; the defaults are the tuned values
the relocation heuristics were calibrated against and should only be
changed deliberately. Environment variables override the service section
so a deployment can be configured without touching the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("inlinepatch.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------


def inlinepatch_home() -> Path:
    return Path(os.environ.get("INLINEPATCH_HOME", Path.home() / ".inlinepatch"))


def default_config_path() -> Path:
    return inlinepatch_home() / "config.yaml"


# ---------------------------------------------------------------------------
# Corpus defaults
# ---------------------------------------------------------------------------
DEFAULT_EXTENSIONS: tuple[str, ...] = (
    "ts", "tsx", "js", "jsx", "vue", "svelte", "html", "htm", "md", "mdx", "json",
)
DEFAULT_EXCLUDED_DIRS: tuple[str, ...] = ("node_modules", "dist", "build", ".next", ".git")
DEFAULT_SOURCE_DIRS: tuple[str, ...] = ("src", "app", "pages", "components")

MODES = ("development", "production")


class ConfigError(ValueError):
    """Raised when a config file or value cannot be used."""


# =============================================================================
# SCORING
# =============================================================================


@dataclass
class ScoringConfig:
    """Point values and thresholds used by the validator and ranker."""

    # Ranker
    base_score: float = 3.0
    component_file_bonus: float = 2.0
    mapping_file_penalty: float = 1.0
    components_dir_bonus: float = 1.0
    exact_match_bonus: float = 3.0
    inexact_match_penalty: float = 1.0
    pure_text_bonus: float = 1.0
    confidence_divisor: float = 4.0
    acceptance_threshold: float = 0.5
    # applied to every survivor when two or more remain; the winner never drops below acceptance_threshold
    conflict_confidence_factor: float = 0.9
    component_extensions: list[str] = field(default_factory=lambda: [".tsx", ".jsx"])
    mapping_file_markers: list[str] = field(default_factory=lambda: [".map.json", "element-id"])

    # Validator
    parent_text_points: float = 2.0
    weak_parent_text_points: float = 1.0
    sibling_min_length: int = 15
    sibling_match_ratio: float = 0.5
    sibling_points: float = 2.0
    sibling_miss_penalty: float = 1.0
    page_segment_points: float = 2.0
    home_page_points: float = 1.0
    home_page_hints: list[str] = field(
        default_factory=lambda: ["page.", "index.", "home", "hero", "landing"]
    )
    selector_token_min_length: int = 4
    selector_token_points: float = 0.5
    specific_selector_length: int = 21
    minimal_context_bonus: float = 1.0
    minimal_context_penalty: float = 1.0
    uniqueness_points: float = 3.0
    element_id_points: float = 2.0

    # Acceptance thresholds
    strong_context_threshold: float = 1.0
    strong_class_count: int = 3
    minimal_context_threshold: float = 3.0
    short_text_threshold: float = 2.0
    short_text_length: int = 10
    default_threshold: float = 1.0

    def __post_init__(self):
        if not 0 < self.conflict_confidence_factor <= 1:
            raise ConfigError(
                f"conflict_confidence_factor must be in (0, 1] (got {self.conflict_confidence_factor})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScoringConfig:
        return cls(**_known_fields(cls, data or {}))


# =============================================================================
# ENGINE
# =============================================================================


@dataclass
class EngineConfig:
    """Corpus layout and scan settings for TextRelocationEngine."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    excluded_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    exclude_dot_dirs: bool = True
    source_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_DIRS))
    max_workers: int = 8
    context_lines: int = 3
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self):
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1 (got {self.max_workers})")
        if self.context_lines < 0:
            raise ConfigError(f"context_lines must be >= 0 (got {self.context_lines})")
        self.extensions = [e.lower().lstrip(".") for e in self.extensions if e.strip()]
        if not self.extensions:
            raise ConfigError("extensions must not be empty")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        data = dict(data or {})
        scoring = ScoringConfig.from_dict(data.pop("scoring", None))
        return cls(scoring=scoring, **_known_fields(cls, data, skip=("scoring",)))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# SERVICE
# =============================================================================


@dataclass
class ServiceConfig:
    """HTTP service and deferred-apply settings."""

    mode: str = "development"
    project_root: str = "."
    store_path: str = ""
    allowed_origins: list[str] = field(default_factory=list)
    site_url: str = ""
    sync_secret_token: str = ""
    github_token: str = ""
    github_repository: str = ""
    host: str = "127.0.0.1"
    port: int = 8765

    def __post_init__(self):
        if self.mode not in MODES:
            raise ConfigError(f"mode must be one of {MODES} (got {self.mode!r})")
        if not self.store_path:
            self.store_path = str(inlinepatch_home() / "edits.jsonl")

    @property
    def is_production(self) -> bool:
        return self.mode == "production"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ServiceConfig:
        return cls(**_known_fields(cls, data or {}))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class InlinePatchConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    def to_dict(self) -> dict[str, Any]:
        return {"engine": self.engine.to_dict(), "service": self.service.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> InlinePatchConfig:
        data = data or {}
        return cls(
            engine=EngineConfig.from_dict(data.get("engine")),
            service=ServiceConfig.from_dict(data.get("service")),
        )


def _known_fields(cls, data: dict[str, Any], skip: tuple[str, ...] = ()) -> dict[str, Any]:
    """Keep only keys that are fields of ``cls``; unknown keys are logged and dropped."""
    names = {f.name for f in fields(cls)} - set(skip)
    unknown = sorted(set(data) - names - set(skip))
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in names}


# =============================================================================
# ENVIRONMENT OVERRIDES
# =============================================================================

_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "mode": ("INLINEPATCH_MODE",),
    "project_root": ("INLINEPATCH_PROJECT_ROOT",),
    "store_path": ("INLINEPATCH_STORE",),
    "sync_secret_token": ("SYNC_SECRET_TOKEN",),
    "github_token": ("GITHUB_ACTIONS_TOKEN",),
    "github_repository": ("GITHUB_REPOSITORY",),
    "site_url": ("INLINEPATCH_SITE_URL", "NEXT_PUBLIC_SITE_URL"),
}


def apply_env_overrides(service: ServiceConfig) -> ServiceConfig:
    """Overlay environment variables onto ``service`` (in place) and return it."""
    for attr, names in _ENV_OVERRIDES.items():
        for name in names:
            value = os.environ.get(name)
            if value:
                setattr(service, attr, value)
                break
    origins = os.environ.get("INLINEPATCH_ALLOWED_ORIGINS")
    if origins:
        service.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]
    if service.mode not in MODES:
        raise ConfigError(f"INLINEPATCH_MODE must be one of {MODES} (got {service.mode!r})")
    return service


# =============================================================================
# LOAD / SAVE
# =============================================================================


def load_config(path: Path | str | None = None, env: bool = True) -> InlinePatchConfig:
    """Load configuration from YAML.

    A missing file yields the defaults. A file that exists but is not a
    mapping, or holds invalid values, raises ConfigError.
    """
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        logger.info("No config at %s -- using defaults", config_path)
        config = InlinePatchConfig()
    else:
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config {config_path} must be a mapping")
        try:
            config = InlinePatchConfig.from_dict(raw)
        except TypeError as exc:
            raise ConfigError(f"Invalid config {config_path}: {exc}") from exc
        logger.info("Loaded config from %s", config_path)

    if env:
        apply_env_overrides(config.service)
    return config


def save_config(config: InlinePatchConfig, path: Path | str | None = None) -> Path:
    """Save configuration to YAML."""
    config_path = Path(path) if path else default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False), encoding="utf-8"
    )
    logger.info("Saved config to %s", config_path)
    return config_path

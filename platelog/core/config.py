"""
Configuration for the platelog catalogue backend.

Settings are loaded from environment variables (prefixed ``PLATELOG_``) or
from a ``.env`` file, with defaults suitable for a local single-user store.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_PATH, override=False)


TRIP_MODES = {"label", "registry"}

# Canonical import field -> accepted header spellings (matched case-insensitively).
DEFAULT_PLATE_IMPORT_ALIASES: dict[str, list[str]] = {
    "external_id": ["external_id", "externalid", "id"],
    "state": ["state"],
    "country": ["country"],
    "name": ["name"],
    "years_available": ["years_avai", "years_available"],
    "available": ["avail?", "avail", "available"],
    "base": ["base"],
    "embossed": ["embossed"],
    "num_font": ["num_font"],
    "num_color": ["num_color"],
    "state_font": ["state_font"],
    "state_color": ["state_colo", "state_color"],
    "state_location": ["state_locat", "state_location"],
    "primary_background_colors": ["primary_ba", "primary_background_colors"],
    "all_colors": ["all_colors"],
    "background_desc": ["backgroun", "background_desc"],
    "has_county": ["county", "has_county"],
    "has_url": ["url", "has_url"],
    "text": ["text"],
    "features_tags": ["features/ta", "features/tags", "features_tags"],
    "description": ["descriptior", "description"],
    "notes": ["notes"],
}

DEFAULT_PATTERN_IMPORT_ALIASES: dict[str, list[str]] = {
    "external_id": ["external_id", "plate_external_id", "plate"],
    "pattern": ["num_pattern", "pattern"],
    "type": ["type"],
    "separator": ["separator", "sep"],
    "series_years": ["series_years", "years"],
}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Single-file SQLite store by default.
    database_url: str = Field(default="sqlite+pysqlite:///platelog.db")
    # "label" keeps trips as free text on the sighting, "registry" also links a Trip row.
    trip_mode: str = Field(default="label")

    search_limit: int = Field(default=100)
    default_page_size: int = Field(default=50)
    max_page_size: int = Field(default=200)

    identifier_max_attempts: int = Field(default=10_000)
    insert_retry_attempts: int = Field(default=3)

    import_sample_limit: int = Field(default=10)
    import_require_external_id: bool = Field(default=False)
    # Minimum hyphen-separated segments for imported external ids (0 disables the check).
    external_id_min_segments: int = Field(default=0)
    plate_import_aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_PLATE_IMPORT_ALIASES.items()}
    )
    pattern_import_aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_PATTERN_IMPORT_ALIASES.items()}
    )

    geocoding_api_key: str | None = Field(default=None)
    geocoding_base_url: str = Field(default="https://maps.googleapis.com/maps/api/geocode/json")
    geocoding_timeout_sec: float = Field(default=10.0)

    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="PLATELOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def validate_runtime_settings(cfg: Settings) -> None:
    logger = logging.getLogger("config")
    mode = (cfg.trip_mode or "").strip().lower()
    if mode not in TRIP_MODES:
        raise RuntimeError(f"PLATELOG_TRIP_MODE must be one of {sorted(TRIP_MODES)}, got {cfg.trip_mode!r}")
    cfg.trip_mode = mode
    if cfg.max_page_size < 1:
        logger.warning("PLATELOG_MAX_PAGE_SIZE=%s is invalid; using 200", cfg.max_page_size)
        cfg.max_page_size = 200
    if cfg.default_page_size > cfg.max_page_size:
        logger.warning(
            "PLATELOG_DEFAULT_PAGE_SIZE=%s exceeds max page size %s; clamping",
            cfg.default_page_size,
            cfg.max_page_size,
        )
        cfg.default_page_size = cfg.max_page_size
    if cfg.identifier_max_attempts < 1:
        logger.warning("PLATELOG_IDENTIFIER_MAX_ATTEMPTS must be positive; using 10000")
        cfg.identifier_max_attempts = 10_000
    if cfg.insert_retry_attempts < 1:
        cfg.insert_retry_attempts = 1
    if cfg.external_id_min_segments < 0:
        cfg.external_id_min_segments = 0
    if not cfg.geocoding_api_key:
        logger.info("PLATELOG_GEOCODING_API_KEY not set; reverse geocoding is disabled.")


def get_settings() -> Settings:
    cfg = Settings()
    validate_runtime_settings(cfg)
    return cfg


settings = get_settings()


def get_app_settings(request: Request) -> Settings:
    """FastAPI dependency: the settings the running app was built with."""
    return request.app.state.settings

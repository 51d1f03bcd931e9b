"""
Centralized configuration for the SKU search engine.

Configuration is loaded from environment variables with sensible defaults.

Usage:
    from skusearch.config import config

    floor = config.volume.min_absolute_floor
    tz = config.time.timezone
"""

import os
from dataclasses import dataclass, field
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class TimeConfig:
    """Time window configuration."""

    timezone: str = field(default_factory=lambda: os.getenv("SKUSEARCH_TIMEZONE", "Europe/London"))
    default_window_days: int = field(
        default_factory=lambda: _env_int("SKUSEARCH_DEFAULT_WINDOW_DAYS", 30)
    )
    inventory_lookback_days: int = 30


@dataclass(frozen=True)
class VolumeBandConfig:
    """Percentile bands used for volume badges."""

    top_percentile: float = field(default_factory=lambda: _env_float("SKUSEARCH_VOLUME_TOP_PCT", 20.0))
    bottom_percentile: float = field(
        default_factory=lambda: _env_float("SKUSEARCH_VOLUME_BOTTOM_PCT", 20.0)
    )
    min_absolute_floor: float = field(default_factory=lambda: _env_float("SKUSEARCH_VOLUME_FLOOR", 10.0))


@dataclass(frozen=True)
class StockConfig:
    """Stock cover sentinels."""

    no_velocity_days: float = 999.0   # cover when nothing sells
    display_cap_days: float = 730.0   # shown as ">2y" above this
    display_cap_label: str = ">2y"


@dataclass(frozen=True)
class AdsConfig:
    """Advertising capability defaults."""

    # Platforms treated as ad-enabled when nothing else is known
    default_platforms: List[str] = field(default_factory=lambda: [
        p.strip().lower()
        for p in os.getenv("SKUSEARCH_ADS_PLATFORMS", "amazon,ebay,temu").split(",")
        if p.strip()
    ])


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("SKUSEARCH_LOG_LEVEL", "INFO"))
    json_format: bool = field(
        default_factory=lambda: os.getenv("SKUSEARCH_LOG_JSON", "").lower() in ("1", "true", "yes")
    )


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "0.3.0"
    time: TimeConfig = field(default_factory=TimeConfig)
    volume: VolumeBandConfig = field(default_factory=VolumeBandConfig)
    stock: StockConfig = field(default_factory=StockConfig)
    ads: AdsConfig = field(default_factory=AdsConfig)
    logging: LogConfig = field(default_factory=LogConfig)


# Global config instance
config = AppConfig()


# ─── Convenience Exports ──────────────────────────────────────────────────────
VERSION = config.version
NO_VELOCITY_DAYS = config.stock.no_velocity_days


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(cfg: AppConfig = None) -> None:
    """
    Validate configuration values.

    Call this on host startup to fail fast with clear error messages
    instead of odd banding or window results later.

    Raises:
        ConfigurationError: If any value is out of range
    """
    cfg = cfg or config
    errors = []

    if cfg.time.default_window_days <= 0:
        errors.append("SKUSEARCH_DEFAULT_WINDOW_DAYS must be a positive integer")

    try:
        ZoneInfo(cfg.time.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"SKUSEARCH_TIMEZONE is not a known timezone: {cfg.time.timezone!r}")

    top = cfg.volume.top_percentile
    bottom = cfg.volume.bottom_percentile
    if not 0 <= top <= 100:
        errors.append("SKUSEARCH_VOLUME_TOP_PCT must be between 0 and 100")
    if not 0 <= bottom <= 100:
        errors.append("SKUSEARCH_VOLUME_BOTTOM_PCT must be between 0 and 100")
    if top + bottom > 100:
        errors.append("Top and bottom volume percentiles cannot overlap (sum > 100)")

    if cfg.volume.min_absolute_floor < 0:
        errors.append("SKUSEARCH_VOLUME_FLOOR cannot be negative")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

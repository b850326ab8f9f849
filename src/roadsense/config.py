"""
RoadSense Configuration
=======================

This module handles configuration loading for the analysis pipeline.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    ROADSENSE_MATCH_THRESHOLD    -> matching.threshold_meters
    ROADSENSE_MATCH_STRATEGY     -> matching.strategy
    ROADSENSE_FREE_FLOW_SPEED    -> congestion.free_flow_mps
    ROADSENSE_MIN_CONGESTION_MS  -> congestion.min_duration_ms
    ROADSENSE_ROUGHNESS_WINDOW   -> roughness.window_size
    ROADSENSE_STATS_MERGE_MODE   -> statistics.merge_mode
    ROADSENSE_TIMEZONE           -> calendar.timezone
    ROADSENSE_PORT               -> server.port
    ROADSENSE_LOG_LEVEL          -> logging.level
    PORT                         -> server.port (container platforms)

Example:
    from roadsense.config import load_config

    settings = load_config()
    print(settings.matching.threshold_meters)
    print(settings.congestion.free_flow_mps)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from roadsense.congestion.detector import CongestionThresholds
from roadsense.congestion.statistics import MergeMode
from roadsense.geometry.matcher import MatchStrategy


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="roadsense", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class MatchingConfig(BaseModel):
    """GPS-to-segment matching configuration."""

    threshold_meters: float = Field(
        default=50.0,
        gt=0,
        description="Maximum distance from a segment for a match",
    )
    strategy: MatchStrategy = Field(
        default=MatchStrategy.NEAREST,
        description="Track matching: 'nearest' (per point) or 'sticky' (hysteresis)",
    )
    hysteresis_meters: float = Field(
        default=25.0,
        ge=0,
        description="Extra distance the previous segment may drift under 'sticky'",
    )


class CongestionConfig(BaseModel):
    """Congestion speed thresholds (m/s) and minimum event duration."""

    free_flow_mps: float = Field(default=15.0, gt=0, description="Free-flow speed (~33 mph)")
    slow_mps: float = Field(default=8.0, gt=0, description="Slow speed (~18 mph)")
    congested_mps: float = Field(default=5.0, gt=0, description="Congested speed (~11 mph)")
    heavy_mps: float = Field(default=2.78, gt=0, description="Heavy traffic speed (~6 mph)")
    gridlock_mps: float = Field(default=1.0, ge=0, description="Gridlock speed (~2 mph)")
    min_duration_ms: int = Field(
        default=30000,
        ge=0,
        description="Minimum low-speed duration for an event",
    )

    def to_thresholds(self) -> CongestionThresholds:
        """Build detector thresholds."""
        return CongestionThresholds(
            free_flow=self.free_flow_mps,
            slow=self.slow_mps,
            congested=self.congested_mps,
            heavy=self.heavy_mps,
            gridlock=self.gridlock_mps,
            min_duration_ms=self.min_duration_ms,
        )


class RoughnessTierWeights(BaseModel):
    """Score points per roughness tier."""

    smooth: int = Field(default=100, ge=0, le=100)
    light: int = Field(default=75, ge=0, le=100)
    moderate: int = Field(default=50, ge=0, le=100)
    rough: int = Field(default=25, ge=0, le=100)
    very_rough: int = Field(default=0, ge=0, le=100)


class RoughnessConfig(BaseModel):
    """Roughness analysis configuration."""

    window_size: int = Field(
        default=15,
        ge=2,
        description="Rolling window length in samples",
    )
    tier_thresholds: List[float] = Field(
        default_factory=lambda: [0.5, 1.5, 3.0, 5.0],
        min_length=4,
        max_length=4,
        description="Std-dev upper bounds for smooth, light, moderate, rough (m/s²)",
    )
    tier_weights: RoughnessTierWeights = Field(default_factory=RoughnessTierWeights)


class StatisticsConfig(BaseModel):
    """Segment statistics configuration."""

    merge_mode: MergeMode = Field(
        default=MergeMode.LATEST_BATCH,
        description="'latest_batch' (scores from newest batch) or 'cumulative'",
    )


class CalendarConfig(BaseModel):
    """Calendar bucketing configuration."""

    timezone: Optional[str] = Field(
        default=None,
        description="IANA zone for day/hour/week buckets (None = host local time)",
    )


class PipelineConfig(BaseModel):
    """Batch execution configuration."""

    max_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads for analysing several drives at once",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8010, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for RoadSense.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    congestion: CongestionConfig = Field(default_factory=CongestionConfig)
    roughness: RoughnessConfig = Field(default_factory=RoughnessConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Matching settings
    if env_threshold := os.environ.get("ROADSENSE_MATCH_THRESHOLD"):
        config_data.setdefault("matching", {})["threshold_meters"] = float(env_threshold)
    if env_strategy := os.environ.get("ROADSENSE_MATCH_STRATEGY"):
        config_data.setdefault("matching", {})["strategy"] = env_strategy

    # Congestion settings
    if env_free_flow := os.environ.get("ROADSENSE_FREE_FLOW_SPEED"):
        config_data.setdefault("congestion", {})["free_flow_mps"] = float(env_free_flow)
    if env_min_duration := os.environ.get("ROADSENSE_MIN_CONGESTION_MS"):
        config_data.setdefault("congestion", {})["min_duration_ms"] = int(env_min_duration)

    # Roughness settings
    if env_window := os.environ.get("ROADSENSE_ROUGHNESS_WINDOW"):
        config_data.setdefault("roughness", {})["window_size"] = int(env_window)

    # Statistics settings
    if env_mode := os.environ.get("ROADSENSE_STATS_MERGE_MODE"):
        config_data.setdefault("statistics", {})["merge_mode"] = env_mode

    # Calendar settings
    if env_tz := os.environ.get("ROADSENSE_TIMEZONE"):
        config_data.setdefault("calendar", {})["timezone"] = env_tz

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("ROADSENSE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("ROADSENSE_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

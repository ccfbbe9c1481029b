"""Configuration management for WayPoint."""

from pathlib import Path
from typing import Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator

from .core.scoring import ScoringWeights


DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "waypoint"
RULES_FILE = "rules.json"


class RankingConfig(BaseModel):
    default_limit: int = 20

    @field_validator('default_limit')
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("default_limit must be at least 1")
        return v


class AnalyzerConfig(BaseModel):
    command_timeout: float = 5.0
    shell: str = "/bin/bash"
    git_executable: str = "git"

    @field_validator('command_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("command_timeout must be positive")
        return v


class PredictorConfig(BaseModel):
    refresh_interval: float = 1.0
    morning_start_hour: int = 8
    morning_end_hour: int = 10
    morning_boost: int = 200
    morning_min_visits: int = 10

    @model_validator(mode='after')
    def validate_window(self) -> "PredictorConfig":
        if not (0 <= self.morning_start_hour <= self.morning_end_hour <= 23):
            raise ValueError("morning window must satisfy 0 <= start <= end <= 23")
        return self


class HistoryConfig(BaseModel):
    max_entries: int = 1000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None
    rotation: str = "1 day"
    retention: str = "7 days"


class Config(BaseModel):
    """Main configuration for WayPoint."""

    data_dir: Path = DEFAULT_DATA_DIR
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    predictor: PredictorConfig = Field(default_factory=PredictorConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('data_dir')
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser()

    @property
    def rules_path(self) -> Path:
        return self.data_dir / RULES_FILE

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML file, or defaults when none exists."""
        if config_path is None:
            # Try default locations
            candidates = [
                Path("waypoint.yaml"),
                Path.home() / ".config" / "waypoint" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.debug("No config file found, using defaults")
                return cls()

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)

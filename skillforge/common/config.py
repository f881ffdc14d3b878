"""
Centralized Configuration for SkillForge

Typed configuration for the rewards engine. Values come from, in increasing
priority:
1. Model defaults
2. A YAML or JSON config file (``CONFIG_PATH``)
3. Environment settings (see ``skillforge.config.Settings``)
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from skillforge.config import Settings

logger = logging.getLogger(__name__)

TIER_NAMES = ("beginner", "intermediate", "advanced", "expert")
RARITY_NAMES = ("common", "uncommon", "rare", "epic", "legendary")


class BasePointsRange(BaseModel):
    """Range that code-submission base points are interpolated across."""
    min: int = Field(default=10, ge=0)
    max: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "BasePointsRange":
        """Ensure the range is not inverted"""
        if self.min > self.max:
            raise ValueError(f"base points min ({self.min}) exceeds max ({self.max})")
        return self


class PointsConfig(BaseModel):
    """Tuning for code-submission points and rarity point bonuses"""
    base_points_range: BasePointsRange = Field(default_factory=BasePointsRange)
    quality_bonus_multiplier: float = Field(default=0.5, ge=0)
    efficiency_bonus_multiplier: float = Field(default=0.3, ge=0)
    creativity_bonus_multiplier: float = Field(default=0.4, ge=0)
    best_practices_bonus_multiplier: float = Field(default=0.6, ge=0)
    difficulty_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {
            "beginner": 1.0,
            "intermediate": 1.5,
            "advanced": 2.0,
            "expert": 3.0
        }
    )
    rarity_bonuses: Dict[str, int] = Field(
        default_factory=lambda: {
            "common": 0,
            "uncommon": 10,
            "rare": 25,
            "epic": 50,
            "legendary": 100
        }
    )

    @field_validator("difficulty_multipliers")
    @classmethod
    def validate_difficulty_multipliers(cls, v):
        """Every tier needs a multiplier, and none may shrink the subtotal"""
        missing = [tier for tier in TIER_NAMES if tier not in v]
        if missing:
            raise ValueError(f"Missing difficulty multipliers for: {missing}")
        low = {tier: m for tier, m in v.items() if m < 1.0}
        if low:
            raise ValueError(f"Difficulty multipliers must be >= 1.0, got {low}")
        return v

    @field_validator("rarity_bonuses")
    @classmethod
    def validate_rarity_bonuses(cls, v):
        """Every rarity needs a non-negative bonus"""
        missing = [rarity for rarity in RARITY_NAMES if rarity not in v]
        if missing:
            raise ValueError(f"Missing rarity bonuses for: {missing}")
        if any(bonus < 0 for bonus in v.values()):
            raise ValueError("Rarity bonuses must be non-negative")
        return v


class RarityConfig(BaseModel):
    """Holder statistics reported on issued badges"""
    assumed_population: int = Field(default=100_000, gt=0)
    estimated_holders: Dict[str, int] = Field(
        default_factory=lambda: {
            "common": 10000,
            "uncommon": 5000,
            "rare": 1000,
            "epic": 200,
            "legendary": 50
        }
    )

    @field_validator("estimated_holders")
    @classmethod
    def validate_estimated_holders(cls, v):
        """Every rarity needs a non-negative holder estimate"""
        missing = [rarity for rarity in RARITY_NAMES if rarity not in v]
        if missing:
            raise ValueError(f"Missing holder estimates for: {missing}")
        if any(holders < 0 for holders in v.values()):
            raise ValueError("Holder estimates must be non-negative")
        return v


class EngineConfig(BaseModel):
    """Reward orchestration settings"""
    enable_credential_verification: bool = True
    badge_catalog_path: Optional[str] = None
    achievement_velocity_per_day: float = Field(default=10.0, gt=0)
    century_club_threshold: int = Field(default=100, ge=0)


class RedisConfig(BaseModel):
    """Redis configuration for the progress store"""
    url: str = "redis://localhost:6379/0"
    key_prefix: str = "skillforge:"
    socket_timeout: float = Field(default=5.0, gt=0)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    use_json: bool = False
    file_path: Optional[str] = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AppConfig(BaseModel):
    """Main engine configuration"""
    app_name: str = "SkillForge"
    points: PointsConfig = Field(default_factory=PointsConfig)
    rarity: RarityConfig = Field(default_factory=RarityConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigLoader:
    """
    Loads ``AppConfig`` from a file and applies environment overrides.
    """

    def __init__(self, config_path: Optional[str] = None, settings: Optional[Settings] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
            settings: Environment settings, read fresh when omitted
        """
        self.settings = settings or Settings()
        self.config_path = config_path or self.settings.CONFIG_PATH
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """Load configuration from all sources, caching the result."""
        if self._config is not None:
            return self._config

        data: Dict[str, Any] = {}
        if self.config_path:
            data = self._load_from_file(self.config_path)

        self._apply_environment(data)
        self._config = AppConfig(**data)
        return self._config

    def _apply_environment(self, data: Dict[str, Any]) -> None:
        """Overlay non-empty environment settings onto file data."""
        overrides = {
            ("engine", "badge_catalog_path"): self.settings.BADGE_CATALOG_PATH,
            ("engine", "enable_credential_verification"): self.settings.ENABLE_CREDENTIAL_VERIFICATION,
            ("logging", "level"): self.settings.LOG_LEVEL,
            ("logging", "use_json"): self.settings.LOG_JSON,
            ("redis", "url"): self.settings.REDIS_URL,
            ("redis", "key_prefix"): self.settings.REDIS_KEY_PREFIX,
        }
        for (section, key), value in overrides.items():
            if value is not None:
                data.setdefault(section, {})[key] = value

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load raw configuration data from a file.

        Missing or unsupported files fall back to defaults with a warning.
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        with open(path, 'r') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            if path.suffix.lower() == '.json':
                return json.load(f)

        logger.warning(f"Unsupported config file format: {path.suffix}")
        return {}


config_loader = ConfigLoader()
config = config_loader.load()


def get_config() -> AppConfig:
    """Get the loaded configuration."""
    return config


def reload_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Reload the configuration.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded configuration
    """
    global config_loader, config
    config_loader = ConfigLoader(config_path)
    config = config_loader.load()
    return config

"""Environment settings for the rewards engine."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level settings read from the environment or a ``.env`` file."""

    # Config file holding engine/points tuning (YAML or JSON)
    CONFIG_PATH: Optional[str] = None

    # Optional YAML file replacing the built-in badge catalog
    BADGE_CATALOG_PATH: Optional[str] = None

    # Logging settings
    LOG_LEVEL: Optional[str] = None
    LOG_JSON: Optional[bool] = None

    # Redis settings for the progress store
    REDIS_URL: Optional[str] = None
    REDIS_KEY_PREFIX: Optional[str] = None

    # Credential ledger
    ENABLE_CREDENTIAL_VERIFICATION: Optional[bool] = None

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

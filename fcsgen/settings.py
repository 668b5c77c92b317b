"""CLI defaults, overridable via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants


class Settings(BaseSettings):
    """Defaults for command-line options (env prefix ``FCS_``)."""

    THREADS: int = 1
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # "json" | "text"
    LANGUAGE: str = "English"
    CACHE_FILENAME: str = constants.CACHE_FILENAME

    model_config = SettingsConfigDict(env_prefix="FCS_", env_file=".env", extra="ignore")

"""
Centralized application settings using Pydantic.

All environment variables are read once at startup and validated.
Components never read these singletons directly; they receive frozen
config values built from them (see ``ModelInvocationConfig.from_settings``).
"""

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from intake.core import config


class DatabaseSettings(BaseSettings):
    """Database connection and pool configuration."""

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "catalog"
    DB_USER: str = "catalog"
    DB_PASSWORD: SecretStr = SecretStr("")
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 10.0
    DB_COMMAND_TIMEOUT: float = 60.0

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class LLMSettings(BaseSettings):
    """Model endpoint and sampling configuration."""

    LLM_BASE_URL: str = config.DEFAULT_LLM_ENDPOINT
    LLM_MODEL: str = config.DEFAULT_LLM_MODEL
    LLM_TIMEOUT_MS: int = config.DEFAULT_LLM_TIMEOUT_MS
    LLM_TEMPERATURE: float = config.DEFAULT_TEMPERATURE
    LLM_TOP_P: float = config.DEFAULT_TOP_P
    LLM_MAX_TOKENS: int = config.DEFAULT_MAX_TOKENS
    LLM_STOP: list[str] = list(config.DEFAULT_STOP_SEQUENCES)

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class RetrySettings(BaseSettings):
    """Retry policy for model invocation."""

    RETRY_MAX_ATTEMPTS: int = config.MAX_ATTEMPTS
    RETRY_INITIAL_DELAY_MS: int = config.INITIAL_DELAY_MS
    RETRY_BACKOFF_MULTIPLIER: float = config.BACKOFF_MULTIPLIER

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class SchemaSettings(BaseSettings):
    """Locations and versions of schemas and prompts."""

    SCHEMAS_DIR: str = ""
    PROMPTS_DIR: str = ""
    INTENT_SCHEMA_VERSION: str = config.INTENT_SCHEMA_VERSION
    INTENT_PROMPT_VERSION: str = config.INTENT_PROMPT_VERSION

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @property
    def schemas_dir(self) -> Path:
        """Resolve schemas directory, defaulting to the packaged one."""
        if self.SCHEMAS_DIR.strip():
            return Path(self.SCHEMAS_DIR.strip()).resolve()
        return Path(__file__).resolve().parents[1] / "schemas"

    @property
    def prompts_dir(self) -> Path:
        """Resolve prompts directory, defaulting to the packaged one."""
        if self.PROMPTS_DIR.strip():
            return Path(self.PROMPTS_DIR.strip()).resolve()
        return Path(__file__).resolve().parents[1] / "prompts"


class AppSettings(BaseSettings):
    """General application settings."""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


# Singleton instances - loaded once at module import
db_settings = DatabaseSettings()
llm_settings = LLMSettings()
retry_settings = RetrySettings()
schema_settings = SchemaSettings()
app_settings = AppSettings()

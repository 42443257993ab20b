"""Configuration settings using pydantic-settings."""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, JsonConfigSettingsSource, SettingsConfigDict

from comicrestore.config.constants import (
    DEFAULT_BLEED_IN,
    DEFAULT_CONCURRENCY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DAMAGE_TOLERANCE,
    DEFAULT_DPI,
    DEFAULT_KEEP_PAGES_HOURS,
    DEFAULT_LOG_DIR,
    DEFAULT_MATTE_COMPENSATION,
    DEFAULT_MAX_COLOR_DEVIATION,
    DEFAULT_MAX_DAMAGE_RESIDUAL,
    DEFAULT_MAX_PIXELS,
    DEFAULT_MAX_POLLS,
    DEFAULT_MAX_RESTORE_ATTEMPTS,
    DEFAULT_MIN_SHARPNESS_RATIO,
    DEFAULT_MODEL_VERSION,
    DEFAULT_NEUTRAL_HIGH,
    DEFAULT_NEUTRAL_LOW,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_HEIGHT_IN,
    DEFAULT_PAGE_WIDTH_IN,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_DELAY,
    DEFAULT_SCALE,
    DEFAULT_SERVICE_TIMEOUT,
    DEFAULT_STRENGTH,
    RECOMMENDED_MAX_CONCURRENCY,
    REPLICATE_API_URL,
    REPLICATE_TOKEN_ENV,
    SUPPORTED_SCALES,
)
from comicrestore.exceptions import ConfigurationError


class RestoreConfig(BaseModel):
    """Default restoration parameters for new jobs."""

    scale: int = DEFAULT_SCALE
    matte_compensation: float = Field(default=DEFAULT_MATTE_COMPENSATION, ge=0, le=10)
    face_restore: bool = False
    ocr: bool = False
    strength: float = Field(default=DEFAULT_STRENGTH, gt=0, le=1)


class PageConfig(BaseModel):
    """Print geometry."""

    width_in: float = Field(default=DEFAULT_PAGE_WIDTH_IN, gt=0)
    height_in: float = Field(default=DEFAULT_PAGE_HEIGHT_IN, gt=0)
    bleed_in: float = Field(default=DEFAULT_BLEED_IN, ge=0)
    dpi: int = Field(default=DEFAULT_DPI, gt=0)


class QAConfig(BaseModel):
    """Quality assurance thresholds."""

    enabled: bool = True
    min_sharpness_ratio: float = Field(default=DEFAULT_MIN_SHARPNESS_RATIO, ge=0)
    max_color_deviation: float = Field(default=DEFAULT_MAX_COLOR_DEVIATION, ge=0, le=1)
    max_damage_residual: float = Field(default=DEFAULT_MAX_DAMAGE_RESIDUAL, ge=0, le=1)
    neutral_low: int = Field(default=DEFAULT_NEUTRAL_LOW, ge=0, le=255)
    neutral_high: int = Field(default=DEFAULT_NEUTRAL_HIGH, ge=0, le=255)
    damage_tolerance: int = Field(default=DEFAULT_DAMAGE_TOLERANCE, ge=0, le=255)


class RetryConfig(BaseModel):
    """Restore retry and backoff policy."""

    max_restore_attempts: int = Field(default=DEFAULT_MAX_RESTORE_ATTEMPTS, ge=1)
    base_delay: float = Field(default=DEFAULT_RETRY_BASE_DELAY, ge=0)
    max_delay: float = Field(default=DEFAULT_RETRY_MAX_DELAY, ge=0)
    jitter: float = Field(default=DEFAULT_RETRY_JITTER, ge=0, le=1)


class BatchConfig(BaseModel):
    """Batch processing configuration."""

    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    stop_on_error: bool = False
    combine: bool = False


class ServiceConfig(BaseModel):
    """Hosted inference service configuration."""

    api_token: SecretStr | None = None
    api_token_env: str = REPLICATE_TOKEN_ENV
    base_url: str = REPLICATE_API_URL
    model_version: str = DEFAULT_MODEL_VERSION
    timeout: int = DEFAULT_SERVICE_TIMEOUT
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, ge=0)
    max_polls: int = Field(default=DEFAULT_MAX_POLLS, ge=1)
    max_pixels: int = Field(default=DEFAULT_MAX_PIXELS, gt=0)


class OutputConfig(BaseModel):
    """Output configuration."""

    directory: str = DEFAULT_OUTPUT_DIR
    title: str = "Restored Comic Book"
    author: str = ""
    # Restored page images older than this are pruned from pages/; 0 keeps them all
    keep_pages_hours: float = Field(default=DEFAULT_KEEP_PAGES_HOURS, ge=0)


class RestoreSettings(BaseSettings):
    """Main configuration class for ComicRestore."""

    model_config = SettingsConfigDict(
        env_prefix="COMIC_RESTORE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        json_file=DEFAULT_CONFIG_FILE,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include the JSON config file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # Sub-configurations
    restore: RestoreConfig = Field(default_factory=RestoreConfig)
    page: PageConfig = Field(default_factory=PageConfig)
    qa: QAConfig = Field(default_factory=QAConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR

    def get_api_token(self) -> str | None:
        """Resolve the service token from config, then from the environment."""
        if self.service.api_token is not None:
            value = self.service.api_token.get_secret_value()
            if value:
                return value
        return os.environ.get(self.service.api_token_env) or None

    def require_token(self) -> str:
        """Return the service token or raise before any job is started."""
        token = self.get_api_token()
        if not token:
            raise ConfigurationError(
                f"No API token configured. Set {self.service.api_token_env} "
                "or service.api_token in config.json."
            )
        return token

    def warnings(self) -> list[str]:
        """Non-fatal advisories about the current configuration."""
        notes: list[str] = []
        if self.restore.scale not in SUPPORTED_SCALES:
            notes.append(f"Scale {self.restore.scale} is not one of {SUPPORTED_SCALES}")
        if self.page.dpi < 150:
            notes.append("DPI below 150 may result in poor print quality")
        elif self.page.dpi < 300:
            notes.append("DPI below 300 may not meet professional print standards")
        if self.page.bleed_in > 0.5:
            notes.append("Bleed over 0.5 inches is unusually large")
        if self.batch.concurrency > RECOMMENDED_MAX_CONCURRENCY:
            notes.append("High concurrency may hit the inference service rate limits")
        if self.qa.neutral_low >= self.qa.neutral_high:
            notes.append("QA neutral range is empty (neutral_low >= neutral_high)")
        return notes

    def get_output_dir(self, base_path: Path | None = None) -> Path:
        """Get the output directory path."""
        if base_path:
            return base_path / self.output.directory
        return Path(self.output.directory)


@lru_cache
def get_settings() -> RestoreSettings:
    """Get cached settings instance."""
    return RestoreSettings()


def reload_settings() -> RestoreSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()


def load_settings(config_path: Path | None = None) -> RestoreSettings:
    """Load settings, layering an explicit JSON config file over the defaults.

    Raises:
        ConfigurationError: If the file is missing or is not valid JSON.
    """
    if config_path is None:
        return get_settings()

    if not config_path.is_file():
        raise ConfigurationError(f"Config file not found: {config_path}")
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a JSON object: {config_path}")

    data.pop("_comments", None)
    return RestoreSettings(**data)

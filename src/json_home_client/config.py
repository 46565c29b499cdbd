"""
Configuration for json_home_client.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# Default values
DEFAULT_UPDATE_INTERVAL_SECONDS = 60.0
DEFAULT_START_DELAY_SECONDS = 0.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_ACCEPT_HEADER = "application/json-home, application/json;q=0.9"

Duration = Union[float, int, timedelta]


class JsonHomeSettings(BaseSettings):
    """Defaults loaded from JSON_HOME_* environment variables."""

    update_interval_seconds: float = DEFAULT_UPDATE_INTERVAL_SECONDS
    start_delay_seconds: float = DEFAULT_START_DELAY_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    accept_header: str = DEFAULT_ACCEPT_HEADER

    model_config = SettingsConfigDict(env_prefix="JSON_HOME_", env_file=None)


@lru_cache()
def get_settings() -> JsonHomeSettings:
    """Get cached settings instance."""
    return JsonHomeSettings()


@dataclass
class JsonHomeCacheConfig:
    """Resolved scheduling settings for one cache"""

    update_interval_seconds: Optional[float] = None
    """Delay between the end of one fetch and the start of the next"""

    start_delay_seconds: Optional[float] = None
    """Delay before the first fetch"""


def to_seconds(duration: Duration, name: str = "duration") -> float:
    """Normalize a float/int/timedelta duration to seconds."""
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    elif isinstance(duration, (int, float)) and not isinstance(duration, bool):
        seconds = float(duration)
    else:
        raise ConfigurationError(f"{name} must be a number of seconds or a timedelta, got {duration!r}")

    if seconds < 0:
        raise ConfigurationError(f"{name} must not be negative, got {seconds}")
    return seconds


def merge_config(
    config: Optional[JsonHomeCacheConfig] = None,
    settings: Optional[JsonHomeSettings] = None,
) -> JsonHomeCacheConfig:
    """Merge user config with defaults from settings"""
    settings = settings or get_settings()
    config = config or JsonHomeCacheConfig()
    return JsonHomeCacheConfig(
        update_interval_seconds=config.update_interval_seconds
        if config.update_interval_seconds is not None
        else settings.update_interval_seconds,
        start_delay_seconds=config.start_delay_seconds
        if config.start_delay_seconds is not None
        else settings.start_delay_seconds,
    )


def validate_config(config: JsonHomeCacheConfig) -> None:
    """Validate cache configuration."""
    if config.update_interval_seconds is None or config.update_interval_seconds <= 0:
        raise ConfigurationError(
            f"update_interval_seconds must be positive, got {config.update_interval_seconds}"
        )
    if config.start_delay_seconds is None or config.start_delay_seconds < 0:
        raise ConfigurationError(
            f"start_delay_seconds must not be negative, got {config.start_delay_seconds}"
        )
    logger.debug(
        f"validate_config: update_interval_seconds={config.update_interval_seconds}, "
        f"start_delay_seconds={config.start_delay_seconds}"
    )

"""Configuration management for RSS Ingest."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils.paths import get_config_file_path

MAX_FEED_BYTES = 10 * 1024 * 1024
MAX_ARTICLES_PER_FEED = 300


class Config(BaseModel):
    """Main configuration for RSS Ingest."""

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _apply_legacy_aliases(cls, data: Any) -> Any:
        """Support legacy keys like interval/retry_backoff_ms/retry_attempts."""
        if not isinstance(data, dict):
            return data

        data = data.copy()

        legacy = {
            "interval": "poll_interval",
            "retry_backoff_ms": "retry_backoff_base",
            "retry_attempts": "max_retries",
            "max_articles": "max_articles_per_feed",
        }
        for old, new in legacy.items():
            if old in data and new not in data:
                data[new] = data.pop(old)

        return data

    poll_interval: float = Field(default=300, gt=0, description="Poll interval in seconds")
    request_timeout: float = Field(default=15, gt=0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt on network errors")
    retry_backoff_base: int = Field(default=500, ge=0, description="Base backoff in milliseconds")
    max_feed_bytes: int = Field(default=MAX_FEED_BYTES, gt=0, description="Response body size ceiling")
    max_articles_per_feed: int = Field(default=MAX_ARTICLES_PER_FEED, gt=0)
    event_channel_capacity: int = Field(default=64, gt=0)
    allow_loopback_http: bool = Field(default=False, description="Allow plain http to localhost (tests/dev)")
    user_agent: str = "RSS-Ingest/0.1.0 (RSS feed ingestion)"
    data_dir: Optional[str] = None
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()

    @field_validator("data_dir")
    @classmethod
    def expand_data_dir(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return str(Path(v).expanduser())


def load_config(config_file: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_file: Optional path to config file. If None, uses default path.

    Returns:
        Config object
    """
    if config_file is None:
        config_file = get_config_file_path()

    if not config_file.exists():
        config = Config()
        save_config(config, config_file)
        logging.info(f"Created default config at {config_file}")
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        config = Config(**data)
        logging.debug(f"Loaded config from {config_file}")
        return config

    except (yaml.YAMLError, ValueError) as e:
        logging.error(f"Error loading config from {config_file}: {e}")
        raise


def save_config(config: Config, config_file: Optional[Path] = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Config object to save
        config_file: Optional path to config file. If None, uses default path.
    """
    if config_file is None:
        config_file = get_config_file_path()

    config_file.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config.model_dump(), f, default_flow_style=False, indent=2)

        logging.debug(f"Saved config to {config_file}")

    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Error saving config to {config_file}: {e}")
        raise


def create_example_config() -> str:
    """Create an example configuration YAML string."""
    example_config = Config(
        poll_interval=1800,
        request_timeout=10,
        max_retries=3,
        retry_backoff_base=500,
        log_level="INFO",
    )

    return yaml.safe_dump(example_config.model_dump(), default_flow_style=False, indent=2)

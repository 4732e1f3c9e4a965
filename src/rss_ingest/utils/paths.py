"""Path utilities for RSS Ingest."""

import os
import re
from pathlib import Path
from typing import Optional

DATA_DIR_ENV = "RSS_INGEST_DATA_DIR"


def slugify(name: str) -> str:
    """
    Normalize a name to slug format.

    Lowercases, maps hyphens and any run of non-alphanumeric characters to a
    single underscore, and trims leading/trailing underscores.

    Args:
        name: The name to slugify

    Returns:
        The slugified name
    """
    slug = name.lower().replace('-', '_')
    slug = re.sub(r'[^a-zA-Z0-9_]+', '_', slug)
    return slug.strip('_')


def get_data_dir(override: Optional[str] = None) -> Path:
    """
    Resolve the data directory.

    Order: explicit override, then the RSS_INGEST_DATA_DIR environment
    variable, then ~/.rss_ingest.

    Args:
        override: Optional directory taken from configuration

    Returns:
        Path to the data directory (created if missing)
    """
    if override:
        data_dir = Path(override).expanduser()
    elif os.environ.get(DATA_DIR_ENV):
        data_dir = Path(os.environ[DATA_DIR_ENV]).expanduser()
    else:
        data_dir = Path.home() / ".rss_ingest"

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_config_file_path() -> Path:
    """Get the path to the configuration file."""
    return get_data_dir() / "config.yaml"


def get_log_dir(override: Optional[str] = None) -> Path:
    """Get the log directory path."""
    log_dir = get_data_dir(override) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir

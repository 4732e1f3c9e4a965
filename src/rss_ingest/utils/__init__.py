"""Utility functions for RSS Ingest."""

from .paths import (
    DATA_DIR_ENV,
    get_config_file_path,
    get_data_dir,
    get_log_dir,
    slugify,
)

__all__ = [
    "DATA_DIR_ENV",
    "get_config_file_path",
    "get_data_dir",
    "get_log_dir",
    "slugify",
]

"""Filesystem, timestamp and logging helpers."""

from .atomic_io import atomic_create_json, atomic_write_json, is_temp_file, read_json_file
from .jsonl_logger import JSONLFormatter, JSONLHandler, get_logger, log_with_context, setup_logging
from .timestamps import age_seconds, parse_timestamp, utc_now

__all__ = [
    "atomic_create_json",
    "atomic_write_json",
    "is_temp_file",
    "read_json_file",
    "JSONLFormatter",
    "JSONLHandler",
    "get_logger",
    "log_with_context",
    "setup_logging",
    "age_seconds",
    "parse_timestamp",
    "utc_now",
]

"""Configuration parsing, schema and logging setup."""

from .config_parser import apply_overrides, build_config, parse_config_file
from .config_schema import DnsblockConfig
from .logging_config import init_logging

__all__ = [
    "DnsblockConfig",
    "apply_overrides",
    "build_config",
    "init_logging",
    "parse_config_file",
]

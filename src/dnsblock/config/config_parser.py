"""Configuration loading for the dnsblock CLI.

Brief:
  Reads the optional YAML configuration file, applies ``--set`` overrides from
  the command line and validates the result with the pydantic models in
  ``config_schema``.

Inputs:
  - Path to a YAML file (optional) and ``section.key=YAML`` assignments.

Outputs:
  - A validated DnsblockConfig.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import yaml

from ..errors import ConfigError
from .config_schema import DnsblockConfig

_KEY_PATH_RE = re.compile(r"^[a-z_][a-z0-9_]*(\.[a-z_][a-z0-9_]*)*$")


def _parse_yaml_value(text: str) -> Any:
    """Brief: Parse a CLI override value as YAML.

    Inputs:
      - text: String containing a YAML scalar/list/dict.

    Outputs:
      - Any: Parsed value (the original string when it is not valid YAML).

    Example:
      >>> _parse_yaml_value("[1.1.1.1, 9.9.9.9]")
      ['1.1.1.1', '9.9.9.9']
    """

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def apply_overrides(cfg: Dict[str, Any], assignments: Optional[List[str]] = None) -> Dict[str, Any]:
    """Brief: Apply ``section.key=YAML`` assignments to a raw config mapping.

    Inputs:
      - cfg: Parsed YAML mapping (mutated in-place).
      - assignments: Strings such as ``resolver.timeout=5`` or
        ``logfilter.seed={10.0.0.1: router}``.

    Outputs:
      - dict: The same mapping, for chaining.

    Raises:
      - ConfigError: For assignments without ``=`` or with a malformed key.

    Example:
      >>> apply_overrides({}, ["advisory.threshold=3"])
      {'advisory': {'threshold': 3}}
    """

    for assignment in assignments or []:
        if "=" not in assignment:
            raise ConfigError(
                "Invalid --set value (expected section.key=YAML), got: %r" % assignment
            )
        key, raw = assignment.split("=", 1)
        key = key.strip()
        if not _KEY_PATH_RE.match(key):
            raise ConfigError("Invalid configuration key %r" % key)

        parts = key.split(".")
        node = cfg
        for part in parts[:-1]:
            child = node.get(part)
            if child is None:
                child = node[part] = {}
            elif not isinstance(child, dict):
                raise ConfigError("Configuration key %r is not a section" % part)
            node = child
        node[parts[-1]] = _parse_yaml_value(raw)
    return cfg


def build_config(cfg: Optional[Dict[str, Any]]) -> DnsblockConfig:
    """Brief: Validate a raw mapping into a DnsblockConfig.

    Raises:
      - ConfigError: When the mapping does not match the schema.
    """

    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigError("Configuration root must be a mapping")
    try:
        return DnsblockConfig(**cfg)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def parse_config_file(
    config_path: Optional[str],
    *,
    overrides: Optional[List[str]] = None,
) -> DnsblockConfig:
    """Brief: Read, override and validate a configuration file.

    Inputs:
      - config_path: YAML file path, or None to start from defaults.
      - overrides: Optional ``section.key=YAML`` assignments (CLI ``--set``).

    Outputs:
      - DnsblockConfig

    Raises:
      - OSError: When ``config_path`` cannot be read.
      - ConfigError: For invalid YAML or schema violations.
    """

    cfg: Dict[str, Any] = {}
    if config_path:
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"{config_path}: {exc}") from exc
        if not isinstance(cfg, dict):
            raise ConfigError("Configuration root must be a mapping")

    apply_overrides(cfg, overrides)
    return build_config(cfg)

# src/fpga_arch_core/config.py
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cerberus
import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Custom exception for errors while loading a core configuration file."""
    pass


@dataclass(frozen=True)
class LayoutConfig:
    """Logical-unit constants used by the layout engine. No pixel scale is implied."""
    padding: float = 50.0
    header_height: float = 35.0
    min_block_width: float = 80.0
    min_block_height: float = 120.0
    pin_spacing: float = 25.0
    collapsed_width: float = 80.0
    collapsed_height: float = 35.0
    interconnect_width: float = 80.0
    mux_width: float = 20.0
    mux_slot_spacing: float = 10.0
    crossbar_width: float = 60.0
    crossing_passes: int = 8


@dataclass(frozen=True)
class BuildConfig:
    max_hierarchy_nodes: int = 100_000


@dataclass(frozen=True)
class CoreConfig:
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    build: BuildConfig = field(default_factory=BuildConfig)


def _section_schema(section_cls) -> Dict[str, Any]:
    schema = {}
    for f in fields(section_cls):
        if f.type in (int, "int"):
            schema[f.name] = {"type": "integer", "min": 1}
        else:
            schema[f.name] = {"type": "number", "min": 0}
    return schema


_CONFIG_SCHEMA = {
    "layout": {"type": "dict", "required": False, "schema": _section_schema(LayoutConfig)},
    "build": {"type": "dict", "required": False, "schema": _section_schema(BuildConfig)},
}


def config_from_dict(raw: Optional[Dict[str, Any]]) -> CoreConfig:
    """Validates a raw mapping (e.g. loaded from YAML) and returns a `CoreConfig`."""
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(raw).__name__}.")
    validator = cerberus.Validator(_CONFIG_SCHEMA)
    validator.allow_unknown = False
    if not validator.validate(raw):
        raise ConfigError(f"Invalid configuration: {validator.errors}")
    document = validator.document
    layout = LayoutConfig(**document.get("layout", {}))
    build = BuildConfig(**document.get("build", {}))
    if layout.min_block_width <= 0 or layout.min_block_height <= 0 or layout.pin_spacing <= 0:
        raise ConfigError("Layout block dimensions and pin spacing must be positive.")
    return CoreConfig(layout=layout, build=build)


def load_config(path: Optional[Union[str, Path]] = None) -> CoreConfig:
    """Loads a YAML configuration file; returns the defaults when `path` is None."""
    if path is None:
        return CoreConfig()
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found at path: {path}")
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML configuration {path}: {e}") from e
    config = config_from_dict(raw)
    logger.info(f"Loaded core configuration from {path}.")
    return config

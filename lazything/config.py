"""
Configuration file loading.

A config file is a flat YAML mapping whose keys are HuntConfig fields:

    months: 6
    batch_size: 25
    blob_cooldown: 5
    keep_going: true
    output_dir: ./results
"""

import logging
import os
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .core import HuntConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = [
    'lazything.yaml',
    'lazything.yml',
    os.path.join(Path.home(), '.config/lazything/config.yaml'),
]


def config_paths(config_path: Optional[str] = None) -> List[str]:
    """Candidate paths, in lookup order."""
    if config_path:
        return [config_path]
    return list(DEFAULT_CONFIG_PATHS)


def read_config_file(path: str) -> Optional[Dict[str, Any]]:
    """
    Read one YAML config file.

    Returns:
        The mapping, or None if the file is unreadable or not a mapping
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a mapping at top level")
        return None
    return data


def apply_overrides(config: HuntConfig, overrides: Dict[str, Any]) -> HuntConfig:
    """Return a copy of config with known keys replaced. Unknown keys are warned about."""
    known = {f.name for f in fields(HuntConfig)}
    values = {}

    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Unknown config key: {key}")
            continue
        if value is None:
            continue
        values[key] = value

    return replace(config, **values)


def load_config(config_path: Optional[str] = None) -> HuntConfig:
    """
    Load configuration from the first YAML file found.

    An explicit path is the only candidate when given. Without any file
    the defaults are returned.
    """
    for path in config_paths(config_path):
        if not os.path.exists(path):
            if config_path:
                logger.warning(f"Config file not found: {path}")
            continue

        data = read_config_file(path)
        if data is None:
            continue

        logger.debug(f"Loaded config from: {path}")
        return apply_overrides(HuntConfig(), data)

    return HuntConfig()

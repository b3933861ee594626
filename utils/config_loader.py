"""Configuration management utilities."""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'configs' / 'thresholds.yaml'


def load_config(config_path=DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file (str or Path)

    Returns:
        Dictionary containing configuration (empty for an empty file)

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
        ValueError: If the top level is not a mapping
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    logger.debug(f"Loaded config keys: {list(config.keys())}")

    return config


def get_nested_config(config: Mapping[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Read one value from nested config sections.

    `get_nested_config(config, 'download.timeout', 30.0)` is
    `config['download']['timeout']` when every section exists, else 30.0.
    """
    node = config
    for section in key_path.split('.'):
        if not isinstance(node, Mapping) or section not in node:
            return default
        node = node[section]
    return node

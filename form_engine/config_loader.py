"""
Configuration loading utilities for the issue form app.

This module loads config.yaml, deep-merges it over built-in defaults and
validates the values the app depends on.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging
from copy import deepcopy

from .exceptions import ConfigurationLoadError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Overlay ``update_dict`` on ``base_dict`` section by section.

    Nested mappings are merged key by key; any other value (lists included)
    replaces the default outright. Neither input is modified.
    """
    merged = deepcopy(base_dict)
    for key, value in update_dict.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def get_default_config() -> Dict[str, Any]:
    """Built-in settings used for anything config.yaml does not override."""
    return {
        'app': {
            'name': 'Lab Issue Tracker',
            'version': '1.0.0',
            'debug': False
        },
        'store': {
            'schema_path': 'schemas/issue_form.yaml',
            'tickets_path': 'tickets/tickets.jsonl'
        },
        'workflow': {
            'roles': ['student', 'class-representative', 'admin'],
            'auto_approve_roles': ['class-representative'],
            'editor_roles': ['admin']
        },
        'ui': {
            'page_title': 'Lab Issue Tracker',
            'form_title': 'Report an Issue'
        },
        'logging': {
            'level': 'INFO'
        }
    }


def _read_user_config(config_path: Path) -> Optional[Dict[str, Any]]:
    """
    Parse the config file.

    Returns:
        The mapping, or None if the file is empty

    Raises:
        ConfigurationLoadError: If the file is unreadable, not YAML, or not a mapping
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        raise ConfigurationLoadError(config_path, e)

    if user_config is not None and not isinstance(user_config, dict):
        raise ConfigurationLoadError(config_path, TypeError("top level must be a mapping"))
    return user_config


def load_config(config_path: Optional[Path] = None, strict: bool = False) -> Dict[str, Any]:
    """
    Load application configuration.

    Args:
        config_path: Config file, ``config.yaml`` in the working directory by default
        strict: Raise instead of falling back to defaults when the file is broken

    Returns:
        Defaults with the file's values merged over them

    Raises:
        ConfigurationLoadError: If strict and the file cannot be read or parsed
    """
    config_path = Path(config_path or DEFAULT_CONFIG_PATH)
    defaults = get_default_config()

    if not config_path.exists():
        logger.warning(f"No configuration at {config_path}, using defaults")
        return defaults

    try:
        user_config = _read_user_config(config_path)
    except ConfigurationLoadError as e:
        logger.error(str(e))
        if strict:
            raise
        logger.info("Falling back to default configuration")
        return defaults

    if not user_config:
        logger.warning(f"Configuration file {config_path} is empty, using defaults")
        return defaults

    logger.info(f"Loaded configuration from {config_path}")
    return deep_merge(defaults, user_config)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration structure.

    Args:
        config: Configuration dictionary to validate

    Returns:
        List of problems (empty if valid)
    """
    problems = []

    for section in ['app', 'store', 'workflow', 'ui', 'logging']:
        if not isinstance(config.get(section), dict):
            problems.append(f"Missing required configuration section: {section}")

    store = config.get('store', {}) or {}
    for key in ['schema_path', 'tickets_path']:
        if not isinstance(store.get(key), str) or not store.get(key):
            problems.append(f"store.{key} must be a non-empty string")

    workflow = config.get('workflow', {}) or {}
    roles = workflow.get('roles', [])
    if not isinstance(roles, list) or not roles:
        problems.append("workflow.roles must be a non-empty list")
    else:
        for key in ['auto_approve_roles', 'editor_roles']:
            listed = workflow.get(key, [])
            if not isinstance(listed, list):
                problems.append(f"workflow.{key} must be a list")
                continue
            unknown = [role for role in listed if role not in roles]
            if unknown:
                problems.append(f"workflow.{key} lists unknown roles: {', '.join(map(str, unknown))}")

    for problem in problems:
        logger.warning(problem)
    return problems


def get_config_value(config: Dict[str, Any], section: str, key: str, default: Any = None) -> Any:
    """Read ``config[section][key]``, falling back to ``default`` when either level is missing."""
    section_values = config.get(section, {})
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


def get_logging_level(level_str: str) -> int:
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)

"""
Configuration management for Debrief.

Settings live in a YAML file under the XDG config directory
($XDG_CONFIG_HOME/debrief/config.yaml, default ~/.config/debrief/config.yaml)
and are merged over the defaults in CONFIG_SCHEMA.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .audio.constants import CODEC_TABLE, DEFAULT_BITRATE, DEFAULT_OUTPUT_FORMAT, STOP_TIMEOUT_SECONDS
from .errors import ConfigError
from .logger import get_null_logger

APP_NAME = 'debrief'
CONFIG_FILE_NAME = 'config.yaml'

# Leaf entries: {'type': ..., 'value': default, 'options': [...]}
CONFIG_SCHEMA = {
    'audio': {
        'selected_mic_id': {'type': 'str', 'value': None},
        'selected_mic_name': {'type': 'str', 'value': None},
        'recording_mode': {'type': 'str', 'value': 'mic', 'options': ['mic', 'system', 'both']},
    },
    'output': {
        'directory': {'type': 'str', 'value': '~/MeetingRecordings'},
        'file_name_format': {'type': 'str', 'value': 'recording_{timestamp}'},
    },
    'recorder': {
        'backend': {'type': 'str', 'value': 'auto', 'options': ['auto', 'native', 'ffmpeg']},
        'output_format': {'type': 'str', 'value': DEFAULT_OUTPUT_FORMAT, 'options': list(CODEC_TABLE)},
        'mix_audio': {'type': 'bool', 'value': True},
        'bitrate': {'type': 'str', 'value': DEFAULT_BITRATE},
        'stop_timeout': {'type': 'float', 'value': STOP_TIMEOUT_SECONDS},
        'helper_path': {'type': 'str', 'value': None},
        'ffmpeg_path': {'type': 'str', 'value': 'ffmpeg'},
    },
}

_TYPE_MAP = {
    'str': (str,),
    'bool': (bool,),
    'int': (int,),
    'float': (int, float),
}


def get_config_dir() -> Path:
    xdg_config_home = os.environ.get('XDG_CONFIG_HOME') or str(Path.home() / '.config')
    return Path(xdg_config_home) / APP_NAME


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def default_config() -> Dict[str, Any]:
    """Default configuration values from the schema."""
    def extract_value(item):
        if isinstance(item, dict):
            if 'type' in item:
                return copy.deepcopy(item.get('value'))
            return {k: extract_value(v) for k, v in item.items()}
        return item

    return {section: extract_value(settings) for section, settings in CONFIG_SCHEMA.items()}


def deep_update(source: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge overrides into source in place, recursing into nested sections."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(source.get(key), dict):
            deep_update(source[key], value)
        else:
            source[key] = value
    return source


def _validate_config_value(value, schema_item: Dict[str, Any], path: str) -> None:
    # Allow None for optional values
    if value is None:
        return

    expected = _TYPE_MAP[schema_item['type']]
    # bool is an int subclass but never a valid number here
    if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
        raise ConfigError(f"Config value '{path}' should be {schema_item['type']}, got {type(value).__name__}")

    if 'options' in schema_item and value not in schema_item['options']:
        raise ConfigError(f"Config value '{path}' is '{value}', expected one of {schema_item['options']}")


def validate_config(config: Dict[str, Any], schema: Optional[Dict[str, Any]] = None, path: str = '') -> None:
    """
    Check every known key against the schema. Unknown keys are ignored.

    Raises:
        ConfigError: Naming the first invalid key
    """
    schema = CONFIG_SCHEMA if schema is None else schema

    for key, schema_value in schema.items():
        current_path = f"{path}.{key}" if path else key
        if key not in config:
            continue

        value = config[key]
        if isinstance(schema_value, dict) and 'type' in schema_value:
            _validate_config_value(value, schema_value, current_path)
        elif isinstance(value, dict):
            validate_config(value, schema_value, current_path)
        else:
            raise ConfigError(f"Config section '{current_path}' should be a mapping")

    if path == '' and config.get('recorder', {}).get('stop_timeout') is not None:
        if config['recorder']['stop_timeout'] <= 0:
            raise ConfigError("Config value 'recorder.stop_timeout' must be positive")


def load_config(config_path: Optional[Path] = None, logger: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Load the user configuration merged over the defaults.

    An unreadable or malformed file is logged and ignored.

    Raises:
        ConfigError: If the file parses but holds an invalid value
    """
    logger = logger or get_null_logger()
    config_path = Path(config_path) if config_path else get_config_path()
    config = default_config()

    if not config_path.is_file():
        return config

    try:
        with open(config_path, 'r', encoding='utf-8') as file:
            user_config = yaml.safe_load(file)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Error in configuration file %s, using defaults: %s", config_path, e)
        return config

    if user_config is None:
        return config
    if not isinstance(user_config, dict):
        logger.warning("Configuration file %s is not a mapping, using defaults", config_path)
        return config

    validate_config(user_config)
    return deep_update(config, user_config)


def save_config(config: Dict[str, Any], config_path: Optional[Path] = None) -> Path:
    """
    Write the configuration as YAML (atomic replace).

    Returns:
        The path written
    """
    validate_config(config)
    config_path = Path(config_path) if config_path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = config_path.with_suffix('.tmp')
    with open(temp_path, 'w', encoding='utf-8') as file:
        yaml.safe_dump(config, file, default_flow_style=False, sort_keys=False)
        file.flush()
        os.fsync(file.fileno())
    temp_path.replace(config_path)
    return config_path


def get_config_value(config: Dict[str, Any], *keys) -> Any:
    """Get a nested value, or None if any key is missing."""
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return None
    return value


def get_recordings_dir(config: Dict[str, Any]) -> Path:
    directory = get_config_value(config, 'output', 'directory') or CONFIG_SCHEMA['output']['directory']['value']
    return Path(directory).expanduser()

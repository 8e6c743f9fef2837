"""
AWS Usage Analyzer - Configuration Management

Supports loading configuration from:
1. YAML config file (--config)
2. Environment variables (USAGE_*)
3. Command-line arguments (highest priority)

Config file example:
```yaml
profile: my-profile
region: us-east-1
output: "./usage"
max_concurrency: 3
include_gsis: true
```
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_CONCURRENCY, DEFAULT_OUTPUT_DIR
from .utils import ConfigError

logger = logging.getLogger(__name__)


# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './usage-config.yaml',
    './usage-config.yml',
    '~/.usage-analyzer/config.yaml',
]

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'profile': 'USAGE_PROFILE',
    'region': 'USAGE_REGION',
    'output': 'USAGE_OUTPUT',
    'log_level': 'USAGE_LOG_LEVEL',
    'max_concurrency': 'USAGE_MAX_CONCURRENCY',
    'max_attempts': 'USAGE_MAX_ATTEMPTS',
    'include_gsis': 'USAGE_INCLUDE_GSIS',
}

_BOOL_KEYS = ('include_gsis', 'skip_cache', 'skip_tables', 'json_output')
_INT_KEYS = ('max_concurrency', 'max_attempts')


@dataclass
class CollectorConfig:
    """Resolved settings for a collection run."""
    profile: Optional[str] = None
    region: Optional[str] = None
    output: str = DEFAULT_OUTPUT_DIR
    log_level: str = "INFO"
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    include_gsis: bool = True
    skip_cache: bool = False
    skip_tables: bool = False
    json_output: bool = False


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    logger.info(f"Loading config from {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}", original_error=e) from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return _substitute_env_vars(config)


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None:
            config[config_key] = value

    # Fall back to the standard AWS variable for the profile
    if 'profile' not in config and os.environ.get('AWS_PROFILE'):
        config['profile'] = os.environ['AWS_PROFILE']

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value

    return result


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {}

    for key in ('profile', 'region', 'output', 'log_level', 'max_concurrency', 'max_attempts'):
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value

    # Flags only override when set
    if getattr(args, 'no_gsis', False):
        config['include_gsis'] = False
    if getattr(args, 'skip_cache', False):
        config['skip_cache'] = True
    if getattr(args, 'skip_tables', False):
        config['skip_tables'] = True
    if getattr(args, 'json', False):
        config['json_output'] = True

    return config


def build_config(values: Dict[str, Any]) -> CollectorConfig:
    """Validate a merged config dict and turn it into a CollectorConfig."""
    known = set(CollectorConfig.__dataclass_fields__)
    unknown = sorted(set(values) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    for key in known:
        if key not in values:
            continue
        value = values[key]
        if key in _BOOL_KEYS:
            value = _parse_bool(value)
        elif key in _INT_KEYS:
            try:
                value = int(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{key} must be an integer, got {value!r}", original_error=e) from e
            if value < 1:
                raise ConfigError(f"{key} must be at least 1, got {value}")
        kwargs[key] = value

    return CollectorConfig(**kwargs)


def load_config(args) -> CollectorConfig:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables

    Raises:
        ConfigError: If a config file is missing/invalid or a value is out of range
    """
    configs = []

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    return build_config(merge_configs(*configs))


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    return '''# AWS Usage Analyzer Configuration
#
# Environment variable substitution supported:
#   ${VAR_NAME}           - required env var
#   ${VAR_NAME:-default}  - env var with default value

# AWS CLI profile (optional, uses default credentials if not set)
# profile: ${AWS_PROFILE:-default}

# Region to inventory (default: the profile's region)
# region: us-east-1

# Output directory for results.csv and the log file
output: "."

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

# Concurrent GetMetricData workers. Raising this mostly buys throttling
# unless the account's CloudWatch API limits have been increased.
max_concurrency: 3

# Attempts per AWS API call (throttled calls back off and retry)
max_attempts: 20

# Collect DynamoDB global secondary indexes as separate resources
include_gsis: true

# skip_cache: false
# skip_tables: false
# json_output: false
'''

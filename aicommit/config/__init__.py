"""Configuration Management Package"""

from aicommit.config.manager import ConfigManager
from aicommit.config.resolver import (
    ENV_PREFIX,
    FIELD_TYPES,
    ConfigError,
    ConfigErrorKind,
    SessionConfig,
    coerce_value,
    environment_layer,
    expand_env,
    merge_layers,
    resolve,
)

__all__ = [
    "ConfigManager",
    "ENV_PREFIX",
    "FIELD_TYPES",
    "ConfigError",
    "ConfigErrorKind",
    "SessionConfig",
    "coerce_value",
    "environment_layer",
    "expand_env",
    "merge_layers",
    "resolve",
]

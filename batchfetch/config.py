"""
Settings from the packaged config.yaml, overridden by BATCHFETCH_* variables.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

ENV_OVERRIDES = {
    'BATCHFETCH_REQUEST_TIMEOUT': ('fetcher', 'request_timeout'),
    'BATCHFETCH_CONNECT_TIMEOUT': ('fetcher', 'connect_timeout'),
    'BATCHFETCH_TLS_HANDSHAKE_TIMEOUT': ('fetcher', 'tls_handshake_timeout'),
    'BATCHFETCH_RESPONSE_HEADER_TIMEOUT': ('fetcher', 'response_header_timeout'),
    'BATCHFETCH_MAX_IDLE_CONNECTIONS': ('fetcher', 'max_idle_connections'),
    'BATCHFETCH_CHUNK_SIZE': ('fetcher', 'chunk_size'),
    'BATCHFETCH_USER_AGENT': ('fetcher', 'user_agent'),
    'BATCHFETCH_DEFAULT_PARALLEL': ('dispatcher', 'default_parallel'),
    'BATCHFETCH_PARALLEL_LIMIT': ('dispatcher', 'parallel_limit'),
    'BATCHFETCH_LOG_LEVEL': ('logging', 'level'),
    'BATCHFETCH_LOG_JSON': ('logging', 'json'),
}


def parse_env_value(value: str):
    """Read an env value as a YAML scalar ("4" -> 4, "true" -> True); anything else stays a string."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    if isinstance(parsed, (bool, int, float, str)):
        return parsed
    return value


class Config:
    """Three sections: fetcher, dispatcher and logging."""

    ENV_MAPPINGS = ENV_OVERRIDES

    def __init__(self, config_path: str = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config = self._load()

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][key] = parse_env_value(value)
        return config

    def get(self, *keys, default=None):
        """Nested lookup, e.g. get('fetcher', 'request_timeout')."""
        current = self._config
        for key in keys:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    @property
    def fetcher(self) -> Dict[str, Any]:
        return self.get('fetcher', default={})

    @property
    def dispatcher(self) -> Dict[str, Any]:
        return self.get('dispatcher', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        return self.get('logging', default={})

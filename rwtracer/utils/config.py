# rwtracer/utils/config.py - Configuration management
"""
Configuration management for the tracer.
Loads and validates configuration from YAML files.
"""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging


class Config:
    """
    Configuration manager for the tracer.

    Loads configuration from YAML files and provides access to settings.
    """

    DEFAULT_CONFIG = {
        'tracer': {
            'poll_timeout_ms': 100,
            'page_cnt': 64,
        },
        'probe': {
            'verbose': False,
            'message': 'Default probe message',
        },
        'output': {
            'event_log': 'syscalls.log',
        },
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML configuration file
        """
        self.logger = logging.getLogger(__name__)
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str):
        """
        Load configuration from YAML file.

        Args:
            config_file: Path to YAML file
        """
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning(f"Config file not found: {config_file}, using defaults")
            return

        try:
            with open(config_path, 'r') as f:
                loaded_config = yaml.safe_load(f) or {}
        except OSError as e:
            self.logger.error(f"Failed to load config: {e}")
            raise
        except yaml.YAMLError as e:
            self.logger.error(f"Failed to load config: {e}")
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e

        if not isinstance(loaded_config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")

        self._merge_config(self.config, loaded_config)
        self.validate()
        self.logger.info(f"Loaded configuration from {config_file}")

    def _merge_config(self, base: Dict, override: Dict):
        """
        Recursively merge configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def validate(self):
        """
        Check value types and ranges.

        Raises:
            ValueError: If a setting is out of range
        """
        timeout = self.get('tracer.poll_timeout_ms')
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            raise ValueError(f"tracer.poll_timeout_ms must be a positive integer, got {timeout!r}")

        page_cnt = self.get('tracer.page_cnt')
        if isinstance(page_cnt, bool) or not isinstance(page_cnt, int) or page_cnt <= 0 or page_cnt & (page_cnt - 1):
            raise ValueError(f"tracer.page_cnt must be a power of two, got {page_cnt!r}")

        if not isinstance(self.get('probe.verbose'), bool):
            raise ValueError("probe.verbose must be true or false")

        if not isinstance(self.get('probe.message'), str):
            raise ValueError(f"probe.message must be a string, got {self.get('probe.message')!r}")

        event_log = self.get('output.event_log')
        if event_log is not None and not isinstance(event_log, str):
            raise ValueError(f"output.event_log must be a path or null, got {event_log!r}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., 'tracer.page_cnt')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., 'probe.verbose')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def to_dict(self) -> Dict:
        """
        Get full configuration as dictionary.

        Returns:
            Configuration dictionary
        """
        return copy.deepcopy(self.config)

    def save_to_file(self, config_file: str):
        """
        Save current configuration to YAML file.

        Args:
            config_file: Path to output YAML file
        """
        config_path = Path(config_file)

        try:
            with open(config_path, 'w') as f:
                yaml.dump(self.config, f, default_flow_style=False)
        except OSError as e:
            self.logger.error(f"Failed to save config: {e}")
            raise

        self.logger.info(f"Saved configuration to {config_file}")

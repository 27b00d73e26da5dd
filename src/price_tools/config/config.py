"""Configuration manager with YAML override support."""

import copy
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml

from . import defaults

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'PRICE_TOOLS_CONFIG'
CONFIG_FILENAME = 'price_config.yml'


class Config:
    """Configuration manager with YAML override support."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.settings = self.load_defaults()
        self.config_file: Optional[Path] = None

        if config_file is None:
            config_file = self._find_config_file()
        elif not isinstance(config_file, Path):
            config_file = Path(config_file)

        if config_file is not None:
            if not config_file.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            self._load_yaml_config(config_file)
            self.config_file = config_file
            logger.info(f"Loaded configuration from {config_file}")
        else:
            logger.debug("No price_config.yml found - using defaults only")

    def _find_config_file(self) -> Optional[Path]:
        """Find a config file from the environment or the working directory."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        potential_locations = [
            Path.cwd() / CONFIG_FILENAME,
            Path.cwd() / 'config' / CONFIG_FILENAME,
        ]

        for location in potential_locations:
            if location.exists() and location.is_file():
                return location

        return None

    def load_defaults(self) -> Dict[str, Any]:
        """Load default configuration settings."""
        return {
            'partition': copy.deepcopy(defaults.PARTITION),
            'pairwise': copy.deepcopy(defaults.PAIRWISE),
            'distance': copy.deepcopy(defaults.DISTANCE),
            'logging': copy.deepcopy(defaults.LOGGING),
            'output': copy.deepcopy(defaults.OUTPUT),
        }

    def _load_yaml_config(self, config_file: Path):
        """Load and merge configuration from a YAML file."""
        with open(config_file, 'r') as file:
            yaml_config = yaml.safe_load(file)
        if yaml_config:
            if not isinstance(yaml_config, dict):
                raise ValueError(f"Config file {config_file} must contain a mapping")
            # Accept both a bare mapping and one nested under 'price_tools'
            yaml_config = yaml_config.get('price_tools', yaml_config)
            self._deep_merge(self.settings, yaml_config)

    def _deep_merge(self, base: dict, override: dict):
        """Deep merge override into base dictionary."""
        for key, value in override.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key.split(".")
        value = self.settings

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key.split(".")
        target = self.settings
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value

    def update(self, overrides: Dict[str, Any]) -> None:
        """Deep merge a mapping of overrides into the current settings."""
        self._deep_merge(self.settings, overrides)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.settings)

    def save(self, config_file: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_file)
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w') as f:
            yaml.safe_dump({'price_tools': self.settings}, f, default_flow_style=False)
        logger.info(f"Saved configuration to {config_file}")

    @property
    def partition(self) -> Dict[str, Any]:
        return self.settings['partition']

    @property
    def pairwise(self) -> Dict[str, Any]:
        return self.settings['pairwise']

    @property
    def distance(self) -> Dict[str, Any]:
        return self.settings['distance']

    @property
    def logging(self) -> Dict[str, Any]:
        return self.settings['logging']

    @property
    def output(self) -> Dict[str, Any]:
        return self.settings['output']


# Global instance for easy access
_config: Optional[Config] = None


def get_config(config_file: Optional[Union[str, Path]] = None) -> Config:
    """Get or create the global configuration.

    Passing a config file always reloads the global instance from it.
    """
    global _config

    if _config is None or config_file is not None:
        _config = Config(config_file)

    return _config


def reset_config() -> None:
    """Drop the global configuration so the next access reloads it."""
    global _config
    _config = None

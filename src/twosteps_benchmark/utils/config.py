"""
Configuration management for the two-steps benchmarking command line.

The numerical core never reads this configuration: the command line looks
values up here and passes them explicitly.
"""

import copy
import yaml
from pathlib import Path
from typing import Any, Dict, Union
import logging

from .validation import validate_config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


class Config:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._load_config(DEFAULT_CONFIG_PATH)
        return cls._instance

    def _load_config(self, config_path: Path):
        """Load configuration from YAML file, on top of the defaults."""
        self._config = self._get_default_config()
        self.path = None
        try:
            if not config_path.exists():
                logger.debug("No configuration file at %s, using defaults", config_path)
                return

            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            merged = self._merge(self._get_default_config(), loaded)
            validate_config(merged)
            self._config = merged
            self.path = config_path
        except Exception as e:
            logger.error(f"Error loading configuration from {config_path}: {e}")
            self._config = self._get_default_config()

    def load(self, config_path: Union[str, Path]) -> "Config":
        """Replace the current configuration with the content of another file."""
        self._load_config(Path(config_path))
        return self

    @staticmethod
    def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = Config._merge(base[key], value)
            else:
                base[key] = value
        return base

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values."""
        return {
            "data": {
                "high_frequency": 4,
                "low_frequency": 1,
                "output_file": "benchmark.csv"
            },
            "benchmark": {
                "include_rho": False,
                "include_differentiation": False,
                "tolerance": 1e-6,
                "max_iterations": 50,
                "max_abs_rho": 0.999
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        try:
            current = self._config
            for k in key.split('.'):
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

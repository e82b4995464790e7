"""
load the config from config.yaml and .env
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from ratepoll.errors import ConfigError

DEFAULT_TARGET_URL = "http://api.nbp.pl/api/exchangerates/rates/a/eur/last/100/"


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    env_mappings = {
        'RATEPOLL_CADENCE': ('scheduler', 'cadence'),
        'RATEPOLL_BATCH_SIZE': ('scheduler', 'batch_size'),
        'RATEPOLL_TARGET_URL': ('target', 'url'),
        'RATEPOLL_USER_AGENT': ('target', 'user_agent'),
        'RATEPOLL_REQUEST_TIMEOUT': ('target', 'timeout'),
        'RATEPOLL_RATE_FLOOR': ('filter', 'floor'),
        'RATEPOLL_RATE_CEILING': ('filter', 'ceiling'),
        'LOG_LEVEL': ('logging', 'level'),
        'LOG_FORMAT': ('logging', 'format'),
    }

    def __init__(self, config_path: str = None, load_env_file: bool = True):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses the config.yaml
                        shipped next to this module.
            load_env_file: Read a .env file into the environment before
                        applying overrides.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        self.load_env_file = load_env_file
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if self.load_env_file:
            load_dotenv()

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            current = config
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]

            current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        if value.lower() in ('none', 'null'):
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value using a key path.

        Args:
            *keys: Configuration keys (e.g., 'scheduler', 'cadence')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def scheduler(self) -> Dict[str, Any]:
        """Get cycle scheduler configuration."""
        return self.get('scheduler', default={})

    @property
    def target(self) -> Dict[str, Any]:
        """Get target resource configuration."""
        return self.get('target', default={})

    @property
    def filter(self) -> Dict[str, Any]:
        """Get rate acceptance band configuration."""
        return self.get('filter', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})


class CycleSettings(BaseModel):
    """Fixed parameters of every fetch cycle."""

    cadence: float = Field(default=5.0, gt=0)
    batch_size: int = Field(default=10, ge=1)
    target_resource: str = DEFAULT_TARGET_URL
    user_agent: str = "ratepoll/1.0"
    accept_language: str = "pl-PL,pl;q=0.9,en-US;q=0.8,en;q=0.7"
    request_timeout: Optional[float] = Field(default=None, gt=0)
    rate_floor: float = 4.5
    rate_ceiling: float = 4.7

    @model_validator(mode="after")
    def _check_band(self):
        if self.rate_floor > self.rate_ceiling:
            raise ValueError("rate_floor must not exceed rate_ceiling")
        return self

    @classmethod
    def from_config(cls, config: Config) -> "CycleSettings":
        values = {
            'cadence': config.scheduler.get('cadence'),
            'batch_size': config.scheduler.get('batch_size'),
            'target_resource': config.target.get('url'),
            'user_agent': config.target.get('user_agent'),
            'accept_language': config.target.get('accept_language'),
            'request_timeout': config.target.get('timeout'),
            'rate_floor': config.filter.get('floor'),
            'rate_ceiling': config.filter.get('ceiling'),
        }
        # request_timeout is the only field where None is meaningful
        timeout = values.pop('request_timeout')
        values = {key: value for key, value in values.items() if value is not None}
        values['request_timeout'] = timeout

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid cycle settings: {e}") from e

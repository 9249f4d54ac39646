"""Configuration manager for loading and validating .retrystream.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from retrystream.application.builder import build_policy, format_validation_error
from retrystream.domain.config import AppConfig, PolicyConfig, RetryConfig
from retrystream.domain.errors import ConfigurationError
from retrystream.domain.policy import RetryPolicy

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".retrystream.yml"

ENV_OVERRIDES = {
    "RETRYSTREAM_ATTEMPTS": "attempts",
    "RETRYSTREAM_DELAY": "delay",
    "RETRYSTREAM_SEED": "seed",
}

DEFAULTED_KEYS = ("attempts", "delay", "seed")


class ConfigManager:
    """Manages named retry policies from .retrystream.yml and environment variables

    Configuration priority:
    1. Default values (defined in Pydantic models)
    2. `defaults` section of .retrystream.yml
    3. Environment variables (RETRYSTREAM_*), applied to `defaults`
    4. Values set on an individual policy
    """

    DEFAULT_CONFIG = {
        "defaults": {
            "attempts": 3,
            "delay": 1000,
            "seed": 1.0,
        },
        "policies": {},
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .retrystream.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            raise ConfigurationError(
                "Configuration validation failed:\n" + format_validation_error(e)
            ) from e
        self._policies: Dict[str, RetryPolicy] = {}

    def _find_config_file(self) -> Optional[Path]:
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILENAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILENAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
                if not isinstance(file_config, dict):
                    raise ValueError("top level must be a mapping")
                config_dict = self._merge_config(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_path}")
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")

        config_dict = self._apply_env_overrides(config_dict)
        config_dict = self._apply_defaults(config_dict)
        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        defaults = config.setdefault("defaults", {})
        if not isinstance(defaults, dict):
            return config
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                logger.debug(f"Overriding defaults.{key} from {env_name}")
                defaults[key] = value
        return config

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Fill policy values missing from the file with the `defaults` section"""
        defaults = config.get("defaults") or {}
        policies = config.get("policies") or {}
        if not isinstance(defaults, dict) or not isinstance(policies, dict):
            return config
        merged = {}
        for name, policy in policies.items():
            if isinstance(policy, dict):
                inherited = {k: defaults[k] for k in DEFAULTED_KEYS if k in defaults}
                policy = {**inherited, **policy}
            merged[name] = policy
        config["policies"] = merged
        return config

    def get_defaults(self) -> RetryConfig:
        """Get default retry configuration

        Returns:
            Retry configuration model
        """
        return self.config.defaults

    def policy_names(self) -> List[str]:
        return sorted(self.config.policies)

    def get_policy_config(self, name: str) -> PolicyConfig:
        """Get configuration of a named policy

        Raises:
            ConfigurationError: If no such policy is configured
        """
        try:
            return self.config.policies[name]
        except KeyError:
            available = ", ".join(self.policy_names()) or "none"
            raise ConfigurationError(
                f"Unknown retry policy: {name}. Configured policies: {available}"
            ) from None

    def get_policy(self, name: str) -> RetryPolicy:
        """Build (once) the retry policy configured under `name`

        Policies are immutable, so the same instance is handed to every
        caller; each caller still gets its own sequence from it.
        """
        if name not in self._policies:
            policy_config = self.get_policy_config(name)
            self._policies[name] = build_policy(
                policy_config.mode,
                policy_config,
                kinds=policy_config.retry_on,
                excluded=policy_config.exclude,
            )
        return self._policies[name]

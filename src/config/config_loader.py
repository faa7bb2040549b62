"""
Configuration loader for the Water Tower Boundary Utilities.

This module provides the ConfigLoader class that handles loading and validating
JSON configuration files for multi-environment deployments, plus the
module-level configuration files that live beside each processing module.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional
from functools import lru_cache

from ..exceptions import (
    TowerMapBaseException,
    TowerMapConfigurationError,
    TowerMapValidationError,
)
from ..utils import get_logger

DATABASE_PATH_ENV_VAR = "TOWERMAP_DATABASE_PATH"


class ConfigLoader:
    """
    Configuration loader and validator for the boundary utilities.

    This class handles loading environment-specific configuration from JSON files,
    validating required fields, and providing access to module configuration.
    """

    REQUIRED_ENVIRONMENT_KEYS = ["database_path", "logging", "processing"]

    def __init__(self, config_dir: Optional[str] = None, modules_dir: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing environment configuration (defaults to 'config/')
            modules_dir: Directory containing processing modules (defaults to 'modules/')
        """
        self.logger = get_logger(__name__)
        self.config_dir = Path(config_dir) if config_dir else Path("config")
        self.modules_dir = Path(modules_dir) if modules_dir else Path("modules")

    @lru_cache(maxsize=2)
    def load_environment_config(self, environment: str) -> Dict[str, Any]:
        """
        Load configuration for a specific environment.

        Args:
            environment: Environment name (development/production)

        Returns:
            Dictionary containing environment-specific configuration merged with shared config

        Raises:
            TowerMapConfigurationError: If configuration cannot be loaded
            TowerMapValidationError: If configuration structure is invalid
        """
        env_config_path = self.config_dir / "environment_config.json"

        try:
            if not env_config_path.exists():
                raise TowerMapConfigurationError(
                    f"Environment configuration file not found: {env_config_path}"
                )

            with open(env_config_path, 'r') as f:
                config_data = json.load(f)

            self._validate_environment_config(config_data, environment)

            env_config = dict(config_data["environments"][environment])

            # Shared sections are defaults; environment values win
            for key, shared_value in config_data.get("shared", {}).items():
                env_value = env_config.get(key)
                if isinstance(shared_value, dict) and isinstance(env_value, dict):
                    merged = dict(shared_value)
                    merged.update(env_value)
                    env_config[key] = merged
                elif key not in env_config:
                    env_config[key] = shared_value

            env_config["_validation"] = config_data.get("validation", {})

            self.logger.info(f"Loaded configuration for environment: {environment}")
            return env_config

        except json.JSONDecodeError as e:
            raise TowerMapConfigurationError(
                f"Invalid JSON in environment configuration: {str(e)}",
                {"path": str(env_config_path)}
            )
        except TowerMapBaseException:
            raise
        except Exception as e:
            raise TowerMapConfigurationError(
                f"Failed to load environment configuration: {str(e)}"
            )

    @lru_cache(maxsize=4)
    def load_module_config(self, module_name: str) -> Dict[str, Any]:
        """
        Load the configuration file that ships with a processing module.

        The file is expected at ``<modules_dir>/<module_name>/config/<module_name>_config.json``.

        Args:
            module_name: Package name of the module (e.g. 'boundary_assignment')

        Returns:
            Dictionary containing the module configuration

        Raises:
            TowerMapConfigurationError: If the module configuration cannot be loaded
        """
        config_path = self.modules_dir / module_name / "config" / f"{module_name}_config.json"

        try:
            if not config_path.exists():
                raise TowerMapConfigurationError(
                    f"Module configuration file not found: {config_path}"
                )

            with open(config_path, 'r') as f:
                module_config = json.load(f)

            if not isinstance(module_config, dict):
                raise TowerMapValidationError(
                    "Module configuration must be a JSON object",
                    {"module": module_name}
                )

            self.logger.info(f"Loaded module configuration for: {module_name}")
            return module_config

        except json.JSONDecodeError as e:
            raise TowerMapConfigurationError(
                f"Invalid JSON in module configuration: {str(e)}",
                {"path": str(config_path)}
            )
        except TowerMapBaseException:
            raise
        except Exception as e:
            raise TowerMapConfigurationError(
                f"Failed to load module configuration: {str(e)}"
            )

    def get_processing_config(self, environment: str) -> Dict[str, Any]:
        """
        Get the processing section (batch size, progress interval) for an environment.

        Args:
            environment: Environment name

        Returns:
            Dictionary with processing settings
        """
        return dict(self.load_environment_config(environment)["processing"])

    def get_database_path(self, environment: str) -> str:
        """
        Resolve the region/tower database path for an environment.

        The TOWERMAP_DATABASE_PATH environment variable overrides the file setting.

        Args:
            environment: Environment name

        Returns:
            Database path string
        """
        override = os.getenv(DATABASE_PATH_ENV_VAR)
        if override:
            self.logger.debug(f"Using database path from {DATABASE_PATH_ENV_VAR}")
            return override
        return str(self.load_environment_config(environment)["database_path"])

    def validate_environment_variables(self, environment: str) -> None:
        """
        Validate that required environment variables are set.

        Args:
            environment: Environment name to validate

        Raises:
            TowerMapValidationError: If required environment variables are missing
        """
        env_config = self.load_environment_config(environment)
        required_vars = env_config.get("_validation", {}).get("required_environment_variables", [])

        missing_vars = [var for var in required_vars if not os.getenv(var)]

        if missing_vars:
            raise TowerMapValidationError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

        self.logger.info(f"Environment variables validated for: {environment}")

    def _validate_environment_config(self, config_data: Dict[str, Any], environment: str) -> None:
        """
        Validate environment configuration structure.

        Args:
            config_data: Configuration data to validate
            environment: Environment name to validate

        Raises:
            TowerMapValidationError: If configuration is invalid
        """
        if "environments" not in config_data:
            raise TowerMapValidationError("Missing 'environments' key in configuration")

        if environment not in config_data["environments"]:
            available_envs = list(config_data["environments"].keys())
            raise TowerMapValidationError(
                f"Environment '{environment}' not found. Available: {available_envs}"
            )

        env_config = config_data["environments"][environment]
        shared_config = config_data.get("shared", {})

        for key in self.REQUIRED_ENVIRONMENT_KEYS:
            if key not in env_config and key not in shared_config:
                raise TowerMapValidationError(
                    f"Missing required key '{key}' in {environment} configuration"
                )

    def clear_cache(self) -> None:
        """Clear the configuration cache."""
        self.load_environment_config.cache_clear()
        self.load_module_config.cache_clear()
        self.logger.info("Configuration cache cleared")

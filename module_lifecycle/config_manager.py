#!/usr/bin/env python3
"""
config_manager.py - Configuration Management

Reads module options from JSON files and environment variables. Each
top-level section of the configuration holds the options of one module,
keyed by module id, so ``BaseModule.from_config()`` can pick up its own.

Features:
- Configuration file loading
- Environment variable overrides
- Dotted-key access to nested values
- Per-module option sections
"""

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Imports
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

import copy
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TypeVar, Union

from .module_base import ConfigError

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Type Definitions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

ConfigDict = Dict[str, Any]

T = TypeVar('T')

# Separates section and key in environment variable names
ENV_NESTING = '__'

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Configuration Manager
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ConfigManager:
    """
    Configuration manager that loads module options from files and
    environment variables.
    """

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        env_prefix: str = '',
        default_config: Optional[ConfigDict] = None
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to JSON configuration file (optional)
            env_prefix: Prefix for environment variables (e.g., 'APP_')
            default_config: Default configuration values
        """
        self.env_prefix = env_prefix
        self.config: ConfigDict = copy.deepcopy(default_config) if default_config else {}

        if config_file:
            self.load_config_file(config_file)

        self._apply_env_overrides()

    def load_config_file(self, config_file: Union[str, Path]) -> None:
        """
        Load configuration from a JSON file.

        Sections in the file are merged into existing sections rather than
        replacing them.

        Args:
            config_file: Path to configuration file

        Raises:
            ConfigError: If file reading or parsing fails
        """
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {config_file}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading configuration: {e}")

        if not isinstance(file_config, dict):
            raise ConfigError(f"Configuration file must contain an object: {config_file}")

        for key, value in file_config.items():
            current = self.config.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                current.update(value)
            else:
                self.config[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to configuration.

        ``<prefix>DASHBOARD__TITLE=Hi`` sets ``dashboard.title``. Values are
        parsed as JSON when possible and used as strings otherwise.
        """
        if not self.env_prefix:
            return

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue

            config_key = env_key[len(self.env_prefix):].lower().replace(ENV_NESTING, '.')
            if not config_key:
                continue

            try:
                value = json.loads(env_value)
            except json.JSONDecodeError:
                value = env_value

            self.set(config_key, value)

    def get(self, key: str, default: T = None) -> Union[Any, T]:
        """
        Get configuration value by key.

        Args:
            key: Configuration key, dots separate nested keys
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value: Any = self.config
        for part in key.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value, creating intermediate sections as needed.

        Args:
            key: Configuration key, dots separate nested keys
            value: Configuration value
        """
        parts = key.split('.')
        config = self.config
        for part in parts[:-1]:
            if not isinstance(config.get(part), dict):
                config[part] = {}
            config = config[part]
        config[parts[-1]] = value

    def section(self, name: str) -> ConfigDict:
        """
        Get the options stored for a module.

        Args:
            name: Section name, usually a module id

        Returns:
            Shallow copy of the section, empty if missing

        Raises:
            ConfigError: If the section exists but isn't an object
        """
        value = self.get(name)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigError(f"Config section '{name}' is not a dictionary")
        return dict(value)

    def get_all(self) -> ConfigDict:
        """Get a copy of the entire configuration."""
        return copy.deepcopy(self.config)

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Helper Functions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

def create_config_manager(
    config_file: Optional[Union[str, Path]] = None,
    env_prefix: str = '',
    default_config: Optional[ConfigDict] = None
) -> ConfigManager:
    """
    Create a ConfigManager, falling back to defaults if the file is unusable.

    Args:
        config_file: Path to configuration file
        env_prefix: Prefix for environment variables
        default_config: Default configuration values

    Returns:
        Initialized ConfigManager
    """
    try:
        return ConfigManager(config_file, env_prefix, default_config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return ConfigManager(env_prefix=env_prefix, default_config=default_config)


def find_config_file(
    module_id: Optional[str] = None,
    file_name: str = 'config.json',
    search_paths: Optional[List[Union[str, Path]]] = None
) -> Optional[Path]:
    """
    Find a configuration file in search paths.

    Args:
        module_id: Optional module ID to look for module-specific config
        file_name: Name of configuration file
        search_paths: List of paths to search (defaults to common locations)

    Returns:
        Path to configuration file or None if not found
    """
    if search_paths is None:
        search_paths = [
            Path.cwd(),
            Path.home(),
            Path('/etc'),
        ]

        app_dir = Path(sys.argv[0]).resolve().parent
        if app_dir not in search_paths:
            search_paths.insert(0, app_dir)

    # Module-specific files win over the common one
    names = [f"{module_id}.json"] if module_id else []
    names.append(file_name)

    for name in names:
        for path in search_paths:
            config_path = Path(path) / name
            if config_path.is_file():
                return config_path

    return None

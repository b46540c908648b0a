"""YAML configuration loading for Cough."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from cough.config.models import CoughConfig, EnvironmentSettings
from cough.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Looked up relative to the working directory, in this order.
DEFAULT_CONFIG_FILES = ("cough.yaml", "cough.yml", "config/cough.yaml")

ENV_VAR_PATTERN = re.compile(r'\$\{\s*([^}:\s]+)\s*(?::-([^}]*))?\}')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def expand_env_vars(value: Any) -> Any:
    """Resolve ``${VAR}`` and ``${VAR:-default}`` in every string of a YAML tree.

    Raises:
        ConfigurationError: If a variable without a default is not set.
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    def replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        resolved = os.getenv(name, default)
        if resolved is None:
            raise ConfigurationError(
                f"Required environment variable '{name}' is not set",
                details={'variable': name},
            )
        return resolved

    return ENV_VAR_PATTERN.sub(replace, value)


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge two mappings; ``override`` wins on conflicting scalars."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigParser:
    """Builds a CoughConfig from a YAML file.

    A file may pull in others with ``include:`` (a name or a list of names,
    relative to the including file). Included files are merged underneath
    the including one, recursively. Environment variables are expanded once
    the whole tree is assembled.
    """

    def __init__(self, settings: Optional[EnvironmentSettings] = None) -> None:
        self.env_settings = settings or EnvironmentSettings()

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> CoughConfig:
        """Load and validate configuration.

        Args:
            config_path: Configuration file. If None, ``COUGH_CONFIG_FILE`` and
                then the default locations are tried.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid.
        """
        config_file = self.find_config_file(config_path)
        tree = self._read_tree(config_file)
        if not tree:
            raise ConfigurationError(f"Configuration file '{config_file}' is empty")

        try:
            config = CoughConfig(**expand_env_vars(tree))
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                details={'file': str(config_file)},
            ) from e

        logger.debug(f"Loaded configuration from {config_file} with databases {list(config.databases)}")
        return config

    def find_config_file(self, config_path: Optional[Union[str, Path]] = None) -> Path:
        """Resolve which configuration file to load.

        Raises:
            ConfigurationError: If no candidate file exists.
        """
        if config_path:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigurationError(f"Configuration file '{config_path}' not found")
            return path

        candidates: List[Path] = []
        if self.env_settings.config_file:
            candidates.append(Path(self.env_settings.config_file))
        candidates.extend(Path.cwd() / name for name in DEFAULT_CONFIG_FILES)

        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise ConfigurationError(
            "No configuration file found",
            details={'searched': [str(candidate) for candidate in candidates]},
        )

    def _read_tree(self, path: Path, chain: Tuple[Path, ...] = ()) -> Dict[str, Any]:
        resolved = path.resolve()
        if resolved in chain:
            raise ConfigurationError(f"Configuration file '{path}' includes itself")

        try:
            with open(path, 'r', encoding='utf-8') as file:
                tree = yaml.safe_load(file)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in '{path}': {e}") from e

        if tree is None:
            return {}
        if not isinstance(tree, dict):
            raise ConfigurationError(f"Configuration file '{path}' must hold a mapping")

        includes = expand_env_vars(tree.pop('include', []))
        if isinstance(includes, str):
            includes = [includes]

        merged: Dict[str, Any] = {}
        for include in includes:
            included = self._read_tree(path.parent / include, chain + (resolved,))
            merged = merge_dicts(merged, included)
        return merge_dicts(merged, tree)


_loaded_config: Optional[CoughConfig] = None


def get_config(config_path: Optional[Union[str, Path]] = None, reload: bool = False) -> CoughConfig:
    """Load the process-wide configuration once and cache it."""
    global _loaded_config

    if _loaded_config is None or reload:
        _loaded_config = ConfigParser().load_config(config_path)

    return _loaded_config


def setup_logging(settings: Optional[EnvironmentSettings] = None) -> None:
    """Configure root logging from ``COUGH_LOG_LEVEL`` and ``COUGH_DEBUG``.

    For applications and scripts embedding Cough; library code never calls it.
    """
    settings = settings or EnvironmentSettings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)

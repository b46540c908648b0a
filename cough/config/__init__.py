"""Configuration management for Cough."""

from cough.config.models import (
    DatabaseType,
    DatabaseConfig,
    CoughConfig,
    EnvironmentSettings,
)
from cough.config.parser import (
    ConfigParser,
    get_config,
    setup_logging,
)

__all__ = [
    # Models
    "DatabaseType",
    "DatabaseConfig",
    "CoughConfig",
    "EnvironmentSettings",
    # Parser
    "ConfigParser",
    "get_config",
    "setup_logging",
]

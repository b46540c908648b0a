"""Pydantic models for Cough configuration."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
    AliasChoices,
    ConfigDict,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseType(str, Enum):
    """Supported database backends."""
    MYSQL = "mysql"
    MSSQL = "mssql"
    SQLITE = "sqlite"


class DatabaseConfig(BaseModel):
    """Connection settings for one database server.

    Field names follow the DSN keys used by the adapters; the aliases accept
    the shorter spellings (``user``, ``pass``, ``database``, ``driver``).
    """

    model_config = ConfigDict(populate_by_name=True)

    type: DatabaseType = Field(validation_alias=AliasChoices("type", "driver"))
    host: str = "localhost"
    port: Optional[int] = None
    username: Optional[str] = Field(default=None, validation_alias=AliasChoices("username", "user"))
    password: str = Field(default="", validation_alias=AliasChoices("password", "pass"))
    db_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("db_name", "database"))
    socket: Optional[str] = None
    client_flags: int = Field(default=0, ge=0)
    path: Optional[str] = None  # For SQLite
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('port')
    def validate_port(cls, v):
        """Validate port number range."""
        if v is not None and (v < 1 or v > 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @model_validator(mode='after')
    def validate_database_config(self):
        """SQLite needs a file; everything else needs a user."""
        if self.type == DatabaseType.SQLITE:
            if not (self.path or self.db_name):
                raise ValueError("SQLite databases require a 'path' or 'db_name' field")
            if not self.path:
                object.__setattr__(self, "path", self.db_name)
                object.__setattr__(self, "db_name", None)
        elif not self.username:
            raise ValueError(f"{self.type.value} databases require a 'username' field")
        return self


class CoughConfig(BaseModel):
    """Main configuration model: named database connections."""
    databases: Dict[str, DatabaseConfig]
    default_database: Optional[str] = None

    @model_validator(mode='after')
    def validate_default_database(self):
        """Ensure default_database exists in databases, or pick the first one."""
        if self.default_database and self.default_database not in self.databases:
            raise ValueError(f"default_database '{self.default_database}' not found in databases")
        if not self.default_database and self.databases:
            self.default_database = next(iter(self.databases))
        return self


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="COUGH_", case_sensitive=False)

    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Accept standard logging level names in any case."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return level

"""Configuration package for GitMigrate."""

from .config_loader import ConfigError, ConfigFileNotFoundError, ConfigLoader, ConfigParsingError
from .config_schema import AppConfigSchema

__all__ = [
	"AppConfigSchema",
	"ConfigError",
	"ConfigFileNotFoundError",
	"ConfigLoader",
	"ConfigParsingError",
]

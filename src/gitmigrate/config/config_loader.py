"""
Configuration loader for GitMigrate.

This module locates the configuration file, parses it and validates it
against :class:`AppConfigSchema`.

"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as SchemaValidationError
from xdg.BaseDirectory import xdg_config_home

from gitmigrate.config.config_schema import AppConfigSchema

logger = logging.getLogger(__name__)

LOCAL_CONFIG_FILE = ".gitmigrate.yml"


class ConfigError(Exception):
	"""Exception raised for configuration errors."""


class ConfigFileNotFoundError(ConfigError):
	"""Exception raised when an explicitly requested configuration file is missing."""


class ConfigParsingError(ConfigError):
	"""Exception raised when configuration file cannot be parsed."""


class ConfigLoader:
	"""
	Loads and holds the GitMigrate configuration.

	One instance is shared by the CLI commands of a process.

	"""

	_instance: ConfigLoader | None = None

	@classmethod
	def get_instance(
		cls, config_file: Path | None = None, reload: bool = False, repo_root: Path | None = None
	) -> ConfigLoader:
		"""
		Get the shared instance of ConfigLoader.

		Args:
			config_file: Path to configuration file (optional)
			reload: Whether to reload config even if already loaded
			repo_root: Directory searched for ``.gitmigrate.yml`` (defaults to cwd)

		Returns:
			ConfigLoader: Shared instance

		"""
		if cls._instance is None:
			cls._instance = cls(config_file, repo_root=repo_root)
		elif reload:
			cls._instance.reload_config(config_file, repo_root)
		return cls._instance

	def __init__(self, config_file: Path | None = None, repo_root: Path | None = None) -> None:
		"""
		Initialize the configuration loader.

		Args:
			config_file: Path to configuration file (optional)
			repo_root: Directory searched for ``.gitmigrate.yml`` (optional)

		"""
		self.repo_root = repo_root
		self._config_file = config_file
		self._resolved_config_file = self._resolve_config_file(config_file)
		self._app_config = self._load_config()

	def reload_config(self, config_file: Path | None = None, repo_root: Path | None = None) -> None:
		"""
		Reload configuration with new settings.

		Args:
			config_file: New configuration file path
			repo_root: New search directory

		"""
		if config_file is not None:
			self._config_file = config_file
		if repo_root is not None:
			self.repo_root = repo_root
		self._resolved_config_file = self._resolve_config_file(self._config_file)
		self._app_config = self._load_config()
		logger.debug("Configuration reloaded")

	@property
	def config_file(self) -> Path | None:
		"""The configuration file in use, if any."""
		return self._resolved_config_file

	def _resolve_config_file(self, config_file: Path | None = None) -> Path | None:
		"""
		Resolve the configuration file path.

		If a config file is specified, use that. Otherwise, look in standard locations:
		1. ./.gitmigrate.yml in the search directory
		2. $XDG_CONFIG_HOME/gitmigrate/config.yml

		Raises:
			ConfigFileNotFoundError: If the specified file does not exist

		"""
		if config_file:
			path = Path(config_file).expanduser().resolve()
			if not path.exists():
				msg = f"Configuration file not found: {path}"
				raise ConfigFileNotFoundError(msg)
			return path

		local_config = (self.repo_root or Path.cwd()) / LOCAL_CONFIG_FILE
		if local_config.exists():
			return local_config

		xdg_config_file = Path(xdg_config_home) / "gitmigrate" / "config.yml"
		if xdg_config_file.exists():
			return xdg_config_file

		return None

	@staticmethod
	def _parse_yaml_file(file_path: Path) -> dict[str, Any]:
		"""
		Parse a YAML file into a dictionary.

		Raises:
			yaml.YAMLError: If the file is not a valid YAML dictionary

		"""
		with file_path.open(encoding="utf-8") as f:
			content = yaml.safe_load(f)
			if content is None:
				return {}
			if not isinstance(content, dict):
				msg = f"File {file_path} does not contain a valid YAML dictionary"
				raise yaml.YAMLError(msg)
			return content

	def _load_config(self) -> AppConfigSchema:
		"""
		Load configuration from file and parse it into AppConfigSchema.

		Raises:
			ConfigParsingError: If the file cannot be read, parsed or validated

		"""
		file_config_dict: dict[str, Any] = {}
		if self._resolved_config_file:
			try:
				file_config_dict = self._parse_yaml_file(self._resolved_config_file)
				logger.info("Loaded configuration from %s", self._resolved_config_file)
			except yaml.YAMLError as e:
				msg = f"Configuration file {self._resolved_config_file} does not contain a valid YAML dictionary."
				raise ConfigParsingError(msg) from e
			except OSError as e:
				msg = f"Error accessing configuration file {self._resolved_config_file}: {e}"
				raise ConfigParsingError(msg) from e
		else:
			logger.debug("No configuration file found. Using default configuration.")

		try:
			return AppConfigSchema(**file_config_dict)
		except SchemaValidationError as e:
			msg = f"Error parsing configuration into schema: {e}"
			raise ConfigParsingError(msg) from e

	@property
	def get(self) -> AppConfigSchema:
		"""The current application configuration."""
		return self._app_config

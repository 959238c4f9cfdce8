"""Command-line interface package for GitMigrate."""

from __future__ import annotations

import datetime
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from gitmigrate import __version__
from gitmigrate.utils.log_setup import setup_logging

from .integrate_cmd import register_command as register_integrate_command
from .origin_cmd import register_command as register_origin_commands

logger = logging.getLogger(__name__)

# .env.local wins over .env
for env_file in (Path(".env.local"), Path(".env")):
	if env_file.exists():
		load_dotenv(dotenv_path=env_file)
		logger.debug("Loaded environment variables from %s", env_file)
		break

app = typer.Typer(
	help=f"GitMigrate - git origin for source migrations\n\nVersion: {__version__}",
	no_args_is_help=True,
	context_settings={"help_option_names": ["-h", "--help"]},
)

# --- Global Options Callback ---


def _version_callback(value: bool) -> None:
	"""Callback for --version option."""
	if value:
		typer.echo(f"GitMigrate version: {__version__}")
		raise typer.Exit


@app.callback(invoke_without_command=True)
def global_options(
	ctx: typer.Context,
	is_verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")] = False,
	is_output_log: Annotated[
		bool,
		typer.Option(
			"--save-log",
			help="Enable logging to a file. Logs to logs/gitmigrate_{datetime}.log.",
		),
	] = False,
	config_file: Annotated[
		Path | None,
		typer.Option(
			"--config",
			"-c",
			help="Configuration file. Defaults to ./.gitmigrate.yml or $XDG_CONFIG_HOME/gitmigrate/config.yml.",
			dir_okay=False,
		),
	] = None,
	_version: Annotated[
		bool | None,
		typer.Option("--version", help="Show version and exit.", callback=_version_callback, is_eager=True),
	] = None,
) -> None:
	"""Global CLI options and logging setup."""
	ctx.meta["is_verbose"] = is_verbose
	ctx.meta["config_file"] = config_file

	log_file_path_to_use: Path | None = None
	if is_output_log:
		current_time = datetime.datetime.now(tz=datetime.UTC).strftime("%Y-%m-%d_%H-%M-%S")
		log_file_path_to_use = Path("logs") / f"gitmigrate_{current_time}.log"

	setup_logging(is_verbose=is_verbose, log_file_path=log_file_path_to_use)


# --- Register commands ---

register_origin_commands(app)
register_integrate_command(app)


# --- Main Entry Point ---
def main() -> int:
	"""Run the CLI application."""
	return app()


if __name__ == "__main__":
	sys.exit(main())

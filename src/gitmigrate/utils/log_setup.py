"""
Logging setup for GitMigrate.

Console output goes through Rich; an optional file handler keeps a full
debug log of the run.

"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule
from rich.text import Text

console = Console(stderr=True)

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"


def setup_logging(
	is_verbose: bool = False,
	log_to_console: bool = True,
	log_file_path: Path | str | None = None,
) -> None:
	"""
	Set up logging configuration.

	Args:
		is_verbose: Log debug messages, including every git command
		log_to_console: Whether to log to the console
		log_file_path: Optional path to a file for logging. If None, no file logging.

	"""
	log_level = logging.DEBUG if is_verbose else logging.INFO

	root_logger = logging.getLogger()
	root_logger.setLevel(logging.DEBUG if log_file_path else log_level)

	# Calling twice must not duplicate output
	for handler in root_logger.handlers[:]:
		root_logger.removeHandler(handler)

	if log_to_console:
		console_handler = RichHandler(
			level=log_level,
			console=console,
			rich_tracebacks=True,
			show_time=is_verbose,
			show_path=is_verbose,
		)
		root_logger.addHandler(console_handler)

	if log_file_path:
		file_handler_path = Path(log_file_path)
		try:
			file_handler_path.parent.mkdir(parents=True, exist_ok=True)
			file_handler = logging.FileHandler(file_handler_path, mode="a", encoding="utf-8")
		except OSError as e:
			console.print(f"[red]Failed to set up file logging to {file_handler_path}: {e}[/red]")
			return
		file_handler.setLevel(logging.DEBUG)
		file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
		root_logger.addHandler(file_handler)
		root_logger.debug("Logging to file: %s", file_handler_path)


def _display_summary(title: str, style: str, message: str) -> None:
	console.print()
	console.print(Rule(Text(title, style=f"bold {style}"), style=style))
	console.print(f"\n{message}\n", markup=False, highlight=False)
	console.print(Rule(style=style))
	console.print()


def display_error_summary(error_message: str) -> None:
	"""
	Display an error summary with a divider and a title.

	Args:
		error_message: The error message to display

	"""
	_display_summary("Error Summary", "red", error_message)


def display_warning_summary(warning_message: str) -> None:
	"""
	Display a warning summary with a divider and a title.

	Args:
		warning_message: The warning message to display

	"""
	_display_summary("Warning Summary", "yellow", warning_message)

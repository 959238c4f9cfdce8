"""Utility functions for CLI operations in GitMigrate."""

from __future__ import annotations

import contextlib
import logging
import os
from typing import TYPE_CHECKING, NoReturn

import typer

from gitmigrate.utils.log_setup import console, display_error_summary, display_warning_summary

if TYPE_CHECKING:
	from collections.abc import Iterator

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def loading_spinner(message: str = "Processing...") -> Iterator[None]:
	"""
	Display a loading spinner while executing a task.

	Args:
		message: Message to display alongside the spinner

	Yields:
		None

	"""
	# No spinner under test runners and CI
	if os.environ.get("PYTEST_CURRENT_TEST") or os.environ.get("CI") or not console.is_terminal:
		yield
		return
	with console.status(message):
		yield


def show_error(message: str, exception: Exception | None = None) -> None:
	"""
	Display an error summary with standardized formatting.

	Args:
		message: The error message to display
		exception: Optional exception that caused the error

	"""
	error_text = message
	if exception:
		error_text += f"\n\nDetails: {exception!s}"
		logger.debug("Error occurred", exc_info=exception)
	display_error_summary(error_text)


def show_warning(message: str) -> None:
	"""Display a warning summary with standardized formatting."""
	display_warning_summary(message)


def exit_with_error(message: str, exit_code: int = 1, exception: Exception | None = None) -> NoReturn:
	"""
	Display an error message and exit.

	Args:
		message: Error message to display
		exit_code: Exit code to use
		exception: Optional exception that caused the error

	"""
	show_error(message, exception)
	raise typer.Exit(exit_code) from exception


def handle_keyboard_interrupt() -> NoReturn:
	"""Handles KeyboardInterrupt by printing a message and exiting cleanly."""
	console.print("\n[yellow]Operation cancelled by user.[/yellow]")
	raise typer.Exit(130)

"""Process execution helpers for GitMigrate."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from collections.abc import Mapping, Sequence
	from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
	"""Captured result of a finished process."""

	returncode: int
	stdout: str
	stderr: str


class CommandError(Exception):
	"""Raised when a command cannot be started at all."""

	def __init__(self, command: Sequence[str], message: str) -> None:
		"""
		Initialize the error.

		Args:
			command: The command that failed to start
			message: Human readable reason

		"""
		self.command = list(command)
		super().__init__(f"Cannot execute '{' '.join(self.command)}': {message}")


class BadExitStatusError(CommandError):
	"""Raised when a command exits with a non-zero status. Carries the captured output."""

	def __init__(self, command: Sequence[str], output: CommandOutput) -> None:
		"""
		Initialize the error.

		Args:
			command: The command that was executed
			output: Captured stdout/stderr and exit status

		"""
		self.output = output
		detail = output.stderr.strip() or output.stdout.strip()
		super().__init__(command, f"exit status {output.returncode}\n{detail}")


def run_command(
	command: Sequence[str],
	cwd: Path | str | None = None,
	env: Mapping[str, str] | None = None,
	check: bool = True,
) -> CommandOutput:
	"""
	Run a command and capture its output.

	Args:
		command: Program and arguments
		cwd: Working directory (optional)
		env: Full environment for the process; inherits the current one when None
		check: Raise BadExitStatusError on a non-zero exit status

	Returns:
		CommandOutput with the exit status and both streams

	Raises:
		CommandError: If the program cannot be started
		BadExitStatusError: If check is set and the program fails

	"""
	logger.debug("Running %s (cwd=%s)", " ".join(command), cwd)
	try:
		# Arguments are passed as a list and never through a shell
		result = subprocess.run(  # noqa: S603
			list(command),
			cwd=cwd,
			env=dict(env) if env is not None else None,
			capture_output=True,
			text=True,
			check=False,
		)
	except OSError as e:
		raise CommandError(command, str(e)) from e

	output = CommandOutput(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)
	if check and result.returncode != 0:
		raise BadExitStatusError(command, output)
	return output


def log_lines(target: logging.Logger, prefix: str, text: str) -> None:
	"""
	Forward every non-empty line of text to a logger.

	Args:
		target: Logger receiving the lines
		prefix: Fixed prefix identifying the stream
		text: Captured output

	"""
	for line in text.splitlines():
		if line.strip():
			target.info("%s%s", prefix, line)

"""Utility module for GitMigrate package."""

from .command_utils import BadExitStatusError, CommandError, CommandOutput, log_lines, run_command

__all__ = [
	"BadExitStatusError",
	"CommandError",
	"CommandOutput",
	"log_lines",
	"run_command",
]

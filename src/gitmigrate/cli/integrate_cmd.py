"""CLI command integrating labelled revisions into a local repository."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

if TYPE_CHECKING:
	from gitmigrate.git.repository import GitRepository

logger = logging.getLogger(__name__)

# --- Command Argument Annotations ---

RepoPathArg = Annotated[
	Path,
	typer.Argument(
		help="Repository whose HEAD receives the integration.",
		exists=True,
		file_okay=False,
		dir_okay=True,
		resolve_path=True,
	),
]

MessageOpt = Annotated[str | None, typer.Option("--message", "-m", help="Description of the pending change.")]

MessageFileOpt = Annotated[
	Path | None,
	typer.Option("--message-file", "-F", help="Read the description of the pending change from a file.", exists=True),
]

LabelToAddOpt = Annotated[
	list[str] | None,
	typer.Option("--label-to-add", "-l", help="'Name: value' label added to the merge message. Repeatable."),
]

LabelOpt = Annotated[str | None, typer.Option("--label", help="Label naming the revisions to integrate.")]

StrategyOpt = Annotated[str | None, typer.Option("--strategy", help="Integration strategy. Overrides config.")]

IgnoreErrorsFlag = Annotated[bool, typer.Option("--ignore-errors", help="Log integration errors instead of failing.")]


# --- Registration Function ---


def register_command(app: typer.Typer) -> None:
	"""Register the integrate command with the CLI app."""

	@app.command(name="integrate")
	def integrate_command(
		ctx: typer.Context,
		repo_path: RepoPathArg,
		message: MessageOpt = None,
		message_file: MessageFileOpt = None,
		labels_to_add: LabelToAddOpt = None,
		label: LabelOpt = None,
		strategy: StrategyOpt = None,
		ignore_errors: IgnoreErrorsFlag = False,
	) -> None:
		"""Integrate the revisions referenced by the integrate label into REPO_PATH's HEAD."""
		_integrate_command_impl(
			config_file=ctx.meta.get("config_file"),
			repo_path=repo_path,
			message=message,
			message_file=message_file,
			labels_to_add=labels_to_add or [],
			label=label,
			strategy=strategy,
			ignore_errors=ignore_errors,
		)


# --- Implementation Function ---


def _integrate_command_impl(
	config_file: Path | None,
	repo_path: Path,
	message: str | None,
	message_file: Path | None,
	labels_to_add: list[str],
	label: str | None,
	strategy: str | None,
	ignore_errors: bool,
) -> None:
	"""Implementation of the integrate command with imports deferred."""
	from gitmigrate.config.config_loader import ConfigError, ConfigLoader
	from gitmigrate.git.errors import GitError
	from gitmigrate.git.integrate import GitIntegrateChanges, MessageInfo, Strategy
	from gitmigrate.utils.cli_utils import exit_with_error, handle_keyboard_interrupt

	if (message is None) == (message_file is None):
		exit_with_error("Pass exactly one of --message or --message-file.")

	try:
		description = message if message is not None else message_file.read_text(encoding="utf-8")  # type: ignore[union-attr]
	except OSError as e:
		exit_with_error(f"Cannot read {message_file}", exception=e)

	try:
		config = ConfigLoader.get_instance(config_file=config_file, reload=True, repo_root=Path.cwd()).get
		try:
			selected_strategy = Strategy(strategy.upper()) if strategy else config.integrate.strategy
		except ValueError:
			valid = ", ".join(member.value for member in Strategy)
			exit_with_error(f"Unknown strategy '{strategy}'. Valid strategies: {valid}")
		integration = GitIntegrateChanges(
			label=label or config.integrate.label,
			strategy=selected_strategy,
			ignore_errors=config.integrate.ignore_errors,
		)
		repository = open_repository(repo_path)
		integration.integrate(
			repository,
			MessageInfo.from_lines(labels_to_add),
			description,
			ignore_integration_errors=ignore_errors,
		)
		head = repository.resolve_reference("HEAD")
	except KeyboardInterrupt:
		handle_keyboard_interrupt()
	except (GitError, ConfigError) as e:
		exit_with_error(f"Cannot integrate changes: {e}", exception=e)

	typer.echo(f"HEAD is now {head.sha1}")


def open_repository(repo_path: Path) -> GitRepository:
	"""Open a repository given its work tree or its git directory."""
	from gitmigrate.git.repository import GitRepository

	dot_git = repo_path / ".git"
	if dot_git.is_dir():
		return GitRepository(dot_git, work_tree=repo_path)
	return GitRepository(repo_path)

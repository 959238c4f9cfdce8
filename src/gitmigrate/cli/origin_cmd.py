"""CLI commands reading from the configured git origin."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

if TYPE_CHECKING:
	from collections.abc import Callable

	from gitmigrate.git.origin import GitOrigin
	from gitmigrate.git.path_filter import PathFilter
	from gitmigrate.git.revision import Change

logger = logging.getLogger(__name__)

# --- Command Argument Annotations ---

RefArg = Annotated[
	str | None, typer.Argument(help="Reference to resolve. Defaults to origin.ref from the configuration.")
]

WorkdirArg = Annotated[
	Path,
	typer.Argument(help="Directory receiving the checkout. Its content is replaced.", file_okay=False),
]

FromOpt = Annotated[str | None, typer.Option("--from", help="Exclude changes already reachable from this reference.")]

FirstParentFlag = Annotated[
	bool, typer.Option("--first-parent-walk", help="Walk the first-parent history back from REF.")
]

MaxOpt = Annotated[
	int | None, typer.Option("--max", "-n", min=1, help="Stop the first-parent walk after this many changes.")
]


# --- Registration Function ---


def register_command(app: typer.Typer) -> None:
	"""Register the origin commands with the CLI app."""

	@app.command(name="resolve")
	def resolve_command(ctx: typer.Context, ref: RefArg = None) -> None:
		"""Resolve a reference of the origin and print its commit id."""
		_run(ctx, _resolve_impl, ref=ref)

	@app.command(name="checkout")
	def checkout_command(ctx: typer.Context, workdir: WorkdirArg, ref: RefArg = None) -> None:
		"""Check out a reference of the origin, submodules included, into WORKDIR."""
		_run(ctx, _checkout_impl, ref=ref, workdir=workdir)

	@app.command(name="log")
	def log_command(
		ctx: typer.Context,
		ref: RefArg = None,
		from_ref: FromOpt = None,
		first_parent_walk: FirstParentFlag = False,
		max_count: MaxOpt = None,
	) -> None:
		"""List the changes of the origin that touch the origin files."""
		_run(
			ctx,
			_log_impl,
			ref=ref,
			from_ref=from_ref,
			first_parent_walk=first_parent_walk,
			max_count=max_count,
		)

	@app.command(name="describe")
	def describe_command(ctx: typer.Context) -> None:
		"""Print the configured origin."""
		_run(ctx, _describe_impl)


# --- Implementation Functions ---


def _run(ctx: typer.Context, impl: Callable[..., None], **kwargs: object) -> None:
	"""Build the origin from the configuration and run impl, mapping errors to exit codes."""
	from gitmigrate.config.config_loader import ConfigError
	from gitmigrate.git.errors import GitError
	from gitmigrate.utils.cli_utils import exit_with_error, handle_keyboard_interrupt

	try:
		origin, path_filter = load_origin(ctx.meta.get("config_file"))
		impl(origin, path_filter, **kwargs)
	except KeyboardInterrupt:
		handle_keyboard_interrupt()
	except (GitError, ConfigError) as e:
		exit_with_error(str(e), exception=e)


def load_origin(config_file: Path | None) -> tuple[GitOrigin, PathFilter]:
	"""
	Build the origin and its path filter from the configuration.

	Raises:
		ConfigError: If the configuration cannot be loaded
		ValidationError: If the configuration has no origin url

	"""
	from gitmigrate.config.config_loader import ConfigLoader
	from gitmigrate.git.origin import GitOrigin
	from gitmigrate.git.path_filter import PathFilter
	from gitmigrate.git.repo_cache import GitOptions

	config = ConfigLoader.get_instance(config_file=config_file, reload=True, repo_root=Path.cwd()).get
	git_options = GitOptions(cache_dir=config.general.cache_dir)
	origin = GitOrigin.from_config(config, git_options)
	files = config.origin.origin_files
	return origin, PathFilter(files.include, files.exclude)


def _resolve_impl(origin: GitOrigin, path_filter: PathFilter, ref: str | None) -> None:
	from gitmigrate.utils.cli_utils import loading_spinner

	with loading_spinner(f"Resolving {ref or origin.ref} in {origin.url}..."):
		revision = origin.resolve(ref)
	typer.echo(revision.sha1)


def _checkout_impl(origin: GitOrigin, path_filter: PathFilter, ref: str | None, workdir: Path) -> None:
	from gitmigrate.utils.cli_utils import loading_spinner

	with loading_spinner(f"Checking out {origin.url}..."):
		revision = origin.resolve(ref)
		origin.new_reader(path_filter).checkout(revision, workdir)
	typer.echo(f"Checked out {revision.sha1} into {workdir}")


def _log_impl(
	origin: GitOrigin,
	path_filter: PathFilter,
	ref: str | None,
	from_ref: str | None,
	first_parent_walk: bool,
	max_count: int | None,
) -> None:
	from gitmigrate.git.revision import VisitResult
	from gitmigrate.utils.cli_utils import loading_spinner

	reader = origin.new_reader(path_filter)
	with loading_spinner(f"Reading history of {origin.url}..."):
		to_revision = origin.resolve(ref)
		if not first_parent_walk:
			from_revision = origin.resolve(from_ref) if from_ref else None
			changes = reader.changes(from_revision, to_revision)
		else:
			changes = []

			def visitor(change: Change) -> VisitResult:
				changes.append(change)
				if max_count is not None and len(changes) >= max_count:
					return VisitResult.TERMINATE
				return VisitResult.CONTINUE

			reader.visit_changes(to_revision, visitor)

	for change in changes:
		typer.echo(_format_change(change))
	logger.info("%d change(s)", len(changes))


def _format_change(change: Change) -> str:
	timestamp = change.date_time.isoformat(timespec="seconds")
	return f"{change.revision.sha1} {timestamp} {change.author} {change.first_line_message}"


def _describe_impl(origin: GitOrigin, path_filter: PathFilter) -> None:
	for key, values in origin.describe(path_filter).items():
		for value in values:
			typer.echo(f"{key}: {value}")

"""
Git origin: resolves references, materializes work trees and reads history.

A :class:`GitOrigin` is configured once per repository. Readers created from
it check out revisions, including submodules, and enumerate the changes that
touch a path filter.

"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from gitmigrate.git.change_reader import ChangeReader
from gitmigrate.git.errors import CannotResolveRevisionError, EmptyChangeError, RepoError, ValidationError
from gitmigrate.git.path_filter import PathFilter
from gitmigrate.git.repo_cache import normalize_url
from gitmigrate.git.repo_type import GitRepoType
from gitmigrate.git.revision import VisitResult
from gitmigrate.utils.command_utils import BadExitStatusError, CommandError, log_lines, run_command

if TYPE_CHECKING:
	from collections.abc import Mapping

	from gitmigrate.config.config_schema import AppConfigSchema
	from gitmigrate.git.repo_cache import GitOptions
	from gitmigrate.git.repository import GitRepository
	from gitmigrate.git.revision import Change, ChangesVisitor, GitChange, GitRevision

logger = logging.getLogger(__name__)

GIT_ORIGIN_REV_ID = "GitOrigin-RevId"
TMP_REBASE_REF = "refs/heads/gitmigrate_dont_use_internal"
HOOK_STDOUT_PREFIX = "git.origin hook (Stdout): "
HOOK_STDERR_PREFIX = "git.origin hook (Stderr): "


class SubmoduleStrategy(str, Enum):
	"""Which submodules a checkout materializes."""

	NONE = "NONE"
	"""Skip submodules."""

	SHALLOW = "SHALLOW"
	"""Check out the first level of submodules only."""

	RECURSIVE = "RECURSIVE"
	"""Check out submodules of submodules transitively."""

	def for_nested_level(self) -> SubmoduleStrategy:
		"""Strategy applied to the submodules of a submodule."""
		return SubmoduleStrategy.RECURSIVE if self is SubmoduleStrategy.RECURSIVE else SubmoduleStrategy.NONE


@dataclass(frozen=True)
class GitOriginOptions:
	"""Checkout options driven by the destination rather than the origin."""

	rebase_ref: str | None = None
	"""Reference the top-level checkout is rebased onto."""

	checkout_hook: str | None = None
	"""Executable run in the work tree after every checkout."""


class GitOrigin:
	"""A git repository changes are read from."""

	def __init__(
		self,
		url: str,
		git_options: GitOptions,
		ref: str | None = None,
		repo_type: GitRepoType = GitRepoType.GIT,
		origin_options: GitOriginOptions | None = None,
		verbose: bool = False,
		environment: Mapping[str, str] | None = None,
		submodule_strategy: SubmoduleStrategy = SubmoduleStrategy.NONE,
		include_branch_commit_logs: bool = False,
	) -> None:
		"""
		Initialize the origin.

		Args:
			url: Repository url; a trailing '/' is dropped
			git_options: Shared git context owning the repository cache
			ref: Default reference used when none is given to :meth:`resolve`
			repo_type: Reference resolution policy
			origin_options: Rebase and checkout hook options
			verbose: Announce the checkout hook and its working directory at info level
			environment: Environment of the checkout hook; inherits the current one when None
			submodule_strategy: Submodules materialized by a checkout
			include_branch_commit_logs: Extend merge messages with the merged commits

		"""
		self.url = normalize_url(url)
		self.git_options = git_options
		self.ref = ref
		self.repo_type = repo_type
		self.origin_options = origin_options or GitOriginOptions()
		self.verbose = verbose
		self.environment = dict(environment) if environment is not None else None
		self.submodule_strategy = submodule_strategy
		self.include_branch_commit_logs = include_branch_commit_logs

	@classmethod
	def from_config(cls, config: AppConfigSchema, git_options: GitOptions) -> GitOrigin:
		"""
		Build an origin from the loaded configuration.

		Raises:
			ValidationError: If no origin url is configured

		"""
		origin = config.origin
		if not origin.url:
			msg = "No origin url was configured. Set 'origin.url' in the config file"
			raise ValidationError(msg)
		environment = {**os.environ, **config.general.environment}
		return cls(
			url=origin.url,
			git_options=git_options,
			ref=origin.ref,
			repo_type=origin.repo_type,
			origin_options=GitOriginOptions(rebase_ref=origin.rebase_ref, checkout_hook=origin.checkout_hook),
			verbose=config.general.verbose,
			environment=environment,
			submodule_strategy=origin.submodules,
			include_branch_commit_logs=origin.include_branch_commit_logs,
		)

	@property
	def label_name(self) -> str:
		"""Label recording the origin revision on migrated commits."""
		return GIT_ORIGIN_REV_ID

	def get_repository(self) -> GitRepository:
		"""Return the cached bare repository of the origin url."""
		return self.git_options.cached_repository(self.url)

	def resolve(self, reference: str | None) -> GitRevision:
		"""
		Resolve a reference, or the configured default one, to a revision.

		Args:
			reference: Reference string. Empty or None uses the configured default

		Returns:
			The resolved revision

		Raises:
			ValidationError: If no reference is given and none is configured
			CannotResolveRevisionError: If the reference does not exist
			RepoError: If fetching fails

		"""
		logger.info("Git Origin: Initializing local repo")
		if not reference:
			if self.ref is None:
				msg = (
					f"No reference was passed as an command line argument for {self.url} "
					"and no default reference was configured in the config file"
				)
				raise ValidationError(msg)
			reference = self.ref
		with self.git_options.cache.lock(self.url):
			return self.repo_type.resolve_ref(self.get_repository(), self.url, reference)

	def new_reader(self, path_filter: PathFilter | None = None) -> GitOriginReader:
		"""Create a reader restricted to the files selected by path_filter."""
		return GitOriginReader(self, path_filter or PathFilter.all_files())

	def describe(self, path_filter: PathFilter | None = None) -> dict[str, tuple[str, ...]]:
		"""Describe the origin for diagnostics."""
		description: dict[str, tuple[str, ...]] = {
			"type": ("git.origin",),
			"repoType": (self.repo_type.value,),
			"url": (self.url,),
			"submodules": (self.submodule_strategy.value,),
		}
		if self.ref is not None:
			description["ref"] = (self.ref,)
		if path_filter is not None and not path_filter.is_all_files:
			roots = path_filter.roots()
			if roots:
				description["root"] = roots
		return description

	def run_checkout_hook(self, workdir: Path) -> None:
		"""
		Run the configured checkout hook inside workdir.

		Raises:
			RepoError: If the hook cannot be executed or exits with an error

		"""
		hook = self.origin_options.checkout_hook
		if not hook:
			return
		logger.log(logging.INFO if self.verbose else logging.DEBUG, "Running checkout hook %s in %s", hook, workdir)
		try:
			output = run_command([hook], cwd=workdir, env=self.environment)
		except BadExitStatusError as e:
			log_lines(logger, HOOK_STDOUT_PREFIX, e.output.stdout)
			log_lines(logger, HOOK_STDERR_PREFIX, e.output.stderr)
			msg = (
				f"Error executing the git checkout hook: {hook}\n"
				f"Stdout:\n{e.output.stdout}\nStderr:\n{e.output.stderr}"
			)
			raise RepoError(msg) from e
		except CommandError as e:
			msg = f"Error executing the git checkout hook: {hook}"
			raise RepoError(msg) from e
		log_lines(logger, HOOK_STDOUT_PREFIX, output.stdout)
		log_lines(logger, HOOK_STDERR_PREFIX, output.stderr)

	def __repr__(self) -> str:
		"""Return a debug representation."""
		return f"GitOrigin(url={self.url!r}, ref={self.ref!r}, repo_type={self.repo_type.value})"


class GitOriginReader:
	"""Checks out revisions of an origin and reads its filtered history."""

	def __init__(self, origin: GitOrigin, path_filter: PathFilter) -> None:
		"""
		Initialize the reader.

		Args:
			origin: Origin the reader belongs to
			path_filter: Files the changes must touch

		"""
		self.origin = origin
		self.path_filter = path_filter

	# -- Checkout -------------------------------------------------------------

	def checkout(self, revision: GitRevision, workdir: Path | str) -> None:
		"""
		Replace the content of workdir with revision, submodules included.

		Any content already in workdir is removed.

		Raises:
			RepoError: If any git operation or the checkout hook fails
			CannotResolveRevisionError: If the rebase ref or a submodule commit is missing

		"""
		workdir = Path(workdir)
		self._checkout_repo(
			self.origin.get_repository(),
			self.origin.url,
			workdir,
			self.origin.submodule_strategy,
			revision,
			self.origin.origin_options.rebase_ref,
		)
		self.origin.run_checkout_hook(workdir)

	def _checkout_repo(
		self,
		repository: GitRepository,
		current_remote_url: str,
		workdir: Path,
		strategy: SubmoduleStrategy,
		revision: GitRevision,
		rebase_ref: str | None,
	) -> None:
		# Rebase only applies to the top level; submodules pass rebase_ref=None
		with self.origin.git_options.cache.lock(current_remote_url):
			repo = repository.with_work_tree(workdir)
			repo.force_checkout(revision.sha1)
			if rebase_ref:
				logger.info("Rebasing %s to %s", revision, rebase_ref)
				self._rebase(repo, rebase_ref)

			if strategy is SubmoduleStrategy.NONE:
				return
			pinned = []
			for submodule in repo.list_submodules(current_remote_url):
				elements = repo.ls_tree(revision, submodule.path)
				if len(elements) != 1:
					msg = (
						f"Cannot find one tree element for submodule {submodule.path}. "
						f"Found the following elements: {elements}"
					)
					raise RepoError(msg)
				pinned.append((submodule, elements[0]))

		for submodule, element in pinned:
			sub_repository = self.origin.git_options.cached_repository(submodule.url)
			with self.origin.git_options.cache.lock(submodule.url):
				sub_repository.fetch_single_ref(submodule.url, submodule.branch)
				submodule_revision = sub_repository.resolve_reference(element.ref, submodule.name)

			subdir = workdir / submodule.path
			try:
				subdir.mkdir(parents=True, exist_ok=True)
			except OSError as e:
				msg = f"Cannot create subdirectory {subdir} for submodule: {submodule}"
				raise RepoError(msg) from e

			logger.debug("Checking out submodule %s at %s", submodule.name, submodule_revision.sha1)
			self._checkout_repo(
				sub_repository,
				submodule.url,
				subdir,
				strategy.for_nested_level(),
				submodule_revision,
				None,
			)

	def _rebase(self, repo: GitRepository, rebase_ref: str) -> None:
		rebase_revision = repo.fetch_single_ref(self.origin.url, rebase_ref)
		repo.simple_command("update-ref", TMP_REBASE_REF, rebase_revision.sha1)
		repo.rebase(TMP_REBASE_REF)

	# -- History --------------------------------------------------------------

	def _change_reader(self, limit: int | None = None, first_parent: bool = False, no_walk: bool = False) -> ChangeReader:
		return ChangeReader(
			self.origin.get_repository(),
			self.path_filter,
			limit=limit,
			first_parent=first_parent,
			no_walk=no_walk,
			include_branch_commit_logs=self.origin.include_branch_commit_logs,
		)

	def changes(self, from_revision: GitRevision | None, to_revision: GitRevision) -> list[Change]:
		"""
		Return the changes reachable from to_revision and not from from_revision.

		Args:
			from_revision: Exclusive lower bound. None includes the whole history
			to_revision: Inclusive upper bound

		Returns:
			Changes touching the path filter, oldest first

		"""
		if from_revision is None:
			ref_range = to_revision.sha1
		else:
			ref_range = f"{from_revision.sha1}..{to_revision.sha1}"
		with self.origin.git_options.cache.lock(self.origin.url):
			git_changes = self._change_reader().run(ref_range)
		return [git_change.change for git_change in git_changes]

	def change(self, revision: GitRevision) -> Change:
		"""
		Return the change of a single revision, bound to the given revision object.

		Raises:
			EmptyChangeError: If the revision cannot be read or touches no filtered file

		"""
		empty_msg = (
			f"'{revision.as_string()}' revision cannot be found in the origin "
			"or it didn't affect the origin paths."
		)
		try:
			with self.origin.git_options.cache.lock(self.origin.url):
				changes = self._change_reader(limit=1, no_walk=True).run(revision.sha1)
		except CannotResolveRevisionError as e:
			raise EmptyChangeError(empty_msg) from e
		if not changes:
			raise EmptyChangeError(empty_msg)
		# Keep the caller's revision: it may carry review context
		return changes[0].change.with_revision(revision)

	def visit_changes(self, start: GitRevision, visitor: ChangesVisitor) -> None:
		"""
		Walk the first-parent history from start until the visitor terminates.

		Args:
			start: Revision the walk starts from
			visitor: Called with each change; returns CONTINUE or TERMINATE

		Raises:
			CannotResolveRevisionError: If start or a parent cannot be read

		"""
		reader = self._change_reader(limit=1, first_parent=True)
		with self.origin.git_options.cache.lock(self.origin.url):
			current = self._first_change(reader, start)
			while current is not None:
				if visitor(current.change) is VisitResult.TERMINATE or not current.parents:
					break
				parent_ref = current.parents[0].sha1
				try:
					changes = reader.run(parent_ref)
				except CannotResolveRevisionError as e:
					msg = (
						f"'{parent_ref}' revision cannot be found in the origin. "
						f"But it is referenced as parent of revision '{current.change.revision.as_string()}'"
					)
					raise CannotResolveRevisionError(msg) from e
				current = changes[0] if changes else None

	@staticmethod
	def _first_change(reader: ChangeReader, start: GitRevision) -> GitChange:
		msg = f"Cannot resolve reference {start.as_string()}"
		try:
			result = reader.run(start.sha1)
		except CannotResolveRevisionError as e:
			raise CannotResolveRevisionError(msg) from e
		if not result:
			raise CannotResolveRevisionError(msg)
		return result[0]

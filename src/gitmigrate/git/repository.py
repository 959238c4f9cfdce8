"""
Primitive git repository operations.

Reads (ref resolution, history walks, diffs) go through pygit2; operations
that mutate the repository or talk to a remote shell out to the git
executable.

"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timedelta, timezone
from itertools import islice
from pathlib import Path
from typing import TYPE_CHECKING

import pygit2
from pygit2.enums import SortMode

from gitmigrate.git.errors import CannotResolveRevisionError, RepoError
from gitmigrate.git.revision import Author, GitLogEntry, GitRevision, Submodule, TreeElement
from gitmigrate.utils.command_utils import BadExitStatusError, CommandError, CommandOutput, run_command

if TYPE_CHECKING:
	from collections.abc import Iterator, Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_SUBMODULE_BRANCH = "HEAD"
MISSING_REMOTE_REF_MARKERS = ("couldn't find remote ref", "not our ref", "no such remote ref")


class GitRepository:
	"""
	A git repository, usually bare, optionally bound to a work tree.

	Instances created by :meth:`with_work_tree` share the object database and
	refs of the repository they were created from.

	"""

	def __init__(
		self,
		git_dir: Path | str,
		work_tree: Path | str | None = None,
		environment: Mapping[str, str] | None = None,
	) -> None:
		"""
		Initialize the repository handle.

		Args:
			git_dir: Path to the git directory
			work_tree: Optional work tree used by checkout and rebase
			environment: Environment for git processes; inherits the current one when None

		"""
		self.git_dir = Path(git_dir).resolve()
		self.work_tree = Path(work_tree).resolve() if work_tree is not None else None
		self._environment = dict(environment) if environment is not None else None
		self._repo: pygit2.Repository | None = None

	@classmethod
	def init_bare(cls, git_dir: Path | str, environment: Mapping[str, str] | None = None) -> GitRepository:
		"""
		Create a bare repository unless one already exists at git_dir.

		Raises:
			RepoError: If the repository cannot be created

		"""
		path = Path(git_dir)
		if not (path / "HEAD").exists():
			try:
				path.mkdir(parents=True, exist_ok=True)
				pygit2.init_repository(str(path), bare=True)
			except (OSError, pygit2.GitError) as e:
				msg = f"Cannot create bare repository at {path}: {e}"
				raise RepoError(msg) from e
			logger.debug("Initialized bare repository at %s", path)
		return cls(path, environment=environment)

	@property
	def repo(self) -> pygit2.Repository:
		"""The underlying pygit2 repository."""
		if self._repo is None:
			try:
				self._repo = pygit2.Repository(str(self.git_dir))
			except pygit2.GitError as e:
				msg = f"Cannot open repository at {self.git_dir}: {e}"
				raise RepoError(msg) from e
		return self._repo

	def with_work_tree(self, work_tree: Path | str) -> GitRepository:
		"""Return a handle over the same repository bound to another work tree."""
		return GitRepository(self.git_dir, work_tree=work_tree, environment=self._environment)

	# -- Low level ------------------------------------------------------------

	def simple_command(self, *args: str) -> CommandOutput:
		"""
		Run a git command against this repository.

		Raises:
			RepoError: If git fails or cannot be executed

		"""
		command = ["git", f"--git-dir={self.git_dir}"]
		if self.work_tree is not None:
			command.append(f"--work-tree={self.work_tree}")
		command.extend(args)
		try:
			return run_command(command, cwd=self.work_tree or self.git_dir, env=self._environment)
		except CommandError as e:
			msg = f"Error executing 'git {' '.join(args)}': {e}"
			raise RepoError(msg) from e

	# -- Checkout -------------------------------------------------------------

	def force_checkout(self, sha1: str) -> None:
		"""
		Replace the whole content of the work tree with the given commit.

		Raises:
			RepoError: If there is no work tree or the checkout fails

		"""
		work_tree = self._require_work_tree("checkout")
		self._clear_work_tree(work_tree)
		self.simple_command("checkout", "-q", "-f", sha1)
		logger.debug("Checked out %s into %s", sha1, work_tree)

	def rebase(self, onto_ref: str) -> None:
		"""Rebase the checked out commit onto a ref."""
		self._require_work_tree("rebase")
		self.simple_command("rebase", onto_ref)

	def _require_work_tree(self, operation: str) -> Path:
		if self.work_tree is None:
			msg = f"Cannot {operation} {self.git_dir}: the repository has no work tree"
			raise RepoError(msg)
		return self.work_tree

	@staticmethod
	def _clear_work_tree(work_tree: Path) -> None:
		try:
			work_tree.mkdir(parents=True, exist_ok=True)
			for child in work_tree.iterdir():
				if child.is_dir() and not child.is_symlink():
					shutil.rmtree(child)
				else:
					child.unlink()
		except OSError as e:
			msg = f"Cannot clean work tree {work_tree}: {e}"
			raise RepoError(msg) from e

	# -- Submodules and trees -------------------------------------------------

	def list_submodules(self, current_remote_url: str) -> list[Submodule]:
		"""
		List the submodules declared in the work tree's ``.gitmodules``.

		Args:
			current_remote_url: Url relative submodule urls resolve against

		Returns:
			Submodules in declaration order

		Raises:
			RepoError: If ``.gitmodules`` cannot be read or an entry is incomplete

		"""
		work_tree = self._require_work_tree("list submodules of")
		gitmodules = work_tree / ".gitmodules"
		if not gitmodules.is_file():
			return []

		output = self.simple_command("config", "-f", str(gitmodules), "--list")
		entries: dict[str, dict[str, str]] = {}
		for line in output.stdout.splitlines():
			key, _, value = line.partition("=")
			if not key.startswith("submodule."):
				continue
			name, _, field = key[len("submodule.") :].rpartition(".")
			if name:
				entries.setdefault(name, {})[field] = value

		submodules = []
		for name, values in entries.items():
			path = values.get("path")
			if not path:
				msg = f"Path is required for submodule {name}"
				raise RepoError(msg)
			url = values.get("url")
			if not url:
				msg = f"Url is required for submodule {name}"
				raise RepoError(msg)
			branch = values.get("branch")
			if not branch or branch == ".":
				branch = DEFAULT_SUBMODULE_BRANCH
			submodules.append(
				Submodule(path=path, url=resolve_relative_url(url, current_remote_url), branch=branch, name=name)
			)
		return submodules

	def ls_tree(self, revision: GitRevision, path: str) -> list[TreeElement]:
		"""Return the tree entries matching path at the given revision."""
		output = self.simple_command("ls-tree", "-z", revision.sha1, "--", path)
		elements = []
		for record in output.stdout.split("\0"):
			if not record:
				continue
			meta, _, element_path = record.partition("\t")
			_mode, element_type, ref = meta.split()
			elements.append(TreeElement(type=element_type, ref=ref, path=element_path))
		return elements

	# -- Refs -----------------------------------------------------------------

	def fetch_single_ref(self, url: str, ref: str) -> GitRevision:
		"""
		Fetch one ref from a remote and return the fetched commit.

		Raises:
			CannotResolveRevisionError: If the remote does not have the ref
			RepoError: If the fetch fails for any other reason

		"""
		logger.info("Fetching %s from %s", ref, url)
		try:
			self.simple_command("fetch", "--force", "--no-tags", url, ref)
		except RepoError as e:
			stderr = e.__cause__.output.stderr if isinstance(e.__cause__, BadExitStatusError) else ""
			if any(marker in stderr for marker in MISSING_REMOTE_REF_MARKERS):
				msg = f"Cannot find reference '{ref}' in {url}"
				raise CannotResolveRevisionError(msg) from e
			raise
		sha1 = self.simple_command("rev-parse", "--verify", "FETCH_HEAD^{commit}").stdout.strip()
		return GitRevision(sha1, reference=ref, url=url)

	def resolve_reference(self, ref: str, context_ref: str | None = None) -> GitRevision:
		"""
		Resolve a local reference or a commit id.

		Args:
			ref: Anything rev-parse understands
			context_ref: Reference string recorded on the result; defaults to ref

		Raises:
			CannotResolveRevisionError: If the reference is unknown

		"""
		commit = self._peel_commit(ref)
		return GitRevision(str(commit.id), reference=context_ref or ref)

	def ls_remote(self, url: str, pattern: str) -> dict[str, str]:
		"""Return the remote refs matching pattern, mapped to their commit ids."""
		output = self.simple_command("ls-remote", url, pattern)
		refs = {}
		for line in output.stdout.splitlines():
			sha1, _, ref = line.partition("\t")
			if ref:
				refs[ref] = sha1
		return refs

	def _peel_commit(self, ref: str) -> pygit2.Commit:
		try:
			return self.repo.revparse_single(ref).peel(pygit2.Commit)
		except (KeyError, ValueError, pygit2.GitError) as e:
			msg = f"Cannot find reference '{ref}'"
			raise CannotResolveRevisionError(msg) from e

	# -- Commits --------------------------------------------------------------

	def commit_tree(self, message: str, tree: str, parents: Sequence[GitRevision]) -> GitRevision:
		"""Create a commit object for an existing tree without touching any ref."""
		args = ["commit-tree", tree]
		for parent in parents:
			args.extend(["-p", parent.sha1])
		args.extend(["-m", message])
		sha1 = self.simple_command(*args).stdout.strip()
		return GitRevision(sha1)

	def log(
		self,
		ref_expr: str,
		limit: int | None = None,
		first_parent: bool = False,
		no_walk: bool = False,
	) -> list[GitLogEntry]:
		"""
		Read history, newest first.

		Args:
			ref_expr: A single reference or a ``from..to`` range
			limit: Maximum number of entries
			first_parent: Follow only the first parent of merges
			no_walk: Only read the commit ref_expr points to

		"""
		entries = self.iter_log(ref_expr, first_parent=first_parent, no_walk=no_walk)
		return list(islice(entries, limit) if limit else entries)

	def iter_log(self, ref_expr: str, first_parent: bool = False, no_walk: bool = False) -> Iterator[GitLogEntry]:
		"""
		Lazily read history, newest first.

		Raises:
			CannotResolveRevisionError: If a range end cannot be resolved

		"""
		from_ref, separator, to_ref = ref_expr.rpartition("..")
		if not separator:
			to_ref = ref_expr
		head = self._peel_commit(to_ref)
		if no_walk:
			yield self._to_log_entry(head)
			return

		walker = self.repo.walk(head.id, SortMode.TOPOLOGICAL | SortMode.TIME)
		if first_parent:
			walker.simplify_first_parent()
		if from_ref:
			walker.hide(self._peel_commit(from_ref).id)
		for commit in walker:
			yield self._to_log_entry(commit)

	def _to_log_entry(self, commit: pygit2.Commit) -> GitLogEntry:
		return GitLogEntry(
			commit=GitRevision(str(commit.id)),
			tree=str(commit.tree_id),
			parents=tuple(GitRevision(str(parent_id)) for parent_id in commit.parent_ids),
			author=Author(commit.author.name, commit.author.email),
			committer=Author(commit.committer.name, commit.committer.email),
			author_date=_signature_time(commit.author),
			commit_date=_signature_time(commit.committer),
			body=commit.message,
			files=self._changed_files(commit),
		)

	def _changed_files(self, commit: pygit2.Commit) -> frozenset[str]:
		if commit.parent_ids:
			diff = self.repo.diff(commit.parents[0], commit)
		else:
			diff = commit.tree.diff_to_tree(swap=True)
		files: set[str] = set()
		for delta in diff.deltas:
			files.add(delta.new_file.path)
			files.add(delta.old_file.path)
		return frozenset(files)

	def __repr__(self) -> str:
		"""Return a debug representation."""
		return f"GitRepository(git_dir={self.git_dir}, work_tree={self.work_tree})"


def resolve_relative_url(url: str, base_url: str) -> str:
	"""
	Resolve a ``./`` or ``../`` submodule url against the superproject url.

	Raises:
		RepoError: If the url climbs above the base url

	"""
	if not url.startswith(("./", "../")):
		return url
	base = base_url.rstrip("/")
	separator = "/"
	remaining = url
	while True:
		if remaining.startswith("./"):
			remaining = remaining[2:]
		elif remaining.startswith("../"):
			if "/" in base:
				base = base.rsplit("/", 1)[0]
			# scp-like 'user@host:path': the ':' separates host and path
			elif ":" in base and "://" not in base_url:
				base = base.rsplit(":", 1)[0]
				separator = ":"
			else:
				msg = f"Cannot resolve submodule url '{url}' relative to '{base_url}'"
				raise RepoError(msg)
			remaining = remaining[3:]
		else:
			break
	return f"{base}{separator}{remaining}" if remaining else base


def _signature_time(signature: pygit2.Signature) -> datetime:
	return datetime.fromtimestamp(signature.time, tz=timezone(timedelta(minutes=signature.offset)))

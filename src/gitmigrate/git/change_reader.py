"""Turns filtered git history into changes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gitmigrate.git.labels import parse_labels
from gitmigrate.git.path_filter import PathFilter
from gitmigrate.git.revision import Change, GitChange

if TYPE_CHECKING:
	from gitmigrate.git.repository import GitRepository
	from gitmigrate.git.revision import GitLogEntry

logger = logging.getLogger(__name__)

SHORT_SHA_LENGTH = 7


class ChangeReader:
	"""
	Reads the changes of a revision expression that touch a path filter.

	The limit counts kept changes: commits filtered out by the path filter do
	not use it up.

	"""

	def __init__(
		self,
		repository: GitRepository,
		path_filter: PathFilter | None = None,
		limit: int | None = None,
		first_parent: bool = False,
		no_walk: bool = False,
		include_branch_commit_logs: bool = False,
	) -> None:
		"""
		Initialize the reader.

		Args:
			repository: Repository to read the history from
			path_filter: Files a commit must touch; every file when None
			limit: Maximum number of changes returned
			first_parent: Follow only the first parent of merges
			no_walk: Only consider the commit the expression points to
			include_branch_commit_logs: Append the summaries of merged-in commits
				to merge messages

		"""
		self.repository = repository
		self.path_filter = path_filter or PathFilter.all_files()
		self.limit = limit
		self.first_parent = first_parent
		self.no_walk = no_walk
		self.include_branch_commit_logs = include_branch_commit_logs

	def run(self, ref_expr: str) -> list[GitChange]:
		"""
		Read the changes of ``ref`` or ``from..to``.

		Returns:
			Matching changes, oldest first

		Raises:
			CannotResolveRevisionError: If the expression cannot be resolved

		"""
		changes: list[GitChange] = []
		for entry in self.repository.iter_log(ref_expr, first_parent=self.first_parent, no_walk=self.no_walk):
			if not self._affects_filter(entry):
				logger.debug("Skipping %s: no file matches %s", entry.commit.sha1, self.path_filter)
				continue
			changes.append(self._to_change(entry))
			if self.limit is not None and len(changes) >= self.limit:
				break
		changes.reverse()
		return changes

	def _affects_filter(self, entry: GitLogEntry) -> bool:
		if self.path_filter.is_all_files:
			return True
		return any(self.path_filter.matches(path) for path in entry.files or ())

	def _to_change(self, entry: GitLogEntry) -> GitChange:
		message = entry.body
		if self.include_branch_commit_logs and len(entry.parents) > 1:
			message = self._with_branch_commit_logs(entry)
		change = Change(
			revision=entry.commit,
			author=entry.author,
			message=message,
			date_time=entry.author_date,
			labels=parse_labels(message),
			changed_files=entry.files,
		)
		return GitChange(change=change, parents=entry.parents)

	def _with_branch_commit_logs(self, entry: GitLogEntry) -> str:
		merged = [
			branch_entry
			for branch_entry in self.repository.iter_log(f"{entry.parents[0].sha1}..{entry.commit.sha1}")
			if branch_entry.commit != entry.commit
		]
		if not merged:
			return entry.body
		lines = [entry.body.rstrip("\n"), "", "BEGIN BRANCH COMMIT LOG"]
		for branch_entry in merged:
			summary = branch_entry.body.strip().splitlines()[0] if branch_entry.body.strip() else ""
			lines.append(f"- {branch_entry.commit.sha1[:SHORT_SHA_LENGTH]} {summary}")
		lines.append("END BRANCH COMMIT LOG")
		return "\n".join(lines) + "\n"

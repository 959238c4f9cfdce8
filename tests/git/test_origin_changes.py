"""Tests for change enumeration and the first-parent walk."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from gitmigrate.git.change_reader import ChangeReader
from gitmigrate.git.errors import CannotResolveRevisionError, EmptyChangeError
from gitmigrate.git.origin import GitOrigin
from gitmigrate.git.path_filter import PathFilter
from gitmigrate.git.revision import Author, Change, GitChange, GitRevision, VisitResult

if TYPE_CHECKING:
	from collections.abc import Callable

	from gitmigrate.git.repo_cache import GitOptions
	from tests.helpers import RepoBuilder


class History:
	"""Commit ids of the linear test history."""

	def __init__(self, remote: RepoBuilder) -> None:
		self.remote = remote
		self.first = remote.commit("first txt", {"a.txt": "1"})
		self.docs = remote.commit("docs only", {"docs/guide.md": "guide"})
		self.third = remote.commit("third txt\n\nBug: 42", {"a.txt": "3"})


@pytest.fixture
def history(repo_factory: Callable[[str], RepoBuilder]) -> History:
	"""A three commit history where the middle commit only touches docs."""
	return History(repo_factory("remote"))


@pytest.fixture
def origin(git_options: GitOptions, history: History) -> GitOrigin:
	"""Origin over the history, with the history already fetched."""
	git_origin = GitOrigin(history.remote.url, git_options, ref="main")
	git_origin.resolve("main")
	return git_origin


def _recording_visitor(visited: list[Change], stop_after: int | None = None) -> Callable[[Change], VisitResult]:
	def visitor(change: Change) -> VisitResult:
		visited.append(change)
		if stop_after is not None and len(visited) >= stop_after:
			return VisitResult.TERMINATE
		return VisitResult.CONTINUE

	return visitor


@pytest.mark.git
class TestChanges:
	"""Test cases for range enumeration."""

	def test_changes_oldest_first(self, origin: GitOrigin, history: History) -> None:
		"""Every change reachable from the end is returned, oldest first."""
		changes = origin.new_reader().changes(None, GitRevision(history.third))
		assert [change.revision.sha1 for change in changes] == [history.first, history.docs, history.third]

	def test_from_excludes_reachable_changes(self, origin: GitOrigin, history: History) -> None:
		"""The range only differs by its lower boundary."""
		reader = origin.new_reader()
		everything = reader.changes(None, GitRevision(history.third))
		bounded = reader.changes(GitRevision(history.first), GitRevision(history.third))
		assert [change.revision.sha1 for change in bounded] == [history.docs, history.third]
		assert [change.revision for change in everything[1:]] == [change.revision for change in bounded]

	def test_path_filter(self, origin: GitOrigin, history: History) -> None:
		"""Changes outside the filter are dropped."""
		changes = origin.new_reader(PathFilter(["*.txt"])).changes(None, GitRevision(history.third))
		assert [change.revision.sha1 for change in changes] == [history.first, history.third]
		assert changes[-1].labels == {"Bug": ("42",)}
		assert changes[-1].changed_files == frozenset({"a.txt"})
		assert changes[-1].author == Author("Test Author", "author@example.com")


@pytest.mark.git
class TestChange:
	"""Test cases for single change lookup."""

	def test_change_keeps_the_given_revision(self, origin: GitOrigin, history: History) -> None:
		"""The caller's revision object, with its metadata, is kept."""
		revision = GitRevision(history.third, reference="refs/pull/3/head", review_reference="refs/pull/3/head")
		change = origin.new_reader().change(revision)
		assert change.revision is revision
		assert change.first_line_message == "third txt"

	def test_change_outside_filter_is_empty(self, origin: GitOrigin, history: History) -> None:
		"""A revision touching only filtered-out files is an empty change."""
		reader = origin.new_reader(PathFilter(["*.txt"]))
		with pytest.raises(EmptyChangeError, match="didn't affect the origin paths"):
			reader.change(GitRevision(history.docs, reference="docs"))

	def test_unknown_revision_is_empty(self, origin: GitOrigin) -> None:
		"""A revision missing from the repository is an empty change."""
		with pytest.raises(EmptyChangeError, match="cannot be found in the origin"):
			origin.new_reader().change(GitRevision("0" * 40))


@pytest.mark.git
class TestVisitChanges:
	"""Test cases for the first-parent walk."""

	def test_terminate_on_first_node(self, origin: GitOrigin, history: History) -> None:
		"""A visitor that stops immediately sees one change."""
		visited: list[Change] = []
		origin.new_reader().visit_changes(GitRevision(history.third), _recording_visitor(visited, stop_after=1))
		assert [change.revision.sha1 for change in visited] == [history.third]

	def test_walk_to_the_root(self, origin: GitOrigin, history: History) -> None:
		"""The walk ends naturally at a commit without parents."""
		visited: list[Change] = []
		origin.new_reader().visit_changes(GitRevision(history.third), _recording_visitor(visited))
		assert [change.revision.sha1 for change in visited] == [history.third, history.docs, history.first]

	def test_root_visits_one_node(self, origin: GitOrigin, history: History) -> None:
		"""A revision with no parent is visited once."""
		visited: list[Change] = []
		origin.new_reader().visit_changes(GitRevision(history.first), _recording_visitor(visited))
		assert [change.revision.sha1 for change in visited] == [history.first]

	def test_walk_skips_filtered_changes(self, origin: GitOrigin, history: History) -> None:
		"""Parents outside the filter are skipped over."""
		visited: list[Change] = []
		reader = origin.new_reader(PathFilter(["*.txt"]))
		reader.visit_changes(GitRevision(history.third), _recording_visitor(visited))
		assert [change.revision.sha1 for change in visited] == [history.third, history.first]

	def test_unresolvable_start(self, origin: GitOrigin) -> None:
		"""A start that cannot be read is a not-found error."""
		with pytest.raises(CannotResolveRevisionError, match="Cannot resolve reference nowhere"):
			origin.new_reader().visit_changes(GitRevision("0" * 40, reference="nowhere"), _recording_visitor([]))

	def test_missing_parent(self, origin: GitOrigin, history: History) -> None:
		"""A parent that cannot be read names both the parent and the child."""
		missing = "d" * 40
		child = GitChange(
			Change(
				revision=GitRevision(history.third),
				author=Author("A", "a@example.com"),
				message="child",
				date_time=datetime(2024, 1, 1, tzinfo=UTC),
			),
			parents=(GitRevision(missing),),
		)
		with (
			patch.object(ChangeReader, "run", side_effect=[[child], CannotResolveRevisionError(missing)]),
			pytest.raises(CannotResolveRevisionError) as excinfo,
		):
			origin.new_reader().visit_changes(GitRevision(history.third), _recording_visitor([]))
		assert f"'{missing}' revision cannot be found in the origin" in str(excinfo.value)
		assert f"parent of revision '{history.third}'" in str(excinfo.value)


@pytest.mark.git
def test_first_parent_walk_and_branch_commit_logs(
	git_options: GitOptions, repo_factory: Callable[[str], RepoBuilder]
) -> None:
	"""Merged-in commits are not walked but can be summarized in the merge message."""
	remote = repo_factory("remote")
	base = remote.commit("base", {"a.txt": "a"})
	remote.git("checkout", "-q", "-b", "side")
	side = remote.commit("side work", {"side.txt": "side"})
	remote.git("checkout", "-q", "main")
	mainline = remote.commit("mainline", {"b.txt": "b"})
	remote.git("merge", "-q", "--no-ff", "-m", "Merge side", "side")
	merge = remote.head()

	origin = GitOrigin(remote.url, git_options, ref="main", include_branch_commit_logs=True)
	origin.resolve("main")
	visited: list[Change] = []
	origin.new_reader().visit_changes(GitRevision(merge), _recording_visitor(visited))

	assert [change.revision.sha1 for change in visited] == [merge, mainline, base]
	assert side not in {change.revision.sha1 for change in visited}
	assert f"{side[:7]} side work" in visited[0].message
	assert visited[0].first_line_message == "Merge side"

"""Reference resolution policies per kind of hosting."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from enum import Enum
from typing import TYPE_CHECKING

from gitmigrate.git.errors import CannotResolveRevisionError
from gitmigrate.git.revision import is_sha1

if TYPE_CHECKING:
	from collections.abc import Callable

	from gitmigrate.git.repository import GitRepository
	from gitmigrate.git.revision import GitRevision

logger = logging.getLogger(__name__)

GITHUB_PULL_URL = re.compile(r"^(?P<url>https://github\.com/[^/]+/[^/]+)/pull/(?P<number>[0-9]+)/?$")
GERRIT_CHANGE = re.compile(r"^(?P<change>[0-9]+)(?:/(?P<patchset>[0-9]+))?$")


class GitRepoType(str, Enum):
	"""How a reference string is turned into a revision."""

	GIT = "GIT"
	GITHUB = "GITHUB"
	GERRIT = "GERRIT"

	def resolve_ref(self, repository: GitRepository, repo_url: str | None, ref: str) -> GitRevision:
		"""
		Resolve ref to a revision, fetching it into repository when needed.

		Args:
			repository: Repository that receives fetched objects
			repo_url: Remote to fetch from. None resolves locally only
			ref: Reference string as given by the user or the configuration

		Returns:
			The resolved revision

		Raises:
			CannotResolveRevisionError: If the reference does not exist
			RepoError: If fetching fails

		"""
		logger.debug("Resolving '%s' against %s as %s", ref, repo_url or "the local repository", self.value)
		return _RESOLVERS[self](repository, repo_url, ref.strip())


def _resolve_git(repository: GitRepository, repo_url: str | None, ref: str) -> GitRevision:
	# "<url> <ref>" fetches from an explicit url
	parts = ref.split()
	if len(parts) == 2:  # noqa: PLR2004
		url, remote_ref = parts
		return repository.fetch_single_ref(url, remote_ref)
	if GITHUB_PULL_URL.match(ref):
		return _resolve_github(repository, repo_url, ref)
	if repo_url is None:
		return repository.resolve_reference(ref)
	if is_sha1(ref):
		try:
			return repository.resolve_reference(ref)
		except CannotResolveRevisionError:
			logger.debug("%s is not available locally, fetching it from %s", ref, repo_url)
	return repository.fetch_single_ref(repo_url, ref)


def _resolve_github(repository: GitRepository, repo_url: str | None, ref: str) -> GitRevision:
	match = GITHUB_PULL_URL.match(ref)
	if match:
		url, number = match.group("url"), match.group("number")
	elif ref.isdigit() and repo_url is not None and "github.com" in repo_url:
		url, number = repo_url, ref
	else:
		return _resolve_git(repository, repo_url, ref)

	pull_ref = f"refs/pull/{number}/head"
	revision = repository.fetch_single_ref(url, pull_ref)
	return replace(revision, reference=ref, review_reference=pull_ref)


def _resolve_gerrit(repository: GitRepository, repo_url: str | None, ref: str) -> GitRevision:
	match = GERRIT_CHANGE.match(ref)
	if match is None or repo_url is None:
		return _resolve_git(repository, repo_url, ref)

	change = int(match.group("change"))
	prefix = f"refs/changes/{change % 100:02d}/{change}"
	patchset = match.group("patchset") or _latest_patchset(repository, repo_url, prefix)
	change_ref = f"{prefix}/{patchset}"
	revision = repository.fetch_single_ref(repo_url, change_ref)
	return replace(revision, reference=ref, review_reference=change_ref)


def _latest_patchset(repository: GitRepository, repo_url: str, prefix: str) -> str:
	patchsets = [
		int(name.rsplit("/", 1)[-1])
		for name in repository.ls_remote(repo_url, f"{prefix}/*")
		if name.rsplit("/", 1)[-1].isdigit()
	]
	if not patchsets:
		msg = f"Cannot find any patchset for {prefix} in {repo_url}"
		raise CannotResolveRevisionError(msg)
	return str(max(patchsets))


_RESOLVERS: dict[GitRepoType, Callable[[GitRepository, str | None, str], GitRevision]] = {
	GitRepoType.GIT: _resolve_git,
	GitRepoType.GITHUB: _resolve_github,
	GitRepoType.GERRIT: _resolve_gerrit,
}

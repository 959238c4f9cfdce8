"""URL keyed cache of bare repositories."""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from xdg.BaseDirectory import xdg_cache_home

from gitmigrate.git.repository import GitRepository

if TYPE_CHECKING:
	from collections.abc import Mapping

logger = logging.getLogger(__name__)

UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def normalize_url(url: str) -> str:
	"""Return the cache key for a repository url."""
	return url.strip().rstrip("/")


def default_cache_dir() -> Path:
	"""Return the default repository cache location."""
	return Path(xdg_cache_home) / "gitmigrate" / "repos"


class RepositoryCache:
	"""
	Get-or-create cache of bare repositories, one per normalized url.

	The same url always yields the same :class:`GitRepository` instance. Callers
	serialize work against a url with :meth:`lock`.

	"""

	def __init__(self, cache_dir: Path | str | None = None, environment: Mapping[str, str] | None = None) -> None:
		"""
		Initialize the cache.

		Args:
			cache_dir: Directory holding the repositories; XDG cache dir when None
			environment: Environment for the git processes of every repository

		"""
		self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
		self._environment = environment
		self._repositories: dict[str, GitRepository] = {}
		self._locks: dict[str, threading.RLock] = {}
		self._guard = threading.Lock()

	def get(self, url: str) -> GitRepository:
		"""
		Return the repository for url, creating it on first use.

		Raises:
			RepoError: If the bare repository cannot be created

		"""
		key = normalize_url(url)
		with self._guard:
			repository = self._repositories.get(key)
			if repository is None:
				git_dir = self.cache_dir / self._dir_name(key)
				logger.debug("Using %s as cache for %s", git_dir, key)
				repository = GitRepository.init_bare(git_dir, environment=self._environment)
				self._repositories[key] = repository
			return repository

	def lock(self, url: str) -> threading.RLock:
		"""Return the re-entrant lock guarding the repository of url."""
		key = normalize_url(url)
		with self._guard:
			return self._locks.setdefault(key, threading.RLock())

	def __contains__(self, url: object) -> bool:
		"""Whether a repository for url was already created."""
		return isinstance(url, str) and normalize_url(url) in self._repositories

	@staticmethod
	def _dir_name(key: str) -> str:
		# Readable tail plus a digest so distinct urls never share a directory
		tail = UNSAFE_CHARS.sub("_", key.rsplit("/", 1)[-1])[:40] or "repo"
		digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:16]  # noqa: S324
		return f"{tail}-{digest}"


class GitOptions:
	"""Long lived git context shared by every origin and reader of a run."""

	def __init__(
		self,
		cache_dir: Path | str | None = None,
		environment: Mapping[str, str] | None = None,
		cache: RepositoryCache | None = None,
	) -> None:
		"""
		Initialize the context.

		Args:
			cache_dir: Repository cache location, used when no cache is given
			environment: Environment for git processes
			cache: An existing cache to share

		"""
		self.environment = dict(environment) if environment is not None else None
		self.cache = cache or RepositoryCache(cache_dir, environment=self.environment)

	def cached_repository(self, url: str) -> GitRepository:
		"""Return the cached bare repository for url."""
		return self.cache.get(url)

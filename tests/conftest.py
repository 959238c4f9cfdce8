"""Global test fixtures and configuration."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import pytest

from gitmigrate.config.config_loader import ConfigLoader
from gitmigrate.git.repo_cache import GitOptions
from tests.helpers import RepoBuilder

if TYPE_CHECKING:
	from collections.abc import Callable, Generator
	from pathlib import Path

GIT_IDENTITY = {
	"GIT_AUTHOR_NAME": "Test Author",
	"GIT_AUTHOR_EMAIL": "author@example.com",
	"GIT_COMMITTER_NAME": "Test Committer",
	"GIT_COMMITTER_EMAIL": "committer@example.com",
	"GIT_CONFIG_NOSYSTEM": "1",
	"GIT_CONFIG_GLOBAL": os.devnull,
	"GIT_TERMINAL_PROMPT": "0",
}


@pytest.fixture(autouse=True)
def git_identity(monkeypatch: pytest.MonkeyPatch) -> None:
	"""Give every git process a fixed identity and no user configuration."""
	for key, value in GIT_IDENTITY.items():
		monkeypatch.setenv(key, value)


@pytest.fixture(autouse=True)
def reset_config_loader() -> Generator[None, None, None]:
	"""Drop the shared ConfigLoader between tests."""
	ConfigLoader._instance = None
	yield
	ConfigLoader._instance = None


@pytest.fixture(autouse=True)
def restore_root_logger() -> Generator[None, None, None]:
	"""Undo handlers and levels installed by setup_logging."""
	root = logging.getLogger()
	handlers = root.handlers[:]
	level = root.level
	yield
	for handler in root.handlers[:]:
		if handler not in handlers:
			root.removeHandler(handler)
			handler.close()
	for handler in handlers:
		if handler not in root.handlers:
			root.addHandler(handler)
	root.setLevel(level)


@pytest.fixture
def repo_factory(tmp_path: Path) -> Callable[[str], RepoBuilder]:
	"""Return a callable creating named repositories under tmp_path."""

	def _create(name: str) -> RepoBuilder:
		return RepoBuilder(tmp_path / "remotes" / name)

	return _create


@pytest.fixture
def git_options(tmp_path: Path) -> GitOptions:
	"""Git context with a repository cache under tmp_path."""
	return GitOptions(cache_dir=tmp_path / "cache")

"""Tests for the gitmigrate command line."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from gitmigrate import __version__
from gitmigrate.cli import app
from gitmigrate.git.integrate import DEFAULT_INTEGRATE_LABEL

if TYPE_CHECKING:
	from collections.abc import Callable
	from pathlib import Path

	from tests.helpers import RepoBuilder

runner = CliRunner()


class Project:
	"""A remote repository plus a configuration file pointing at it."""

	def __init__(self, tmp_path: Path, remote: RepoBuilder) -> None:
		self.remote = remote
		self.first = remote.commit("first change", {"src/a.txt": "a"})
		self.docs = remote.commit("docs change", {"docs/readme.md": "docs"})
		self.second = remote.commit("second change", {"src/a.txt": "b"})
		self.config = tmp_path / "gitmigrate.yml"
		self.config.write_text(
			"origin:\n"
			f"  url: {remote.url}\n"
			"  ref: main\n"
			"  origin_files:\n"
			"    include: ['src/**']\n"
			"general:\n"
			f"  cache_dir: {tmp_path / 'cache'}\n",
			encoding="utf-8",
		)

	def invoke(self, *args: str) -> tuple[int, list[str]]:
		result = runner.invoke(app, ["--config", str(self.config), *args])
		return result.exit_code, result.stdout.splitlines()


@pytest.fixture
def project(tmp_path: Path, repo_factory: Callable[[str], RepoBuilder]) -> Project:
	"""Configured project over a three commit remote."""
	return Project(tmp_path, repo_factory("remote"))


@pytest.mark.unit
def test_version() -> None:
	"""--version prints the version and exits."""
	result = runner.invoke(app, ["--version"])
	assert result.exit_code == 0
	assert f"GitMigrate version: {__version__}" in result.stdout


@pytest.mark.git
class TestOriginCommands:
	"""Test cases for resolve, checkout, log and describe."""

	def test_resolve_default_reference(self, project: Project) -> None:
		"""Without a reference the configured one is resolved."""
		exit_code, lines = project.invoke("resolve")
		assert exit_code == 0
		assert project.second in lines

	def test_resolve_sha1(self, project: Project) -> None:
		"""Commit ids resolve to themselves."""
		project.invoke("resolve")
		exit_code, lines = project.invoke("resolve", project.first)
		assert exit_code == 0
		assert project.first in lines

	def test_resolve_unknown_reference(self, project: Project) -> None:
		"""An unknown reference exits with an error."""
		exit_code, _ = project.invoke("resolve", "no-such-branch")
		assert exit_code == 1

	def test_checkout(self, tmp_path: Path, project: Project) -> None:
		"""The work tree receives the files of the revision."""
		workdir = tmp_path / "work"
		exit_code, lines = project.invoke("checkout", str(workdir), project.first)
		assert exit_code == 0
		assert f"Checked out {project.first} into {workdir}" in lines
		assert (workdir / "src" / "a.txt").read_text() == "a"
		assert not (workdir / "docs").exists()

	def test_log(self, project: Project) -> None:
		"""Only changes touching the origin files are listed, oldest first."""
		exit_code, lines = project.invoke("log")
		assert exit_code == 0
		listed = [line.split()[0] for line in lines if line.split() and len(line.split()[0]) == 40]
		assert listed == [project.first, project.second]

	def test_log_first_parent_walk(self, project: Project) -> None:
		"""The walk starts at the newest change and honors --max."""
		exit_code, lines = project.invoke("log", "--first-parent-walk", "-n", "1")
		assert exit_code == 0
		listed = [line.split()[0] for line in lines if line.split() and len(line.split()[0]) == 40]
		assert listed == [project.second]
		assert any(line.endswith("second change") for line in lines)

	def test_describe(self, project: Project) -> None:
		"""The configured origin is printed key by key."""
		exit_code, lines = project.invoke("describe")
		assert exit_code == 0
		assert f"url: {project.remote.url}" in lines
		assert "ref: main" in lines
		assert "root: src" in lines

	def test_missing_origin_url(self, tmp_path: Path) -> None:
		"""A configuration without an origin url is reported."""
		config = tmp_path / "empty.yml"
		config.write_text("general:\n  verbose: false\n", encoding="utf-8")
		result = runner.invoke(app, ["--config", str(config), "describe"])
		assert result.exit_code == 1

	def test_missing_config_file(self, tmp_path: Path) -> None:
		"""An explicit configuration file must exist."""
		result = runner.invoke(app, ["--config", str(tmp_path / "missing.yml"), "describe"])
		assert result.exit_code == 1


@pytest.mark.git
class TestIntegrateCommand:
	"""Test cases for the integrate command."""

	@pytest.fixture
	def destination(self, repo_factory: Callable[[str], RepoBuilder]) -> tuple[RepoBuilder, str]:
		"""Destination repository with a branch to integrate."""
		builder = repo_factory("destination")
		builder.commit("initial", {"a.txt": "a"})
		builder.git("checkout", "-q", "-b", "external")
		external = builder.commit("external", {"ext.txt": "ext"})
		builder.git("checkout", "-q", "main")
		builder.commit("migrated", {"b.txt": "b"})
		return builder, external

	@pytest.fixture
	def config(self, tmp_path: Path) -> Path:
		"""Configuration with default integrate settings."""
		config = tmp_path / "integrate.yml"
		config.write_text("integrate:\n  strategy: FAKE_MERGE\n", encoding="utf-8")
		return config

	def test_integrate(self, config: Path, destination: tuple[RepoBuilder, str]) -> None:
		"""The labelled revision is merged into HEAD."""
		builder, external = destination
		message = f"Migrated\n\n{DEFAULT_INTEGRATE_LABEL}={external}\n"
		result = runner.invoke(
			app, ["--config", str(config), "integrate", str(builder.path), "-m", message, "-l", "Origin: cli"]
		)
		assert result.exit_code == 0
		assert f"HEAD is now {builder.head()}" in result.stdout.splitlines()
		assert builder.parents()[-1] == external
		assert "Origin: cli" in builder.git("log", "-1", "--format=%B")

	def test_message_file(self, tmp_path: Path, config: Path, destination: tuple[RepoBuilder, str]) -> None:
		"""The description can be read from a file."""
		builder, external = destination
		message_file = tmp_path / "message.txt"
		message_file.write_text(f"Migrated\n\n{DEFAULT_INTEGRATE_LABEL}={external}\n", encoding="utf-8")
		result = runner.invoke(app, ["--config", str(config), "integrate", str(builder.path), "-F", str(message_file)])
		assert result.exit_code == 0
		assert builder.parents()[-1] == external

	def test_needs_one_message_source(self, config: Path, destination: tuple[RepoBuilder, str]) -> None:
		"""Exactly one of --message and --message-file is accepted."""
		builder, _ = destination
		result = runner.invoke(app, ["--config", str(config), "integrate", str(builder.path)])
		assert result.exit_code == 1

	def test_unknown_strategy(self, config: Path, destination: tuple[RepoBuilder, str]) -> None:
		"""Strategies outside the enumeration are rejected."""
		builder, _ = destination
		result = runner.invoke(
			app,
			["--config", str(config), "integrate", str(builder.path), "-m", "x", "--strategy", "octopus"],
		)
		assert result.exit_code == 1

	def test_unsupported_strategy(self, config: Path, destination: tuple[RepoBuilder, str]) -> None:
		"""A stubbed strategy fails unless errors are ignored."""
		builder, external = destination
		head = builder.head()
		message = f"{DEFAULT_INTEGRATE_LABEL}={external}"
		args = ["--config", str(config), "integrate", str(builder.path), "-m", message, "--strategy", "include_files"]

		assert runner.invoke(app, args).exit_code == 1
		result = runner.invoke(app, [*args, "--ignore-errors"])
		assert result.exit_code == 0
		assert builder.head() == head

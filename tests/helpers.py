"""Helpers building throwaway git repositories for the tests."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from collections.abc import Iterable
	from pathlib import Path


class RepoBuilder:
	"""Builds a non-bare repository commit by commit."""

	def __init__(self, path: Path) -> None:
		self.path = path
		self.path.mkdir(parents=True, exist_ok=True)
		self.git("init", "-q", "-b", "main")

	@property
	def url(self) -> str:
		return str(self.path)

	def git(self, *args: str) -> str:
		result = subprocess.run(  # noqa: S603
			["git", *args],  # noqa: S607
			cwd=self.path,
			check=True,
			capture_output=True,
			text=True,
		)
		return result.stdout.strip()

	def commit(self, message: str, files: dict[str, str] | None = None, delete: Iterable[str] = ()) -> str:
		"""Write files, stage them and commit. Returns the new commit id."""
		for name, content in (files or {}).items():
			target = self.path / name
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_text(content, encoding="utf-8")
			self.git("add", "--", name)
		for name in delete:
			self.git("rm", "-q", "--", name)
		self.git("commit", "-q", "--allow-empty", "-m", message)
		return self.head()

	def add_submodule(self, path: str, url: str, sha1: str, name: str | None = None, branch: str | None = None) -> None:
		"""Stage a gitlink plus its ``.gitmodules`` entry without cloning anything."""
		name = name or path
		entry = f'[submodule "{name}"]\n\tpath = {path}\n\turl = {url}\n'
		if branch:
			entry += f"\tbranch = {branch}\n"
		gitmodules = self.path / ".gitmodules"
		existing = gitmodules.read_text(encoding="utf-8") if gitmodules.exists() else ""
		gitmodules.write_text(existing + entry, encoding="utf-8")
		self.git("update-index", "--add", "--cacheinfo", f"160000,{sha1},{path}")
		self.git("add", ".gitmodules")

	def head(self) -> str:
		return self.git("rev-parse", "HEAD")

	def parents(self, ref: str = "HEAD") -> list[str]:
		return self.git("rev-list", "--parents", "-n", "1", ref).split()[1:]

	def tree(self, ref: str = "HEAD") -> str:
		return self.git("rev-parse", f"{ref}^{{tree}}")


def file_names(directory: Path) -> set[str]:
	"""Relative paths of the files below directory, ignoring any .git entry."""
	return {
		path.relative_to(directory).as_posix()
		for path in directory.rglob("*")
		if path.is_file() and ".git" not in path.relative_to(directory).parts
	}

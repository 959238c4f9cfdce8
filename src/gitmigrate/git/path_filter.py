"""Glob path filter deciding which files of a change belong to the origin."""

from __future__ import annotations

from collections.abc import Iterable

import pathspec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

ALL_FILES = "**"
GLOB_CHARS = frozenset("*?[")


class PathFilter:
	"""Include/exclude git-wildmatch patterns over repository relative paths."""

	def __init__(self, include: Iterable[str], exclude: Iterable[str] = ()) -> None:
		"""
		Initialize the filter.

		Args:
			include: Patterns a path must match
			exclude: Patterns a path must not match

		"""
		self.include = tuple(include)
		self.exclude = tuple(exclude)
		if not self.include:
			msg = "A path filter needs at least one include pattern"
			raise ValueError(msg)
		self._include_spec = pathspec.PathSpec.from_lines(GitWildMatchPattern, self.include)
		self._exclude_spec = pathspec.PathSpec.from_lines(GitWildMatchPattern, self.exclude)

	@classmethod
	def all_files(cls) -> PathFilter:
		"""Return the filter that matches every path."""
		return cls([ALL_FILES])

	@property
	def is_all_files(self) -> bool:
		"""Whether the filter lets every path through."""
		return not self.exclude and ALL_FILES in self.include

	def matches(self, path: str) -> bool:
		"""Whether a repository relative path is selected by the filter."""
		return self._include_spec.match_file(path) and not self._exclude_spec.match_file(path)

	def roots(self) -> tuple[str, ...]:
		"""
		Return the literal directory prefixes of the include patterns.

		An empty tuple means the whole repository.

		"""
		roots: set[str] = set()
		for pattern in self.include:
			root = _literal_root(pattern)
			if not root:
				return ()
			roots.add(root)
		# Drop roots nested in another root
		return tuple(
			sorted(root for root in roots if not any(root != other and root.startswith(f"{other}/") for other in roots))
		)

	def describe(self) -> dict[str, list[str]]:
		"""Return a description of the filter for diagnostics."""
		description = {"include": list(self.include)}
		if self.exclude:
			description["exclude"] = list(self.exclude)
		return description

	def __eq__(self, other: object) -> bool:
		"""Compare the pattern lists."""
		if not isinstance(other, PathFilter):
			return NotImplemented
		return (self.include, self.exclude) == (other.include, other.exclude)

	def __hash__(self) -> int:
		"""Hash the pattern lists."""
		return hash((self.include, self.exclude))

	def __repr__(self) -> str:
		"""Return a debug representation."""
		return f"PathFilter(include={list(self.include)}, exclude={list(self.exclude)})"


def _literal_root(pattern: str) -> str:
	# Patterns without a directory part match at any depth
	parts = pattern.strip("/").split("/")
	if len(parts) == 1:
		return ""
	literal: list[str] = []
	for part in parts[:-1]:
		if GLOB_CHARS & set(part):
			break
		literal.append(part)
	return "/".join(literal)

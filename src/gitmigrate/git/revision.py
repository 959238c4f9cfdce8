"""Data model shared by the origin reader and the integration engine."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from datetime import datetime

SHA1_PATTERN = re.compile(r"^[0-9a-f]{40}$")
AUTHOR_PATTERN = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^>]*)>$")


def is_sha1(reference: str) -> bool:
	"""Whether a reference is a full, lowercase hexadecimal commit id."""
	return bool(SHA1_PATTERN.match(reference))


@dataclass(frozen=True, eq=False)
class GitRevision:
	"""
	An immutable commit identifier.

	Identity is the sha1; the reference string and the rest of the fields are
	resolution metadata.

	"""

	sha1: str
	"""Full commit id."""

	reference: str | None = None
	"""Human readable reference the revision was resolved from."""

	url: str | None = None
	"""Repository url the revision was fetched from."""

	review_reference: str | None = None
	"""Code review context, e.g. a pull request ref."""

	def __post_init__(self) -> None:
		"""Validate the commit id."""
		if not is_sha1(self.sha1):
			msg = f"Reference '{self.sha1}' is not a 40 characters SHA-1"
			raise ValueError(msg)

	def as_string(self) -> str:
		"""Return the reference when known, else the sha1."""
		return self.reference or self.sha1

	def __eq__(self, other: object) -> bool:
		"""Compare by sha1."""
		if not isinstance(other, GitRevision):
			return NotImplemented
		return self.sha1 == other.sha1

	def __hash__(self) -> int:
		"""Hash by sha1."""
		return hash(self.sha1)

	def __str__(self) -> str:
		"""Return the sha1."""
		return self.sha1


@dataclass(frozen=True)
class Author:
	"""Change author."""

	name: str
	email: str

	@classmethod
	def parse(cls, text: str) -> Author:
		"""
		Parse ``Name <email>``.

		Raises:
			ValueError: If the text has no email part

		"""
		match = AUTHOR_PATTERN.match(text.strip())
		if match is None:
			msg = f"Invalid author '{text}'. Must be in the form of 'Name <email>'"
			raise ValueError(msg)
		return cls(name=match.group("name"), email=match.group("email"))

	def __str__(self) -> str:
		"""Render as ``Name <email>``."""
		return f"{self.name} <{self.email}>"


@dataclass(frozen=True)
class Change:
	"""One historical revision plus its metadata."""

	revision: GitRevision
	author: Author
	message: str
	date_time: datetime
	labels: dict[str, tuple[str, ...]] = field(default_factory=dict, hash=False)
	changed_files: frozenset[str] | None = None

	@property
	def first_line_message(self) -> str:
		"""First line of the message."""
		lines = self.message.strip().splitlines()
		return lines[0] if lines else ""

	def with_revision(self, revision: GitRevision) -> Change:
		"""Return the same change bound to another revision object."""
		return replace(self, revision=revision)


@dataclass(frozen=True)
class GitChange:
	"""A change plus the parents of its commit."""

	change: Change
	parents: tuple[GitRevision, ...] = ()


@dataclass(frozen=True)
class Submodule:
	"""A submodule declared in ``.gitmodules``."""

	path: str
	url: str
	branch: str
	name: str


@dataclass(frozen=True)
class TreeElement:
	"""A single entry of a tree listing."""

	type: str
	ref: str
	path: str


@dataclass(frozen=True)
class GitLogEntry:
	"""A commit as read from the history."""

	commit: GitRevision
	tree: str
	parents: tuple[GitRevision, ...]
	author: Author
	committer: Author
	author_date: datetime
	commit_date: datetime
	body: str
	files: frozenset[str] | None = None


class VisitResult(str, Enum):
	"""Signal returned by a changes visitor."""

	CONTINUE = "continue"
	TERMINATE = "terminate"


ChangesVisitor = Callable[[Change], VisitResult]

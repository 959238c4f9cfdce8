"""Error types raised by the git origin and the integration engine."""

from __future__ import annotations


class GitError(Exception):
	"""Custom exception for Git-related errors."""


class ValidationError(GitError):
	"""Raised when the configuration or the user input is not usable."""


class RepoError(GitError):
	"""Raised when an underlying git operation or filesystem preparation fails."""


class CannotResolveRevisionError(GitError):
	"""Raised when a reference or a parent commit cannot be found."""


class EmptyChangeError(GitError):
	"""Raised when a revision resolves but has no changes under the origin paths."""


class CannotIntegrateError(GitError):
	"""Raised when a referenced change cannot be integrated due to a user error."""

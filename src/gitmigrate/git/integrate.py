"""
Integration of externally referenced revisions into the current branch.

The pending change description is scanned for a configured label. Each value
of the label is resolved against the destination repository and folded into
HEAD with the configured :class:`Strategy`.

"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from gitmigrate.git.errors import CannotIntegrateError, CannotResolveRevisionError, RepoError, ValidationError
from gitmigrate.git.labels import LabelFinder, find_all_labels, render_label
from gitmigrate.git.repo_type import GitRepoType

if TYPE_CHECKING:
	from collections.abc import Callable

	from gitmigrate.git.repository import GitRepository
	from gitmigrate.git.revision import GitRevision

logger = logging.getLogger(__name__)

DEFAULT_INTEGRATE_LABEL = "GITMIGRATE_INTEGRATE_REVIEW"


@dataclass(frozen=True)
class MessageInfo:
	"""Labels injected into every message the integration produces."""

	labels_to_add: tuple[tuple[str, str], ...] = ()

	@classmethod
	def from_lines(cls, lines: Iterable[str]) -> MessageInfo:
		"""
		Build from ``Name: value`` / ``Name=value`` lines.

		Raises:
			ValidationError: If a line is not a label

		"""
		labels = []
		for line in lines:
			finder = LabelFinder(line)
			if not finder.is_label:
				msg = f"'{line}' is not a valid label. Use 'Name: value' or 'Name=value'"
				raise ValidationError(msg)
			labels.append((finder.name, finder.value))
		return cls(labels_to_add=tuple(labels))


@dataclass(frozen=True)
class IntegrateLabel:
	"""A resolved revision to integrate."""

	revision: GitRevision

	def merge_message(self, labels_to_add: Iterable[tuple[str, str]] = ()) -> str:
		"""Render the message of the merge commit."""
		message = f"Merge of {self.revision.sha1}\n"
		label_lines = [render_label(name, value) for name, value in labels_to_add]
		if label_lines:
			message += "\n" + "\n".join(label_lines) + "\n"
		return message


class Strategy(str, Enum):
	"""How an external revision is folded into the current branch."""

	FAKE_MERGE = "FAKE_MERGE"
	"""Merge commit linking the history, ignoring the revision's content."""

	FAKE_MERGE_AND_INCLUDE_FILES = "FAKE_MERGE_AND_INCLUDE_FILES"
	"""Fake merge that also includes files outside the destination files. Not supported."""

	INCLUDE_FILES = "INCLUDE_FILES"
	"""Include files outside the destination files without a merge. Not supported."""

	def integrate(
		self,
		repository: GitRepository,
		integrate_label: IntegrateLabel,
		raw_label_value: str,
		message_info: MessageInfo,
	) -> None:
		"""
		Integrate one revision into HEAD.

		Raises:
			CannotIntegrateError: If the strategy is not supported
			RepoError: If a git operation fails

		"""
		_STRATEGIES[self](self, repository, integrate_label, raw_label_value, message_info)


def _fake_merge(
	strategy: Strategy,
	repository: GitRepository,
	integrate_label: IntegrateLabel,
	raw_label_value: str,
	message_info: MessageInfo,
) -> None:
	head = repository.log("HEAD", limit=1)[0]
	message = integrate_label.merge_message(message_info.labels_to_add)
	# An existing merge at HEAD is stacked on, never rewritten
	if len(head.parents) > 1:
		parents = [head.commit, integrate_label.revision]
	else:
		parents = [*head.parents, integrate_label.revision]
	commit = repository.commit_tree(message, head.tree, parents)
	repository.simple_command("update-ref", "HEAD", commit.sha1)
	logger.info("Integrated %s (%s) as %s", raw_label_value, integrate_label.revision.sha1, commit.sha1)


def _not_supported(
	strategy: Strategy,
	repository: GitRepository,
	integrate_label: IntegrateLabel,
	raw_label_value: str,
	message_info: MessageInfo,
) -> None:
	msg = f"{strategy.value} integrate mode is still not supported"
	raise CannotIntegrateError(msg)


_STRATEGIES: dict[Strategy, Callable[[Strategy, GitRepository, IntegrateLabel, str, MessageInfo], None]] = {
	Strategy.FAKE_MERGE: _fake_merge,
	Strategy.FAKE_MERGE_AND_INCLUDE_FILES: _not_supported,
	Strategy.INCLUDE_FILES: _not_supported,
}


class GitIntegrateChanges:
	"""Integrates the revisions referenced by a label of the pending change."""

	def __init__(
		self,
		label: str = DEFAULT_INTEGRATE_LABEL,
		strategy: Strategy = Strategy.FAKE_MERGE,
		ignore_errors: bool = False,
	) -> None:
		"""
		Initialize the integration.

		Args:
			label: Label whose values reference the revisions to integrate
			strategy: How each revision is integrated
			ignore_errors: Log integration failures instead of raising them

		"""
		self.label = label
		self.strategy = strategy
		self.ignore_errors = ignore_errors

	def integrate(
		self,
		repository: GitRepository,
		message_info: MessageInfo,
		description: str,
		ignore_integration_errors: bool = False,
	) -> None:
		"""
		Integrate every revision the description references through the label.

		Args:
			repository: Destination repository; HEAD is updated in place
			message_info: Labels added to produced messages
			description: Message of the pending change
			ignore_integration_errors: Call site override of ignore_errors

		Raises:
			CannotIntegrateError: On user errors, unless errors are ignored
			RepoError: On git failures, unless errors are ignored

		"""
		ignore = ignore_integration_errors or self.ignore_errors
		try:
			self._do_integrate(repository, message_info, description)
		except CannotIntegrateError as e:
			if not ignore:
				raise
			logger.warning("Cannot integrate changes: %s", e)
		except RepoError:
			if not ignore:
				raise
			logger.exception("Cannot integrate changes")

	def _do_integrate(self, repository: GitRepository, message_info: MessageInfo, description: str) -> None:
		for finder in find_all_labels(description):
			if finder.name != self.label:
				continue
			if not finder.value:
				msg = f"Found an empty value for label {self.label}"
				raise CannotIntegrateError(msg)
			try:
				revision = GitRepoType.GIT.resolve_ref(repository, None, finder.value)
				self.strategy.integrate(repository, IntegrateLabel(revision), finder.value, message_info)
			except CannotResolveRevisionError as e:
				msg = f"Error resolving {finder.value}"
				raise CannotIntegrateError(msg) from e

	def __repr__(self) -> str:
		"""Return a debug representation."""
		return (
			f"GitIntegrateChanges(label={self.label!r}, strategy={self.strategy.value}, "
			f"ignore_errors={self.ignore_errors})"
		)

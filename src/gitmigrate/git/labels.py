"""Commit message labels: ``Name: value`` / ``Name=value`` lines."""

from __future__ import annotations

import re

LABEL_PATTERN = re.compile(r"^([\w-]+)( *[:=] ?)(.*)$")


class LabelFinder:
	"""Parses a single message line and tells whether it is a label."""

	def __init__(self, line: str) -> None:
		"""
		Initialize the finder for one line.

		Args:
			line: A line of a commit message

		"""
		self.line = line
		self._match = LABEL_PATTERN.match(line)

	@property
	def is_label(self) -> bool:
		"""Whether the line is a label. ``http://...`` style lines are not."""
		if self._match is None:
			return False
		# A URL such as "https://host" looks like label "https" with value "//host"
		return not (self.separator.strip() == ":" and self.value.startswith("//"))

	@property
	def name(self) -> str:
		"""Label name."""
		self._check()
		return self._match.group(1)  # type: ignore[union-attr]

	@property
	def separator(self) -> str:
		"""Separator between name and value, including surrounding spaces."""
		self._check()
		return self._match.group(2)  # type: ignore[union-attr]

	@property
	def value(self) -> str:
		"""Label value, stripped."""
		self._check()
		return self._match.group(3).strip()  # type: ignore[union-attr]

	def _check(self) -> None:
		if self._match is None:
			msg = f"Not a label: '{self.line}'"
			raise ValueError(msg)

	def __repr__(self) -> str:
		"""Return a debug representation."""
		return f"LabelFinder({self.line!r})"


def find_all_labels(message: str) -> list[LabelFinder]:
	"""Return the label lines of a message, in order."""
	return [finder for finder in (LabelFinder(line) for line in message.splitlines()) if finder.is_label]


def parse_labels(message: str) -> dict[str, tuple[str, ...]]:
	"""
	Parse all labels of a message into an ordered multimap.

	Args:
		message: Full commit message

	Returns:
		Mapping from label name to its values, in order of appearance

	"""
	labels: dict[str, list[str]] = {}
	for finder in find_all_labels(message):
		labels.setdefault(finder.name, []).append(finder.value)
	return {name: tuple(values) for name, values in labels.items()}


def render_label(name: str, value: str, separator: str = ": ") -> str:
	"""Render a label line."""
	return f"{name}{separator}{value}"

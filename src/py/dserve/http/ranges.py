import re
from typing import NamedTuple

from .model import HTTPRequestError

# Single range only, `bytes=<start>-[<end>]`
RE_RANGE = re.compile(r"^bytes=\s*(?P<start>\d+)\s*-\s*(?:(?P<end>\d+)\s*)?$")


class RangeNotSatisfiable(HTTPRequestError):
	def __init__(self, reason: str):
		super().__init__(f"Range Not Satisfiable: {reason}", status=416)


class Range(NamedTuple):
	"""A byte range where both `start` and `end` are inclusive, an `end` of
	`None` meaning up to the end of the resource."""

	start: int
	end: int | None = None

	def span(self, size: int) -> int:
		"""Returns the index of the last byte of the range, relative to
		`start`, once clamped to a resource of `size` bytes. A negative
		value means the range selects nothing."""
		last: int = size - 1 if self.end is None else min(self.end, size - 1)
		return last - self.start

	def contentRange(self, size: int) -> str:
		"""Returns the `Content-Range` header value for a resource of
		`size` bytes."""
		span = self.span(size)
		return (
			f"bytes {self.start}-{self.start + span}/{size}"
			if span >= 0
			else f"bytes */{size}"
		)


def parseRange(text: str) -> Range:
	"""Parses a `Range` header value. Syntax errors raise
	`RangeNotSatisfiable`, the range is only checked against the resource
	size when the response is built."""
	if matched := RE_RANGE.match(text.strip()):
		end = matched.group("end")
		return Range(int(matched.group("start")), None if end is None else int(end))
	else:
		raise RangeNotSatisfiable(f"unsupported range '{text}'")


# EOF

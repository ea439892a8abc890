DEFAULT_ENCODING: str = "utf8"
EOL: bytes = b"\r\n"

# Longest line accepted without an end-of-line delimiter
LINE_LIMIT: int = 64_000


class LineTooLong(ValueError):
	pass


class LineParser:
	"""Accumulates chunks until an end-of-line delimiter is found. Chunks
	do not need to be re-fed: whatever is not part of a line stays in the
	internal buffer until the next call."""

	__slots__ = ["buffer", "line", "eol", "eolsize", "offset", "limit"]

	def __init__(self, limit: int = LINE_LIMIT) -> None:
		self.buffer: bytearray = bytearray()
		self.line: bytes | None = None
		self.offset: int = 0
		self.eol: bytes = EOL
		self.eolsize: int = len(EOL)
		self.limit: int = limit

	def reset(self, eol: bytes = EOL) -> "LineParser":
		self.buffer.clear()
		self.line = None
		self.offset = 0
		self.eol = eol
		self.eolsize = len(eol)
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line and how many bytes were read in chunk
		from start. When line is None, then the whole chunk has been
		consumed. Raises `LineTooLong` when the buffered data exceeds the
		limit without a delimiter, the buffer being dropped."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(self.eol, self.offset)
		if end == -1:
			if len(self.buffer) > self.limit:
				size = len(self.buffer)
				self.reset(self.eol)
				raise LineTooLong(f"Line exceeds {self.limit} bytes: {size}")
			# The delimiter may straddle two chunks
			self.offset = max(0, len(self.buffer) - self.eolsize + 1)
			return None, len(chunk) - start
		else:
			self.line = bytes(self.buffer[:end])
			self.buffer.clear()
			self.offset = 0
			return self.line, (end - pos) + self.eolsize


# EOF

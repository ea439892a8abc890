from typing import Iterator, Literal
from urllib.parse import quote_plus, unquote_plus

from ..utils.io import LineParser, LineTooLong
from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPProtocolError,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value", "skipping"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None
		self.skipping: int = 0

	def flush(self) -> "HTTPRequestLine|None":
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		self.skipping = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		n = len(chunk)
		available = n - start
		if self.skipping:
			# We have remaining data to read/skip, so we do that
			read = min(available, self.skipping)
			self.skipping -= read
			return None, read
		elif available >= 5 and chunk[start] == 0x16 and not self.line.buffer:
			# This is a TLS handshake sent to a plain HTTP port, we skip
			# the record based on its declared length.
			size = 5 + (chunk[start + 3] << 8) + chunk[start + 4]
			if available >= size:
				return None, size
			else:
				self.skipping = size - available
				return None, available
		else:
			try:
				line, read = self.line.feed(chunk, start)
			except LineTooLong as e:
				raise HTTPProtocolError(str(e)) from e
			if line is None:
				return None, read
			elif not line:
				# Stray empty lines between requests are tolerated,
				# see RFC 9112 §2.2
				self.line.reset()
				return None, read
			try:
				ln = line.decode("ascii")
			except UnicodeDecodeError as e:
				raise HTTPProtocolError(f"Request line is not ASCII: {line!r}") from e
			i = ln.find(" ")
			j = ln.rfind(" ")
			if i <= 0 or j == i:
				raise HTTPProtocolError(f"Malformed request line: {ln!r}")
			p: list[str] = ln[i + 1 : j].split("?", 1)
			self.value = HTTPRequestLine(
				ln[0:i], p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
			)
			return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		super().__init__()
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> "HTTPHeaders|None":
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, that header was added."""
		try:
			line, read = self.line.feed(chunk, start)
		except LineTooLong as e:
			raise HTTPProtocolError(str(e)) from e
		if line is None:
			return None, read
		elif line:
			# Headers are expected to be in ASCII, anything else is
			# accepted as latin-1 (RFC 9110 §5.5).
			ln: str = line.decode("latin-1")
			i = ln.find(":")
			if i != -1:
				h = ln[:i].lower().strip()
				v = ln[i + 1 :].strip()
				if h == "content-length":
					try:
						self.contentLength = int(v)
					except ValueError as e:
						raise HTTPProtocolError(f"Invalid Content-Length: {v!r}") from e
					if self.contentLength < 0:
						raise HTTPProtocolError(f"Invalid Content-Length: {v!r}")
				elif h == "content-type":
					self.contentType = v
				n: str = headername(h)
				self.headers[n] = v
				return n, read
			else:
				return None, read
		else:
			# An empty line denotes the end of headers
			return False, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses the body of a request with `Content-Length` set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(
			b"".join(self.data),
			self.read,
			self.expected - self.read,
		)
		self.reset()
		return res

	def reset(self, length: int = 0) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool, int]:
		"""Consumes up to the expected length, always producing a body: what
		is missing is reported as `remaining` by `flush()`."""
		left: int = len(chunk) - start
		to_read: int = min(left, self.expected - self.read)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		return True, to_read


class HTTPParser:
	"""A stateful HTTP request parser, fed with chunks as they arrive and
	yielding atoms (request lines, headers, requests)."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: MessageParser | HeadersParser | BodyLengthParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		"""Drops any partially parsed request."""
		self.message.reset()
		self.headers.reset()
		self.bodyLength.reset()
		self.parser = self.message
		self.requestLine = None
		self.requestHeaders = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# When we feed a chunk and it's partially read, we don't need to
			# re-feed it again. The underlying parser keeps a buffer up until
			# it is flushed.
			ln, read = self.parser.feed(chunk, offset)
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				# We've parsed a request line
				line = self.message.flush()
				self.requestLine = line
				self.requestHeaders = None
				if line is not None:
					yield line
					self.parser = self.headers
			elif self.parser is self.headers:
				if ln is not False:
					# `ln` is the name of the header that was just parsed
					continue
				headers = self.headers.flush() or HTTPHeaders({})
				self.requestHeaders = headers
				yield headers
				if headers.contentLength:
					self.parser = self.bodyLength.reset(headers.contentLength)
					yield HTTPProcessingStatus.Body
					# The body may be entirely in the chunk's remainder, or
					# not at all if the chunk ended with the headers.
					if offset < size:
						continue
				yield from self.complete()
			elif self.parser is self.bodyLength:
				yield from self.complete()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")

	def complete(self) -> Iterator[HTTPAtom]:
		"""Yields the request being parsed, with whatever body was read
		so far, and gets ready for the next request."""
		line = self.requestLine
		headers = self.requestHeaders
		body: HTTPBodyBlob = (
			self.bodyLength.flush()
			if self.parser is self.bodyLength
			else HTTPBodyBlob(b"", 0)
		)
		if line is None or headers is None:
			yield HTTPProcessingStatus.BadFormat
		else:
			yield HTTPRequest(
				method=line.method,
				path=line.path,
				query=parseQuery(line.query),
				headers=headers,
				protocol=line.protocol,
				body=body,
			)
			yield HTTPProcessingStatus.Complete
		self.parser = self.message.reset()
		self.requestLine = None
		self.requestHeaders = None


def formatQuery(query: dict[str, str] | None) -> str:
	"""Formats the query back, including its leading `?` when not empty.
	Flags (parameters without a value) are kept as such."""
	if not query:
		return ""
	return "?" + "&".join(
		quote_plus(k) if v == "" else f"{quote_plus(k)}={quote_plus(v)}"
		for k, v in query.items()
	)


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[unquote_plus(item)] = ""
		else:
			res[unquote_plus(kv[0])] = unquote_plus(kv[1])
	return res


# EOF

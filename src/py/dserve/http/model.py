import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Literal, NamedTuple, TypeAlias, Union

from mypy_extensions import mypyc_attr

from ..utils.io import DEFAULT_ENCODING
from ..utils.logging import warning
from .api import ResponseFactory
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


# Normalized header names, memoized up to a bounded number of names
HEADER_NAMES: dict[str, str] = {}
HEADER_NAMES_LIMIT: int = 1_024


def headername(name: str, *, headers: dict[str, str] = HEADER_NAMES) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		if len(headers) < HEADER_NAMES_LIMIT:
			headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	NoData = 11
	BadFormat = 12


# Type alias for what the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""Raised by handlers to produce an error response with the given
	status (500 by default)."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType


class HTTPProtocolError(Exception):
	"""The transport delivered something that is not an HTTP request. The
	request is dropped without a response."""


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0
	# Bytes announced by `Content-Length` that were not received yet
	remaining: int | None = None


class HTTPBodyFile(NamedTuple):
	"""Represents an HTTP body read from a file, optionally restricted to
	the `size` bytes starting at `offset`."""

	path: Path
	offset: int = 0
	size: int | None = None

	@property
	def length(self) -> int:
		return (
			self.size
			if self.size is not None
			else max(0, self.path.stat().st_size - self.offset)
		)


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


# -----------------------------------------------------------------------------
#
# BODY WRITER
#
# -----------------------------------------------------------------------------

FILE_CHUNK_SIZE: int = 64_000


@mypyc_attr(allow_interpreted_subclasses=True)
class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile, size: int = FILE_CHUNK_SIZE) -> bool:
		"""Streams the file window described by `body`, each read being
		done off the event loop."""
		f = await asyncio.to_thread(open, body.path, "rb")
		remaining: int | None = body.size
		try:
			if body.offset:
				await asyncio.to_thread(f.seek, body.offset)
			while remaining is None or remaining > 0:
				chunk: bytes = await asyncio.to_thread(
					f.read, size if remaining is None else min(size, remaining)
				)
				if not chunk:
					break
				if remaining is not None:
					remaining -= len(chunk)
				await self._writeBytes(chunk, True)
		finally:
			await asyncio.to_thread(f.close)
		if remaining:
			# The file shrank since it was cached, the announced length
			# can't be honoured anymore.
			warning("File shorter than announced", Path=str(body.path), Missing=remaining)
			self.shouldClose = True
			return False
		return True

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	@property
	def body(self) -> HTTPBodyBlob | None:
		return self._body

	@property
	def unread(self) -> int:
		"""Body bytes announced by the client but not read yet."""
		return (self._body.remaining or 0) if self._body else 0

	@property
	def keepAlive(self) -> bool:
		return not (
			self.protocol == "HTTP/1.0"
			or (self.header("Connection") or "").lower() == "close"
		)

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def hasParam(self, name: str) -> bool:
		return self.query is not None and name in self.query

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol="HTTP/1.1",
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		payload: bytes | None = None
		updated_headers: dict[str, str] = {}

		# We process the body
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		elif isinstance(content, HTTPBodyFile):
			body = content
			if contentLength is None:
				contentLength = content.length
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		# If we have a payload then it's a Blob response
		if payload is not None:
			contentLength = len(payload)
			body = HTTPBodyBlob(payload, contentLength)
		# Content Type
		content_type: str | None = headers.get("Content-Type") if headers else None
		if contentType is not None and contentType != content_type:
			updated_headers["Content-Type"] = contentType
			content_type = contentType
		# Content Length
		content_length_str: str | None = (
			headers.get("Content-Length") if headers else None
		)
		if (
			contentLength is not None
			and (t := str(contentLength)) != content_length_str
		):
			updated_headers["Content-Length"] = t
		elif contentLength is None and content_length_str is not None:
			contentLength = int(content_length_str)

		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				(headers | updated_headers) if headers else updated_headers,
				contentType=content_type,
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self.shouldClose: bool = shouldClose

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		# Bodiless responses still need framing on keep-alive connections
		if self.body is None and "Content-Length" not in self.headers.headers:
			lines.append("Content-Length: 0")
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		# Header values are expected to be latin-1, see RFC 9110 §5.5
		return "\r\n".join(lines).encode("latin-1", "replace")

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF

from typing import Literal

from dserve.http.model import HTTPBodyWriter, HTTPRequest, HTTPResponse
from dserve.http.parser import HTTPParser
from dserve.server import AIOSocketServer


def request(method: str, path: str, headers: dict[str, str] | None = None) -> HTTPRequest:
	"""Parses a request built from the given method, target and headers."""
	head: str = "".join(
		f"{k}: {v}\r\n" for k, v in ({"Host": "localhost"} | (headers or {})).items()
	)
	payload: bytes = f"{method} {path} HTTP/1.1\r\n{head}\r\n".encode("latin-1")
	for atom in HTTPParser().feed(payload):
		if isinstance(atom, HTTPRequest):
			return atom
	raise AssertionError(f"No request parsed from: {payload!r}")


class BufferWriter(HTTPBodyWriter):
	"""Collects what is written in memory."""

	def __init__(self) -> None:
		super().__init__()
		self.data: bytearray = bytearray()

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			self.data += chunk
		return True


def split(payload: bytes) -> tuple[int, dict[str, str], bytes]:
	"""Splits a serialized response into its status, headers and body."""
	head, _, body = payload.partition(b"\r\n\r\n")
	lines = head.decode("latin-1").split("\r\n")
	status = int(lines[0].split(" ", 2)[1])
	headers: dict[str, str] = {}
	for line in lines[1:]:
		k, _, v = line.partition(":")
		headers[k.strip()] = v.strip()
	return status, headers, body


async def send(req: HTTPRequest, res: HTTPResponse) -> tuple[int, dict[str, str], bytes]:
	"""Serializes the response as the server would."""
	writer = BufferWriter()
	assert await AIOSocketServer.SendResponse(req, res, writer)
	return split(bytes(writer.data))


# EOF

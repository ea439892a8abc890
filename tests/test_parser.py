import pytest

from dserve.http.model import (
	HEADER_NAMES,
	HEADER_NAMES_LIMIT,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPProtocolError,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)
from dserve.http.parser import HTTPParser, formatQuery, parseQuery


def parseAll(parser: HTTPParser, *chunks: bytes) -> list:
	return [atom for chunk in chunks for atom in parser.feed(chunk)]


def requests(atoms: list) -> list[HTTPRequest]:
	return [_ for _ in atoms if isinstance(_, HTTPRequest)]


def test_request_in_pieces():
	atoms = parseAll(
		HTTPParser(),
		b"GET /time/5 ",
		b"HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nConn",
		b"ection: close\r\n",
		b"\r",
		b"\n",
	)
	assert atoms[0] == HTTPRequestLine("GET", "/time/5", "", "HTTP/1.1")
	assert isinstance(atoms[1], HTTPHeaders)
	(req,) = requests(atoms)
	assert req.method == "GET"
	assert req.path == "/time/5"
	assert req.header("host") == "127.0.0.1"
	assert req.header("Connection") == "close"
	assert not req.keepAlive
	assert atoms[-1] is HTTPProcessingStatus.Complete


def test_query():
	(req,) = requests(
		parseAll(HTTPParser(), b"GET /docs/?json&sort=name+asc HTTP/1.1\r\n\r\n")
	)
	assert req.path == "/docs/"
	assert req.query == {"json": "", "sort": "name asc"}
	assert req.hasParam("json")
	assert req.query["sort"] == "name asc"
	assert not req.hasParam("html")


def test_pipelined_requests():
	reqs = requests(
		parseAll(
			HTTPParser(),
			b"GET /a HTTP/1.1\r\nHost: x\r\n\r\nHEAD /b HTTP/1.1\r\nHost: x\r\n\r\n",
		)
	)
	assert [(_.method, _.path) for _ in reqs] == [("GET", "/a"), ("HEAD", "/b")]
	assert all(_.keepAlive for _ in reqs)


def test_body_is_read():
	(req,) = requests(
		parseAll(HTTPParser(), b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello")
	)
	assert req.body is not None
	assert req.body.payload == b"hello"
	assert req.unread == 0


def test_body_partially_read():
	# The request is produced with what the chunk holds, the rest of the
	# body is left to the connection to skip.
	(req,) = requests(
		parseAll(HTTPParser(), b"PUT / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")
	)
	assert req.body is not None
	assert req.body.payload == b"abc"
	assert req.unread == 7


def test_body_not_received():
	(req,) = requests(
		parseAll(HTTPParser(), b"PUT / HTTP/1.1\r\nContent-Length: 10\r\n\r\n")
	)
	assert req.unread == 10


def test_http10_closes():
	(req,) = requests(parseAll(HTTPParser(), b"GET / HTTP/1.0\r\n\r\n"))
	assert not req.keepAlive


def test_malformed_request_line():
	with pytest.raises(HTTPProtocolError):
		parseAll(HTTPParser(), b"GARBAGE\r\n\r\n")


def test_invalid_content_length():
	with pytest.raises(HTTPProtocolError):
		parseAll(HTTPParser(), b"POST / HTTP/1.1\r\nContent-Length: -1\r\n\r\n")


def test_reset_after_error():
	parser = HTTPParser()
	with pytest.raises(HTTPProtocolError):
		parseAll(parser, b"\xff\xfe\r\n")
	parser.reset()
	(req,) = requests(parseAll(parser, b"GET /ok HTTP/1.1\r\n\r\n"))
	assert req.path == "/ok"


def test_tls_handshake_is_skipped():
	record = bytes([0x16, 0x03, 0x01, 0x00, 0x02, 0xAA, 0xBB])
	(req,) = requests(parseAll(HTTPParser(), record + b"GET / HTTP/1.1\r\n\r\n"))
	assert req.path == "/"


def test_request_line_too_long():
	with pytest.raises(HTTPProtocolError):
		parseAll(HTTPParser(), b"GET /" + b"a" * 70_000)


def test_header_too_long():
	with pytest.raises(HTTPProtocolError):
		parseAll(HTTPParser(), b"GET / HTTP/1.1\r\nX-Large: ", b"a" * 70_000)


def test_header_names_are_bounded():
	for i in range(HEADER_NAMES_LIMIT + 100):
		headername(f"x-generated-{i}")
	assert len(HEADER_NAMES) <= HEADER_NAMES_LIMIT
	assert headername("x-not-memoized") == "X-Not-Memoized"


def test_format_query():
	assert formatQuery(None) == ""
	assert formatQuery({}) == ""
	assert formatQuery({"json": ""}) == "?json"
	assert formatQuery({"a": "1 2", "b": ""}) == "?a=1+2&b"
	assert parseQuery("a=1+2&b") == {"a": "1 2", "b": ""}


# EOF

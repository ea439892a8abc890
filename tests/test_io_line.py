import pytest

from dserve.utils.io import LineParser, LineTooLong

REQUEST: bytes = b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close\r\n\r\n"


def feedAll(parser: LineParser, chunks: list[bytes]) -> list[bytes]:
	lines: list[bytes] = []
	for chunk in chunks:
		offset: int = 0
		while offset < len(chunk):
			line, read = parser.feed(chunk, offset)
			offset += read
			if line is not None:
				lines.append(line)
	return lines


def test_lines_across_chunks():
	lines = feedAll(
		LineParser(),
		[
			b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close",
			b"\r\n\r",
			b"\n",
		],
	)
	assert lines == REQUEST.split(b"\r\n")[:-1]


def test_lines_byte_by_byte():
	lines = feedAll(LineParser(), [REQUEST[i : i + 1] for i in range(len(REQUEST))])
	assert lines == REQUEST.split(b"\r\n")[:-1]


def test_partial_line_is_kept():
	parser = LineParser()
	assert parser.feed(b"Host: local") == (None, 11)
	line, read = parser.feed(b"host\r\nrest")
	assert line == b"Host: localhost"
	assert read == 6


def test_line_limit():
	parser = LineParser(limit=16)
	assert parser.feed(b"x" * 10) == (None, 10)
	with pytest.raises(LineTooLong):
		parser.feed(b"x" * 10)
	# The buffer was dropped, the parser can be used again
	assert not parser.buffer
	assert parser.feed(b"short\r\n") == (b"short", 7)


# EOF

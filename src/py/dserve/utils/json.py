import json as basejson
from typing import Any, TypeAlias, cast

from .primitives import asPrimitive

TJSON: TypeAlias = None | int | float | bool | str | list[Any] | dict[str, Any]


def jsonstr(value: Any) -> str:
	"""Serializes the value as a compact JSON string."""
	return basejson.dumps(
		asPrimitive(value), separators=(",", ":"), ensure_ascii=False
	)


def json(value: Any) -> bytes:
	"""Serializes the value as UTF-8 encoded JSON."""
	return jsonstr(value).encode("utf8")


def unjson(value: bytes | str) -> TJSON:
	return cast(TJSON, basejson.loads(value))


# EOF

import mimetypes
from pathlib import Path

mimetypes.init()

# Extensions that `mimetypes` maps poorly or not at all
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	md="text/markdown",
	mjs="text/javascript",
	wasm="application/wasm",
	webmanifest="application/manifest+json",
)

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


def contentType(path: Path | str, default: str = DEFAULT_CONTENT_TYPE) -> str:
	"""Guesses the content type from the given path's extension"""
	name = str(path)
	ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	return (
		res
		if (res := MIME_TYPES.get(ext))
		else mimetypes.guess_type(name, strict=False)[0] or default
	)


# EOF

import asyncio
import os
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from ..cache import DirectoryEntry, FileEntry, PathCache, SymlinkEntry
from ..config import ServerConfig
from ..features.cors import ALLOWED_METHODS
from ..http.model import HTTPBodyFile, HTTPRequest, HTTPRequestError, HTTPResponse
from ..http.negotiation import negotiate
from ..http.parser import formatQuery
from ..http.ranges import parseRange
from ..utils.dtemplate import applyDirectTemplate
from ..utils.files import contentType
from ..utils.logging import debug, logged

INDEX: str = "index.html"

# Directory listings, in order of preference when the client has none
LISTING_TYPES: list[str] = ["application/json", "text/html"]


def stripSlashes(path: str) -> str:
	"""Removes the trailing slashes, except for the root path."""
	stripped = path.rstrip("/")
	return stripped if stripped else path[:1]


def folderPath(path: str) -> str:
	"""Returns the canonical URL path for a directory, which has exactly
	one trailing slash."""
	return path if not path or path.endswith("/") else f"{path}/"


def checkReadable(path: str) -> None:
	"""Raises the `OSError` that opening `path` for reading would raise."""
	with open(path, "rb"):
		pass


class FileService:
	"""Serves the files, directories and symlinks found under a root
	directory, using a `PathCache` so that the filesystem is only scanned
	when entries expire."""

	@staticmethod
	def FromConfig(config: ServerConfig) -> "FileService":
		return FileService(config.root, timeout=config.timeout / 1000, cors=config.cors)

	def __init__(
		self,
		root: str | Path = ".",
		*,
		timeout: float = 60.0,
		cors: str | None = None,
		cache: PathCache | None = None,
	):
		self.root: str = os.path.normpath(os.path.abspath(root))
		self.cors: str | None = cors
		self.cache: PathCache = cache if cache is not None else PathCache(timeout)

	def resolvePath(self, path: str) -> str:
		"""Returns the normalized local path for the given URL path, which
		must stay within the root."""
		if "\0" in path:
			raise HTTPRequestError("Invalid path", status=400)
		local_path = os.path.normpath(os.path.join(self.root, path.lstrip("/")))
		if os.path.commonpath([self.root, local_path]) != self.root:
			raise PermissionError(f"Path is outside of the served root: {path}")
		return local_path

	def urlPath(self, path: str) -> str:
		"""Returns the URL path for a local path within the root."""
		rel = os.path.relpath(path, self.root)
		return "/" if rel == os.curdir else "/" + rel.replace(os.sep, "/")

	def options(self, request: HTTPRequest) -> HTTPResponse:
		return request.respondEmpty(200, headers={"Allow": ALLOWED_METHODS})

	async def read(self, request: HTTPRequest, head: bool = False) -> HTTPResponse:
		"""Responds to `GET` (and `HEAD`, when `head` is set) requests."""
		# Absolute-form request targets (RFC 9112 §3.2.2) carry the origin
		target: str = (
			request.path
			if request.path.startswith("/")
			else urlsplit(request.path).path or "/"
		)
		pathname: str = unquote(target)
		stripped: str = stripSlashes(pathname)
		path: str = self.resolvePath(stripped)
		logged(debug) and debug("Access", Path=path, Method=request.method)
		entry = await self.cache.get(path)
		match entry:
			case SymlinkEntry():
				return self.renderSymlink(request, path, entry)
			case FileEntry():
				return await self.renderFile(request, path, entry, head)
			case DirectoryEntry():
				return await self.renderDirectory(request, pathname, path, entry)
			case _:
				raise RuntimeError(f"Unsupported cache entry: {entry}")

	def renderSymlink(
		self, request: HTTPRequest, path: str, entry: SymlinkEntry
	) -> HTTPResponse:
		# The target is taken relative to the link's directory, absolute
		# targets included.
		target: str = os.path.normpath(
			os.path.join(path, os.pardir, entry.target.lstrip("/"))
		)
		return request.redirect(
			quote(self.urlPath(target)) + formatQuery(request.query),
			headers={"Accept-Ranges": "none"},
		)

	async def renderFile(
		self, request: HTTPRequest, path: str, entry: FileEntry, head: bool
	) -> HTTPResponse:
		content_type: str = contentType(path)
		if head:
			return request.respond(
				None,
				contentType=content_type,
				contentLength=entry.size,
				headers={"X-File-Hash": entry.hash, "Accept-Ranges": "bytes"},
			)
		# The entry may outlive its file: the file is checked before the head
		# is committed, so that a failure gets its own status.
		await asyncio.to_thread(checkReadable, path)
		if (header := request.header("Range")) is not None:
			# NOTE: Only the single range form is supported
			r = parseRange(header)
			span: int = r.span(entry.size)
			if span < 0:
				# NOTE: The empty span is answered with a 206, not a 416.
				return request.respondEmpty(
					206,
					headers={
						"Content-Range": r.contentRange(entry.size),
						"Content-Type": content_type,
						"Accept-Ranges": "bytes",
					},
				)
			return request.respond(
				HTTPBodyFile(Path(path), r.start, span + 1),
				contentType=content_type,
				contentLength=span + 1,
				status=206,
				headers={
					"Content-Range": r.contentRange(entry.size),
					"Accept-Ranges": "bytes",
				},
			)
		else:
			return request.respond(
				HTTPBodyFile(Path(path), 0, entry.size),
				contentType=content_type,
				contentLength=entry.size,
				headers={"X-File-Hash": entry.hash, "Accept-Ranges": "bytes"},
			)

	async def renderDirectory(
		self,
		request: HTTPRequest,
		pathname: str,
		path: str,
		entry: DirectoryEntry,
	) -> HTTPResponse:
		folder: str = folderPath(stripSlashes(pathname))
		if pathname != folder:
			return request.redirect(
				quote(folder) + formatQuery(request.query),
				headers={"Accept-Ranges": "none"},
			)
		body = {"path": folder, "list": entry.children}
		if (
			request.hasParam("json")
			or negotiate(request.header("Accept"), LISTING_TYPES) != "text/html"
		):
			return request.returns(body, headers={"Accept-Ranges": "none"})
		else:
			lines = await self.cache.template(await self.indexPath(path, entry))
			return request.respondHTML(
				applyDirectTemplate(lines, body),
				headers={"Accept-Ranges": "none"},
			)

	async def indexPath(self, path: str, entry: DirectoryEntry) -> str:
		"""Returns the template used to render the directory: its own index
		when it has one, the root's index otherwise."""
		if any(_.filename == INDEX for _ in entry.children):
			return os.path.join(path, INDEX)
		root_index: str = os.path.join(self.root, INDEX)
		if await asyncio.to_thread(os.path.exists, root_index):
			return root_index
		else:
			raise FileNotFoundError(f"No index file for: {self.urlPath(path)}")


# EOF

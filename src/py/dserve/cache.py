import asyncio
import hashlib
import os
import stat
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple, TypeAlias

from mypy_extensions import mypyc_attr

from .http.model import HTTPRequestError
from .utils.dtemplate import splitTemplate
from .utils.io import DEFAULT_ENCODING
from .utils.logging import debug, logged

# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------

# Used in place of values the filesystem does not report (ie. birth time
# on most Linux filesystems).
ABSENT: int = -1

HASH_BLOCK_SIZE: int = 64_000


class EntryKind(Enum):
	File = 0
	Directory = 1
	Symlink = 2


class FileKind(Enum):
	"""The kind of a directory child, as exposed in listings."""

	File = "File"
	Folder = "Folder"
	Symlink = "Symlink"


class ChildInfo(NamedTuple):
	"""Describes a directory child, times being in milliseconds since
	the epoch."""

	kind: FileKind
	filename: str
	birthtime: int = ABSENT
	mtime: int = ABSENT
	size: int = ABSENT
	mode: int = ABSENT
	nlink: int = ABSENT

	@staticmethod
	def FromStat(filename: str, kind: FileKind, info: os.stat_result) -> "ChildInfo":
		birthtime: float | None = getattr(info, "st_birthtime", None)
		return ChildInfo(
			kind=kind,
			filename=filename,
			birthtime=ABSENT if birthtime is None else int(birthtime * 1000),
			mtime=info.st_mtime_ns // 1_000_000,
			size=info.st_size,
			mode=info.st_mode,
			nlink=info.st_nlink,
		)


@dataclass(slots=True)
class FileEntry:
	path: str
	expires: float
	hash: str
	size: int
	# Template lines, derived lazily from the file and dropped with the entry
	lines: list[str] | None = None
	kind: EntryKind = EntryKind.File


@dataclass(slots=True)
class DirectoryEntry:
	path: str
	expires: float
	children: list[ChildInfo]
	kind: EntryKind = EntryKind.Directory


@dataclass(slots=True)
class SymlinkEntry:
	path: str
	expires: float
	target: str
	kind: EntryKind = EntryKind.Symlink


CacheEntry: TypeAlias = FileEntry | DirectoryEntry | SymlinkEntry

# -----------------------------------------------------------------------------
#
# FILESYSTEM
#
# -----------------------------------------------------------------------------


async def hashFile(path: str, blockSize: int = HASH_BLOCK_SIZE) -> tuple[str, int]:
	"""Returns the SHA-256 hex digest and size of the file at `path`, both
	computed from the same single read pass."""
	hasher = hashlib.sha256()
	size: int = 0
	f = await asyncio.to_thread(open, path, "rb")
	try:
		while chunk := await asyncio.to_thread(f.read, blockSize):
			size += len(chunk)
			hasher.update(chunk)
	finally:
		await asyncio.to_thread(f.close)
	return hasher.hexdigest(), size


def childKind(entry: os.DirEntry[str]) -> FileKind:
	if entry.is_file(follow_symlinks=False):
		return FileKind.File
	elif entry.is_dir(follow_symlinks=False):
		return FileKind.Folder
	else:
		# Sockets, FIFOs and devices are reported as symlinks too
		return FileKind.Symlink


def scanEntries(path: str) -> list[os.DirEntry[str]]:
	with os.scandir(path) as entries:
		return list(entries)


async def listDirectory(path: str) -> list[ChildInfo]:
	"""Lists the immediate children of `path`, in enumeration order,
	skipping the ones that can't be stat'ed."""
	children: list[ChildInfo] = []
	for entry in await asyncio.to_thread(scanEntries, path):
		try:
			info = await asyncio.to_thread(os.lstat, entry.path)
		except OSError as e:
			logged(debug) and debug(
				"Skipping directory entry", Path=entry.path, Reason=str(e)
			)
			continue
		children.append(ChildInfo.FromStat(entry.name, childKind(entry), info))
	return children


# -----------------------------------------------------------------------------
#
# CACHE
#
# -----------------------------------------------------------------------------


@mypyc_attr(allow_interpreted_subclasses=True)
class PathCache:
	"""Maps absolute paths to snapshots of the filesystem entity they
	designate. Entries are recomputed lazily, on the first access after they
	expired, and are never swept otherwise.

	Population is not synchronized: concurrent misses on the same path each
	scan the filesystem, and the last one to finish is stored. Entries being
	immutable snapshots, this only duplicates work."""

	def __init__(
		self, timeout: float, *, clock: Callable[[], float] = time.monotonic
	) -> None:
		self.timeout: float = timeout
		self.clock: Callable[[], float] = clock
		self.entries: dict[str, CacheEntry] = {}

	def __len__(self) -> int:
		return len(self.entries)

	def __contains__(self, path: str) -> bool:
		return path in self.entries

	def isExpired(self, entry: CacheEntry) -> bool:
		return self.clock() > entry.expires

	async def get(self, path: str) -> CacheEntry:
		"""Returns the live entry for `path`, scanning the filesystem when
		there is none. `OSError`s raised while scanning propagate."""
		if (cached := self.entries.get(path)) is not None:
			if not self.isExpired(cached):
				return cached
			del self.entries[path]
		entry = await self.scan(path)
		self.entries[path] = entry
		return entry

	async def scan(self, path: str) -> CacheEntry:
		"""Takes a new snapshot of `path`, which expires after the
		cache timeout."""
		info = await asyncio.to_thread(os.lstat, path)
		if stat.S_ISREG(info.st_mode):
			digest, size = await hashFile(path)
			return FileEntry(path, self.clock() + self.timeout, digest, size)
		elif stat.S_ISDIR(info.st_mode):
			children = await listDirectory(path)
			return DirectoryEntry(path, self.clock() + self.timeout, children)
		else:
			target = await asyncio.to_thread(os.readlink, path)
			return SymlinkEntry(path, self.clock() + self.timeout, target)

	async def template(self, path: str) -> list[str]:
		"""Returns the lines of the template at `path`, read once per
		cache entry."""
		entry = await self.get(path)
		match entry:
			case FileEntry(lines=None):
				text: str = await asyncio.to_thread(readText, path)
				entry.lines = splitTemplate(text)
				return entry.lines
			case FileEntry(lines=lines) if lines is not None:
				return lines
			case _:
				raise HTTPRequestError(f"Invalid template: {path}", status=500)


def readText(path: str) -> str:
	with open(path, "rt", encoding=DEFAULT_ENCODING, newline="") as f:
		return f.read()


# EOF

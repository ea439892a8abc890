import asyncio
import hashlib
import os
from pathlib import Path

import pytest

from dserve.cache import (
	ABSENT,
	CacheEntry,
	DirectoryEntry,
	FileEntry,
	FileKind,
	PathCache,
	SymlinkEntry,
	hashFile,
)
from dserve.http.model import HTTPRequestError


class Clock:
	def __init__(self, now: float = 0.0) -> None:
		self.now: float = now

	def __call__(self) -> float:
		return self.now


class CountingCache(PathCache):
	"""Counts the filesystem scans."""

	def __init__(self, timeout: float, clock: Clock) -> None:
		super().__init__(timeout, clock=clock)
		self.scans: list[str] = []

	async def scan(self, path: str) -> CacheEntry:
		self.scans.append(path)
		return await super().scan(path)


def test_hash_file(tmp_path: Path):
	path = tmp_path / "abc.txt"
	path.write_bytes(b"abc")
	digest, size = asyncio.run(hashFile(str(path)))
	assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
	assert size == 3


def test_hash_file_in_blocks(tmp_path: Path):
	data = os.urandom(10_000)
	path = tmp_path / "random.bin"
	path.write_bytes(data)
	digest, size = asyncio.run(hashFile(str(path), blockSize=333))
	assert digest == hashlib.sha256(data).hexdigest()
	assert size == len(data)


def test_empty_file(root: Path):
	entry = asyncio.run(PathCache(60).get(str(root / "docs" / "empty.txt")))
	assert isinstance(entry, FileEntry)
	assert entry.size == 0
	assert entry.hash == hashlib.sha256(b"").hexdigest()


def test_file_entry(root: Path):
	clock = Clock(100.0)
	cache = PathCache(60, clock=clock)
	path = str(root / "hello.txt")
	entry = asyncio.run(cache.get(path))
	assert isinstance(entry, FileEntry)
	assert entry.path == path
	assert entry.size == 14
	assert entry.hash == hashlib.sha256(b"Hello, World!\n").hexdigest()
	assert entry.expires == 160.0
	assert path in cache
	assert len(cache) == 1


def test_directory_entry(root: Path):
	entry = asyncio.run(PathCache(60).get(str(root)))
	assert isinstance(entry, DirectoryEntry)
	children = {_.filename: _ for _ in entry.children}
	assert sorted(children) == ["data.bin", "docs", "hello.txt", "index.html", "link"]
	assert children["hello.txt"].kind is FileKind.File
	assert children["docs"].kind is FileKind.Folder
	assert children["link"].kind is FileKind.Symlink
	info = os.lstat(root / "data.bin")
	data = children["data.bin"]
	assert data.size == 500
	assert data.mtime == info.st_mtime_ns // 1_000_000
	assert data.mode == info.st_mode
	assert data.nlink == info.st_nlink
	assert data.birthtime == ABSENT or data.birthtime > 0


def test_symlink_entry(root: Path):
	entry = asyncio.run(PathCache(60).get(str(root / "link")))
	assert isinstance(entry, SymlinkEntry)
	assert entry.target == "hello.txt"


def test_dangling_symlink(root: Path):
	os.symlink("nowhere.txt", root / "dangling")
	entry = asyncio.run(PathCache(60).get(str(root / "dangling")))
	assert isinstance(entry, SymlinkEntry)
	assert entry.target == "nowhere.txt"


def test_missing_path(root: Path):
	cache = PathCache(60)
	with pytest.raises(FileNotFoundError):
		asyncio.run(cache.get(str(root / "missing.txt")))
	assert len(cache) == 0


def test_entries_are_reused_until_expired(root: Path):
	clock = Clock()
	cache = CountingCache(10, clock)
	path = str(root / "hello.txt")

	async def run() -> None:
		first = await cache.get(path)
		clock.now = 10.0
		# Expiry is strict, an entry is still live at its expiry time
		assert await cache.get(path) is first
		assert cache.scans == [path]
		clock.now = 10.5
		second = await cache.get(path)
		assert second is not first
		assert cache.scans == [path, path]

	asyncio.run(run())


def test_changes_are_seen_after_expiry(root: Path):
	clock = Clock()
	cache = PathCache(10, clock=clock)
	path = root / "hello.txt"

	async def run() -> None:
		before = await cache.get(str(path))
		path.write_bytes(b"Changed\n")
		stale = await cache.get(str(path))
		assert isinstance(stale, FileEntry)
		assert stale.hash == before.hash
		clock.now = 11.0
		fresh = await cache.get(str(path))
		assert isinstance(fresh, FileEntry)
		assert fresh.size == 8
		assert fresh.hash == hashlib.sha256(b"Changed\n").hexdigest()

	asyncio.run(run())


def test_expired_entry_removed_on_failure(root: Path):
	clock = Clock()
	cache = PathCache(10, clock=clock)
	path = root / "hello.txt"

	async def run() -> None:
		await cache.get(str(path))
		path.unlink()
		clock.now = 20.0
		with pytest.raises(FileNotFoundError):
			await cache.get(str(path))
		assert str(path) not in cache

	asyncio.run(run())


def test_unreadable_children_are_skipped(root: Path, monkeypatch: pytest.MonkeyPatch):
	lstat = os.lstat

	def failing(path, *args, **kwargs):
		if os.fspath(path).endswith("data.bin"):
			raise PermissionError(13, "Permission denied", os.fspath(path))
		return lstat(path, *args, **kwargs)

	monkeypatch.setattr(os, "lstat", failing)
	entry = asyncio.run(PathCache(60).get(str(root)))
	assert isinstance(entry, DirectoryEntry)
	# The others keep their enumeration order
	assert [_.filename for _ in entry.children] == [
		_.name for _ in os.scandir(root) if _.name != "data.bin"
	]


def test_children_in_enumeration_order(root: Path):
	for name in ("zeta", "alpha", "mid", "beta"):
		(root / "docs" / name).write_bytes(name.encode())
	for path in (root, root / "docs"):
		entry = asyncio.run(PathCache(60).get(str(path)))
		assert isinstance(entry, DirectoryEntry)
		assert [_.filename for _ in entry.children] == [
			_.name for _ in os.scandir(path)
		]


def test_template_lines(root: Path):
	cache = CountingCache(60, Clock())
	path = str(root / "index.html")

	async def run() -> None:
		lines = await cache.template(path)
		assert "\n".join(lines) == (root / "index.html").read_text()
		assert await cache.template(path) is lines
		assert cache.scans == [path]

	asyncio.run(run())


def test_template_must_be_a_file(root: Path):
	with pytest.raises(HTTPRequestError) as e:
		asyncio.run(PathCache(60).template(str(root / "docs")))
	assert e.value.status == 500


# EOF

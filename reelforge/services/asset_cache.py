"""Background asset cache shared by all jobs on a host.

Backgrounds are large and reused across many jobs, so they are kept on
local disk under a caller-supplied identifier. Only one download per key
runs at a time: threads in a worker serialize on a per-key lock, and worker
processes serialize on an advisory ``flock`` next to the cache file. A
caller that arrives while a download is in flight waits and then gets a hit.

Entries are bounded by count, total size and age. Least recently used
entries go first; every removal goes through ``on_evict``.
"""

import fcntl
import logging
import os
import re
import shutil
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator

from reelforge.config import get_settings
from reelforge.exceptions import ValidationError
from reelforge.utils.download import download_file

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
_SUFFIX = ".mp4"


@dataclass
class CacheEntry:
    key: str
    local_path: Path
    last_access: float
    size_bytes: int


def validate_cache_key(key: str) -> str:
    if not _KEY_RE.match(key or ""):
        raise ValidationError(
            f"Invalid background id {key!r}: use letters, digits, '-' or '_' (max 64 chars)"
        )
    return key


def link_or_copy(source: Path, dest: Path) -> Path:
    """Give a job its own name for a cached file."""
    try:
        os.link(source, dest)
    except OSError:
        shutil.copyfile(source, dest)
    return dest


class AssetCache:
    """Disk cache with single-flight downloads and LRU/TTL eviction."""

    def __init__(
        self,
        cache_dir: str | None = None,
        max_entries: int | None = None,
        max_bytes: int | None = None,
        ttl_seconds: int | None = None,
        on_evict: Callable[[CacheEntry], None] | None = None,
        downloader: Callable[[str, Path], object] = download_file,
    ) -> None:
        settings = get_settings()
        self.cache_dir = Path(cache_dir or settings.cache_dir)
        self.max_entries = max_entries if max_entries is not None else settings.cache_max_entries
        self.max_bytes = max_bytes if max_bytes is not None else settings.cache_max_bytes
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self.on_evict = on_evict
        self._downloader = downloader
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{validate_cache_key(key)}{_SUFFIX}"

    def _key_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def _locked(self, key: str) -> Iterator[None]:
        """Hold both the in-process and the cross-process lock for a key."""
        lock_path = self.cache_dir / f".{key}.lock"
        with self._key_lock(key):
            with open(lock_path, "a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _entry(self, key: str, path: Path) -> CacheEntry | None:
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        return CacheEntry(key=key, local_path=path, last_access=stat.st_mtime, size_bytes=stat.st_size)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return self.ttl_seconds > 0 and now - entry.last_access > self.ttl_seconds

    def _fetch(self, key: str, url: str, path: Path) -> None:
        """Make sure ``path`` holds a fresh copy of ``key``. Caller holds the key lock."""
        entry = self._entry(key, path)
        if entry and self._is_expired(entry, time.time()):
            logger.info("[Cache] EXPIRED %s", key)
            self._remove(entry)
            entry = None

        if entry:
            os.utime(path, None)
            logger.info("[Cache] HIT %s (%d bytes)", key, entry.size_bytes)
        else:
            logger.info("[Cache] MISS %s, downloading %s", key, url)
            self._downloader(url, path)
            logger.info("[Cache] STORED %s (%d bytes)", key, path.stat().st_size)

    def get_or_download(self, key: str, url: str) -> Path:
        """
        Return the local path for ``key``, downloading ``url`` on a miss.

        The returned path may be evicted by a later prune. Jobs that need
        the file to outlive the call should use ``materialize``.

        Raises:
            ValidationError: If the key is not a safe identifier
            AssetUnavailableError: If the download fails
        """
        path = self.path_for(key)
        with self._locked(key):
            self._fetch(key, url, path)

        self.prune(keep={key})
        return path

    def materialize(self, key: str, url: str, dest: str | Path) -> Path:
        """
        Fetch ``key`` and give it a job-owned name at ``dest``.

        The hard link (or copy, across filesystems) is made while the key
        lock is held, so a concurrent prune cannot unlink the entry first.

        Raises:
            ValidationError: If the key is not a safe identifier
            AssetUnavailableError: If the download fails
        """
        path = self.path_for(key)
        dest = Path(dest)
        with self._locked(key):
            self._fetch(key, url, path)
            link_or_copy(path, dest)

        self.prune(keep={key})
        return dest

    def entries(self) -> list[CacheEntry]:
        """Current entries, least recently used first."""
        result: list[CacheEntry] = []
        for path in self.cache_dir.glob(f"*{_SUFFIX}"):
            key = path.name[: -len(_SUFFIX)]
            if not _KEY_RE.match(key):
                continue
            entry = self._entry(key, path)
            if entry:
                result.append(entry)
        result.sort(key=lambda e: e.last_access)
        return result

    def _remove(self, entry: CacheEntry) -> None:
        # Open handles in running jobs keep the data alive after unlink
        entry.local_path.unlink(missing_ok=True)
        logger.info("[Cache] EVICT %s (%d bytes)", entry.key, entry.size_bytes)
        if self.on_evict:
            self.on_evict(entry)

    def evict(self, key: str) -> bool:
        """Remove one entry. Returns False if it was not cached."""
        path = self.path_for(key)
        with self._locked(key):
            entry = self._entry(key, path)
            if entry is None:
                return False
            self._remove(entry)
            return True

    def prune(self, keep: Iterable[str] = ()) -> list[CacheEntry]:
        """Evict expired entries, then LRU entries until within bounds."""
        keep = set(keep)
        now = time.time()
        evicted: list[CacheEntry] = []
        live: list[CacheEntry] = []

        for entry in self.entries():
            if entry.key not in keep and self._is_expired(entry, now):
                evicted.append(entry)
            else:
                live.append(entry)

        total = sum(e.size_bytes for e in live)
        candidates = [e for e in live if e.key not in keep]
        while candidates and (
            (self.max_entries > 0 and len(live) > self.max_entries)
            or (self.max_bytes > 0 and total > self.max_bytes)
        ):
            victim = candidates.pop(0)
            live.remove(victim)
            total -= victim.size_bytes
            evicted.append(victim)

        removed: list[CacheEntry] = []
        for entry in evicted:
            if self.evict(entry.key):
                removed.append(entry)
        return removed


_cache: AssetCache | None = None
_cache_guard = threading.Lock()


def get_asset_cache() -> AssetCache:
    global _cache
    with _cache_guard:
        if _cache is None:
            _cache = AssetCache()
        return _cache

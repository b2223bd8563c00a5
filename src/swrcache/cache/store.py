"""Disk-backed response store: one blob file per entry plus a JSON journal.

Layout under the store root::

    <root>/responses/
        journal.json          # JSON array of CacheEntry records
        3f2b9c...e1.cache     # response bytes, one file per entry
        ...

The journal is loaded once at construction and mirrored in memory. Every
mutating call updates the in-memory map first and then rewrites the whole
journal before returning. Blob and journal writes go through
:func:`~swrcache.config.atomic_write_bytes`, so a crash mid-write never
leaves a truncated file behind.

Expired entries are swept lazily: every :meth:`CacheStore.get`,
:meth:`CacheStore.put`, and :meth:`CacheStore.remove` first drops whatever
has expired, for any key. An entry may therefore outlive its expiration
until the next call touches the store, but it is never *served* late.

Failure policy: filesystem errors never reach the caller. They are logged
and the operation degrades to a miss (``get``) or a no-op (``put``,
``remove``). A broken cache means "nothing is cached", not a failed request.

Only one :class:`CacheStore` may own a directory at a time within a process;
a second instance over the same directory raises
:class:`~swrcache.exceptions.CacheLockError` until the first is closed.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from swrcache.cache.entry import CacheEntry
from swrcache.config import atomic_write_bytes
from swrcache.exceptions import CacheLockError, JournalCorruptionError, StorageIOError
from swrcache.models import CacheBehavior, CachedResponse, ensure_utc

logger = logging.getLogger(__name__)

CACHE_FOLDER_NAME = "responses"
JOURNAL_FILE_NAME = "journal.json"
BLOB_SUFFIX = ".cache"
_TEMP_SUFFIX = ".tmp"

_claimed_dirs: set[Path] = set()
_claims_lock = threading.Lock()


def _claim_directory(directory: Path) -> Path:
    """Register *directory* as owned by a store, or raise if it already is."""
    resolved = directory.resolve()
    with _claims_lock:
        if resolved in _claimed_dirs:
            raise CacheLockError(
                f"Cache directory {resolved} is already owned by another store; "
                "close it before opening a new one"
            )
        _claimed_dirs.add(resolved)
    return resolved


def _release_directory(resolved: Path) -> None:
    with _claims_lock:
        _claimed_dirs.discard(resolved)


class CacheStore:
    """Persistent key/value store of HTTP responses keyed by request URL.

    All operations on one instance are serialised through a re-entrant lock,
    so a store may be shared between threads of the owning process.

    Args:
        root: Storage root. The store keeps its files in a ``responses/``
            subdirectory, created if missing.
        behavior: Which lifecycle this store implements. Informational;
            the lifecycle comes from where *root* lives.

    Raises:
        CacheLockError: If another open store already owns the directory.

    Example::

        with CacheStore(tmp_dir) as store:
            store.put("https://api.example.com/users", b"[]", 200)
            hit = store.get("https://api.example.com/users")
            assert hit is not None and hit.body == b"[]"
    """

    def __init__(
        self,
        root: str | Path,
        behavior: CacheBehavior = CacheBehavior.PURGEABLE,
    ) -> None:
        self._behavior = behavior
        self._directory = Path(root) / CACHE_FOLDER_NAME
        self._journal_path = self._directory / JOURNAL_FILE_NAME
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = {}
        self._claim: Optional[Path] = _claim_directory(self._directory)

        self._create_directory()
        self._load_journal()
        self._sweep_orphans()

    # ------------------------------------------------------------------ #
    # Properties and context manager
    # ------------------------------------------------------------------ #

    @property
    def behavior(self) -> CacheBehavior:
        return self._behavior

    @property
    def directory(self) -> Path:
        """Directory holding the journal and blob files."""
        return self._directory

    @property
    def journal_path(self) -> Path:
        return self._journal_path

    def __enter__(self) -> CacheStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the directory so another store may open it. Idempotent."""
        with self._lock:
            if self._claim is not None:
                _release_directory(self._claim)
                self._claim = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership does not sweep; an expired entry still counts until
        # the next get/put/remove.
        with self._lock:
            return key in self._entries

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[CachedResponse]:
        """Return the cached response for *key*, or ``None``.

        Expired entries (for any key) are purged first. If the blob cannot
        be read, the entry is dropped and ``None`` is returned.
        """
        with self._lock:
            if self._purge_expired_locked():
                self._persist()

            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss: %s", key)
                return None

            try:
                body = self._read_blob(entry)
            except StorageIOError as exc:
                logger.warning("Couldn't read cached response for %s: %s", key, exc)
                self._drop(key)
                self._persist()
                return None

            logger.debug("Cache hit: %s (cached at %s)", key, entry.cached_at.isoformat())
            return CachedResponse(
                body=body,
                status_code=entry.status_code,
                cached_at=entry.cached_at,
            )

    def put(
        self,
        key: str,
        body: bytes,
        status_code: int,
        expires_at: Optional[datetime] = None,
    ) -> None:
        """Store *body* for *key*, replacing any existing entry.

        The old entry (and its blob) is always removed first. If
        *expires_at* is already in the past nothing new is written, which
        makes ``put`` usable as a pure invalidation.

        Args:
            key: Canonical request URL.
            body: Response bytes.
            status_code: HTTP status to record with the entry.
            expires_at: When the entry stops being served; ``None`` for never.
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            self._purge_expired_locked(now)
            self._drop(key)

            if expires_at is not None and ensure_utc(expires_at) < now:
                logger.debug("Not caching %s: expiration %s already passed", key, expires_at)
                self._persist()
                return

            entry = CacheEntry.create(
                key=key,
                blob_location=f"{uuid.uuid4().hex}{BLOB_SUFFIX}",
                status_code=status_code,
                expires_at=expires_at,
            )
            try:
                self._write_blob(entry, body)
            except StorageIOError as exc:
                logger.warning("Couldn't write cached response for %s: %s", key, exc)
                self._persist()
                return

            self._entries[key] = entry
            self._persist()
            logger.debug("Cached %s (%d bytes, expires %s)", key, len(body), expires_at)

    def remove(self, key: str) -> None:
        """Remove the entry for *key* regardless of its expiration.

        Also purges any expired entries. Removing a missing key is a no-op.
        """
        with self._lock:
            self._purge_expired_locked()
            if self._drop(key):
                logger.debug("Removed cached response for %s", key)
            self._persist()

    def remove_all(self) -> None:
        """Delete the whole cache directory and start over empty."""
        with self._lock:
            try:
                shutil.rmtree(self._directory)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Couldn't delete cache directory %s: %s", self._directory, exc)
            self._entries = {}
            self._create_directory()
            # Leftover blobs from a partial rmtree are swept as orphans on the next load.
            self._persist()

    def purge_expired(self) -> int:
        """Remove every expired entry and persist the journal once.

        Returns:
            The number of entries removed.
        """
        with self._lock:
            purged = self._purge_expired_locked()
            self._persist()
            return purged

    # Request-layer vocabulary.
    lookup = get
    store = put
    invalidate = remove
    clear = remove_all

    def entries(self) -> list[CacheEntry]:
        """Snapshot of all entries, sorted by key. Does not sweep."""
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.key)

    def stats(self) -> dict[str, Any]:
        """Return store statistics for display.

        Returns:
            A ``dict`` with ``behavior``, ``directory``, ``entries``,
            ``expiring`` (entries with an expiration), and ``size_bytes``
            (total blob size; unreadable blobs count as zero).
        """
        with self._lock:
            size = 0
            for entry in self._entries.values():
                try:
                    size += self._blob_path(entry).stat().st_size
                except OSError:
                    continue
            return {
                "behavior": self._behavior.value,
                "directory": str(self._directory),
                "entries": len(self._entries),
                "expiring": sum(1 for e in self._entries.values() if e.expires_at is not None),
                "size_bytes": size,
            }

    # ------------------------------------------------------------------ #
    # Private helpers (callers hold self._lock)
    # ------------------------------------------------------------------ #

    def _blob_path(self, entry: CacheEntry) -> Path:
        return self._directory / entry.blob_location

    def _create_directory(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Couldn't create cache directory %s: %s", self._directory, exc)

    def _read_blob(self, entry: CacheEntry) -> bytes:
        try:
            return self._blob_path(entry).read_bytes()
        except OSError as exc:
            raise StorageIOError(f"cannot read {entry.blob_location}: {exc}") from exc

    def _write_blob(self, entry: CacheEntry, body: bytes) -> None:
        try:
            atomic_write_bytes(self._blob_path(entry), body)
        except OSError as exc:
            raise StorageIOError(f"cannot write {entry.blob_location}: {exc}") from exc

    def _delete_blob(self, entry: CacheEntry) -> None:
        try:
            self._blob_path(entry).unlink()
        except FileNotFoundError:
            logger.debug("Blob %s for %s was already gone", entry.blob_location, entry.key)
        except OSError as exc:
            logger.warning("Couldn't delete cache file %s: %s", entry.blob_location, exc)

    def _drop(self, key: str) -> bool:
        """Forget *key* and delete its blob. Does not persist."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._delete_blob(entry)
        return True

    def _purge_expired_locked(self, now: Optional[datetime] = None) -> int:
        current = now or datetime.now(timezone.utc)
        expired = [key for key, entry in self._entries.items() if entry.is_expired(current)]
        for key in expired:
            self._drop(key)
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def _persist(self) -> None:
        records = [entry.to_journal() for entry in self._entries.values()]
        try:
            atomic_write_bytes(self._journal_path, json.dumps(records).encode("utf-8"))
        except OSError as exc:
            logger.warning("Couldn't save cache journal %s: %s", self._journal_path, exc)

    def _load_journal(self) -> None:
        self._entries = {}
        try:
            entries = self._read_journal()
        except (StorageIOError, JournalCorruptionError) as exc:
            logger.warning("Couldn't load cache journal, starting empty: %s", exc)
            return
        for entry in entries:
            self._entries[entry.key] = entry

    def _read_journal(self) -> list[CacheEntry]:
        """Parse the journal, skipping malformed records one by one.

        Raises:
            StorageIOError: If the file exists but cannot be read.
            JournalCorruptionError: If it is not a JSON array.
        """
        try:
            raw = self._journal_path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageIOError(f"cannot read {self._journal_path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise JournalCorruptionError(f"{self._journal_path} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise JournalCorruptionError(f"{self._journal_path} does not hold a JSON array")

        entries: list[CacheEntry] = []
        for index, record in enumerate(data):
            try:
                entries.append(CacheEntry.from_journal(record))
            except ValueError as exc:
                logger.warning("Skipping malformed journal record #%d: %s", index, exc)
        return entries

    def _sweep_orphans(self) -> None:
        """Delete blob and temp files the journal does not reference."""
        referenced = {entry.blob_location for entry in self._entries.values()}
        try:
            candidates = list(self._directory.iterdir())
        except OSError as exc:
            logger.warning("Couldn't scan cache directory %s: %s", self._directory, exc)
            return

        for path in candidates:
            name = path.name
            if name in referenced or name == JOURNAL_FILE_NAME:
                continue
            if not (name.endswith(BLOB_SUFFIX) or name.endswith(_TEMP_SUFFIX)):
                continue
            try:
                path.unlink()
                logger.debug("Removed orphaned cache file %s", name)
            except OSError as exc:
                logger.warning("Couldn't remove orphaned cache file %s: %s", name, exc)

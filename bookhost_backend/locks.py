"""Per-book mutual exclusion for upload and build.

An upload clears and repopulates a book's source tree; a build reads that
same tree. Both take the book's lock so a build never sees a half-extracted
tree and an upload never pulls files out from under a running build.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _BookLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # Holders plus waiters; guarded by BookLocks._locks_lock.
        self.users = 0


class BookLocks:
    """Registry of one exclusive lock per book slug.

    An entry lives exactly as long as someone holds or waits on it, so every
    caller for a slug always contends on the same lock object.

    Usage:
        locks = BookLocks()
        with locks.hold(slug):
            reset_for_upload(...)
            extract_archive(...)
    """

    def __init__(self) -> None:
        self._locks: Dict[str, _BookLock] = {}
        self._locks_lock = threading.Lock()  # Protects _locks and every users count

    def _checkout(self, slug: str) -> _BookLock:
        with self._locks_lock:
            entry = self._locks.get(slug)
            if entry is None:
                entry = _BookLock()
                self._locks[slug] = entry
            entry.users += 1
            return entry

    def _checkin(self, slug: str, entry: _BookLock) -> None:
        with self._locks_lock:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(slug, None)

    @contextmanager
    def hold(self, slug: str) -> Iterator[None]:
        """Hold the book's lock for the duration of the block, released on any exit."""
        entry = self._checkout(slug)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(slug, entry)

    def is_held(self, slug: str) -> bool:
        with self._locks_lock:
            entry = self._locks.get(slug)
            return entry is not None and entry.lock.locked()

    def users(self, slug: str) -> int:
        """Number of callers currently holding or waiting on the book's lock."""
        with self._locks_lock:
            entry = self._locks.get(slug)
            return entry.users if entry is not None else 0

    @property
    def active_lock_count(self) -> int:
        with self._locks_lock:
            return len(self._locks)

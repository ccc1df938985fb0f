"""CanonicalList — the shared, lock-guarded package list."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator

from packagelist.engines.normalizer.urls import PackageURL, dedup, normalize


class CanonicalList:
    """Ordered list of :class:`PackageURL` with serialized mutations.

    Concurrent workers never touch the underlying list directly: every
    replace / remove / append takes the lock, and the lock is never held
    across network or process waits.
    """

    def __init__(self, urls: Iterable[str] = ()) -> None:
        self._entries: list[PackageURL] = [PackageURL(u) for u in urls]
        self._lock = asyncio.Lock()

    # ── read access ────────────────────────────────────────────────────────

    @property
    def urls(self) -> list[str]:
        """Snapshot of the raw URLs in current order."""
        return [e.raw for e in self._entries]

    def keys(self) -> set[str]:
        return {e.normalized_key for e in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls)

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        return normalize(url) in self.keys()

    # ── mutations ──────────────────────────────────────────────────────────

    async def replace(self, old: str, new: str) -> bool:
        """Replace the entry matching *old* with *new*; False if absent."""
        async with self._lock:
            index = self._index_of(old)
            if index is None:
                return False
            self._entries[index] = PackageURL(new)
            return True

    async def remove(self, url: str) -> bool:
        """Remove the entry matching *url*; False if absent."""
        async with self._lock:
            index = self._index_of(url)
            if index is None:
                return False
            del self._entries[index]
            return True

    async def append(self, url: str) -> bool:
        """Append *url* unless its key is already present."""
        async with self._lock:
            if self._index_of(url) is not None:
                return False
            self._entries.append(PackageURL(url))
            return True

    async def deduplicate(self) -> int:
        """Collapse duplicate keys and sort; returns how many entries went away."""
        async with self._lock:
            before = len(self._entries)
            self._entries = [PackageURL(u) for u in dedup([e.raw for e in self._entries])]
            return before - len(self._entries)

    # ── internal ───────────────────────────────────────────────────────────

    def _index_of(self, url: str) -> int | None:
        key = normalize(url)
        for index, entry in enumerate(self._entries):
            if entry.normalized_key == key:
                return index
        return None

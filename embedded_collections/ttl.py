"""
TTL-aware key/value store living beside the document store.

Entries are kept as an ordered list of single-key maps, each mapping a key to
a :class:`TTLEntry` holding the value and its expiry timestamp. Expiry is
always recorded. It only affects reads when the store is created with
``enforce_expiry=True``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from threading import RLock
from typing import Any

from .exceptions import InvalidInputError, KeyExistsError, KeyNotFoundError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TTLEntry:
    """
    Stored value plus its expiry as epoch seconds.

    ``expires_at`` is ``None`` for entries set without a TTL.
    """

    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class TTLStore:
    """
    Concurrent key/value storage with per-entry expiry metadata.

    Parameters
    ----------
    clock:
        Callable returning epoch seconds.
    enforce_expiry:
        When true, expired entries are dropped on access and are invisible to
        every read.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time, enforce_expiry: bool = False) -> None:
        self._storage: list[dict[str, TTLEntry]] = []
        self._clock = clock
        self._enforce_expiry = bool(enforce_expiry)
        self._lock = RLock()

    @property
    def enforce_expiry(self) -> bool:
        return self._enforce_expiry

    def _deadline(self, ttl_seconds: float | None) -> float | None:
        if ttl_seconds is None:
            return None
        ttl = float(ttl_seconds)
        if ttl <= 0:
            raise InvalidInputError("TTL must be > 0 seconds, or None to disable.")
        return self._clock() + ttl

    def _drop_expired_locked(self) -> int:
        if not self._enforce_expiry:
            return 0
        now = self._clock()
        kept = [cache for cache in self._storage if not _entry_of(cache).is_expired(now)]
        dropped = len(self._storage) - len(kept)
        self._storage = kept
        return dropped

    def _index_of_locked(self, key: str) -> int | None:
        for index, cache in enumerate(self._storage):
            if key in cache:
                return index
        return None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Add a new entry.

        Raises
        ------
        KeyExistsError
            When the key is already present.
        """
        expires_at = self._deadline(ttl_seconds)
        with self._lock:
            self._drop_expired_locked()
            if self._index_of_locked(key) is not None:
                raise KeyExistsError(f"Key already exists: {key!r}")
            self._storage.append({key: TTLEntry(value, expires_at)})

    def set_many(
        self,
        entries: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        ttl_seconds: float | None = None,
    ) -> list[dict[str, Any]]:
        """
        Add several entries at once and return :meth:`key_value_pairs`.

        Keys are checked against the store and against each other before
        anything is added, so a duplicate leaves the store untouched.
        """
        pairs = list(_iter_pairs(entries))
        expires_at = self._deadline(ttl_seconds)
        with self._lock:
            self._drop_expired_locked()
            seen: set[str] = set()
            for key, _ in pairs:
                if key in seen or self._index_of_locked(key) is not None:
                    raise KeyExistsError(f"Key already exists: {key!r}")
                seen.add(key)
            self._storage.extend({key: TTLEntry(value, expires_at)} for key, value in pairs)
            return self.key_value_pairs()

    def get(self, key: str) -> Any:
        """Return the value for ``key``."""
        return self._entry(key).value

    def get_many(self, keys: Iterable[str]) -> list[dict[str, Any]]:
        """Return ``{key: value}`` maps, in storage order, for the keys present."""
        wanted = set(keys)
        with self._lock:
            self._drop_expired_locked()
            return [
                {key: entry.value}
                for cache in self._storage
                for key, entry in cache.items()
                if key in wanted
            ]

    def expires_at(self, key: str) -> float | None:
        """Return the expiry timestamp recorded for ``key``."""
        return self._entry(key).expires_at

    def type_of(self, key: str) -> str:
        """Return the Python type name of the value stored under ``key``."""
        return type(self._entry(key).value).__name__

    def _entry(self, key: str) -> TTLEntry:
        with self._lock:
            self._drop_expired_locked()
            index = self._index_of_locked(key)
            if index is None:
                raise KeyNotFoundError(f"Key not found: {key!r}")
            return self._storage[index][key]

    def delete(self, key: str) -> None:
        """Remove ``key``."""
        with self._lock:
            self._drop_expired_locked()
            index = self._index_of_locked(key)
            if index is None:
                raise KeyNotFoundError(f"Key not found: {key!r}")
            del self._storage[index]

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._storage = []

    def overwrite(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Replace the value and expiry of an existing key."""
        self.overwrite_with_key(key, key, value, ttl_seconds)

    def overwrite_with_key(
        self,
        prev_key: str,
        new_key: str,
        value: Any,
        ttl_seconds: float | None = None,
    ) -> None:
        """
        Replace an existing entry with a new key, value, and expiry.

        The replacement is appended at the end of the storage order.

        Raises
        ------
        KeyNotFoundError
            When ``prev_key`` is absent.
        KeyExistsError
            When ``new_key`` already names a different entry.
        """
        expires_at = self._deadline(ttl_seconds)
        with self._lock:
            self._drop_expired_locked()
            index = self._index_of_locked(prev_key)
            if index is None:
                raise KeyNotFoundError(f"Key not found: {prev_key!r}")
            if new_key != prev_key and self._index_of_locked(new_key) is not None:
                raise KeyExistsError(f"Key already exists: {new_key!r}")
            del self._storage[index]
            self._storage.append({new_key: TTLEntry(value, expires_at)})

    def size(self) -> int:
        """Return the number of stored entries."""
        with self._lock:
            self._drop_expired_locked()
            return sum(len(cache) for cache in self._storage)

    def keys(self) -> list[str]:
        with self._lock:
            self._drop_expired_locked()
            return [key for cache in self._storage for key in cache]

    def values(self) -> list[Any]:
        with self._lock:
            self._drop_expired_locked()
            return [entry.value for cache in self._storage for entry in cache.values()]

    def key_value_pairs(self) -> list[dict[str, Any]]:
        """Return one ``{key: value}`` map per stored entry, in storage order."""
        with self._lock:
            self._drop_expired_locked()
            return [{key: entry.value for key, entry in cache.items()} for cache in self._storage]

    def purge_expired(self) -> int:
        """
        Remove expired entries and return how many were removed.

        Does nothing unless expiry is enforced.
        """
        with self._lock:
            dropped = self._drop_expired_locked()
        if dropped:
            _LOGGER.debug("Purged %s expired TTL entries", dropped)
        return dropped

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            self._drop_expired_locked()
            return isinstance(key, str) and self._index_of_locked(key) is not None


def _entry_of(cache: dict[str, TTLEntry]) -> TTLEntry:
    return next(iter(cache.values()))


def _iter_pairs(entries: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Iterable[tuple[str, Any]]:
    if isinstance(entries, Mapping):
        yield from entries.items()
        return
    if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
        raise InvalidInputError("set_many expects a mapping or a sequence of mappings.")
    for item in entries:
        if not isinstance(item, Mapping):
            raise InvalidInputError("set_many expects a mapping or a sequence of mappings.")
        yield from item.items()

"""
Thread-safe in-memory document store shared by every collection handle.

The store is a single ordered list of documents from all collections.
Membership in a collection is decided by each document's ``collection`` field;
there are no per-collection containers and no indexes, so every lookup is a
full scan. All scans and mutations run under one re-entrant lock so that
compaction during deletes never races with concurrent writers.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from copy import deepcopy
from datetime import datetime, timezone
from threading import RLock
from typing import Any

_LOGGER = logging.getLogger(__name__)

COLLECTION_FIELD = "collection"
ID_FIELD = "id"
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"
SYSTEM_FIELDS = (COLLECTION_FIELD, ID_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD)
IMMUTABLE_FIELDS = frozenset({COLLECTION_FIELD, ID_FIELD, CREATED_AT_FIELD})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def record_matches(record: Mapping[str, Any], collection: str, predicate: Mapping[str, Any]) -> bool:
    """
    Return ``True`` when ``record`` belongs to ``collection`` and satisfies
    every ``(key, value)`` clause of ``predicate``.

    Integers and floats compare by value, but booleans only equal booleans,
    also inside nested lists and mappings. A clause never matches a record
    that lacks its key, even when the clause value is ``None``.
    """
    if record.get(COLLECTION_FIELD) != collection:
        return False
    for key, value in predicate.items():
        if key not in record or not _same_value(record[key], value):
            return False
    return True


def _same_value(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(_same_value(left[k], right[k]) for k in left)
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(_same_value(a, b) for a, b in zip(left, right))
    return left == right


class DocumentStore:
    """
    Ordered document sequence with collection-scoped query primitives.

    Parameters
    ----------
    clock:
        Callable returning the current aware ``datetime``. Timestamps are
        stored as ISO-8601 strings.
    id_factory:
        Callable returning a new unique document identifier.

    Notes
    -----
    Every read returns deep copies so callers cannot mutate stored state.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._records: list[dict[str, Any]] = []
        self._clock = clock
        self._id_factory = id_factory
        self._lock = RLock()

    @property
    def lock(self) -> RLock:
        """Return the store lock, for callers that must serialize with mutations."""
        return self._lock

    def _timestamp(self) -> str:
        return self._clock().isoformat()

    def insert(self, collection: str, documents: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Stamp system fields onto normalized documents and append them.

        The whole batch is appended under one lock acquisition.
        """
        stamped = []
        for document in documents:
            record = dict(document)
            record[COLLECTION_FIELD] = collection
            record[ID_FIELD] = self._id_factory()
            record[CREATED_AT_FIELD] = self._timestamp()
            record[UPDATED_AT_FIELD] = None
            stamped.append(record)
        with self._lock:
            self._records.extend(stamped)
        _LOGGER.debug("Inserted %s document(s) collection=%s", len(stamped), collection)
        return deepcopy(stamped)

    def extend_raw(self, records: Iterable[dict[str, Any]]) -> int:
        """
        Append already-stamped records verbatim, as read from a snapshot.
        """
        copied = deepcopy(list(records))
        with self._lock:
            self._records.extend(copied)
        return len(copied)

    def find(self, collection: str, predicate: Mapping[str, Any], *, limit: int | None = None) -> list[dict[str, Any]]:
        """Return matching records in store order, up to ``limit``."""
        results = []
        with self._lock:
            for record in self._records:
                if record_matches(record, collection, predicate):
                    results.append(deepcopy(record))
                    if limit is not None and len(results) >= limit:
                        break
        return results

    def all_records(self, collection: str | None = None) -> list[dict[str, Any]]:
        """Return every record, or every record of one collection."""
        with self._lock:
            if collection is None:
                return deepcopy(self._records)
            return deepcopy([r for r in self._records if r.get(COLLECTION_FIELD) == collection])

    def remove_first(self, collection: str, predicate: Mapping[str, Any]) -> dict[str, Any] | None:
        """Remove and return the first matching record, or ``None``."""
        with self._lock:
            for index, record in enumerate(self._records):
                if record_matches(record, collection, predicate):
                    return self._records.pop(index)
        return None

    def remove_all(self, collection: str, predicate: Mapping[str, Any]) -> int:
        """Remove every matching record in one compaction pass."""
        with self._lock:
            kept = [r for r in self._records if not record_matches(r, collection, predicate)]
            removed = len(self._records) - len(kept)
            self._records = kept
        return removed

    def clear(self, collection: str | None = None) -> int:
        """Remove every record, or every record of one collection."""
        with self._lock:
            if collection is None:
                removed = len(self._records)
                self._records = []
                return removed
            kept = [r for r in self._records if r.get(COLLECTION_FIELD) != collection]
            removed = len(self._records) - len(kept)
            self._records = kept
            return removed

    def update_first(
        self,
        collection: str,
        predicate: Mapping[str, Any],
        key: str,
        value: Any,
    ) -> dict[str, Any] | None:
        """
        Set one field on the first matching record and refresh ``updatedAt``.

        Later matches are left untouched. Returns the updated record, or
        ``None`` when nothing matched.
        """
        with self._lock:
            for record in self._records:
                if record_matches(record, collection, predicate):
                    record[key] = deepcopy(value)
                    record[UPDATED_AT_FIELD] = self._timestamp()
                    return deepcopy(record)
        return None

    def collections(self) -> list[str]:
        """Return distinct collection identifiers in first-seen order."""
        with self._lock:
            seen = dict.fromkeys(str(r.get(COLLECTION_FIELD)) for r in self._records)
        return list(seen)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

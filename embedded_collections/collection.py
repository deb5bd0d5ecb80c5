"""
Collection handles and the query builders they return.

A handle is a named view over the shared :class:`DocumentStore`. Handles keep
no state of their own besides the resolved collection identifier, so two
handles built from ``"user"`` and ``"users"`` address the same documents.

Operations follow a two-step call shape::

    users = db.collection("user")
    users.insert({"name": "John", "age": 35}).one()
    users.find({"age": 35}).all()
    users.update({"name": "John"}, {"age": 36}).one()
    users.delete({"name": "John"}).one()

Shortcuts such as :meth:`CollectionHandle.insert_one` wrap the builders.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .exceptions import (
    ConflictingArgumentsError,
    InvalidInputError,
    PreconditionViolationError,
    RecordNotFoundError,
)
from .normalizer import (
    RecordInput,
    is_structured_record,
    is_structured_type,
    normalize,
    structured_type_name,
    to_json_value,
)
from .persistence import as_document_list, read_json_document
from .store import IMMUTABLE_FIELDS, DocumentStore

_LOGGER = logging.getLogger(__name__)


def resolve_collection_name(name_or_record: Any) -> str:
    """
    Resolve a name or structured record into a collection identifier.

    The identifier is lower-cased and pluralized with a trailing ``s`` unless
    it already ends in ``s``: ``"User"`` and ``"users"`` both give ``"users"``,
    an ``Order`` dataclass gives ``"orders"``.

    Raises
    ------
    PreconditionViolationError
        For ``None``, blank names, and values that are neither text nor a
        structured record or structured type.
    """
    if name_or_record is None:
        _LOGGER.error("Collection cannot be empty")
        raise PreconditionViolationError("Collection cannot be empty.")
    if isinstance(name_or_record, str):
        name = name_or_record.strip().lower()
    elif is_structured_record(name_or_record) or is_structured_type(name_or_record):
        name = structured_type_name(name_or_record).lower()
    else:
        _LOGGER.error(
            "Collection must be a str or a structured record, got %s",
            type(name_or_record).__name__,
        )
        raise PreconditionViolationError(
            "Collection must either be a str or a structured record "
            f"(dataclass or NamedTuple), got {type(name_or_record).__name__}."
        )
    if not name:
        _LOGGER.error("Collection cannot be empty")
        raise PreconditionViolationError("Collection cannot be empty.")
    if not name.endswith("s"):
        name = f"{name}s"
    return name


def _require_predicate(predicate: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if predicate is None:
        raise RecordNotFoundError("Filter params cannot be None.")
    if not isinstance(predicate, Mapping):
        raise InvalidInputError(f"Filter must be a mapping, got {type(predicate).__name__}.")
    return predicate


class Insert:
    """
    Pending insert returned by :meth:`CollectionHandle.insert`.

    ``one()`` stores the value given to ``insert``. ``many()`` and
    ``from_json_file()`` require that no value was given.
    """

    def __init__(self, handle: "CollectionHandle", value: Any = None) -> None:
        self._handle = handle
        self._value = value

    def one(self) -> dict[str, Any]:
        """Store the pending value and return the stored document."""
        if self._value is None:
            raise InvalidInputError("insert().one() requires a document, got None.")
        return self.input(RecordInput.single(self._value))[0]

    def many(self, values: Any) -> list[dict[str, Any]]:
        """
        Store a sequence of documents as one atomic batch.

        Every element is normalized before anything is appended, so a bad
        element leaves the store untouched.
        """
        if self._value is not None:
            raise ConflictingArgumentsError(
                "insert(value).many() is ambiguous: call insert().many(values) without a value."
            )
        return self.input(RecordInput.many(values))

    def from_json_file(self, path: str | Path) -> list[dict[str, Any]]:
        """
        Store documents read from a JSON file holding one object or an array.
        """
        if self._value is not None:
            raise ConflictingArgumentsError(
                "insert(value).from_json_file() is ambiguous: call it without a value."
            )
        payload = read_json_document(path)
        if isinstance(payload, dict):
            return self.input(RecordInput.single(payload))
        return self.input(RecordInput.many(as_document_list(payload, source=f"Import file {path}")))

    def input(self, record_input: RecordInput) -> list[dict[str, Any]]:
        """Store a tagged payload and return the stored documents."""
        documents = normalize(record_input)
        return self._handle.store.insert(self._handle.name, documents)


class Find:
    """Pending query returned by :meth:`CollectionHandle.find`."""

    def __init__(self, handle: "CollectionHandle", predicate: Mapping[str, Any] | None) -> None:
        self._handle = handle
        self._predicate = predicate

    def first(self) -> dict[str, Any]:
        """
        Return the first matching document in insertion order.

        Raises
        ------
        RecordNotFoundError
            When the predicate is ``None`` or nothing matches.
        """
        predicate = _require_predicate(self._predicate)
        found = self._handle.store.find(self._handle.name, predicate, limit=1)
        if not found:
            raise RecordNotFoundError(f"Record not found in {self._handle.name}.")
        return found[0]

    def all(self) -> list[dict[str, Any]]:
        """
        Return every matching document in insertion order.

        A ``None`` predicate returns the whole store across all collections,
        unless the handle scopes unfiltered queries to its own collection.
        """
        if self._predicate is None:
            if self._handle.scope_unfiltered:
                return self._handle.store.all_records(self._handle.name)
            return self._handle.store.all_records()
        predicate = _require_predicate(self._predicate)
        found = self._handle.store.find(self._handle.name, predicate)
        if not found:
            raise RecordNotFoundError(f"Record not found in {self._handle.name}.")
        return found


class Delete:
    """Pending removal returned by :meth:`CollectionHandle.delete`."""

    def __init__(self, handle: "CollectionHandle", predicate: Mapping[str, Any] | None) -> None:
        self._handle = handle
        self._predicate = predicate

    def one(self) -> dict[str, Any]:
        """Remove the first matching document and return it."""
        predicate = _require_predicate(self._predicate)
        removed = self._handle.store.remove_first(self._handle.name, predicate)
        if removed is None:
            raise RecordNotFoundError(f"Record not found in {self._handle.name}.")
        _LOGGER.debug("Deleted document id=%s collection=%s", removed.get("id"), self._handle.name)
        return removed

    def all(self) -> int:
        """
        Remove every matching document and return how many were removed.

        A ``None`` predicate clears the whole store across all collections,
        unless the handle scopes unfiltered queries to its own collection.
        """
        if self._predicate is None:
            scope = self._handle.name if self._handle.scope_unfiltered else None
            removed = self._handle.store.clear(scope)
            _LOGGER.debug("Cleared %s document(s) scope=%s", removed, scope or "<all>")
            return removed
        predicate = _require_predicate(self._predicate)
        removed = self._handle.store.remove_all(self._handle.name, predicate)
        if removed == 0:
            raise RecordNotFoundError(f"Record not found in {self._handle.name}.")
        _LOGGER.debug("Deleted %s document(s) collection=%s", removed, self._handle.name)
        return removed


class Update:
    """Pending update returned by :meth:`CollectionHandle.update`."""

    def __init__(
        self,
        handle: "CollectionHandle",
        predicate: Mapping[str, Any] | None,
        patch: Mapping[str, Any] | None,
    ) -> None:
        self._handle = handle
        self._predicate = predicate
        self._patch = patch

    def one(self) -> dict[str, Any]:
        """
        Apply one field of the patch to the first matching document.

        Only the first ``(key, value)`` pair of the patch, in iteration order,
        is written. Other matches are left untouched. The value is normalized
        the same way inserted documents are.
        """
        predicate = _require_predicate(self._predicate)
        if not isinstance(self._patch, Mapping) or not self._patch:
            raise InvalidInputError("Update patch must be a non-empty mapping.")
        key, value = next(iter(self._patch.items()))
        if not isinstance(key, str):
            raise InvalidInputError(f"Update field name must be a str, got {type(key).__name__}.")
        if key in IMMUTABLE_FIELDS:
            raise InvalidInputError(f"System field {key!r} cannot be updated.")
        updated = self._handle.store.update_first(
            self._handle.name, predicate, key, to_json_value(value)
        )
        if updated is None:
            raise RecordNotFoundError(f"Record not found in {self._handle.name}.")
        return updated


class CollectionHandle:
    """
    Named view over the shared document store.

    Parameters
    ----------
    store:
        Store shared by every handle of one database.
    name_or_record:
        Collection name, structured record, or structured type.
    scope_unfiltered:
        Restrict ``find(None).all()`` and ``delete(None).all()`` to this
        collection instead of the whole store.
    """

    def __init__(self, store: DocumentStore, name_or_record: Any, *, scope_unfiltered: bool = False) -> None:
        self._store = store
        self._name = resolve_collection_name(name_or_record)
        self._scope_unfiltered = bool(scope_unfiltered)

    @property
    def name(self) -> str:
        """Return the resolved collection identifier."""
        return self._name

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def scope_unfiltered(self) -> bool:
        return self._scope_unfiltered

    def insert(self, value: Any = None) -> Insert:
        return Insert(self, value)

    def find(self, predicate: Mapping[str, Any] | None) -> Find:
        return Find(self, predicate)

    def delete(self, predicate: Mapping[str, Any] | None) -> Delete:
        return Delete(self, predicate)

    def update(self, predicate: Mapping[str, Any] | None, patch: Mapping[str, Any] | None) -> Update:
        return Update(self, predicate, patch)

    def insert_one(self, value: Any) -> dict[str, Any]:
        """Store one mapping or structured record."""
        return self.insert(value).one()

    def insert_many(self, values: Any) -> list[dict[str, Any]]:
        """Store a sequence of documents atomically."""
        return self.insert().many(values)

    def insert_from_file(self, path: str | Path) -> list[dict[str, Any]]:
        """Store documents read from a JSON file."""
        return self.insert().from_json_file(path)

    def count(self, predicate: Mapping[str, Any] | None = None) -> int:
        """Return the number of documents in this collection matching ``predicate``."""
        return len(self._store.find(self._name, predicate or {}))

    def __repr__(self) -> str:
        return f"CollectionHandle(name={self._name!r})"

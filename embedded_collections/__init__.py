"""
embedded_collections
====================

Embedded, process-local document collections and TTL key/value storage.

The package offers two stores owned by one
:class:`embedded_collections.database.EmbeddedDatabase`:

* schema-less document collections with insert/find/update/delete by
  field-value predicates, and JSON snapshot persistence
* a TTL-aware key/value store with set/get/delete/overwrite

Documents are normalized through a JSON round trip, so mappings, dataclasses
and ``NamedTuple`` instances share one representation. Integers are stored as
floats. Every stored document carries ``collection``, ``id``, ``createdAt``
and ``updatedAt`` system fields.

All collections share one ordered store guarded by a re-entrant lock, which
makes handles safe to use from multiple threads.

Typical usage::

    from embedded_collections import EmbeddedDatabase

    db = EmbeddedDatabase()

    users = db.collection("user")          # resolves to "users"
    users.insert({"name": "John", "age": 35}).one()
    users.insert().many([{"name": "Jane", "age": 35}])

    users.find({"age": 35}).first()        # John
    users.find({"age": 35}).all()          # John, Jane
    users.update({"name": "John"}, {"age": 36}).one()
    users.delete({"name": "Jane"}).one()

    db.save()                              # write snapshot
    db.ttl.set("session", {"user": "John"}, ttl_seconds=60)
"""

from .collection import CollectionHandle, Delete, Find, Insert, Update, resolve_collection_name
from .config import PersistenceConfig, StoreConfig, TTLConfig
from .database import EmbeddedDatabase
from .exceptions import (
    ConflictingArgumentsError,
    EmbeddedCollectionsError,
    InvalidFormatError,
    InvalidInputError,
    KeyExistsError,
    KeyNotFoundError,
    NotFoundError,
    PreconditionViolationError,
    RecordNotFoundError,
    SnapshotNotFoundError,
    StorageIOError,
    UnsupportedShapeError,
)
from .normalizer import RecordInput, RecordShape, normalize_many, normalize_record
from .persistence import SnapshotPersistence
from .store import DocumentStore
from .ttl import TTLEntry, TTLStore

__all__ = [
    "CollectionHandle",
    "ConflictingArgumentsError",
    "Delete",
    "DocumentStore",
    "EmbeddedCollectionsError",
    "EmbeddedDatabase",
    "Find",
    "Insert",
    "InvalidFormatError",
    "InvalidInputError",
    "KeyExistsError",
    "KeyNotFoundError",
    "NotFoundError",
    "PersistenceConfig",
    "PreconditionViolationError",
    "RecordInput",
    "RecordNotFoundError",
    "RecordShape",
    "SnapshotNotFoundError",
    "SnapshotPersistence",
    "StorageIOError",
    "StoreConfig",
    "TTLConfig",
    "TTLEntry",
    "TTLStore",
    "UnsupportedShapeError",
    "Update",
    "normalize_many",
    "normalize_record",
    "resolve_collection_name",
]

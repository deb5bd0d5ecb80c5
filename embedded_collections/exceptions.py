"""
Errors raised by document collections, snapshots, and the TTL store.

Every error derives from :class:`EmbeddedCollectionsError`. Lookups that find
nothing raise a :class:`NotFoundError` subclass, bad caller input raises
:class:`InvalidInputError`.
"""


class EmbeddedCollectionsError(Exception):
    """Base error type for all library-level exceptions."""


class PreconditionViolationError(EmbeddedCollectionsError):
    """
    Raised when the caller breaks an API contract.

    Examples include resolving a collection from ``None``, from an empty name,
    or from a value that is neither text nor a structured record.
    """


class InvalidInputError(EmbeddedCollectionsError):
    """Raised when a value cannot be stored as a document."""


class UnsupportedShapeError(InvalidInputError):
    """
    Raised when a value is not a field mapping or structured record.

    Values holding members that cannot be expressed as JSON (functions,
    sockets, sets, non-finite floats) are rejected with this error too.
    """


class ConflictingArgumentsError(EmbeddedCollectionsError):
    """Raised when mutually exclusive call shapes are combined."""


class NotFoundError(EmbeddedCollectionsError):
    """Base error for lookups that produced no result."""


class RecordNotFoundError(NotFoundError):
    """Raised when no document matches a predicate."""


class SnapshotNotFoundError(NotFoundError):
    """Raised when loading from a snapshot file that does not exist."""


class KeyExistsError(EmbeddedCollectionsError):
    """Raised when setting a TTL store key that is already present."""


class KeyNotFoundError(EmbeddedCollectionsError):
    """Raised when a TTL store key is absent."""


class InvalidFormatError(EmbeddedCollectionsError):
    """
    Raised when persisted or imported content is malformed.

    The content must decode as JSON and hold either one object or an array
    of objects.
    """


class StorageIOError(EmbeddedCollectionsError):
    """Raised when a snapshot or import file cannot be read or written."""

"""
Conversion of arbitrary caller values into canonical document field maps.

Documents are stored as plain JSON-compatible dictionaries. Every inserted
value makes one trip through JSON encoding and decoding, which gives all
collections a uniform representation:

* mappings and structured records (dataclasses, ``NamedTuple`` instances)
  become ``dict[str, Any]``
* nested dataclasses become nested dictionaries
* tuples become lists, nested ``NamedTuple`` values included: only a
  top-level ``NamedTuple`` is turned into a field map
* non-string mapping keys become strings
* every integer becomes a ``float`` (``35`` is stored as ``35.0``)

Values with no JSON form are rejected with :class:`UnsupportedShapeError`.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .exceptions import UnsupportedShapeError


class RecordShape(str, Enum):
    """
    Shape of a value handed to the insert path.

    SINGLE
        One mapping or structured record.
    MANY
        A sequence of mappings or structured records.
    """

    SINGLE = "single"
    MANY = "many"


@dataclass(frozen=True, slots=True)
class RecordInput:
    """
    Tagged insert payload.

    The shape is declared by the caller instead of being guessed from the
    runtime type of the payload.
    """

    shape: RecordShape
    payload: Any

    @classmethod
    def single(cls, value: Any) -> "RecordInput":
        return cls(RecordShape.SINGLE, value)

    @classmethod
    def many(cls, values: Sequence[Any]) -> "RecordInput":
        return cls(RecordShape.MANY, values)


def is_structured_record(value: Any) -> bool:
    """Return ``True`` for dataclass instances and ``NamedTuple`` instances."""
    if isinstance(value, type):
        return False
    if dataclasses.is_dataclass(value):
        return True
    return isinstance(value, tuple) and hasattr(value, "_fields") and hasattr(value, "_asdict")


def is_structured_type(value: Any) -> bool:
    """Return ``True`` for dataclass classes and ``NamedTuple`` classes."""
    if not isinstance(value, type):
        return False
    if dataclasses.is_dataclass(value):
        return True
    return issubclass(value, tuple) and hasattr(value, "_fields")


def structured_type_name(value: Any) -> str:
    """Return the class name of a structured record or structured type."""
    if isinstance(value, type):
        return value.__name__
    return type(value).__name__


def _encode_structured(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _as_field_map(value: Any) -> Mapping[Any, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _encode_structured(value)
    if is_structured_record(value):
        return value._asdict()
    raise UnsupportedShapeError(
        f"Document must be a mapping or a structured record, got {type(value).__name__}."
    )


def to_json_value(value: Any) -> Any:
    """
    Round-trip any value through JSON and return the decoded form.

    Raises
    ------
    UnsupportedShapeError
        When the value holds members JSON cannot express.
    """
    try:
        encoded = json.dumps(value, default=_encode_structured, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise UnsupportedShapeError(f"Value cannot be stored as JSON: {exc}") from exc
    return json.loads(encoded, parse_int=float)


def normalize_record(value: Any) -> dict[str, Any]:
    """
    Convert one mapping or structured record into a document field map.
    """
    if value is None:
        raise UnsupportedShapeError("Document cannot be None.")
    return to_json_value(_as_field_map(value))


def normalize_many(values: Any) -> list[dict[str, Any]]:
    """
    Convert a sequence of mappings or structured records into field maps.

    Conversion is all-or-nothing: the first invalid element raises and no
    partial result is returned.
    """
    if (
        values is None
        or isinstance(values, (str, bytes, bytearray, Mapping))
        or is_structured_record(values)
        or not isinstance(values, Sequence)
    ):
        raise UnsupportedShapeError(
            f"Bulk insert expects a sequence of documents, got {type(values).__name__}."
        )
    normalized = []
    for index, value in enumerate(values):
        try:
            normalized.append(normalize_record(value))
        except UnsupportedShapeError as exc:
            raise UnsupportedShapeError(f"Element {index}: {exc}") from exc
    return normalized


def normalize(record_input: RecordInput) -> list[dict[str, Any]]:
    """Normalize a tagged insert payload into a list of field maps."""
    if record_input.shape is RecordShape.SINGLE:
        return [normalize_record(record_input.payload)]
    if record_input.shape is RecordShape.MANY:
        return normalize_many(record_input.payload)
    raise UnsupportedShapeError(f"Unknown record shape: {record_input.shape!r}")

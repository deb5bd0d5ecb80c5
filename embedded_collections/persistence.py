"""
JSON snapshot files and JSON document import.

A snapshot is one JSON array holding every stored document, system fields
included. Saving replaces the file through a temporary sibling and
``os.replace``; ``fsync`` additionally flushes the file and its directory.
"""

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Any

from .exceptions import InvalidFormatError, SnapshotNotFoundError, StorageIOError


def read_json_document(path: str | Path) -> Any:
    """
    Read and decode one JSON file.

    Raises
    ------
    StorageIOError
        When the file is missing or cannot be read.
    InvalidFormatError
        When the content is not UTF-8 encoded JSON.
    """
    resolved = Path(path).expanduser()
    try:
        raw = resolved.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidFormatError(f"{resolved} is not UTF-8 text: {exc}") from exc
    except OSError as exc:
        raise StorageIOError(f"Cannot read {resolved}: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidFormatError(f"Invalid JSON in {resolved}: {exc}") from exc


def as_document_list(payload: Any, *, source: str) -> list[dict[str, Any]]:
    """
    Interpret decoded JSON as a list of documents.

    One object becomes a one-element list. Arrays must hold objects only.
    """
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list) and all(isinstance(item, dict) for item in payload):
        return payload
    raise InvalidFormatError(
        f"{source} must contain either one JSON object or an array of objects."
    )


class SnapshotPersistence:
    """
    Read and write the snapshot file of one database.

    Parameters
    ----------
    snapshot_path:
        Snapshot file location. ``~`` is expanded and the path resolved.
    fsync:
        Flush the written file and its parent directory before returning.
    """

    def __init__(self, snapshot_path: str, *, fsync: bool = True) -> None:
        self._path = Path(snapshot_path).expanduser().resolve()
        self._fsync = bool(fsync)

    @property
    def path(self) -> Path:
        """Resolved snapshot location."""
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> list[dict[str, Any]]:
        """
        Load persisted documents from disk.

        Raises
        ------
        SnapshotNotFoundError
            When no snapshot file exists.
        InvalidFormatError
            When the file content is not a JSON object or array of objects.
        """
        if not self._path.exists():
            raise SnapshotNotFoundError(f"No snapshot found at {self._path}.")
        payload = read_json_document(self._path)
        return as_document_list(payload, source=f"Snapshot {self._path}")

    def save(self, records: list[dict[str, Any]]) -> None:
        """
        Replace the snapshot with ``records``.

        Content goes to ``<snapshot>.tmp`` first, so a crash mid-write leaves
        the previous snapshot intact.
        """
        parent = self._path.parent
        temp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        try:
            parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(records, handle, separators=(",", ":"))
                handle.flush()
                if self._fsync:
                    os.fsync(handle.fileno())
            os.replace(temp_path, self._path)

            if self._fsync:
                dir_fd = os.open(str(parent), os.O_RDONLY)
                try:
                    os.fsync(dir_fd)
                finally:
                    os.close(dir_fd)
        except OSError as exc:
            with contextlib.suppress(OSError):
                temp_path.unlink(missing_ok=True)
            raise StorageIOError(f"Cannot write snapshot {self._path}: {exc}") from exc

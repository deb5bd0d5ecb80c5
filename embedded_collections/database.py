"""
Application root owning the document store, the TTL store, and persistence.

One :class:`EmbeddedDatabase` replaces process-wide global state: create it at
application start and pass it (or handles obtained from it) to the code that
needs storage.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any

from .collection import CollectionHandle, resolve_collection_name
from .config import StoreConfig
from .exceptions import SnapshotNotFoundError, StorageIOError
from .persistence import SnapshotPersistence
from .scheduler import PeriodicWorker
from .store import DocumentStore
from .ttl import TTLStore

_LOGGER = logging.getLogger(__name__)


class EmbeddedDatabase:
    """
    Runtime container for the document collections and TTL key/value store.

    Parameters
    ----------
    config:
        Runtime configuration. Defaults to :class:`StoreConfig`.
    store:
        Optional pre-built document store, for injecting clocks in tests.
    ttl_store:
        Optional pre-built TTL store.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        store: DocumentStore | None = None,
        ttl_store: TTLStore | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self._store = store if store is not None else DocumentStore()
        self._ttl = (
            ttl_store
            if ttl_store is not None
            else TTLStore(enforce_expiry=self.config.ttl.enforce_expiry)
        )
        self._persistence = SnapshotPersistence(
            self.config.persistence.snapshot_path,
            fsync=self.config.persistence.fsync,
        )
        self._handles: dict[str, CollectionHandle] = {}
        self._handle_lock = Lock()
        self._stats: dict[str, int] = {}
        self._stats_lock = Lock()
        self._workers: list[PeriodicWorker] = []
        self._running = False

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def ttl(self) -> TTLStore:
        """Return the TTL key/value store."""
        return self._ttl

    @property
    def persistence(self) -> SnapshotPersistence:
        return self._persistence

    @property
    def is_running(self) -> bool:
        return self._running

    def collection(self, name_or_record: Any) -> CollectionHandle:
        """
        Return the handle for a collection name or structured record type.

        Raises
        ------
        PreconditionViolationError
            For ``None``, blank names, or unsupported argument types.
        """
        name = resolve_collection_name(name_or_record)
        with self._handle_lock:
            handle = self._handles.get(name)
            if handle is None:
                handle = CollectionHandle(
                    self._store,
                    name,
                    scope_unfiltered=self.config.scope_unfiltered_queries,
                )
                self._handles[name] = handle
            return handle

    def save(self) -> bool:
        """
        Write the whole document store to the snapshot file.

        Returns ``False`` without touching the file when the store is empty.
        Runs under the store lock so the snapshot is never torn by concurrent
        writes.
        """
        with self._store.lock:
            records = self._store.all_records()
            if not records:
                return False
            try:
                self._persistence.save(records)
            except StorageIOError:
                self._inc_stat("snapshot_save_failures")
                raise
        self._inc_stat("snapshot_save_success")
        _LOGGER.debug("Snapshot saved documents=%s path=%s", len(records), self._persistence.path)
        return True

    def load(self) -> int:
        """
        Append documents from the snapshot file to the store.

        Documents are added verbatim: they keep the system fields written by
        an earlier :meth:`save`. Returns the number of documents loaded.
        """
        with self._store.lock:
            try:
                records = self._persistence.load()
            except Exception:
                self._inc_stat("snapshot_load_failures")
                raise
            loaded = self._store.extend_raw(records)
        self._inc_stat("snapshot_load_success")
        _LOGGER.debug("Snapshot loaded documents=%s path=%s", loaded, self._persistence.path)
        return loaded

    def start(self) -> None:
        """
        Start background workers configured for autosave and TTL sweeping.

        With ``load_on_start`` the snapshot is loaded first; a missing file is
        skipped.
        """
        if self.is_running:
            return
        if self.config.persistence.load_on_start:
            try:
                self.load()
            except SnapshotNotFoundError:
                _LOGGER.debug("No snapshot to load path=%s", self._persistence.path)

        autosave = self.config.persistence.autosave_interval_seconds
        if autosave is not None:
            self._workers.append(
                PeriodicWorker(
                    name="embedded-collections-autosave",
                    interval_seconds=autosave,
                    task=self._autosave,
                    on_error=lambda _exc: self._inc_stat("autosave_failures"),
                )
            )
        sweep = self.config.ttl.sweep_interval_seconds
        if sweep is not None:
            self._workers.append(
                PeriodicWorker(
                    name="embedded-collections-ttl-sweep",
                    interval_seconds=sweep,
                    task=self._sweep_ttl,
                    on_error=lambda _exc: self._inc_stat("ttl_sweep_failures"),
                )
            )
        for worker in self._workers:
            worker.start()
        self._running = True

    def stop(self, *, flush: bool = True) -> None:
        """
        Stop background workers.

        When autosave is configured and ``flush`` is true, one final snapshot
        is written.
        """
        if not self._running:
            return
        workers, self._workers = self._workers, []
        self._running = False
        for worker in workers:
            worker.stop()
        if flush and self.config.persistence.autosave_interval_seconds is not None:
            self.save()

    def __enter__(self) -> "EmbeddedDatabase":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _autosave(self) -> None:
        self._inc_stat("autosave_runs")
        self.save()

    def _sweep_ttl(self) -> None:
        self._inc_stat("ttl_sweeps")
        purged = self._ttl.purge_expired()
        if purged:
            self._inc_stat("ttl_purged", delta=purged)

    def _inc_stat(self, key: str, *, delta: int = 1) -> None:
        with self._stats_lock:
            self._stats[key] = self._stats.get(key, 0) + delta

    def stats(self) -> dict[str, Any]:
        """
        Return cumulative runtime counters and live gauges.
        """
        with self._stats_lock:
            payload: dict[str, Any] = dict(self._stats)
        payload["document_count"] = len(self._store)
        payload["collection_count"] = len(self._store.collections())
        payload["ttl_size"] = self._ttl.size()
        payload["running"] = self.is_running
        return payload

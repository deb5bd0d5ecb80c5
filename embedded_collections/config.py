"""
Configuration models for embedded document and key/value stores.

This module centralizes all tunable runtime settings used by
:class:`embedded_collections.database.EmbeddedDatabase`:

* snapshot persistence location and durability
* periodic autosave scheduling
* TTL expiry enforcement and sweeping
* scoping of unfiltered queries
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SNAPSHOT_PATH = "embedded_collections_snapshot.json"


@dataclass(slots=True)
class PersistenceConfig:
    """
    Snapshot persistence settings.

    Parameters
    ----------
    snapshot_path:
        JSON file holding the full document store.
    fsync:
        If true, force data and directory entries to disk on every save.
    autosave_interval_seconds:
        When set, :meth:`EmbeddedDatabase.start` runs a background worker that
        saves a snapshot at this interval. ``None`` disables autosave.
    load_on_start:
        If true, :meth:`EmbeddedDatabase.start` loads an existing snapshot
        before starting background workers. A missing file is not an error.
    """

    snapshot_path: str = DEFAULT_SNAPSHOT_PATH
    fsync: bool = True
    autosave_interval_seconds: float | None = None
    load_on_start: bool = False


@dataclass(slots=True)
class TTLConfig:
    """
    Expiry behavior of the TTL key/value store.

    Expiry timestamps are always recorded. They are only acted upon when
    ``enforce_expiry`` is true: reads then treat expired entries as absent.
    ``sweep_interval_seconds`` adds a background purge of expired entries.
    """

    enforce_expiry: bool = False
    sweep_interval_seconds: float | None = None


@dataclass(slots=True)
class StoreConfig:
    """
    Top-level runtime configuration used by :class:`EmbeddedDatabase`.

    Parameters
    ----------
    persistence:
        Snapshot file and autosave behavior.
    ttl:
        TTL store expiry behavior.
    scope_unfiltered_queries:
        ``find(None).all()`` and ``delete(None).all()`` act on the whole store
        by default, across collections. Set to true to restrict them to the
        handle's own collection.
    """

    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    ttl: TTLConfig = field(default_factory=TTLConfig)
    scope_unfiltered_queries: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values that affect runtime safety."""
        if not str(self.persistence.snapshot_path).strip():
            raise ValueError("PersistenceConfig.snapshot_path must be non-empty.")
        interval = self.persistence.autosave_interval_seconds
        if interval is not None and interval <= 0:
            raise ValueError("PersistenceConfig.autosave_interval_seconds must be > 0.")
        sweep = self.ttl.sweep_interval_seconds
        if sweep is not None:
            if sweep <= 0:
                raise ValueError("TTLConfig.sweep_interval_seconds must be > 0.")
            if not self.ttl.enforce_expiry:
                raise ValueError("TTLConfig.sweep_interval_seconds requires enforce_expiry=True.")

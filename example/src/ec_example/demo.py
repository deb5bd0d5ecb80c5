"""
Runnable demo for embedded collections.

The demo walks through document collections, snapshot persistence, and the
TTL key/value store against a temporary snapshot file.

Run after installing the package with the ``example`` extra:

    ec-example
"""

from __future__ import annotations

import argparse
import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from embedded_collections import (
    EmbeddedDatabase,
    PersistenceConfig,
    RecordNotFoundError,
    StoreConfig,
)


@dataclass
class Order:
    sku: str
    quantity: int


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="embedded-python-collections example")
    parser.add_argument("--snapshot", default=None, help="Snapshot file (default: temp dir)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _print_step(title: str, payload: Any) -> None:
    print(f"\n=== {title} ===")
    print(json.dumps(payload, indent=2, sort_keys=True))


def run_demo(snapshot_path: str) -> int:
    db = EmbeddedDatabase(StoreConfig(persistence=PersistenceConfig(snapshot_path=snapshot_path)))

    users = db.collection("user")
    users.insert().many([{"name": "John", "age": 35}, {"name": "Jane", "age": 35}])
    _print_step("Users aged 35", users.find({"age": 35}).all())

    users.update({"name": "John"}, {"age": 36}).one()
    _print_step("John after update", users.find({"name": "John"}).first())

    orders = db.collection(Order)
    orders.insert_one(Order(sku="A-1", quantity=2))
    _print_step("Orders collection", {"name": orders.name, "documents": orders.find({}).all()})

    users.delete({"name": "Jane"}).one()
    try:
        users.find({"name": "Jane"}).first()
    except RecordNotFoundError as exc:
        _print_step("Jane after delete", {"error": str(exc)})

    db.save()
    restored = EmbeddedDatabase(db.config)
    restored.load()
    _print_step("Restored from snapshot", restored.collection("users").find({}).all())

    db.ttl.set("session:john", {"user": "John"}, ttl_seconds=60)
    db.ttl.set("visits", 3)
    _print_step(
        "TTL store",
        {
            "pairs": db.ttl.key_value_pairs(),
            "type_of_visits": db.ttl.type_of("visits"),
            "size": db.ttl.size(),
        },
    )
    _print_step("Stats", db.stats())
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    if args.snapshot:
        return run_demo(args.snapshot)
    with tempfile.TemporaryDirectory() as tmp:
        return run_demo(str(Path(tmp) / "snapshot.json"))


if __name__ == "__main__":
    raise SystemExit(main())

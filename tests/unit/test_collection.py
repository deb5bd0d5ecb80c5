"""
Unit tests for collection handles: insert, find, update, and delete.
"""

from __future__ import annotations

import json
import tempfile
import unittest
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from clock_helpers import FakeDateTimeClock

from embedded_collections.collection import CollectionHandle, resolve_collection_name
from embedded_collections.exceptions import (
    ConflictingArgumentsError,
    InvalidFormatError,
    InvalidInputError,
    PreconditionViolationError,
    RecordNotFoundError,
    StorageIOError,
    UnsupportedShapeError,
)
from embedded_collections.normalizer import RecordInput
from embedded_collections.store import DocumentStore


@dataclass
class Order:
    sku: str
    quantity: int


class Status(NamedTuple):
    code: int


class ResolveCollectionNameTests(unittest.TestCase):
    def test_pluralizes_and_lowercases(self) -> None:
        self.assertEqual(resolve_collection_name("user"), "users")
        self.assertEqual(resolve_collection_name("users"), "users")
        self.assertEqual(resolve_collection_name("User"), "users")
        self.assertEqual(resolve_collection_name("  Address "), "address")

    def test_structured_records_and_types(self) -> None:
        self.assertEqual(resolve_collection_name(Order("A", 1)), "orders")
        self.assertEqual(resolve_collection_name(Order), "orders")
        self.assertEqual(resolve_collection_name(Status(200)), "status")

    def test_precondition_violations(self) -> None:
        for value in (None, "", "   ", 42, {"name": "users"}, ["users"], (1, 2)):
            with self.subTest(value=value):
                with self.assertRaises(PreconditionViolationError):
                    resolve_collection_name(value)


class CollectionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeDateTimeClock()
        self.store = DocumentStore(clock=self.clock)
        self.users = CollectionHandle(self.store, "user")


class InsertTests(CollectionTestCase):
    def test_insert_one_injects_system_fields(self) -> None:
        stored = self.users.insert({"name": "John", "age": 35}).one()
        self.assertEqual(stored["name"], "John")
        self.assertEqual(stored["age"], 35.0)
        self.assertEqual(stored["collection"], "users")
        self.assertTrue(stored["id"])
        self.assertIsNotNone(stored["createdAt"])
        self.assertIsNone(stored["updatedAt"])
        self.assertEqual(self.store.all_records(), [stored])

    def test_ids_are_unique(self) -> None:
        stored = self.users.insert_many([{"n": index} for index in range(20)])
        self.assertEqual(len({record["id"] for record in stored}), 20)

    def test_insert_structured_record(self) -> None:
        orders = CollectionHandle(self.store, Order)
        stored = orders.insert_one(Order("A-1", 2))
        self.assertEqual(stored["collection"], "orders")
        self.assertEqual(stored["quantity"], 2.0)

    def test_insert_none_is_invalid_input(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.users.insert().one()
        with self.assertRaises(InvalidInputError):
            self.users.insert_one(None)

    def test_insert_unsupported_shape(self) -> None:
        with self.assertRaises(UnsupportedShapeError):
            self.users.insert_one(["not", "a", "record"])
        self.assertEqual(len(self.store), 0)

    def test_returned_record_is_a_copy(self) -> None:
        stored = self.users.insert_one({"name": "John"})
        stored["name"] = "Mutated"
        self.assertEqual(self.users.find({"id": stored["id"]}).first()["name"], "John")

    def test_many_with_value_conflicts(self) -> None:
        with self.assertRaises(ConflictingArgumentsError):
            self.users.insert({"name": "John"}).many([{"name": "Jane"}])
        with self.assertRaises(ConflictingArgumentsError):
            self.users.insert({"name": "John"}).from_json_file("unused.json")
        self.assertEqual(len(self.store), 0)

    def test_many_is_atomic(self) -> None:
        self.users.insert_one({"name": "Existing"})
        with self.assertRaises(UnsupportedShapeError):
            self.users.insert().many([{"name": "A"}, {"bad": lambda: None}, {"name": "C"}])
        self.assertEqual([r["name"] for r in self.store.all_records()], ["Existing"])

    def test_many_preserves_order(self) -> None:
        stored = self.users.insert().many([{"name": "A"}, {"name": "B"}, {"name": "C"}])
        self.assertEqual([r["name"] for r in stored], ["A", "B", "C"])
        self.assertEqual([r["name"] for r in self.store.all_records()], ["A", "B", "C"])

    def test_tagged_input(self) -> None:
        stored = self.users.insert().input(RecordInput.many([{"name": "A"}, {"name": "B"}]))
        self.assertEqual(len(stored), 2)


class InsertFromFileTests(CollectionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, name: str, content: str) -> Path:
        path = self.tmp / name
        path.write_text(content, encoding="utf-8")
        return path

    def test_single_object(self) -> None:
        path = self._write("one.json", json.dumps({"name": "John", "age": 35}))
        stored = self.users.insert_from_file(path)
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["age"], 35.0)

    def test_array_of_objects(self) -> None:
        path = self._write("many.json", json.dumps([{"name": "John"}, {"name": "Jane"}]))
        stored = self.users.insert().from_json_file(str(path))
        self.assertEqual([r["name"] for r in stored], ["John", "Jane"])
        self.assertEqual(len(self.store), 2)

    def test_invalid_shapes(self) -> None:
        for content in ("42", '"text"', "[1, 2]", '[{"a": 1}, 3]', "null"):
            with self.subTest(content=content):
                path = self._write("bad.json", content)
                with self.assertRaises(InvalidFormatError):
                    self.users.insert_from_file(path)
        self.assertEqual(len(self.store), 0)

    def test_invalid_json(self) -> None:
        path = self._write("broken.json", "{not json")
        with self.assertRaises(InvalidFormatError):
            self.users.insert_from_file(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(StorageIOError):
            self.users.insert_from_file(self.tmp / "missing.json")

    def test_non_utf8_content(self) -> None:
        path = self.tmp / "latin1.json"
        path.write_bytes(b'[{"name": "\xff\xfe"}]')
        with self.assertRaises(InvalidFormatError):
            self.users.insert_from_file(path)
        self.assertEqual(len(self.store), 0)


class FindTests(CollectionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.users.insert().many(
            [{"name": "John", "age": 35}, {"name": "Jane", "age": 35}, {"name": "Bob", "age": 20}]
        )
        CollectionHandle(self.store, "order").insert_one({"name": "John", "age": 35})

    def test_end_to_end_scenario(self) -> None:
        matches = self.users.find({"age": 35}).all()
        self.assertEqual([r["name"] for r in matches], ["John", "Jane"])
        self.assertTrue(all(r["collection"] == "users" for r in matches))
        self.assertEqual(self.users.find({"age": 35}).first()["name"], "John")

    def test_conjunction_of_clauses(self) -> None:
        self.assertEqual(self.users.find({"age": 35, "name": "Jane"}).first()["name"], "Jane")
        with self.assertRaises(RecordNotFoundError):
            self.users.find({"age": 20, "name": "Jane"}).first()

    def test_int_and_float_predicates_match(self) -> None:
        self.assertEqual(len(self.users.find({"age": 35.0}).all()), 2)
        self.assertEqual(len(self.users.find({"age": 35}).all()), 2)

    def test_no_partial_matching(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.find({"name": "Jo"}).first()

    def test_missing_key_does_not_match_none(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.find({"email": None}).all()

    def test_empty_predicate_matches_collection(self) -> None:
        self.assertEqual(len(self.users.find({}).all()), 3)

    def test_none_predicate(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.find(None).first()
        self.assertEqual(len(self.users.find(None).all()), 4)

    def test_none_predicate_scoped(self) -> None:
        scoped = CollectionHandle(self.store, "users", scope_unfiltered=True)
        self.assertEqual(len(scoped.find(None).all()), 3)

    def test_no_match_raises(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.find({"age": 99}).all()

    def test_handles_share_store(self) -> None:
        other = CollectionHandle(self.store, "Users")
        self.assertEqual(other.find({"name": "Bob"}).first()["age"], 20.0)

    def test_count(self) -> None:
        self.assertEqual(self.users.count(), 3)
        self.assertEqual(self.users.count({"age": 35}), 2)

    def test_booleans_do_not_match_numbers(self) -> None:
        flags = CollectionHandle(self.store, "flag")
        flags.insert().many(
            [
                {"name": "flagged", "active": True, "tags": [True]},
                {"name": "counted", "active": 1, "tags": [1]},
            ]
        )
        self.assertEqual([r["name"] for r in flags.find({"active": True}).all()], ["flagged"])
        self.assertEqual([r["name"] for r in flags.find({"active": 1}).all()], ["counted"])
        self.assertEqual(flags.find({"tags": [1.0]}).first()["name"], "counted")
        with self.assertRaises(RecordNotFoundError):
            flags.find({"active": False}).first()


class UpdateTests(CollectionTestCase):
    def test_updates_only_first_match(self) -> None:
        john, jane = self.users.insert().many([{"name": "John", "age": 35}, {"name": "Jane", "age": 35}])
        updated = self.users.update({"age": 35}, {"city": "Oslo"}).one()

        self.assertEqual(updated["id"], john["id"])
        self.assertEqual(updated["city"], "Oslo")
        self.assertIsNotNone(updated["updatedAt"])
        self.assertGreater(
            datetime.fromisoformat(updated["updatedAt"]),
            datetime.fromisoformat(updated["createdAt"]),
        )
        untouched = self.users.find({"id": jane["id"]}).first()
        self.assertNotIn("city", untouched)
        self.assertIsNone(untouched["updatedAt"])

    def test_applies_single_patch_pair(self) -> None:
        self.users.insert_one({"name": "John", "age": 35})
        updated = self.users.update({"name": "John"}, {"age": 36, "city": "Oslo"}).one()
        self.assertEqual(updated["age"], 36.0)
        self.assertNotIn("city", updated)

    def test_update_is_persisted_in_place(self) -> None:
        self.users.insert().many([{"name": "A"}, {"name": "B"}])
        self.users.update({"name": "B"}, {"name": "B2"}).one()
        self.assertEqual([r["name"] for r in self.store.all_records()], ["A", "B2"])

    def test_errors(self) -> None:
        self.users.insert_one({"name": "John"})
        with self.assertRaises(RecordNotFoundError):
            self.users.update(None, {"age": 1}).one()
        with self.assertRaises(RecordNotFoundError):
            self.users.update({"name": "Nobody"}, {"age": 1}).one()
        with self.assertRaises(InvalidInputError):
            self.users.update({"name": "John"}, {}).one()
        with self.assertRaises(InvalidInputError):
            self.users.update({"name": "John"}, {"id": "forged"}).one()
        with self.assertRaises(UnsupportedShapeError):
            self.users.update({"name": "John"}, {"fn": print}).one()


class DeleteTests(CollectionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.users.insert().many([{"name": "John", "age": 35}, {"name": "Jane", "age": 35}])
        self.orders = CollectionHandle(self.store, "order")
        self.orders.insert_one({"sku": "A", "age": 35})

    def test_delete_one_then_find_fails(self) -> None:
        removed = self.users.delete({"name": "John"}).one()
        self.assertEqual(removed["name"], "John")
        with self.assertRaises(RecordNotFoundError):
            self.users.find({"name": "John"}).first()
        self.assertEqual(len(self.store), 2)

    def test_delete_one_removes_first_match_only(self) -> None:
        self.users.delete({"age": 35}).one()
        self.assertEqual([r["name"] for r in self.users.find({"age": 35}).all()], ["Jane"])
        self.assertEqual(self.orders.count(), 1)

    def test_delete_all_is_scoped_by_collection(self) -> None:
        self.assertEqual(self.users.delete({"age": 35}).all(), 2)
        self.assertEqual([r["collection"] for r in self.store.all_records()], ["orders"])

    def test_delete_none_predicate(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.delete(None).one()
        self.assertEqual(self.users.delete(None).all(), 3)
        self.assertEqual(len(self.store), 0)

    def test_delete_none_predicate_scoped(self) -> None:
        scoped = CollectionHandle(self.store, "users", scope_unfiltered=True)
        self.assertEqual(scoped.delete(None).all(), 2)
        self.assertEqual(self.orders.count(), 1)

    def test_no_match_raises(self) -> None:
        with self.assertRaises(RecordNotFoundError):
            self.users.delete({"name": "Nobody"}).one()
        with self.assertRaises(RecordNotFoundError):
            self.users.delete({"name": "Nobody"}).all()
        self.assertEqual(len(self.store), 3)


if __name__ == "__main__":
    unittest.main()

"""
Tests for the range composer and the in-memory filter evaluator.
"""

import unittest
import uuid
from datetime import datetime, timezone

from bson import Decimal128, ObjectId

from mongo_batch.core.errors import InvalidArgumentError
from mongo_batch.core.filters import (
    Conjunction,
    Expression,
    FieldConstraint,
    compose_filter,
    constrains_field,
    matches,
    order_key,
)
from mongo_batch.core.models import SortDirection


class TestComposeFilter(unittest.TestCase):
    def test_no_resume_value_passes_filter_through(self):
        base = {"is_active": True}
        result = compose_filter(base, "_id", None, SortDirection.ASC)
        self.assertEqual(result, {"is_active": True})
        self.assertIsNot(result, base)

    def test_unconstrained_field_gets_resume_condition(self):
        result = compose_filter({"is_active": True}, "_id", 5, SortDirection.ASC)
        self.assertEqual(result, {"is_active": True, "_id": {"$gt": 5}})

    def test_descending_uses_less_than(self):
        result = compose_filter({}, "ts", 100, SortDirection.DESC)
        self.assertEqual(result, {"ts": {"$lt": 100}})

    def test_existing_constraint_moves_into_and_group(self):
        base = {"id": {"$lte": 100}, "kind": "x"}
        result = compose_filter(base, "id", 50, SortDirection.ASC)

        self.assertEqual(
            result,
            {"kind": "x", "$and": [{"id": {"$lte": 100}}, {"id": {"$gt": 50}}]},
        )
        self.assertEqual(base, {"id": {"$lte": 100}, "kind": "x"})

    def test_existing_and_group_is_extended(self):
        base = {"$and": [{"score": {"$gte": 1}}], "id": {"$ne": 7}}
        result = compose_filter(base, "id", 3, SortDirection.DESC)
        self.assertEqual(
            result,
            {"$and": [{"score": {"$gte": 1}}, {"id": {"$ne": 7}}, {"id": {"$lt": 3}}]},
        )
        self.assertEqual(base["$and"], [{"score": {"$gte": 1}}])

    def test_other_operators_are_preserved(self):
        base = {"$or": [{"a": 1}, {"b": 2}]}
        result = compose_filter(base, "_id", "k", SortDirection.ASC)
        self.assertEqual(result, {"$or": [{"a": 1}, {"b": 2}], "_id": {"$gt": "k"}})

    def test_merged_filter_keeps_both_bounds(self):
        docs = [{"id": i} for i in range(1, 151)]
        query = compose_filter({"id": {"$lte": 100}}, "id", 50, SortDirection.ASC)
        selected = [d["id"] for d in docs if matches(d, query)]
        self.assertEqual(selected, list(range(51, 101)))


class TestExpression(unittest.TestCase):
    def test_parse_builds_tagged_tree(self):
        expr = Expression.parse({"a": 1, "$and": [{"b": {"$gt": 2}}]})
        self.assertEqual(expr.clauses[0], FieldConstraint("a", 1))
        self.assertIsInstance(expr.clauses[1], Conjunction)
        self.assertEqual(expr.to_query(), {"a": 1, "$and": [{"b": {"$gt": 2}}]})

    def test_parse_rejects_non_list_and(self):
        with self.assertRaises(InvalidArgumentError):
            Expression.parse({"$and": {"a": 1}})

    def test_constrains_field_looks_into_and(self):
        self.assertTrue(constrains_field({"$and": [{"id": {"$gt": 1}}]}, "id"))
        self.assertTrue(constrains_field({"id": 3}, "id"))
        self.assertFalse(constrains_field({"name": "x"}, "id"))


class TestMatches(unittest.TestCase):
    def test_equality_and_comparisons(self):
        doc = {"a": 5, "b": "x", "nested": {"c": 2}, "tags": ["t1", "t2"]}
        self.assertTrue(matches(doc, {}))
        self.assertTrue(matches(doc, {"a": 5, "b": "x"}))
        self.assertTrue(matches(doc, {"a": {"$gte": 5, "$lt": 6}}))
        self.assertFalse(matches(doc, {"a": {"$gt": 5}}))
        self.assertTrue(matches(doc, {"nested.c": 2}))
        self.assertTrue(matches(doc, {"tags": "t2"}))
        self.assertTrue(matches(doc, {"b": {"$in": ["x", "y"]}}))
        self.assertTrue(matches(doc, {"b": {"$nin": ["y"]}}))
        self.assertTrue(matches(doc, {"missing": {"$exists": False}}))
        self.assertFalse(matches(doc, {"a": {"$exists": False}}))
        self.assertTrue(matches(doc, {"a": {"$ne": 4}}))

    def test_mixed_types_do_not_match(self):
        self.assertFalse(matches({"a": "5"}, {"a": {"$gt": 1}}))
        self.assertFalse(matches({"a": True}, {"a": {"$gt": 0}}))

    def test_bson_scalars_compare_within_their_bracket(self):
        self.assertTrue(matches({"price": Decimal128("2.5")}, {"price": {"$gt": 2}}))
        self.assertTrue(matches({"price": 3}, {"price": {"$lt": Decimal128("3.5")}}))
        low, high = uuid.UUID(int=1), uuid.UUID(int=2)
        self.assertTrue(matches({"id": high}, {"id": {"$gt": low}}))
        midnight_utc = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.assertTrue(matches({"at": datetime(2024, 1, 1, 12)}, {"at": {"$gt": midnight_utc}}))

    def test_logical_operators(self):
        doc = {"a": 1, "b": 2}
        self.assertTrue(matches(doc, {"$or": [{"a": 2}, {"b": 2}]}))
        self.assertFalse(matches(doc, {"$nor": [{"a": 1}]}))
        self.assertTrue(matches(doc, {"$and": [{"a": 1}, {"b": {"$gt": 1}}]}))

    def test_unknown_operator_raises(self):
        with self.assertRaises(InvalidArgumentError):
            matches({"a": 1}, {"a": {"$regex": "x"}})


class TestOrderKey(unittest.TestCase):
    def test_orders_across_types_like_mongo(self):
        oid = ObjectId("65a1b2c3d4e5f60718293a4b")
        when = datetime(2024, 1, 1)
        values = [when, True, oid, uuid.UUID(int=7), "b", Decimal128("1.5"), 2, None, "a", 1]
        ordered = sorted(values, key=order_key)
        self.assertEqual(ordered, [None, 1, Decimal128("1.5"), 2, "a", "b", uuid.UUID(int=7), oid, True, when])


if __name__ == "__main__":
    unittest.main()

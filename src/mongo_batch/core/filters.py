"""
Filter expressions and the range composer.

Filters arrive and leave as plain Mongo-style dicts. In between they are parsed
into a small tagged tree (field constraints, conjunctions, other top-level
operators) so merging a resume condition is a structural operation rather
than dict surgery on the caller's object.
"""

from __future__ import annotations

import copy
import operator
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from bson import Binary, Decimal128, ObjectId, Timestamp
from bson.binary import UUID_SUBTYPE

from mongo_batch.core.errors import InvalidArgumentError
from mongo_batch.core.models import SortDirection

AND = "$and"


@dataclass(frozen=True)
class FieldConstraint:
    """``{field: condition}`` where condition is a value or an operator mapping."""

    field: str
    condition: Any

    def to_query(self) -> Dict[str, Any]:
        return {self.field: copy.deepcopy(self.condition)}


@dataclass(frozen=True)
class OperatorClause:
    """Any other top-level operator (``$or``, ``$nor``, ``$expr``...), kept verbatim."""

    name: str
    value: Any

    def to_query(self) -> Dict[str, Any]:
        return {self.name: copy.deepcopy(self.value)}


@dataclass(frozen=True)
class Conjunction:
    """``$and`` over sub-expressions."""

    members: Tuple["Expression", ...]

    def to_query(self) -> Dict[str, Any]:
        return {AND: [m.to_query() for m in self.members]}


Clause = Union[FieldConstraint, OperatorClause, Conjunction]


@dataclass(frozen=True)
class Expression:
    """An implicit conjunction of top-level clauses, i.e. one filter document."""

    clauses: Tuple[Clause, ...] = ()

    @classmethod
    def parse(cls, query: Optional[Mapping[str, Any]]) -> "Expression":
        if query is None:
            return cls()
        if not isinstance(query, Mapping):
            raise InvalidArgumentError("filter", query)

        clauses: List[Clause] = []
        for key, value in query.items():
            if key == AND:
                if not isinstance(value, (list, tuple)):
                    raise InvalidArgumentError(AND, value)
                clauses.append(Conjunction(tuple(cls.parse(member) for member in value)))
            elif isinstance(key, str) and key.startswith("$"):
                clauses.append(OperatorClause(key, copy.deepcopy(value)))
            else:
                clauses.append(FieldConstraint(key, copy.deepcopy(value)))
        return cls(tuple(clauses))

    def constraint_for(self, field: str) -> Optional[FieldConstraint]:
        for clause in self.clauses:
            if isinstance(clause, FieldConstraint) and clause.field == field:
                return clause
        return None

    def conjunction(self) -> Optional[Conjunction]:
        for clause in self.clauses:
            if isinstance(clause, Conjunction):
                return clause
        return None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for clause in self.clauses:
            query.update(clause.to_query())
        return query


def resume_condition(field: str, value: Any, direction: SortDirection) -> FieldConstraint:
    """Constraint selecting records strictly after ``value`` in iteration order."""
    return FieldConstraint(field, {direction.operator: value})


def merge_constraint(expr: Expression, constraint: FieldConstraint) -> Expression:
    """
    Add ``constraint`` to ``expr`` without clobbering an existing constraint on
    the same field.

    When the field is already constrained, the existing constraint is moved into
    the ``$and`` group (created if missing) and the new constraint is appended
    after it. Otherwise the constraint is added as a top-level clause.
    """
    existing = expr.constraint_for(constraint.field)
    if existing is None:
        return Expression(expr.clauses + (constraint,))

    group = expr.conjunction()
    members: Tuple[Expression, ...] = group.members if group is not None else ()
    members += (Expression((existing,)), Expression((constraint,)))

    kept = tuple(c for c in expr.clauses if c is not existing and c is not group)
    return Expression(kept + (Conjunction(members),))


def compose_filter(
    base: Optional[Mapping[str, Any]],
    field: str,
    resume_value: Any,
    direction: SortDirection,
) -> Dict[str, Any]:
    """
    Build the effective query for a run.

    Args:
        base: User filter. Never mutated.
        field: Iteration field.
        resume_value: Last checkpointed value, or None on a fresh run.
        direction: Iteration direction.

    Returns:
        A new filter dict.
    """
    expr = Expression.parse(base)
    if resume_value is None:
        return expr.to_query()
    return merge_constraint(expr, resume_condition(field, resume_value, direction)).to_query()


def constrains_field(query: Optional[Mapping[str, Any]], field: str) -> bool:
    """True if ``field`` is constrained anywhere in the top level or ``$and`` groups."""
    expr = Expression.parse(query)
    if expr.constraint_for(field) is not None:
        return True
    group = expr.conjunction()
    if group is None:
        return False
    return any(constrains_field(member.to_query(), field) for member in group.members)


# ---------- In-memory evaluation ----------

_MISSING = object()


def resolve_path(document: Mapping[str, Any], path: str) -> Any:
    """Look up a dotted path; returns the module sentinel when absent."""
    current: Any = document
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def is_missing(value: Any) -> bool:
    return value is _MISSING


# BSON comparison order; values only compare within the same bracket
_NULL, _NUMBER, _STRING, _OBJECT, _ARRAY, _BINARY, _OBJECT_ID, _BOOLEAN, _DATE, _TIMESTAMP, _OTHER = range(11)


def order_key(value: Any) -> Tuple[int, Any]:
    """Return a sort key that orders mixed-type values the way MongoDB does."""
    if value is _MISSING or value is None:
        return (_NULL, 0)
    if isinstance(value, bool):
        return (_BOOLEAN, value)
    if isinstance(value, Decimal128):
        return (_NUMBER, value.to_decimal())
    if isinstance(value, (int, float, Decimal)):
        return (_NUMBER, value)
    if isinstance(value, str):
        return (_STRING, value)
    if isinstance(value, Mapping):
        return (_OBJECT, 0)
    if isinstance(value, (list, tuple)):
        return (_ARRAY, 0)
    if isinstance(value, uuid.UUID):
        return (_BINARY, (16, UUID_SUBTYPE, value.bytes))
    if isinstance(value, Binary):
        return (_BINARY, (len(value), value.subtype, bytes(value)))
    if isinstance(value, bytes):
        return (_BINARY, (len(value), 0, value))
    if isinstance(value, ObjectId):
        return (_OBJECT_ID, value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return (_DATE, value)
    if isinstance(value, Timestamp):
        return (_TIMESTAMP, value)
    return (_OTHER, value)


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        if actual is _MISSING or actual is None or expected is None:
            return False
        rank, key = order_key(actual)
        expected_rank, expected_key = order_key(expected)
        # mixed types never compare, same as Mongo's type brackets
        if rank != expected_rank or rank in (_OBJECT, _ARRAY):
            return False
        try:
            return bool(op(key, expected_key))
        except TypeError:
            return False

    return check


def _equals(actual: Any, expected: Any) -> bool:
    if actual is _MISSING:
        return expected is None
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple, set)):
        raise InvalidArgumentError("$in", expected)
    return any(_equals(actual, candidate) for candidate in expected)


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equals,
    "$ne": lambda actual, expected: not _equals(actual, expected),
    "$gt": _compare(operator.gt),
    "$gte": _compare(operator.ge),
    "$lt": _compare(operator.lt),
    "$lte": _compare(operator.le),
    "$in": _in,
    "$nin": lambda actual, expected: not _in(actual, expected),
    "$exists": lambda actual, expected: (actual is not _MISSING) == bool(expected),
}


def _is_operator_mapping(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(k, str) and k.startswith("$") for k in condition)
    )


def _matches_condition(actual: Any, condition: Any) -> bool:
    if not _is_operator_mapping(condition):
        return _equals(actual, condition)
    for name, expected in condition.items():
        check = _OPERATORS.get(name)
        if check is None:
            raise InvalidArgumentError("operator", name)
        if not check(actual, expected):
            return False
    return True


def matches(document: Mapping[str, Any], query: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate a Mongo-style filter against a document."""
    if not query:
        return True
    for key, value in query.items():
        if key == "$and":
            if not all(matches(document, sub) for sub in value):
                return False
        elif key == "$or":
            if not any(matches(document, sub) for sub in value):
                return False
        elif key == "$nor":
            if any(matches(document, sub) for sub in value):
                return False
        elif isinstance(key, str) and key.startswith("$"):
            raise InvalidArgumentError("operator", key)
        elif not _matches_condition(resolve_path(document, key), value):
            return False
    return True

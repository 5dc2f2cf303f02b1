"""Type-preserving encoding for checkpoint values (MongoDB Extended JSON)."""

from __future__ import annotations

from typing import Any, Mapping

from bson import json_util
from bson.binary import UuidRepresentation
from bson.errors import BSONError
from bson.json_util import CANONICAL_JSON_OPTIONS

# Naive UTC datetimes on decode, same as a default MongoClient returns them.
JSON_OPTIONS = CANONICAL_JSON_OPTIONS.with_options(uuid_representation=UuidRepresentation.STANDARD)


def encode_value(value: Any) -> str:
    """Encode a BSON scalar so that decode_value returns the same type."""
    if isinstance(value, (Mapping, list, tuple, set)):
        raise TypeError(f"Unsupported checkpoint value type: {type(value).__name__}")
    return json_util.dumps(value, json_options=JSON_OPTIONS)


def decode_value(raw: Any) -> Any:
    """Inverse of encode_value. Accepts str or bytes."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        value = json_util.loads(raw, json_options=JSON_OPTIONS)
    except (BSONError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed checkpoint value: {raw!r}") from e

    if isinstance(value, (dict, list)):
        raise ValueError(f"Malformed checkpoint value: {raw!r}")
    return value

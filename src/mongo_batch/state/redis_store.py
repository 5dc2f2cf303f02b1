from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from mongo_batch.state.codec import decode_value, encode_value
from mongo_batch.utils.logging import get_logger

log = get_logger("mongo_batch.state.redis")


class RedisCheckpointStore:
    """Checkpoint store backed by a redis-py client."""

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCheckpointStore":
        # Import locally to avoid requiring redis unless used.
        import redis

        return cls(redis.Redis.from_url(url))

    def get(self, key: str, default: Any = None) -> Any:
        return self._decode(key, self.client.get(key), default)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(self.client.set(key, encode_value(value), ex=ttl if ttl else None))

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))

    def has(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def get_many(self, keys: Iterable[str], default: Any = None) -> List[Any]:
        keys = list(keys)
        if not keys:
            return []
        return [self._decode(key, raw, default) for key, raw in zip(keys, self.client.mget(keys))]

    def set_many(self, values: Mapping[str, Any], ttl: Optional[int] = None) -> bool:
        pipe = self.client.pipeline()
        for key, value in values.items():
            pipe.set(key, encode_value(value), ex=ttl if ttl else None)
        return all(bool(r) for r in pipe.execute())

    def delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        return int(self.client.delete(*keys))

    def _decode(self, key: str, raw: Any, default: Any) -> Any:
        if raw is None or raw == b"" or raw == "":
            return default
        try:
            return decode_value(raw)
        except ValueError:
            # plain strings left by older writers carry no type information
            log.warning("Ignoring undecodable checkpoint %s = %r", key, raw)
            return default

"""
Key-value metadata stores used for idempotent receipt.

A store maps string keys to string markers. Consistency comes from the store
itself: the in-memory store locks around each operation, the Redis store relies
on single-command atomicity (HSETNX) and WATCH/MULTI for compare-and-set.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol, runtime_checkable

from sftpstream.exceptions import MetadataStoreError
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.metadata.store")


@runtime_checkable
class MetadataStore(Protocol):
    """Minimal concurrent metadata store contract."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def put_if_absent(self, key: str, value: str) -> str | None:
        """Store value unless key exists; return the existing value, or None if stored."""
        ...

    def replace(self, key: str, old_value: str, new_value: str) -> bool: ...

    def remove(self, key: str) -> str | None: ...

    def contains(self, key: str) -> bool: ...


class InMemoryMetadataStore:
    """Process-local store. Seen keys are lost on restart."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def put_if_absent(self, key: str, value: str) -> str | None:
        with self._lock:
            existing = self._data.get(key)
            if existing is None:
                self._data[key] = value
            return existing

    def replace(self, key: str, old_value: str, new_value: str) -> bool:
        with self._lock:
            if self._data.get(key) != old_value:
                return False
            self._data[key] = new_value
            return True

    def remove(self, key: str) -> str | None:
        with self._lock:
            return self._data.pop(key, None)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class RedisMetadataStore:
    """
    Store backed by a single Redis hash, shared by every poller using the same key.

    Args:
        url: Redis connection URL (redis://localhost:6379/0)
        key: Name of the hash holding all entries
        client: Pre-built ``redis.Redis`` client (takes precedence over url)
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, key: str = "MetaData", client: Any = None):
        self.url = url
        self.key = key
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import redis

            self._client = redis.Redis.from_url(self.url, decode_responses=True)
            logger.info(f"Using Redis metadata store at {self.url} (hash '{self.key}')")
        return self._client

    def get(self, key: str) -> str | None:
        return self._call("get", lambda c: c.hget(self.key, key))

    def put(self, key: str, value: str) -> None:
        self._call("put", lambda c: c.hset(self.key, key, value))

    def put_if_absent(self, key: str, value: str) -> str | None:
        def op(c: Any) -> str | None:
            if c.hsetnx(self.key, key, value):
                return None
            return c.hget(self.key, key)

        return self._call("put_if_absent", op)

    def replace(self, key: str, old_value: str, new_value: str) -> bool:
        import redis

        def op(c: Any) -> bool:
            with c.pipeline() as pipe:
                try:
                    pipe.watch(self.key)
                    if pipe.hget(self.key, key) != old_value:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.hset(self.key, key, new_value)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    return False

        return self._call("replace", op)

    def remove(self, key: str) -> str | None:
        def op(c: Any) -> str | None:
            previous = c.hget(self.key, key)
            c.hdel(self.key, key)
            return previous

        return self._call("remove", op)

    def contains(self, key: str) -> bool:
        return bool(self._call("contains", lambda c: c.hexists(self.key, key)))

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _call(self, operation: str, fn: Any) -> Any:
        import redis

        try:
            return fn(self.client)
        except redis.RedisError as e:
            raise MetadataStoreError(
                f"Redis metadata store {operation} failed: {e}", details={"url": self.url, "key": self.key}
            ) from e

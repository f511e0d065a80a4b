"""
Downstream emitters: where messages go once a tick has produced them.

- log: one JSON line per message on the ``sftpstream.output`` logger
- memory: kept in-process (tests, ``sftpstream poll``)
- redis: XADD to a Redis stream
"""

from __future__ import annotations

import json
import threading
from typing import Any, Protocol

from sftpstream.config.properties import OutputProperties
from sftpstream.exceptions import ConfigurationError, SftpStreamError
from sftpstream.messaging import Message
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.emitters")


class Emitter(Protocol):
    def emit(self, message: Message) -> None: ...

    def close(self) -> None: ...


class LoggingEmitter:
    """Writes each message as a JSON line at INFO."""

    def __init__(self, logger_name: str = "sftpstream.output"):
        self._logger = get_logger(logger_name)

    def emit(self, message: Message) -> None:
        self._logger.info(json.dumps(message.to_dict(), default=str))

    def close(self) -> None:
        pass


class MemoryEmitter:
    """Collects messages in a list."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._lock = threading.Lock()

    @property
    def messages(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    def emit(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


class RedisStreamEmitter:
    """
    Appends messages to a Redis stream.

    Fields: ``_id`` (message id), ``payload`` and one field per header; dict and
    list values are JSON encoded.

    Args:
        url: Redis connection URL (redis://localhost:6379/0)
        stream: Stream name
        client: Pre-built ``redis.Redis`` client (takes precedence over url)
    """

    def __init__(self, url: str = "redis://localhost:6379/0", stream: str = "sftpstream-output", client: Any = None):
        self.url = url
        self.stream = stream
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            import redis

            self._client = redis.Redis.from_url(self.url, decode_responses=True)
            logger.info(f"Emitting to Redis stream '{self.stream}' at {self.url}")
        return self._client

    def emit(self, message: Message) -> None:
        import redis

        fields = {"_id": message.id, "payload": _field(message.to_dict()["payload"])}
        for k, v in message.headers.items():
            if v is not None:
                fields[k] = _field(v)
        try:
            self.client.xadd(self.stream, fields)
        except redis.RedisError as e:
            raise SftpStreamError(f"XADD to '{self.stream}' failed: {e}", details={"url": self.url}) from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def _field(value: Any) -> str:
    return json.dumps(value, default=str) if isinstance(value, (dict, list)) else str(value)


def build_emitter(props: OutputProperties) -> Emitter:
    if props.type == "log":
        return LoggingEmitter()
    if props.type == "memory":
        return MemoryEmitter()
    if props.type == "redis":
        return RedisStreamEmitter(props.redis_url, props.stream)
    raise ConfigurationError(f"Unknown output type '{props.type}'")

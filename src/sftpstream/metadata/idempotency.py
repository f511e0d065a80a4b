"""
Idempotent receipt: suppress re-delivery of remote files already handed downstream.

The seen key is derived from the remote directory and file name, not from file
contents, so a file recreated under the same name is treated as already seen.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from sftpstream.messaging import FILENAME, ORIGINAL_FILE, REMOTE_DIRECTORY, REMOTE_FILE, Message
from sftpstream.metadata.store import MetadataStore
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.metadata.idempotency")

KeyStrategy = Callable[[Message], str]


def join_remote_path(directory: str, filename: str, separator: str = "/") -> str:
    """``directory`` + separator + ``filename``, without doubling the separator."""
    if not directory:
        return filename
    if directory.endswith(separator):
        return f"{directory}{filename}"
    return f"{directory}{separator}{filename}"


def remote_path_key(message: Message, separator: str = "/") -> str:
    """Seen key from the remote directory header and the file name."""
    directory = str(message.headers.get(REMOTE_DIRECTORY, ""))
    filename = message.headers.get(REMOTE_FILE) or message.headers.get(FILENAME)
    if not filename:
        payload = message.payload
        filename = payload if isinstance(payload, str) else os.path.basename(str(payload))
    return join_remote_path(directory, str(filename), separator)


def payload_key(message: Message) -> str:
    """
    Seen key from the payload.

    String payloads are used as-is; messages about a local copy use its path
    and modification time; anything else falls back to the message id.
    """
    if isinstance(message.payload, str):
        return message.payload
    original = message.headers.get(ORIGINAL_FILE)
    if original:
        try:
            mtime_ms = int(os.path.getmtime(original) * 1000)
        except OSError:
            mtime_ms = 0
        return f"{os.path.abspath(original)}-{mtime_ms}"
    return message.id


KEY_STRATEGIES: dict[str, KeyStrategy] = {
    "remote_path": remote_path_key,
    "payload": payload_key,
}


class IdempotencyFilter:
    """
    Seen-key gate in front of the downstream emitter.

    Usage is either ``should_emit`` followed by ``mark_seen`` once the item was
    handed downstream, or the atomic ``accept``. The filter adds no locking of
    its own; consistency is that of the store.
    """

    def __init__(self, store: MetadataStore, key_strategy: KeyStrategy = remote_path_key):
        self.store = store
        self.key_strategy = key_strategy

    def should_emit(self, key: str) -> bool:
        return not self.store.contains(key)

    def mark_seen(self, key: str) -> None:
        self.store.put(key, _marker())

    def accept(self, key: str) -> bool:
        """Check and mark in one store operation; True when the key was new."""
        accepted = self.store.put_if_absent(key, _marker()) is None
        if not accepted:
            logger.debug(f"Dropping duplicate {key}")
        return accepted

    def filter_messages(self, messages: Iterable[Message]) -> list[Message]:
        """Messages whose key has not been seen; marks them seen."""
        return [m for m in messages if self.accept(self.key_strategy(m))]


def _marker() -> str:
    return datetime.now(timezone.utc).isoformat()

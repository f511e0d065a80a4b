"""
Seen-key metadata stores and the idempotent receipt filter.
"""

from sftpstream.metadata.idempotency import (
    KEY_STRATEGIES,
    IdempotencyFilter,
    join_remote_path,
    payload_key,
    remote_path_key,
)
from sftpstream.metadata.store import InMemoryMetadataStore, MetadataStore, RedisMetadataStore

__all__ = [
    "MetadataStore",
    "InMemoryMetadataStore",
    "RedisMetadataStore",
    "IdempotencyFilter",
    "KEY_STRATEGIES",
    "join_remote_path",
    "payload_key",
    "remote_path_key",
]

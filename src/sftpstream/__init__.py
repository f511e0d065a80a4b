"""
sftpstream - Poll SFTP servers and stream the files they hold downstream.

Supports rotating across several servers and directories, idempotent receipt,
transfer to local/NFS/S3 storage and task launch requests.
"""

__version__ = "0.1.0"

from sftpstream.app import build_poller, build_sink, initialize
from sftpstream.config import AppProperties, Config, load_config

# Exceptions
from sftpstream.exceptions import (
    BindingError,
    ConfigurationError,
    FileExistsOnRemoteError,
    MetadataStoreError,
    SftpStreamError,
    SftpTransportError,
    SinkError,
    TaskLaunchError,
    TransferError,
)
from sftpstream.messaging import Message
from sftpstream.metadata import IdempotencyFilter, InMemoryMetadataStore, RedisMetadataStore
from sftpstream.rotation import KeyDirectory, RotationPolicy, ServerDirectoryRegistry, SessionKeyBinding
from sftpstream.source import PollCycleOrchestrator, Poller, TickSummary

__all__ = [
    "__version__",
    # Wiring
    "initialize",
    "build_poller",
    "build_sink",
    "AppProperties",
    "Config",
    "load_config",
    # Core
    "Message",
    "KeyDirectory",
    "ServerDirectoryRegistry",
    "RotationPolicy",
    "SessionKeyBinding",
    "PollCycleOrchestrator",
    "IdempotencyFilter",
    "InMemoryMetadataStore",
    "RedisMetadataStore",
    "Poller",
    "TickSummary",
    # Exceptions
    "SftpStreamError",
    "ConfigurationError",
    "SftpTransportError",
    "BindingError",
    "MetadataStoreError",
    "TransferError",
    "TaskLaunchError",
    "SinkError",
    "FileExistsOnRemoteError",
]

"""
sftpstream exception hierarchy.

All domain-specific exceptions inherit from SftpStreamError, so callers can
catch any framework error with a single base class while still handling the
specific cases where it matters.

Hierarchy::

    SftpStreamError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── SftpTransportError        - connect/list/read failures on a remote server
    ├── BindingError              - session key bound twice within one tick
    ├── MetadataStoreError        - seen-key store read/write
    ├── TransferError             - copying a remote file to a persister
    ├── TaskLaunchError           - building a task launch request
    └── SinkError                 - uploading to the remote server
        └── FileExistsOnRemoteError
"""

from __future__ import annotations


class SftpStreamError(Exception):
    """Base exception for all sftpstream errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(SftpStreamError):
    """Raised when configuration loading, parsing, or validation fails.

    These are fatal at startup; nothing in the polling path retries them.
    """


# --- Transport ---------------------------------------------------------------


class SftpTransportError(SftpStreamError):
    """Raised when a remote SFTP operation fails (connect, auth, list, read)."""

    def __init__(self, message: str, *, host: str | None = None, path: str | None = None) -> None:
        super().__init__(message, details={"host": host, "path": path})
        self.host = host
        self.path = path


# --- Rotation ----------------------------------------------------------------


class BindingError(SftpStreamError):
    """Raised when a session key is bound while a previous tick is still bound."""


# --- Metadata ----------------------------------------------------------------


class MetadataStoreError(SftpStreamError):
    """Raised when the seen-key store cannot be read or written."""


# --- Downstream --------------------------------------------------------------


class TransferError(SftpStreamError):
    """Raised when a remote file cannot be handed to a persister."""


class TaskLaunchError(SftpStreamError):
    """Raised when a task launch request cannot be built for a message."""


class SinkError(SftpStreamError):
    """Raised when the sink cannot upload a payload."""


class FileExistsOnRemoteError(SinkError):
    """Raised in ``fail`` mode when the remote target already exists."""

    def __init__(self, remote_path: str) -> None:
        super().__init__(f"Remote file already exists: {remote_path}", details={"path": remote_path})
        self.remote_path = remote_path

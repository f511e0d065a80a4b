"""
Copies listed remote files to a persister (local directory, NFS volume, S3).

The source lists names only; for each message the remote file is opened as a
stream and handed to an ``InputStreamPersister`` under its file name.
"""

from __future__ import annotations

import shutil
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Protocol

from sftpstream.connections.session_factory import DelegatingSessionFactory
from sftpstream.connections.sftp import SFTPConnection
from sftpstream.exceptions import SftpStreamError, TransferError
from sftpstream.messaging import FILENAME, REMOTE_DIRECTORY, REMOTE_FILE, SFTP_SELECTED_SERVER, Message
from sftpstream.metadata.idempotency import join_remote_path
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.transfer")


@dataclass
class InputStreamTransfer:
    """An open source stream, the target name, and metadata to store alongside."""

    source: IO[bytes]
    target: str
    metadata: dict[str, str] = field(default_factory=dict)


class InputStreamPersister(Protocol):
    def save(self, transfer: InputStreamTransfer) -> str:
        """Persist the stream; return where it went."""
        ...


class FileInputStreamPersister:
    """
    Writes streams to files. Relative targets are resolved under ``root_path``.

    The file is written next to its target with a ``.part`` suffix and moved
    into place once complete.
    """

    def __init__(self, root_path: str | Path | None = None):
        self.root_path = Path(root_path) if root_path is not None else None

    def target_path(self, target: str) -> Path:
        path = Path(target)
        if not path.is_absolute() and self.root_path is not None:
            return self.root_path / path
        return path

    def save(self, transfer: InputStreamTransfer) -> str:
        target = self.target_path(transfer.target)
        logger.info(f"Saving source contents to file {target.absolute()}")
        tmp = target.with_name(target.name + ".part")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as out:
                shutil.copyfileobj(transfer.source, out)
            tmp.replace(target)
        except OSError as e:
            if tmp.exists():
                tmp.unlink()
            raise TransferError(f"Cannot write {target}: {e}", details={"target": str(target)}) from e
        return str(target)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(root_path='{self.root_path}')"


class FileTransferService:
    """
    Streams the remote file named by a message to the persister.

    Args:
        sessions: Session factory used when no open connection is passed in
        persister: Where the contents go
        separator: Remote path separator
    """

    def __init__(
        self,
        sessions: DelegatingSessionFactory,
        persister: InputStreamPersister,
        separator: str = "/",
    ):
        self.sessions = sessions
        self.persister = persister
        self.separator = separator

    def transfer(self, message: Message, connection: SFTPConnection | None = None) -> Message:
        """
        Copy the file and return the message unchanged.

        Raises:
            TransferError: Required headers are missing, or the copy failed
        """
        for header in (REMOTE_FILE, FILENAME):
            if header not in message.headers:
                raise TransferError(f"Missing required message header {header}")
            if not str(message.headers[header] or "").strip():
                raise TransferError(f"Message header {header} must not be empty")

        remote_file = str(message.headers[REMOTE_FILE])
        directory = message.headers.get(REMOTE_DIRECTORY)
        source_path = join_remote_path(str(directory), remote_file, self.separator) if directory else remote_file
        target = str(message.headers[FILENAME])

        session = (
            nullcontext(connection)
            if connection is not None
            else self.sessions.session(message.headers.get(SFTP_SELECTED_SERVER))
        )
        with session as conn:
            try:
                if not conn.exists(source_path):
                    raise TransferError(f"Source file {source_path} does not exist", details={"path": source_path})
                with conn.open(source_path) as stream:
                    location = self.persister.save(
                        InputStreamTransfer(source=stream, target=target, metadata={REMOTE_FILE: remote_file})
                    )
            except TransferError:
                raise
            except SftpStreamError as e:
                raise TransferError(f"Transfer of {source_path} failed: {e.message}") from e
        logger.debug(f"Transferred {source_path} to {location}")
        return message

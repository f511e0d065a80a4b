"""
Inbound SFTP source: turns one remote directory listing into messages.

Three output shapes:

- list-only: payload is the remote file name
- stream: payload is the remote file contents
- synchronize (default): the file is copied to ``local_dir`` and the payload is
  the local path
"""

from __future__ import annotations

import os
from pathlib import Path

from sftpstream.config.properties import SourceProperties
from sftpstream.connections.sftp import RemoteEntry, SFTPConnection
from sftpstream.exceptions import SftpTransportError
from sftpstream.messaging import (
    FILENAME,
    ORIGINAL_FILE,
    REMOTE_DIRECTORY,
    REMOTE_FILE,
    REMOTE_FILE_INFO,
    Message,
)
from sftpstream.source.filters import CompositeFilter
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.source.inbound")


class SftpInboundSource:
    """
    Lists a remote directory and builds one message per accepted file.

    Args:
        props: The ``sftp`` configuration section
        filters: Listing filters (name pattern, accept-once)
    """

    def __init__(self, props: SourceProperties, filters: CompositeFilter | None = None):
        self.props = props
        self.filters = filters or CompositeFilter()

    @property
    def mode(self) -> str:
        if self.props.lists_names:
            return "list"
        if self.props.stream:
            return "stream"
        return "synchronize"

    def receive(self, connection: SFTPConnection, directory: str) -> list[Message]:
        """
        Messages for the files currently in ``directory``.

        At most ``max_fetch`` files are handled per call; the rest are picked up
        on later polls.
        """
        entries = self._accepted(connection.list_entries(directory, self.props.remote_file_separator))
        if not entries:
            return []

        logger.debug(f"{len(entries)} file(s) in {directory} on '{connection.name}' ({self.mode})")
        if self.mode == "list":
            return [self._listed(directory, e) for e in entries]
        if self.mode == "stream":
            return [self._streamed(connection, directory, e) for e in entries]
        return [self._synchronized(connection, directory, e) for e in entries]

    def _accepted(self, entries: list[RemoteEntry]) -> list[RemoteEntry]:
        limit = self.props.max_fetch
        if limit is None:
            return self.filters.filter_entries(entries)
        # One entry at a time so accept-once only records what is fetched
        accepted: list[RemoteEntry] = []
        for entry in entries:
            if len(accepted) >= limit:
                break
            accepted.extend(self.filters.filter_entries([entry]))
        return accepted

    def _headers(self, directory: str, entry: RemoteEntry) -> dict:
        return {
            REMOTE_DIRECTORY: directory,
            REMOTE_FILE: entry.filename,
            FILENAME: entry.filename,
            REMOTE_FILE_INFO: entry.to_dict(),
        }

    def _listed(self, directory: str, entry: RemoteEntry) -> Message:
        return Message(payload=entry.filename, headers=self._headers(directory, entry))

    def _streamed(self, connection: SFTPConnection, directory: str, entry: RemoteEntry) -> Message:
        return Message(payload=connection.read_bytes(entry.path), headers=self._headers(directory, entry))

    def _synchronized(self, connection: SFTPConnection, directory: str, entry: RemoteEntry) -> Message:
        local_dir = Path(self.props.local_dir)
        if not local_dir.exists():
            if not self.props.auto_create_local_dir:
                raise SftpTransportError(f"Local directory {local_dir} does not exist", path=str(local_dir))
            local_dir.mkdir(parents=True, exist_ok=True)

        local_path = local_dir / entry.filename
        tmp_path = local_path.with_name(local_path.name + self.props.tmp_file_suffix)
        try:
            connection.get(entry.path, tmp_path)
            os.replace(tmp_path, local_path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

        if self.props.preserve_timestamp and entry.mtime:
            os.utime(local_path, (entry.mtime, entry.mtime))
        if self.props.delete_remote_files:
            connection.remove(entry.path)
            logger.debug(f"Removed {entry.path} from '{connection.name}'")

        headers = self._headers(directory, entry)
        headers[ORIGINAL_FILE] = str(local_path)
        return Message(payload=str(local_path), headers=headers)

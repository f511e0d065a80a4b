"""
SFTP sink: uploads message payloads to a remote directory.
"""

from __future__ import annotations

import io
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from sftpstream.config.properties import SinkMode, SinkProperties
from sftpstream.connections.session_factory import ConnectionFactory
from sftpstream.connections.sftp import SFTPConnection
from sftpstream.exceptions import FileExistsOnRemoteError, SftpStreamError, SinkError
from sftpstream.messaging import FILENAME, Message
from sftpstream.metadata.idempotency import join_remote_path
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.sink")


class SftpSink:
    """
    Writes files to ``sink.remote_dir``.

    Payloads may be a local file path (``str`` or ``Path``), ``bytes``, or a
    binary file object. A ``str`` naming no existing file is uploaded as UTF-8
    text. The remote name is the ``file_name`` header, falling back to the
    local file's base name.

    With ``use_temporary_filename`` the upload goes to ``<name><tmp_file_suffix>``
    and is renamed when complete, so readers never see a partial file.
    """

    def __init__(self, props: SinkProperties, *, connection_factory: ConnectionFactory = SFTPConnection):
        self.props = props
        self._connection = connection_factory("sink", props.factory)
        self._dir_ready = False

    def handle(self, message: Message) -> str | None:
        """Upload one payload; returns the remote path, or None when ignored."""
        target = join_remote_path(
            self.props.remote_dir, self.remote_name(message), self.props.remote_file_separator
        )
        conn = self._connection
        try:
            if self.props.auto_create_dir and not self._dir_ready:
                conn.mkdirs(self.props.remote_dir, self.props.remote_file_separator)
                self._dir_ready = True

            mode = self.props.mode
            if mode in (SinkMode.FAIL, SinkMode.IGNORE) and conn.exists(target):
                if mode is SinkMode.FAIL:
                    raise FileExistsOnRemoteError(target)
                logger.info(f"Remote file {target} exists; ignoring")
                return None

            with _open_payload(message.payload) as source:
                if mode is SinkMode.APPEND:
                    conn.append(source, target)
                elif self.props.use_temporary_filename:
                    tmp = f"{target}{self.props.tmp_file_suffix}"
                    conn.put(source, tmp)
                    conn.rename(tmp, target)
                else:
                    conn.put(source, target)
        except SinkError:
            raise
        except SftpStreamError as e:
            raise SinkError(f"Upload to {target} failed: {e.message}", details={"path": target}) from e
        logger.info(f"Uploaded {target} ({mode.value})")
        return target

    def remote_name(self, message: Message) -> str:
        name = message.headers.get(FILENAME)
        if name:
            return str(name)
        payload = message.payload
        if isinstance(payload, Path) or (isinstance(payload, str) and os.path.isfile(payload)):
            return os.path.basename(str(payload))
        raise SinkError(f"Cannot name remote file: no {FILENAME} header and payload is not a local file")

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> SftpSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


@contextmanager
def _open_payload(payload: object) -> Iterator[IO[bytes]]:
    if isinstance(payload, (bytes, bytearray)):
        yield io.BytesIO(bytes(payload))
    elif isinstance(payload, Path) or (isinstance(payload, str) and os.path.isfile(payload)):
        with open(payload, "rb") as handle:
            yield handle
    elif isinstance(payload, str):
        yield io.BytesIO(payload.encode("utf-8"))
    elif hasattr(payload, "read"):
        yield payload  # type: ignore[misc]
    else:
        raise SinkError(f"Unsupported payload type {type(payload).__name__}")

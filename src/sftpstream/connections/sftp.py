"""
SFTP connection wrapper around paramiko.

Used by the inbound source (list/fetch), the transfer service (streaming reads)
and the sink (uploads).
"""

from __future__ import annotations

import io
import os
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import paramiko

from sftpstream.config.properties import ServerCredentials
from sftpstream.exceptions import SftpTransportError
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.connections.sftp")

_KEY_TYPES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


@dataclass(frozen=True)
class RemoteEntry:
    """A regular file found by a remote listing."""

    filename: str
    path: str
    size: int
    mtime: int

    def to_dict(self) -> dict[str, Any]:
        return {"filename": self.filename, "path": self.path, "size": self.size, "mtime": self.mtime}


def load_private_key(private_key: str, passphrase: str | None = None) -> paramiko.PKey:
    """
    Load a private key from a file path or from inline PEM text.

    Tries RSA, ECDSA and Ed25519 in turn; paramiko raises for the wrong type.
    """
    inline = private_key.lstrip().startswith("-----BEGIN")
    last_error: Exception | None = None
    for key_cls in _KEY_TYPES:
        try:
            if inline:
                return key_cls.from_private_key(io.StringIO(private_key), password=passphrase)
            return key_cls.from_private_key_file(private_key, password=passphrase)
        except (paramiko.SSHException, ValueError, OSError) as e:
            last_error = e
    raise SftpTransportError(f"Unsupported or unreadable private key: {last_error}")


class SFTPConnection:
    """
    Lazily connected SFTP session for one server.

    Args:
        name: Server key (``default`` for the default factory)
        credentials: Host, port and authentication settings
    """

    def __init__(self, name: str, credentials: ServerCredentials):
        self.name = name
        self.credentials = credentials
        self._ssh: paramiko.SSHClient | None = None
        self._client: paramiko.SFTPClient | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> paramiko.SFTPClient:
        """Connect (lazy) and return a live ``paramiko.SFTPClient``."""
        if self._client is not None:
            return self._client

        creds = self.credentials
        if not creds.host:
            raise SftpTransportError(f"SFTP connection '{self.name}' missing host")

        ssh = paramiko.SSHClient()
        if creds.known_hosts:
            ssh.load_host_keys(os.path.expanduser(creds.known_hosts))
        else:
            ssh.load_system_host_keys()
        ssh.set_missing_host_key_policy(
            paramiko.AutoAddPolicy() if creds.allow_unknown_keys else paramiko.RejectPolicy()
        )

        pkey = load_private_key(creds.private_key, creds.passphrase) if creds.private_key else None

        try:
            ssh.connect(
                hostname=creds.host,
                port=creds.port,
                username=creds.username,
                password=creds.password,
                pkey=pkey,
                timeout=creds.connect_timeout_s,
                banner_timeout=creds.connect_timeout_s,
                auth_timeout=creds.connect_timeout_s,
                allow_agent=False,
                look_for_keys=False,
            )
            client = ssh.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            ssh.close()
            raise SftpTransportError(
                f"Cannot connect to SFTP server '{self.name}' at {creds.host}:{creds.port}: {e}", host=creds.host
            ) from e

        logger.debug(f"Connected to {creds.username}@{creds.host}:{creds.port} ({self.name})")
        self._ssh = ssh
        self._client = client
        return client

    def close(self) -> None:
        """Close SFTP client + underlying SSH transport."""
        try:
            if self._client is not None:
                self._client.close()
        finally:
            self._client = None
        try:
            if self._ssh is not None:
                self._ssh.close()
        finally:
            self._ssh = None

    def list_entries(self, directory: str, separator: str = "/") -> list[RemoteEntry]:
        """Regular files directly inside ``directory``, sorted by name."""
        client = self.connect()
        try:
            attrs = client.listdir_attr(directory)
        except OSError as e:
            raise self._error("list", directory, e) from e

        entries = []
        for attr in attrs:
            if stat.S_ISDIR(attr.st_mode or 0):
                continue
            entries.append(
                RemoteEntry(
                    filename=attr.filename,
                    path=_join(directory, attr.filename, separator),
                    size=int(attr.st_size or 0),
                    mtime=int(attr.st_mtime or 0),
                )
            )
        entries.sort(key=lambda e: e.filename)
        return entries

    @contextmanager
    def open(self, remote_path: str, mode: str = "rb") -> Iterator[IO[bytes]]:
        """Open a remote file; the handle is closed on exit."""
        client = self.connect()
        try:
            handle = client.open(remote_path, mode)
        except OSError as e:
            raise self._error("open", remote_path, e) from e
        try:
            if "r" in mode:
                handle.prefetch()
            yield handle
        finally:
            handle.close()

    def read_bytes(self, remote_path: str) -> bytes:
        with self.open(remote_path) as handle:
            return handle.read()

    def get(self, remote_path: str, local_path: str | Path) -> None:
        client = self.connect()
        try:
            client.get(remote_path, str(local_path))
        except OSError as e:
            raise self._error("download", remote_path, e) from e

    def put(self, source: str | Path | IO[bytes], remote_path: str) -> None:
        """Upload a local file path or a binary file object."""
        client = self.connect()
        try:
            if isinstance(source, (str, Path)):
                client.put(str(source), remote_path)
            else:
                client.putfo(source, remote_path)
        except OSError as e:
            raise self._error("upload", remote_path, e) from e

    def append(self, source: IO[bytes], remote_path: str) -> None:
        with self.open(remote_path, "ab") as handle:
            while chunk := source.read(32768):
                handle.write(chunk)

    def remove(self, remote_path: str) -> None:
        client = self.connect()
        try:
            client.remove(remote_path)
        except OSError as e:
            raise self._error("remove", remote_path, e) from e

    def rename(self, source: str, target: str) -> None:
        """Rename, replacing the target if it exists."""
        client = self.connect()
        try:
            client.posix_rename(source, target)
        except OSError as e:
            raise self._error("rename", source, e) from e

    def exists(self, remote_path: str) -> bool:
        client = self.connect()
        try:
            client.stat(remote_path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise self._error("stat", remote_path, e) from e

    def mkdirs(self, directory: str, separator: str = "/") -> None:
        """Create ``directory`` and any missing parents."""
        client = self.connect()
        current = separator if directory.startswith(separator) else ""
        for part in [p for p in directory.split(separator) if p]:
            current = _join(current, part, separator) if current else part
            try:
                client.stat(current)
            except FileNotFoundError:
                try:
                    client.mkdir(current)
                except OSError as e:
                    raise self._error("mkdir", current, e) from e

    def _error(self, operation: str, path: str, cause: Exception) -> SftpTransportError:
        return SftpTransportError(
            f"SFTP {operation} failed on '{self.name}' for {path}: {cause}",
            host=self.credentials.host,
            path=path,
        )

    def __enter__(self) -> SFTPConnection:
        self.connect()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', host='{self.credentials.host}')"


def _join(directory: str, filename: str, separator: str) -> str:
    if not directory:
        return filename
    if directory.endswith(separator):
        return f"{directory}{filename}"
    return f"{directory}{separator}{filename}"

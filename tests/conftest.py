"""
Shared fixtures.

``remotes`` is an in-memory stand-in for SFTP servers keyed by host; the
``connection_factory`` fixture builds connections against it so the source,
transfer service and sink run without a network.
"""

from __future__ import annotations

import io
from collections import defaultdict
from contextlib import contextmanager

import pytest

from sftpstream.connections.sftp import RemoteEntry
from sftpstream.exceptions import SftpTransportError


class FakeRemote:
    """Files on one fake server: path -> [contents, mtime]."""

    def __init__(self) -> None:
        self.files: dict[str, list] = {}
        self.dirs: set[str] = set()
        self.fail = False
        self.listed: list[str] = []

    def add(self, path: str, data: bytes = b"data", mtime: int = 1_700_000_000) -> None:
        self.files[path] = [data, mtime]


class FakeConnection:
    def __init__(self, name, credentials, remote: FakeRemote, opened: list):
        self.name = name
        self.credentials = credentials
        self.remote = remote
        self.closed = False
        opened.append((name, credentials.host))

    def connect(self):
        return self

    def close(self) -> None:
        self.closed = True

    def _check(self, path: str) -> None:
        if self.remote.fail:
            raise SftpTransportError(f"connection refused on {self.credentials.host}", host=self.credentials.host)

    def list_entries(self, directory: str, separator: str = "/"):
        self._check(directory)
        self.remote.listed.append(directory)
        prefix = directory if directory.endswith(separator) else directory + separator
        entries = []
        for path, (data, mtime) in self.remote.files.items():
            rest = path[len(prefix):]
            if path.startswith(prefix) and rest and separator not in rest:
                entries.append(RemoteEntry(filename=rest, path=path, size=len(data), mtime=mtime))
        return sorted(entries, key=lambda e: e.filename)

    @contextmanager
    def open(self, remote_path: str, mode: str = "rb"):
        self._check(remote_path)
        if "a" in mode:
            buffer = io.BytesIO()
            yield buffer
            existing = self.remote.files.get(remote_path, [b"", 0])
            self.remote.files[remote_path] = [existing[0] + buffer.getvalue(), existing[1]]
            return
        if remote_path not in self.remote.files:
            raise SftpTransportError(f"no such file {remote_path}", path=remote_path)
        yield io.BytesIO(self.remote.files[remote_path][0])

    def read_bytes(self, remote_path: str) -> bytes:
        with self.open(remote_path) as handle:
            return handle.read()

    def get(self, remote_path: str, local_path) -> None:
        with open(local_path, "wb") as out:
            out.write(self.read_bytes(remote_path))

    def put(self, source, remote_path: str) -> None:
        self._check(remote_path)
        if hasattr(source, "read"):
            data = source.read()
        else:
            with open(source, "rb") as f:
                data = f.read()
        self.remote.files[remote_path] = [data, 0]

    def append(self, source, remote_path: str) -> None:
        with self.open(remote_path, "ab") as handle:
            handle.write(source.read())

    def remove(self, remote_path: str) -> None:
        self._check(remote_path)
        del self.remote.files[remote_path]

    def rename(self, source: str, target: str) -> None:
        self.remote.files[target] = self.remote.files.pop(source)

    def exists(self, remote_path: str) -> bool:
        self._check(remote_path)
        return remote_path in self.remote.files

    def mkdirs(self, directory: str, separator: str = "/") -> None:
        self.remote.dirs.add(directory)


@pytest.fixture
def remotes():
    """Fake servers by host name."""
    return defaultdict(FakeRemote)


@pytest.fixture
def opened():
    """(connection name, host) for every connection built."""
    return []


@pytest.fixture
def connection_factory(remotes, opened):
    def factory(name, credentials):
        return FakeConnection(name, credentials, remotes[credentials.host], opened)

    return factory

"""
Session factory that routes to one of several SFTP servers by key.

The caller names the server for every session it opens; there is no ambient
"current key". Keys without an explicit factory entry use the default
credentials.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sftpstream.config.properties import ServerCredentials, SourceProperties, resolve_credentials
from sftpstream.connections.sftp import SFTPConnection
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.connections.session_factory")

DEFAULT_KEY = "default"

ConnectionFactory = Callable[[str, ServerCredentials], SFTPConnection]


class DelegatingSessionFactory:
    """
    Opens SFTP sessions for a server key.

    Args:
        default: Credentials used for ``None`` and for keys without an entry
        factories: Per-key credentials
        connection_factory: Builds a connection (override in tests)
    """

    def __init__(
        self,
        default: ServerCredentials,
        factories: dict[str, ServerCredentials] | None = None,
        *,
        connection_factory: ConnectionFactory = SFTPConnection,
    ):
        self.default = default
        self.factories = dict(factories or {})
        self._connection_factory = connection_factory
        self._cached: dict[str, SFTPConnection] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_properties(
        cls, props: SourceProperties, *, connection_factory: ConnectionFactory = SFTPConnection
    ) -> DelegatingSessionFactory:
        return cls(props.factory, props.factories, connection_factory=connection_factory)

    def credentials_for(self, key: str | None) -> ServerCredentials:
        return resolve_credentials(self.default, self.factories, key)

    @contextmanager
    def session(self, key: str | None = None) -> Iterator[SFTPConnection]:
        """
        Connection for ``key``, connected on first use.

        With ``cache_sessions`` the connection is kept for the next tick, otherwise
        it is closed on exit. A cached connection that failed is dropped so the
        next tick reconnects.
        """
        name = key or DEFAULT_KEY
        credentials = self.credentials_for(key)
        if not credentials.cache_sessions:
            connection = self._connection_factory(name, credentials)
            try:
                yield connection
            finally:
                connection.close()
            return

        with self._lock:
            connection = self._cached.get(name)
            if connection is None:
                connection = self._connection_factory(name, credentials)
                self._cached[name] = connection
        try:
            yield connection
        except Exception:
            logger.debug(f"Dropping cached session '{name}' after failure")
            with self._lock:
                self._cached.pop(name, None)
            connection.close()
            raise

    def close(self) -> None:
        """Close every cached connection."""
        with self._lock:
            cached = list(self._cached.values())
            self._cached.clear()
        for connection in cached:
            connection.close()

"""
SFTP connections and key-routed session factory.
"""

from sftpstream.connections.session_factory import DEFAULT_KEY, DelegatingSessionFactory
from sftpstream.connections.sftp import RemoteEntry, SFTPConnection, load_private_key

__all__ = [
    "DEFAULT_KEY",
    "DelegatingSessionFactory",
    "RemoteEntry",
    "SFTPConnection",
    "load_private_key",
]

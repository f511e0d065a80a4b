"""
Listing filters applied to remote entries before any message is built.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable, Sequence
from typing import Protocol

from sftpstream.config.properties import SourceProperties
from sftpstream.connections.sftp import RemoteEntry
from sftpstream.metadata.store import MetadataStore
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.source.filters")

ACCEPT_ONCE_PREFIX = "sftpSource/"


class EntryFilter(Protocol):
    def filter_entries(self, entries: Sequence[RemoteEntry]) -> list[RemoteEntry]: ...


class GlobFilter:
    """Keeps entries whose file name matches a shell-style pattern."""

    def __init__(self, pattern: str):
        self.pattern = pattern

    def filter_entries(self, entries: Sequence[RemoteEntry]) -> list[RemoteEntry]:
        return [e for e in entries if fnmatch.fnmatchcase(e.filename, self.pattern)]


class RegexFilter:
    """Keeps entries whose whole file name matches a regular expression."""

    def __init__(self, regex: str | re.Pattern[str]):
        self.regex = re.compile(regex) if isinstance(regex, str) else regex

    def filter_entries(self, entries: Sequence[RemoteEntry]) -> list[RemoteEntry]:
        return [e for e in entries if self.regex.fullmatch(e.filename)]


class PersistentAcceptOnceFilter:
    """
    Passes each remote file once, remembered in a metadata store.

    The stored value is the file's modification time, so a file that is
    rewritten in place passes again.

    Args:
        store: Metadata store shared across restarts (Redis) or not (memory)
        prefix: Key prefix separating these entries from other store users
    """

    def __init__(self, store: MetadataStore, prefix: str = ACCEPT_ONCE_PREFIX):
        self.store = store
        self.prefix = prefix

    def accept(self, entry: RemoteEntry) -> bool:
        key = f"{self.prefix}{entry.path}"
        modified = str(entry.mtime)
        previous = self.store.put_if_absent(key, modified)
        if previous is None:
            return True
        if previous != modified and self.store.replace(key, previous, modified):
            logger.debug(f"{entry.path} modified since last accepted ({previous} -> {modified})")
            return True
        return False

    def filter_entries(self, entries: Sequence[RemoteEntry]) -> list[RemoteEntry]:
        return [e for e in entries if self.accept(e)]


class CompositeFilter:
    """Applies filters in order; an entry must pass all of them."""

    def __init__(self, filters: Iterable[EntryFilter] = ()):
        self.filters = list(filters)

    def filter_entries(self, entries: Sequence[RemoteEntry]) -> list[RemoteEntry]:
        result = list(entries)
        for f in self.filters:
            result = f.filter_entries(result)
        return result

    def __len__(self) -> int:
        return len(self.filters)


def build_filters(props: SourceProperties, store: MetadataStore | None = None) -> CompositeFilter:
    """Name filter from ``filename_pattern``/``filename_regex``, then accept-once if enabled."""
    filters: list[EntryFilter] = []
    if props.filename_pattern:
        filters.append(GlobFilter(props.filename_pattern))
    elif props.filename_regex is not None:
        filters.append(RegexFilter(props.filename_regex))
    if props.accepts_once and store is not None:
        filters.append(PersistentAcceptOnceFilter(store))
    return CompositeFilter(filters)

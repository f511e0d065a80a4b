"""
Ordered registry of rotation targets.

Each target is a server key plus a remote directory on that server, written in
configuration as ``"key.directory"``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from sftpstream.exceptions import ConfigurationError

KEY_DIRECTORY_SEPARATOR = "."


@dataclass(frozen=True)
class KeyDirectory:
    """One rotation target: server key + remote directory."""

    key: str
    directory: str

    @classmethod
    def parse(cls, entry: str) -> KeyDirectory:
        """
        Parse a ``"key.directory"`` string.

        Raises:
            ConfigurationError: Unless the entry splits into exactly two
                non-empty parts on ``.``
        """
        parts = str(entry).split(KEY_DIRECTORY_SEPARATOR)
        if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
            raise ConfigurationError(
                f"Malformed rotation entry {entry!r}: expected 'key.directory' with exactly one '.'",
                details={"entry": entry},
            )
        return cls(key=parts[0].strip(), directory=parts[1].strip())

    def __str__(self) -> str:
        return f"{self.key}{KEY_DIRECTORY_SEPARATOR}{self.directory}"


class ServerDirectoryRegistry:
    """
    Immutable, ordered sequence of KeyDirectory entries.

    Order is configuration order and is iterated cyclically by RotationPolicy.
    The registry holds no mutable state, so one instance can be shared by any
    number of pollers.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[KeyDirectory]):
        entries = tuple(entries)
        if not entries:
            raise ConfigurationError("At least one key.directory entry is required for multi-source polling")
        self._entries: tuple[KeyDirectory, ...] = entries

    @classmethod
    def from_strings(cls, entries: Iterable[str]) -> ServerDirectoryRegistry:
        return cls(KeyDirectory.parse(entry) for entry in entries)

    @property
    def entries(self) -> tuple[KeyDirectory, ...]:
        return self._entries

    def keys(self) -> list[str]:
        """Distinct server keys, in first-seen order."""
        return list(dict.fromkeys(e.key for e in self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[KeyDirectory]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> KeyDirectory:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({[str(e) for e in self._entries]})"

"""
Session key binding for the poll cycle in flight.

The key is bound before the remote call and cleared once the result has been
attributed downstream. Routing itself does not read this binding: the caller
passes the key to ``DelegatingSessionFactory.session(key)`` explicitly. The
binding records which server the in-flight tick belongs to and enforces that
ticks never overlap.
"""

from __future__ import annotations

from sftpstream.exceptions import BindingError


class SessionKeyBinding:
    """Holds at most one bound server key. Owned by a single poller."""

    __slots__ = ("_key",)

    def __init__(self) -> None:
        self._key: str | None = None

    def bind(self, key: str) -> None:
        if self._key is not None:
            raise BindingError(
                f"Session key '{key}' bound while '{self._key}' is still bound; previous tick was not cleared",
                details={"bound": self._key, "requested": key},
            )
        self._key = key

    def current_key(self) -> str | None:
        return self._key

    @property
    def is_bound(self) -> bool:
        return self._key is not None

    def clear(self) -> None:
        self._key = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(key={self._key!r})"

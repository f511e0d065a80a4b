"""
Rotation policy: which server/directory the next poll targets.

Two modes:

- fair: advance once per poll, unconditionally. Over N consecutive polls every
  registry entry is polled exactly once.
- exhaustive (default): stay on the current entry while it keeps producing
  results; advance only after a poll that produced nothing. A source with a
  backlog is drained before moving on.

The policy is driven by a single poller thread; it takes no locks.
"""

from __future__ import annotations

from dataclasses import dataclass

from sftpstream.exceptions import ConfigurationError
from sftpstream.rotation.registry import KeyDirectory, ServerDirectoryRegistry
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.rotation.policy")


@dataclass(frozen=True)
class RotationState:
    """Snapshot of a policy's position."""

    position: int
    current: KeyDirectory | None
    initialized: bool


class RotationPolicy:
    """Round-robin iterator over a ServerDirectoryRegistry."""

    def __init__(self, registry: ServerDirectoryRegistry, *, fair: bool = False):
        self._registry = registry
        self._fair = fair
        self._position = -1
        self._current: KeyDirectory | None = None
        self._initialized = False

    @property
    def registry(self) -> ServerDirectoryRegistry:
        return self._registry

    @property
    def fair(self) -> bool:
        return self._fair

    @property
    def current(self) -> KeyDirectory | None:
        """Target of the poll in flight; None before the first poll."""
        return self._current

    @property
    def state(self) -> RotationState:
        return RotationState(position=self._position, current=self._current, initialized=self._initialized)

    def current_target(self) -> KeyDirectory:
        """
        Target for this poll cycle.

        Advances first on the very first call, and on every call in fair mode.
        """
        if len(self._registry) == 0:
            raise ConfigurationError("Rotation registry is empty")
        if self._fair or not self._initialized:
            self.advance()
            self._initialized = True
        logger.debug(f"Next poll is for {self._current}")
        return self._current  # type: ignore[return-value]

    def on_poll_result(self, had_results: bool) -> None:
        """Report whether the poll on the current target produced anything."""
        logger.debug(f"Poll on {self._current} produced {'' if had_results else 'no '}files")
        if not self._fair and not had_results:
            self.advance()

    def advance(self) -> KeyDirectory:
        """Move to the next entry, wrapping from the last back to the first."""
        size = len(self._registry)
        if size == 0:
            raise ConfigurationError("Rotation registry is empty")
        self._position = (self._position + 1) % size
        self._current = self._registry[self._position]
        return self._current

    def __repr__(self) -> str:
        mode = "fair" if self._fair else "exhaustive"
        return f"{self.__class__.__name__}(mode={mode}, position={self._position}, size={len(self._registry)})"

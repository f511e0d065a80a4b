"""
Poll-cycle orchestration for multi-source rotation.

Each tick goes through three hooks, always on the poller's thread:

1. ``before_tick``: pick the target from the rotation policy and bind its key
2. ``after_tick``: attach the selected-server headers to every result
3. ``finalize_tick``: clear the binding and report whether anything was found

When the remote call fails, ``abort_tick`` replaces the last two: the binding is
cleared and the rotation position is left where it was, so the same target is
polled again on the next tick.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from sftpstream.config.properties import ServerCredentials
from sftpstream.exceptions import BindingError
from sftpstream.messaging import (
    SFTP_HOST,
    SFTP_PASSWORD,
    SFTP_PORT,
    SFTP_SELECTED_SERVER,
    SFTP_USERNAME,
    Message,
)
from sftpstream.rotation import KeyDirectory, RotationPolicy, SessionKeyBinding
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.source.orchestrator")

CredentialsLookup = Callable[[str], ServerCredentials]


class PollCycleOrchestrator:
    """
    Ties the rotation policy and the session key binding to the poll cycle.

    Args:
        policy: Rotation over the configured (key, directory) targets
        credentials: Resolves a server key to its credentials, falling back to
            the default entry for keys without one
        binding: Key binding for the tick in flight (a fresh one by default)
    """

    def __init__(
        self,
        policy: RotationPolicy,
        credentials: CredentialsLookup,
        binding: SessionKeyBinding | None = None,
    ):
        self.policy = policy
        self.credentials = credentials
        self.binding = binding or SessionKeyBinding()

    @property
    def current_target(self) -> KeyDirectory | None:
        return self.policy.current

    def before_tick(self) -> KeyDirectory:
        target = self.policy.current_target()
        self.binding.bind(target.key)
        return target

    def headers(self) -> dict[str, Any]:
        """Selected-server headers for the current target."""
        target = self.policy.current
        if target is None:
            raise BindingError("No rotation target selected yet; call before_tick() first")
        creds = self.credentials(target.key)
        return {
            SFTP_SELECTED_SERVER: target.key,
            SFTP_HOST: creds.host,
            SFTP_PORT: int(creds.port),
            SFTP_USERNAME: creds.username,
            SFTP_PASSWORD: creds.password,
        }

    def after_tick(self, result: Sequence[Message]) -> list[Message]:
        if not result:
            return []
        headers = self.headers()
        return [m.with_headers(**headers) for m in result]

    def finalize_tick(self, result: Sequence[Message] | None) -> None:
        self.binding.clear()
        self.policy.on_poll_result(bool(result))

    def abort_tick(self) -> None:
        logger.debug(f"Tick on {self.policy.current} aborted; rotation position kept")
        self.binding.clear()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(policy={self.policy!r}, binding={self.binding!r})"

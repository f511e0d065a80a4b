"""
Poller: runs poll ticks on a fixed delay until stopped.

One tick lists the target directory, attributes the results to the selected
server, drops duplicates, optionally transfers files and builds task launch
requests, then hands each message to the emitter. Ticks are strictly
sequential on the poller's thread.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from sftpstream.config.properties import TriggerProperties
from sftpstream.connections.session_factory import DelegatingSessionFactory
from sftpstream.connections.sftp import SFTPConnection
from sftpstream.emitters import Emitter
from sftpstream.exceptions import SftpStreamError
from sftpstream.messaging import FILENAME, Message
from sftpstream.metadata.idempotency import IdempotencyFilter
from sftpstream.rotation import KeyDirectory
from sftpstream.source.inbound import SftpInboundSource
from sftpstream.source.orchestrator import PollCycleOrchestrator
from sftpstream.source.tasklauncher import TaskLaunchRequestBuilder
from sftpstream.transfer.service import FileTransferService
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.source.poller")


@dataclass
class TickSummary:
    """Outcome of one poll tick."""

    key: str | None
    directory: str
    received: int = 0
    emitted: int = 0
    duplicates: int = 0
    errors: int = 0
    message_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "directory": self.directory,
            "received": self.received,
            "emitted": self.emitted,
            "duplicates": self.duplicates,
            "errors": self.errors,
        }


class Poller:
    """
    Drives the inbound source.

    Args:
        source: Lists and fetches remote files
        sessions: Opens connections by server key
        emitter: Downstream destination
        orchestrator: Multi-source rotation; None polls ``remote_dir`` on the
            default server
        remote_dir: Directory polled without rotation
        idempotency: Drops messages whose key was already seen
        transfer: Copies listed files to a persister before emitting
        task_launcher: Replaces each message with a task launch request
        trigger: Delays and per-tick message cap
    """

    def __init__(
        self,
        source: SftpInboundSource,
        sessions: DelegatingSessionFactory,
        emitter: Emitter,
        *,
        orchestrator: PollCycleOrchestrator | None = None,
        remote_dir: str = "/",
        idempotency: IdempotencyFilter | None = None,
        transfer: FileTransferService | None = None,
        task_launcher: TaskLaunchRequestBuilder | None = None,
        trigger: TriggerProperties | None = None,
    ):
        self.source = source
        self.sessions = sessions
        self.emitter = emitter
        self.orchestrator = orchestrator
        self.remote_dir = remote_dir
        self.idempotency = idempotency
        self.transfer = transfer
        self.task_launcher = task_launcher
        self.trigger = trigger or TriggerProperties()
        self._stopping = threading.Event()
        self.ticks = 0

    @property
    def stopped(self) -> bool:
        return self._stopping.is_set()

    def stop(self) -> None:
        self._stopping.set()

    def poll_once(self) -> TickSummary:
        """
        Run exactly one tick.

        A failing remote call propagates after the orchestrator has released the
        tick; the rotation stays on the same target.
        """
        if self.orchestrator is not None:
            target = self.orchestrator.before_tick()
        else:
            target = KeyDirectory(key="", directory=self.remote_dir)
        key = target.key or None
        summary = TickSummary(key=key, directory=target.directory)

        try:
            with self.sessions.session(key) as connection:
                received = self.source.receive(connection, target.directory)
                if self.orchestrator is not None:
                    received = self.orchestrator.after_tick(received)
                summary.received = len(received)
                self._dispatch(received, connection, summary)
        except Exception:
            if self.orchestrator is not None:
                self.orchestrator.abort_tick()
            raise

        if self.orchestrator is not None:
            self.orchestrator.finalize_tick(received)
        self.ticks += 1
        if summary.received:
            logger.info(
                f"Polled {target.directory} on '{key or 'default'}': {summary.emitted} emitted, "
                f"{summary.duplicates} duplicate(s), {summary.errors} error(s)"
            )
        return summary

    def _dispatch(self, messages: list[Message], connection: SFTPConnection, summary: TickSummary) -> None:
        limit = self.trigger.max_messages
        for message in messages:
            if limit != -1 and summary.emitted >= limit:
                break
            seen_key = self.idempotency.key_strategy(message) if self.idempotency else None
            if seen_key is not None and not self.idempotency.should_emit(seen_key):  # type: ignore[union-attr]
                logger.debug(f"Dropping duplicate {seen_key}")
                summary.duplicates += 1
                continue
            try:
                if self.transfer is not None:
                    self.transfer.transfer(message, connection)
                out = self.task_launcher.transform(message) if self.task_launcher is not None else message
                self.emitter.emit(out)
            except SftpStreamError as e:
                summary.errors += 1
                logger.error(f"Failed to deliver {message.headers.get(FILENAME, message.id)}: {e.message}")
                continue
            if seen_key is not None:
                self.idempotency.mark_seen(seen_key)  # type: ignore[union-attr]
            summary.emitted += 1
            summary.message_ids.append(message.id)

    def run(self, max_ticks: int | None = None) -> None:
        """Poll until ``stop()`` is called (or ``max_ticks`` ticks have run)."""
        logger.info(
            f"Poller started (fixed_delay={self.trigger.fixed_delay}s, initial_delay={self.trigger.initial_delay}s)"
        )
        if self._stopping.wait(self.trigger.initial_delay):
            return
        attempts = 0
        while not self._stopping.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Poll tick failed: {e}")
            attempts += 1
            if max_ticks is not None and attempts >= max_ticks:
                break
            self._stopping.wait(self.trigger.fixed_delay)
        logger.info("Poller stopped")

    def close(self) -> None:
        self.sessions.close()
        self.emitter.close()

"""
End-to-end poll ticks against fake servers.
"""

import logging

import pytest

from sftpstream.config.properties import (
    ServerCredentials,
    SourceProperties,
    TaskLaunchRequestType,
    TaskProperties,
    TriggerProperties,
)
from sftpstream.connections import DelegatingSessionFactory
from sftpstream.emitters import MemoryEmitter
from sftpstream.exceptions import SftpStreamError, SftpTransportError
from sftpstream.messaging import FILENAME, SFTP_HOST, SFTP_SELECTED_SERVER, TASK_LAUNCH_REQUEST
from sftpstream.metadata import IdempotencyFilter, InMemoryMetadataStore
from sftpstream.rotation import RotationPolicy, ServerDirectoryRegistry
from sftpstream.source import (
    CompositeFilter,
    PersistentAcceptOnceFilter,
    Poller,
    PollCycleOrchestrator,
    SftpInboundSource,
    TaskLaunchRequestBuilder,
)
from sftpstream.transfer import FileInputStreamPersister, FileTransferService

DEFAULT = ServerCredentials(host="default", username="d")
FACTORIES = {
    "one": ServerCredentials(host="h1", username="u1", password="p1"),
    "two": ServerCredentials(host="h2", username="u2", password="p2"),
}


class FailingEmitter(MemoryEmitter):
    """Rejects messages for the named files."""

    def __init__(self, reject):
        super().__init__()
        self.reject = set(reject)

    def emit(self, message):
        if message.headers.get(FILENAME) in self.reject:
            raise SftpStreamError("downstream unavailable")
        super().emit(message)


@pytest.fixture
def sessions(connection_factory):
    return DelegatingSessionFactory(DEFAULT, FACTORIES, connection_factory=connection_factory)


def multi_source(directories, fair=False, **extra):
    return SourceProperties(factory=DEFAULT, factories=FACTORIES, directories=directories, fair=fair, **extra)


def make_orchestrator(props):
    registry = ServerDirectoryRegistry.from_strings(props.directories)
    return PollCycleOrchestrator(RotationPolicy(registry, fair=props.fair), props.credentials_for)


class TestSingleSource:
    """Polling one directory on the default server."""

    def test_poll_once(self, sessions, remotes, opened):
        remotes["default"].add("/in/a.txt")
        remotes["default"].add("/in/b.txt")
        emitter = MemoryEmitter()
        poller = Poller(SftpInboundSource(SourceProperties(list_only=True)), sessions, emitter, remote_dir="/in")
        summary = poller.poll_once()
        assert summary.key is None
        assert summary.directory == "/in"
        assert summary.received == summary.emitted == 2
        assert [m.payload for m in emitter.messages] == ["a.txt", "b.txt"]
        assert SFTP_SELECTED_SERVER not in emitter.messages[0].headers
        assert opened == [("default", "default")]
        assert poller.ticks == 1

    def test_idempotency_across_ticks(self, sessions, remotes):
        remotes["default"].add("/in/a.txt")
        emitter = MemoryEmitter()
        poller = Poller(
            SftpInboundSource(SourceProperties(list_only=True)),
            sessions,
            emitter,
            remote_dir="/in",
            idempotency=IdempotencyFilter(InMemoryMetadataStore()),
        )
        poller.poll_once()
        second = poller.poll_once()
        assert second.received == 1
        assert second.duplicates == 1
        assert second.emitted == 0
        assert len(emitter) == 1

    def test_failed_delivery_retried(self, sessions, remotes):
        remotes["default"].add("/in/a.txt")
        remotes["default"].add("/in/b.txt")
        emitter = FailingEmitter(reject=["a.txt"])
        poller = Poller(
            SftpInboundSource(SourceProperties(list_only=True)),
            sessions,
            emitter,
            remote_dir="/in",
            idempotency=IdempotencyFilter(InMemoryMetadataStore()),
        )
        first = poller.poll_once()
        assert (first.emitted, first.errors) == (1, 1)

        emitter.reject.clear()
        second = poller.poll_once()
        assert (second.emitted, second.duplicates) == (1, 1)
        assert [m.payload for m in emitter.messages] == ["b.txt", "a.txt"]

    def test_max_messages(self, sessions, remotes):
        for name in ("a", "b", "c"):
            remotes["default"].add(f"/in/{name}.txt")
        emitter = MemoryEmitter()
        poller = Poller(
            SftpInboundSource(SourceProperties(list_only=True)),
            sessions,
            emitter,
            remote_dir="/in",
            trigger=TriggerProperties(max_messages=2),
        )
        summary = poller.poll_once()
        assert summary.received == 3
        assert summary.emitted == 2

    def test_transfer_before_emit(self, sessions, remotes, tmp_path):
        remotes["default"].add("/in/a.txt", b"contents")
        emitter = MemoryEmitter()
        poller = Poller(
            SftpInboundSource(SourceProperties(list_only=True)),
            sessions,
            emitter,
            remote_dir="/in",
            transfer=FileTransferService(sessions, FileInputStreamPersister(tmp_path)),
        )
        poller.poll_once()
        assert (tmp_path / "a.txt").read_bytes() == b"contents"
        assert len(emitter) == 1


class TestMultiSource:
    """Rotation across servers through the poller."""

    def test_fair_rotation_routes_sessions(self, sessions, remotes, opened):
        remotes["h1"].add("/a/x.txt")
        remotes["h2"].add("/b/y.txt")
        props = multi_source(("one./a", "two./b"), fair=True, list_only=True)
        emitter = MemoryEmitter()
        poller = Poller(SftpInboundSource(props), sessions, emitter, orchestrator=make_orchestrator(props))

        keys = [poller.poll_once().key for _ in range(4)]
        assert keys == ["one", "two", "one", "two"]
        assert [host for _, host in opened] == ["h1", "h2", "h1", "h2"]
        assert emitter.messages[0].headers[SFTP_SELECTED_SERVER] == "one"
        assert emitter.messages[0].headers[SFTP_HOST] == "h1"
        assert emitter.messages[1].headers[SFTP_SELECTED_SERVER] == "two"
        assert emitter.messages[1].headers[SFTP_HOST] == "h2"

    def test_exhaustive_drains_before_moving_on(self, sessions, remotes):
        remotes["h1"].add("/a/1.txt")
        remotes["h1"].add("/a/2.txt")
        remotes["h2"].add("/b/3.txt")
        props = multi_source(("one./a", "two./b"), list_only=True, max_fetch=1)
        store = InMemoryMetadataStore()
        source = SftpInboundSource(props, CompositeFilter([PersistentAcceptOnceFilter(store)]))
        poller = Poller(source, sessions, MemoryEmitter(), orchestrator=make_orchestrator(props))

        summaries = [poller.poll_once() for _ in range(5)]
        assert [(s.key, s.received) for s in summaries] == [
            ("one", 1),
            ("one", 1),
            ("one", 0),
            ("two", 1),
            ("two", 0),
        ]
        assert poller.orchestrator.binding.current_key() is None

    def test_transport_failure_keeps_position(self, sessions, remotes, caplog):
        remotes["h1"].add("/a/x.txt")
        remotes["h1"].fail = True
        props = multi_source(("one./a", "two./b"), list_only=True)
        orchestrator = make_orchestrator(props)
        poller = Poller(SftpInboundSource(props), sessions, MemoryEmitter(), orchestrator=orchestrator)

        with pytest.raises(SftpTransportError):
            poller.poll_once()
        assert orchestrator.binding.current_key() is None

        remotes["h1"].fail = False
        assert poller.poll_once().key == "one"

    def test_run_logs_failed_ticks(self, sessions, remotes, caplog):
        caplog.set_level(logging.ERROR, logger="sftpstream")
        remotes["h1"].fail = True
        props = multi_source(("one./a",), list_only=True)
        poller = Poller(
            SftpInboundSource(props),
            sessions,
            MemoryEmitter(),
            orchestrator=make_orchestrator(props),
            trigger=TriggerProperties(fixed_delay=0),
        )
        poller.run(max_ticks=2)
        failures = [r for r in caplog.records if "Poll tick failed" in r.getMessage()]
        assert len(failures) == 2
        assert poller.ticks == 0

    def test_task_launcher_drops_server_headers(self, sessions, remotes):
        remotes["h2"].add("/b/y.txt")
        props = multi_source(("two./b",), list_only=True)
        launcher = TaskLaunchRequestBuilder(
            TaskLaunchRequestType.DATAFLOW, TaskProperties(task_names={"two": "task-two"}), props
        )
        emitter = MemoryEmitter()
        poller = Poller(
            SftpInboundSource(props), sessions, emitter, orchestrator=make_orchestrator(props), task_launcher=launcher
        )
        poller.poll_once()
        (out,) = emitter.messages
        assert out.headers[TASK_LAUNCH_REQUEST] == "dataflow"
        assert SFTP_SELECTED_SERVER not in out.headers
        assert "sftp_selectedServer=two" in out.payload["args"]
        assert "sftp_host=h2" in out.payload["args"]
        assert out.payload["task_name"] == "task-two"


class TestRunLoop:
    """Tests for run()/stop()."""

    def test_stop_before_start(self, sessions):
        poller = Poller(SftpInboundSource(SourceProperties(list_only=True)), sessions, MemoryEmitter())
        poller.stop()
        poller.run()
        assert poller.stopped
        assert poller.ticks == 0

    def test_max_ticks(self, sessions):
        poller = Poller(
            SftpInboundSource(SourceProperties(list_only=True)),
            sessions,
            MemoryEmitter(),
            trigger=TriggerProperties(fixed_delay=0),
        )
        poller.run(max_ticks=3)
        assert poller.ticks == 3

"""
Tests for PollCycleOrchestrator: binding lifecycle, header attribution and
credential fallback.
"""

import pytest

from sftpstream.config.properties import ServerCredentials, SourceProperties
from sftpstream.exceptions import BindingError
from sftpstream.messaging import (
    SFTP_HOST,
    SFTP_PASSWORD,
    SFTP_PORT,
    SFTP_SELECTED_SERVER,
    SFTP_USERNAME,
    Message,
)
from sftpstream.rotation import KeyDirectory, RotationPolicy, ServerDirectoryRegistry
from sftpstream.source.orchestrator import PollCycleOrchestrator


@pytest.fixture
def source_props():
    return SourceProperties(
        factory=ServerCredentials(host="default", port=2222, username="def", password="defpass"),
        factories={"one": ServerCredentials(host="h1", port=22, username="u1", password="p1")},
        directories=("one./dirA", "two./dirB"),
    )


def make_orchestrator(props: SourceProperties, fair: bool = False) -> PollCycleOrchestrator:
    registry = ServerDirectoryRegistry.from_strings(props.directories)
    return PollCycleOrchestrator(RotationPolicy(registry, fair=fair), props.credentials_for)


class TestTickLifecycle:
    """Tests for before/after/finalize and the binding."""

    def test_before_tick_binds_and_returns_target(self, source_props):
        orch = make_orchestrator(source_props)
        target = orch.before_tick()
        assert target == KeyDirectory("one", "/dirA")
        assert orch.binding.current_key() == "one"

    def test_key_bound_only_between_bind_and_clear(self, source_props):
        orch = make_orchestrator(source_props, fair=True)
        for expected in ("one", "two", "one"):
            assert orch.binding.current_key() is None
            orch.before_tick()
            assert orch.binding.current_key() == expected
            orch.after_tick([Message(payload="f.txt")])
            # Still bound while downstream handles the results
            assert orch.binding.current_key() == expected
            orch.finalize_tick([])
            assert orch.binding.current_key() is None

    def test_overlapping_ticks_rejected(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        with pytest.raises(BindingError):
            orch.before_tick()

    def test_finalize_reports_results(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        orch.finalize_tick([Message(payload="a")])
        assert orch.before_tick().key == "one"
        orch.finalize_tick([])
        assert orch.before_tick().key == "two"

    def test_abort_keeps_position(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        orch.abort_tick()
        assert orch.binding.current_key() is None
        assert orch.before_tick().key == "one"


class TestHeaders:
    """Tests for selected-server headers."""

    def test_headers_from_explicit_factory(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        result = orch.after_tick([Message(payload="a.txt"), Message(payload="b.txt")])
        assert len(result) == 2
        for message in result:
            assert message.headers[SFTP_SELECTED_SERVER] == "one"
            assert message.headers[SFTP_HOST] == "h1"
            assert message.headers[SFTP_PORT] == 22
            assert message.headers[SFTP_USERNAME] == "u1"
            assert message.headers[SFTP_PASSWORD] == "p1"

    def test_absent_key_falls_back_to_default(self, source_props):
        """Key 'two' has no factory entry, so the default credentials are used."""
        orch = make_orchestrator(source_props, fair=True)
        orch.before_tick()
        orch.finalize_tick([])
        assert orch.before_tick().key == "two"
        headers = orch.headers()
        assert headers[SFTP_SELECTED_SERVER] == "two"
        assert headers[SFTP_HOST] == "default"
        assert headers[SFTP_PORT] == 2222
        assert isinstance(headers[SFTP_PORT], int)
        assert headers[SFTP_USERNAME] == "def"

    def test_after_tick_keeps_payload_and_id(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        original = Message(payload="x.txt", headers={"file_name": "x.txt"})
        (decorated,) = orch.after_tick([original])
        assert decorated.id == original.id
        assert decorated.payload == "x.txt"
        assert decorated.headers["file_name"] == "x.txt"

    def test_after_tick_empty(self, source_props):
        orch = make_orchestrator(source_props)
        orch.before_tick()
        assert orch.after_tick([]) == []

    def test_headers_before_first_tick(self, source_props):
        orch = make_orchestrator(source_props)
        with pytest.raises(BindingError):
            orch.headers()

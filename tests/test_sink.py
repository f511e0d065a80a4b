"""
Tests for the SFTP sink.
"""

import io

import pytest

from sftpstream.config.properties import ServerCredentials, SinkMode, SinkProperties
from sftpstream.exceptions import FileExistsOnRemoteError, SinkError
from sftpstream.messaging import FILENAME, Message
from sftpstream.sink import SftpSink

CREDS = ServerCredentials(host="out", username="u")


@pytest.fixture
def make_sink(connection_factory):
    def factory(**overrides):
        props = SinkProperties(factory=CREDS, remote_dir="/out", **overrides)
        return SftpSink(props, connection_factory=connection_factory)

    return factory


class TestSftpSink:
    """Tests for SftpSink.handle()."""

    def test_replace_via_temporary_name(self, make_sink, remotes, tmp_path):
        local = tmp_path / "report.csv"
        local.write_bytes(b"a,b\n")
        sink = make_sink()
        assert sink.handle(Message(payload=str(local))) == "/out/report.csv"
        files = remotes["out"].files
        assert files["/out/report.csv"][0] == b"a,b\n"
        assert "/out/report.csv.tmp" not in files
        assert "/out" in remotes["out"].dirs

    def test_direct_put(self, make_sink, remotes):
        sink = make_sink(use_temporary_filename=False)
        sink.handle(Message(payload=b"bytes", headers={FILENAME: "a.bin"}))
        assert remotes["out"].files["/out/a.bin"][0] == b"bytes"

    def test_text_payload(self, make_sink, remotes):
        make_sink().handle(Message(payload="héllo", headers={FILENAME: "a.txt"}))
        assert remotes["out"].files["/out/a.txt"][0] == "héllo".encode("utf-8")

    def test_file_object_payload(self, make_sink, remotes):
        make_sink().handle(Message(payload=io.BytesIO(b"stream"), headers={FILENAME: "s.bin"}))
        assert remotes["out"].files["/out/s.bin"][0] == b"stream"

    def test_fail_mode(self, make_sink, remotes):
        remotes["out"].add("/out/a.txt", b"old")
        sink = make_sink(mode=SinkMode.FAIL)
        with pytest.raises(FileExistsOnRemoteError) as exc_info:
            sink.handle(Message(payload=b"new", headers={FILENAME: "a.txt"}))
        assert exc_info.value.remote_path == "/out/a.txt"
        assert remotes["out"].files["/out/a.txt"][0] == b"old"

    def test_ignore_mode(self, make_sink, remotes):
        remotes["out"].add("/out/a.txt", b"old")
        sink = make_sink(mode=SinkMode.IGNORE)
        assert sink.handle(Message(payload=b"new", headers={FILENAME: "a.txt"})) is None
        assert remotes["out"].files["/out/a.txt"][0] == b"old"

    def test_ignore_mode_writes_new_file(self, make_sink, remotes):
        sink = make_sink(mode=SinkMode.IGNORE)
        assert sink.handle(Message(payload=b"new", headers={FILENAME: "b.txt"})) == "/out/b.txt"

    def test_append_mode(self, make_sink, remotes):
        remotes["out"].add("/out/log.txt", b"one\n")
        make_sink(mode=SinkMode.APPEND).handle(Message(payload=b"two\n", headers={FILENAME: "log.txt"}))
        assert remotes["out"].files["/out/log.txt"][0] == b"one\ntwo\n"

    def test_no_auto_create(self, make_sink, remotes):
        make_sink(auto_create_dir=False).handle(Message(payload=b"x", headers={FILENAME: "a"}))
        assert remotes["out"].dirs == set()

    def test_unnamed_payload(self, make_sink):
        with pytest.raises(SinkError):
            make_sink().handle(Message(payload=b"x"))

    def test_unsupported_payload(self, make_sink):
        with pytest.raises(SinkError):
            make_sink().handle(Message(payload=42, headers={FILENAME: "n"}))

    def test_transport_error_wrapped(self, make_sink, remotes):
        remotes["out"].fail = True
        with pytest.raises(SinkError) as exc_info:
            make_sink().handle(Message(payload=b"x", headers={FILENAME: "a"}))
        assert exc_info.value.details == {"path": "/out/a"}

    def test_context_manager_closes(self, make_sink):
        with make_sink() as sink:
            pass
        assert sink._connection.closed

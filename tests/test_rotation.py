"""
Tests for the rotation core: registry, policy and session key binding.
"""

import pytest

from sftpstream.exceptions import BindingError, ConfigurationError
from sftpstream.rotation import (
    KeyDirectory,
    RotationPolicy,
    ServerDirectoryRegistry,
    SessionKeyBinding,
)


def make_registry(*entries: str) -> ServerDirectoryRegistry:
    return ServerDirectoryRegistry.from_strings(entries)


class TestKeyDirectory:
    """Tests for parsing key.directory entries."""

    def test_parse(self):
        kd = KeyDirectory.parse("one./dirA")
        assert kd == KeyDirectory("one", "/dirA")
        assert str(kd) == "one./dirA"

    @pytest.mark.parametrize("entry", ["junk", "one.", ".dir", "a.b.c", ""])
    def test_malformed_entries(self, entry):
        with pytest.raises(ConfigurationError) as exc_info:
            KeyDirectory.parse(entry)
        assert repr(entry) in str(exc_info.value)


class TestServerDirectoryRegistry:
    """Tests for ServerDirectoryRegistry."""

    def test_order_is_configuration_order(self):
        registry = make_registry("one.sftpSource", "two.sftpSecondSource")
        assert len(registry) == 2
        assert registry[0] == KeyDirectory("one", "sftpSource")
        assert registry[1] == KeyDirectory("two", "sftpSecondSource")
        assert list(registry) == list(registry.entries)
        assert registry.keys() == ["one", "two"]

    def test_empty_registry_rejected(self):
        with pytest.raises(ConfigurationError):
            ServerDirectoryRegistry([])

    def test_malformed_entry_named_in_error(self):
        """A directory list with an entry lacking a directory fails construction."""
        with pytest.raises(ConfigurationError) as exc_info:
            make_registry("one.sftpSource", "two.sftpSecondSource", "junk")
        assert "junk" in str(exc_info.value)

    def test_entries_are_immutable(self):
        registry = make_registry("one.a")
        assert isinstance(registry.entries, tuple)


class TestFairRotation:
    """Fair mode advances on every poll."""

    def test_alternates_regardless_of_results(self):
        policy = RotationPolicy(make_registry("one./dirA", "two./dirB"), fair=True)
        seen = []
        for had_results in (True, False, True, True):
            seen.append(policy.current_target().key)
            policy.on_poll_result(had_results)
        assert seen == ["one", "two", "one", "two"]

    def test_each_entry_once_per_window(self):
        registry = make_registry("a.1", "b.2", "c.3")
        policy = RotationPolicy(registry, fair=True)
        # Start mid-cycle to check an arbitrary window
        policy.current_target()
        policy.on_poll_result(True)
        window = []
        for _ in range(len(registry)):
            window.append(policy.current_target())
            policy.on_poll_result(False)
        assert sorted(window, key=str) == sorted(registry.entries, key=str)


class TestExhaustiveRotation:
    """Exhaustive mode stays on a target while it produces results."""

    def test_stays_then_moves(self):
        policy = RotationPolicy(make_registry("one./dirA", "two./dirB"), fair=False)
        assert policy.current_target().key == "one"
        policy.on_poll_result(True)
        assert policy.current_target().key == "one"
        policy.on_poll_result(False)
        assert policy.current_target().key == "two"

    def test_sticky_for_k_results(self):
        policy = RotationPolicy(make_registry("a.1", "b.2"))
        first = policy.current_target()
        for _ in range(5):
            policy.on_poll_result(True)
            assert policy.current_target() == first
        policy.on_poll_result(False)
        assert policy.current_target() == KeyDirectory("b", "2")

    def test_wraps_around(self):
        policy = RotationPolicy(make_registry("a.1", "b.2"))
        keys = []
        for _ in range(4):
            keys.append(policy.current_target().key)
            policy.on_poll_result(False)
        assert keys == ["a", "b", "a", "b"]


class TestRotationPolicy:
    """Tests for policy state and advance()."""

    def test_uninitialized_state(self):
        policy = RotationPolicy(make_registry("a.1"))
        state = policy.state
        assert state.position == -1
        assert state.current is None
        assert state.initialized is False

    def test_first_call_initializes(self):
        policy = RotationPolicy(make_registry("a.1", "b.2"))
        policy.current_target()
        assert policy.state.initialized is True
        assert policy.state.position == 0
        assert policy.current == KeyDirectory("a", "1")

    @pytest.mark.parametrize("size", [1, 2, 5])
    def test_advance_closes_cycle(self, size):
        registry = make_registry(*[f"k{i}.d{i}" for i in range(size)])
        policy = RotationPolicy(registry)
        start = policy.current_target()
        for _ in range(size):
            policy.advance()
        assert policy.current == start

    def test_single_entry_always_selected(self):
        policy = RotationPolicy(make_registry("only.dir"), fair=True)
        for _ in range(3):
            assert policy.current_target().key == "only"
            policy.on_poll_result(False)

    def test_current_is_always_a_registry_entry(self):
        registry = make_registry("a.1", "b.2", "c.3")
        policy = RotationPolicy(registry)
        for had_results in (False, True, False, False, True, False):
            assert policy.current_target() in registry.entries
            policy.on_poll_result(had_results)


class TestSessionKeyBinding:
    """Tests for SessionKeyBinding."""

    def test_bind_and_clear(self):
        binding = SessionKeyBinding()
        assert binding.current_key() is None
        binding.bind("one")
        assert binding.current_key() == "one"
        assert binding.is_bound
        binding.clear()
        assert binding.current_key() is None
        assert not binding.is_bound

    def test_double_bind_rejected(self):
        binding = SessionKeyBinding()
        binding.bind("one")
        with pytest.raises(BindingError) as exc_info:
            binding.bind("two")
        assert exc_info.value.details == {"bound": "one", "requested": "two"}

    def test_clear_is_idempotent(self):
        binding = SessionKeyBinding()
        binding.clear()
        binding.clear()
        assert binding.current_key() is None

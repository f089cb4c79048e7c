# tests/test_control_store.py - Tests for the control store
"""
Unit tests for ControlStore and ProbeConfig.
"""

from rwtracer.collector.control_store import ControlStore, ProbeConfig, truncate_message
from tests.conftest import FakeConfigTable


class TestControlStore:
    """Test cases for the single-slot store"""

    def test_get_before_set(self):
        """A never-written slot is a lookup miss"""
        store = ControlStore(FakeConfigTable())
        assert store.get() is None

    def test_set_then_get(self):
        store = ControlStore(FakeConfigTable())
        store.set(ProbeConfig(verbose=True, message="hi"))

        assert store.get() == ProbeConfig(verbose=True, message="hi")

    def test_set_overwrites(self):
        table = FakeConfigTable()
        store = ControlStore(table)

        store.set(ProbeConfig(verbose=True, message="first"))
        store.set(ProbeConfig(verbose=False, message="second"))

        assert store.get() == ProbeConfig(verbose=False, message="second")
        assert list(table.slots) == [0]

    def test_record_bytes(self):
        table = FakeConfigTable()
        ControlStore(table).set(ProbeConfig(verbose=True, message="abc"))

        raw = table.slots[0]
        assert len(raw) == 68
        assert raw[:4] == (1).to_bytes(4, 'little')
        assert raw[4:8] == b"abc\0"


class TestTruncateMessage:
    """Test cases for message truncation"""

    def test_short_message(self):
        assert truncate_message("hello") == b"hello"

    def test_long_message_truncated(self):
        assert truncate_message("x" * 100) == b"x" * 63

    def test_long_message_stored_with_terminator(self):
        table = FakeConfigTable()
        store = ControlStore(table)
        store.set(ProbeConfig(message="y" * 80))

        assert store.get().message == "y" * 63
        assert table.slots[0][4 + 63] == 0

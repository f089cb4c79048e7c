# tests/test_channel.py - Tests for the event channel
"""
Unit tests for EventChannel over a fake perf buffer.
"""

import pytest

from rwtracer.collector.channel import EventChannel
from rwtracer.collector.control_store import ControlStore, ProbeConfig
from rwtracer.collector.probes import ProbeEngine
from tests.conftest import FakeBPF


@pytest.fixture
def bpf():
    """Fake kernel with both probes attached and the config set"""
    bpf = FakeBPF(ProbeEngine().render(), ring_capacity=4)
    ControlStore(bpf['config_map']).set(ProbeConfig())
    bpf.attach_kprobe(event="__x64_sys_read", fn_name="trace_read_entry")
    bpf.attach_kprobe(event="__x64_sys_write", fn_name="trace_write_entry")
    return bpf


class TestEventChannel:
    """Test cases for EventChannel"""

    def test_poll_before_open(self, bpf):
        channel = EventChannel(bpf)
        with pytest.raises(RuntimeError, match="not open"):
            channel.poll(100)

    @pytest.mark.parametrize('page_cnt', [0, 3, 48])
    def test_page_cnt_power_of_two(self, bpf, page_cnt):
        with pytest.raises(ValueError, match="power of two"):
            EventChannel(bpf, page_cnt=page_cnt)

    def test_open_registers_callbacks(self, bpf):
        channel = EventChannel(bpf, page_cnt=16)
        channel.open()

        table = bpf['events']
        assert table.page_cnt == 16
        assert table.lost_cb is not None

    def test_poll_empty(self, bpf):
        channel = EventChannel(bpf)
        channel.open()

        assert channel.poll(100) == []
        assert bpf.poll_calls == [100]

    def test_poll_returns_batch(self, bpf):
        channel = EventChannel(bpf)
        channel.open()

        bpf.syscall('read', pid=10, tgid=9, comm=b"cat")
        bpf.syscall('write', pid=10, tgid=9, comm=b"cat")
        batch = channel.poll(100)

        assert [e.func_name for e in batch] == ['sys_read', 'sys_write']
        assert all(e.pid == 10 and e.tgid == 9 and e.comm == 'cat' for e in batch)
        assert channel.poll(100) == []
        assert channel.received == 2

    def test_per_cpu_order_preserved(self, bpf):
        channel = EventChannel(bpf)
        channel.open()

        for i in range(3):
            bpf.syscall('read', pid=100 + i, cpu=1)
            bpf.syscall('write', pid=200 + i, cpu=0)
        batch = channel.poll(100)

        cpu1 = [e.pid for e in batch if e.func_name == 'sys_read']
        cpu0 = [e.pid for e in batch if e.func_name == 'sys_write']
        assert cpu1 == [100, 101, 102]
        assert cpu0 == [200, 201, 202]

    def test_full_ring_drops_and_counts(self, bpf):
        """Samples beyond ring capacity are lost, not raised"""
        channel = EventChannel(bpf)
        channel.open()

        for _ in range(6):
            bpf.syscall('read')
        batch = channel.poll(100)

        assert len(batch) == 4
        assert channel.lost_count == 2
        assert channel.get_stats() == {'received': 4, 'lost': 2, 'decode_errors': 0}

    def test_short_sample_skipped(self, bpf):
        channel = EventChannel(bpf)
        channel.open()

        bpf['events'].submit(0, b'\0' * 8)
        bpf.syscall('read')
        batch = channel.poll(100)

        assert [e.func_name for e in batch] == ['sys_read']
        assert channel.decode_errors == 1

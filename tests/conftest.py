# tests/conftest.py - Shared fixtures
"""
In-process stand-ins for the BCC BPF object and the kernel behind it.

FakeBPF keeps the pieces the tracer talks to: a single-slot config map, a
perf output with bounded per-CPU rings, a kprobe registry and a trace pipe.
FakeBPF.syscall() plays the role of the kernel entering a syscall and runs
the probe attached to it, following the probe logic in probe_entry.c.
"""

import ctypes as ct
import itertools
import re
from collections import defaultdict, deque

import pytest

from rwtracer.ebpf.schema import ConfigRecord, Event

_PROBE_RE = re.compile(
    r'int (trace_\w+_entry)\(struct pt_regs \*ctx\).*?'
    r'__builtin_memcpy\(e\.func_name, "([^"]*)", (\d+)\);',
    re.DOTALL,
)


class FakeConfigTable:
    """BPF_HASH(config_map, u32, struct config, 1)"""

    def __init__(self):
        self.slots = {}

    def __setitem__(self, key, leaf):
        if key.value not in self.slots and len(self.slots) >= 1:
            raise Exception("map full")
        self.slots[key.value] = bytes(leaf)

    def __getitem__(self, key):
        if key.value not in self.slots:
            raise KeyError(key.value)
        return ConfigRecord.from_buffer_copy(self.slots[key.value])


class FakePerfTable:
    """BPF_PERF_OUTPUT(events) with one bounded ring per CPU"""

    def __init__(self, capacity):
        self.capacity = capacity
        self.callback = None
        self.lost_cb = None
        self.page_cnt = None
        self.rings = defaultdict(deque)
        self.lost = 0

    def open_perf_buffer(self, callback, page_cnt=8, lost_cb=None, wakeup_events=1):
        self.callback = callback
        self.lost_cb = lost_cb
        self.page_cnt = page_cnt

    def submit(self, cpu, raw):
        if self.callback is None:
            return
        ring = self.rings[cpu]
        if len(ring) >= self.capacity:
            self.lost += 1
            return
        ring.append(raw)

    def drain(self):
        if self.callback is None:
            return
        for cpu in sorted(self.rings):
            ring = self.rings[cpu]
            while ring:
                raw = ring.popleft()
                buf = ct.create_string_buffer(raw, len(raw))
                self.callback(cpu, ct.addressof(buf), len(raw))
        if self.lost and self.lost_cb:
            lost, self.lost = self.lost, 0
            self.lost_cb(lost)


class FakeBPF:
    KPROBE = 2

    def __init__(self, text, ring_capacity=64, missing_symbols=(), reject=(),
                 compile_error=None):
        if compile_error:
            raise Exception(compile_error)

        self.text = text
        self.reject = set(reject)
        self.missing_symbols = set(missing_symbols)
        self.tables = {
            'config_map': FakeConfigTable(),
            'events': FakePerfTable(ring_capacity),
        }
        self.labels = {fn: label for fn, label, _ in _PROBE_RE.findall(text)}
        self.loaded = []
        self.kprobes = {}
        self.trace_pipe = []
        self.poll_calls = []
        self.on_poll = []
        self.cleaned_up = False
        self.clock = itertools.count(1_000_000, 1_000)

    def __getitem__(self, name):
        return self.tables[name]

    get_table = __getitem__

    def load_func(self, fn_name, prog_type):
        if fn_name in self.reject:
            raise Exception(f"Failed to load BPF program b'{fn_name}': Permission denied")
        if fn_name not in self.labels:
            raise Exception(f"Failed to load BPF program b'{fn_name}': Invalid argument")
        self.loaded.append(fn_name)
        return fn_name

    def get_syscall_fnname(self, name):
        return b"__x64_sys_" + name.encode()

    def attach_kprobe(self, event=b"", fn_name=b""):
        if not event.startswith("__x64_sys_") or event in self.missing_symbols:
            raise Exception(f"Failed to attach BPF program b'{fn_name}' to kprobe b'{event}'")
        if event in self.kprobes:
            raise Exception(f"Failed to attach BPF program b'{fn_name}' to kprobe b'{event}': busy")
        self.kprobes[event] = fn_name

    def detach_kprobe(self, event=b"", fn_name=None):
        if event not in self.kprobes:
            raise Exception(f"Kprobe {event} is not attached")
        del self.kprobes[event]

    def perf_buffer_poll(self, timeout=-1):
        self.poll_calls.append(timeout)
        if self.on_poll:
            self.on_poll.pop(0)(self)
        self.tables['events'].drain()

    def cleanup(self):
        self.kprobes.clear()
        self.cleaned_up = True

    def syscall(self, name, pid=4242, tgid=4240, comm=b"cat", cpu=0):
        """Enter syscall `name` on `cpu` and run the attached probe, if any."""
        fn_name = self.kprobes.get(f"__x64_sys_{name}")
        if fn_name is None:
            return

        raw = self.tables['config_map'].slots.get(0)
        if raw is None:
            return
        cfg = ConfigRecord.from_buffer_copy(raw)

        label = self.labels[fn_name]
        event = Event(
            pid=pid,
            tgid=tgid,
            comm=comm[:16],
            func_name=label.encode(),
            timestamp=next(self.clock),
        )
        self.tables['events'].submit(cpu, bytes(event))

        if cfg.verbose:
            self.trace_pipe.append(
                f"hello {label} was called by {comm[:16].decode()} (PID: {pid})"
            )


class FakeBPFFactory:
    """Callable used in place of bcc.BPF"""

    KPROBE = FakeBPF.KPROBE

    def __init__(self, **options):
        self.options = options
        self.instances = []

    def __call__(self, text):
        bpf = FakeBPF(text, **self.options)
        self.instances.append(bpf)
        return bpf

    @property
    def last(self):
        return self.instances[-1]


class ListSink:
    """Sink that keeps every line in memory"""

    name = 'list'

    def __init__(self):
        self.lines = []

    def write(self, line):
        self.lines.append(line)


class FailingSink:
    name = 'failing'

    def __init__(self):
        self.attempts = 0

    def write(self, line):
        self.attempts += 1
        raise OSError(28, "No space left on device")


@pytest.fixture
def bpf_factory():
    return FakeBPFFactory()


@pytest.fixture
def loader(bpf_factory):
    from rwtracer.collector.loader import ProbeLoader
    return ProbeLoader(bpf_factory=bpf_factory, require_privileges=False)


@pytest.fixture
def list_sink():
    return ListSink()

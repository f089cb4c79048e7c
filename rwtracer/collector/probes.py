# rwtracer/collector/probes.py - Probe engine
"""
Renders the kernel-side probe program.

A single probe body (probe_entry.c) is instantiated once per interception
point. The only things that differ between instances are the syscall it is
attached to and the fixed label written into each event's func_name.
"""

import re
from dataclasses import dataclass
from typing import List, Sequence

from rwtracer.ebpf import read_source
from rwtracer.ebpf.schema import FUNC_NAME_LEN

PROBES_MARKER = '/* PROBES */'

_IDENT_RE = re.compile(r'^[a-z_][a-z0-9_]*$')
_LABEL_RE = re.compile(r'^[\x20-\x7e]+$')


@dataclass(frozen=True)
class InterceptionPoint:
    """
    A syscall entry a probe attaches to.

    Attributes:
        syscall: Syscall name as passed to get_syscall_fnname ('read')
        label: Text written into Event.func_name ('sys_read')
    """
    syscall: str
    label: str

    def __post_init__(self):
        if not _IDENT_RE.match(self.syscall):
            raise ValueError(f"Invalid syscall name: {self.syscall!r}")
        if not _LABEL_RE.match(self.label) or '"' in self.label or '\\' in self.label:
            raise ValueError(f"Invalid probe label: {self.label!r}")
        if len(self.label) > FUNC_NAME_LEN:
            raise ValueError(
                f"Probe label {self.label!r} longer than {FUNC_NAME_LEN} bytes"
            )

    @property
    def fn_name(self) -> str:
        """Name of the BPF function for this point"""
        return f"trace_{self.syscall}_entry"


WATCHED_POINTS = (
    InterceptionPoint('read', 'sys_read'),
    InterceptionPoint('write', 'sys_write'),
)


class ProbeEngine:
    """
    Builds the BPF program text for a set of interception points.
    """

    def __init__(self, points: Sequence[InterceptionPoint] = WATCHED_POINTS):
        """
        Args:
            points: Interception points to instrument
        """
        if not points:
            raise ValueError("At least one interception point is required")

        syscalls = [p.syscall for p in points]
        if len(set(syscalls)) != len(syscalls):
            raise ValueError(f"Duplicate interception points: {syscalls}")

        self.points = list(points)

    @property
    def fn_names(self) -> List[str]:
        return [p.fn_name for p in self.points]

    def render_probe(self, point: InterceptionPoint) -> str:
        """
        Render the entry probe for one interception point.
        """
        text = read_source('probe_entry.c')
        text = text.replace('__LABEL_LEN__', str(len(point.label)))
        text = text.replace('__LABEL__', point.label)
        return text.replace('__SYSCALL__', point.syscall)

    def render(self) -> str:
        """
        Render the complete program: shared definitions plus one probe per point.

        Returns:
            C source ready for BPF(text=...)
        """
        base = read_source('probe.c')
        if PROBES_MARKER not in base:
            raise ValueError(f"probe.c is missing the {PROBES_MARKER} marker")

        probes = '\n'.join(self.render_probe(p) for p in self.points)
        return base.replace(PROBES_MARKER, probes)

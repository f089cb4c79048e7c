# rwtracer/ebpf/__init__.py - eBPF programs module
"""
eBPF programs for tracing read/write syscall entries.

This module contains the C sources compiled by BCC at load time:
- probe.c: shared structures, the control map and the perf output
- probe_entry.c: the entry probe body, rendered once per syscall
- schema.py: ctypes mirrors of the shared structures
"""

from pathlib import Path

EBPF_DIR = Path(__file__).parent


def read_source(name: str) -> str:
    """
    Read an eBPF C source shipped with the package.

    Args:
        name: File name inside the ebpf directory (e.g. 'probe.c')

    Returns:
        Source code as string
    """
    with open(EBPF_DIR / name, 'r') as f:
        return f.read()

# rwtracer/__init__.py - eBPF read/write syscall tracer
"""
rwtracer: traces read() and write() syscall entries with eBPF kprobes.

Packages:
- ebpf: kernel-side probe sources and the shared record layout
- collector: loader, control store, event channel, consumer and lifecycle
- exporters: output sinks (console, log file)
- utils: configuration, logging and prerequisite helpers
"""

__version__ = "0.1.0"

# rwtracer/collector/event_handler.py - Decoded event records
"""
Structured form of the events delivered by the probes.
"""

from dataclasses import dataclass

from rwtracer.ebpf.schema import Event


@dataclass
class SyscallEvent:
    """
    Consumer-side copy of one struct event.
    """
    pid: int
    tgid: int
    comm: str
    func_name: str
    timestamp: int

    @classmethod
    def from_record(cls, record: Event) -> 'SyscallEvent':
        """
        Build from a decoded record.

        Text fields that fill all 16 bytes have no NUL and are kept whole.
        """
        return cls(
            pid=record.pid,
            tgid=record.tgid,
            comm=record.comm.decode('utf-8', 'replace'),
            func_name=record.func_name.decode('utf-8', 'replace'),
            timestamp=record.timestamp,
        )

    @property
    def message(self) -> str:
        """Line written to the sinks for this event"""
        return f"hello {self.func_name} was called"


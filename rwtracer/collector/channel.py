# rwtracer/collector/channel.py - Perf buffer event channel
"""
Event channel between the probes and userspace.

The kernel side is a BPF_PERF_OUTPUT table: one ring per CPU, drop on full.
Samples from one CPU arrive in submission order; nothing orders samples
across CPUs, so consumers that care must sort on Event.timestamp.
"""

import logging
from typing import List

from rwtracer.collector.event_handler import SyscallEvent
from rwtracer.ebpf.schema import decode_event


class EventChannel:
    """
    Batch-oriented reader over a BCC perf buffer.
    """

    def __init__(self, bpf, name: str = 'events', page_cnt: int = 64):
        """
        Args:
            bpf: Loaded BPF object
            name: Name of the BPF_PERF_OUTPUT table
            page_cnt: Pages per CPU ring (power of two)
        """
        if page_cnt <= 0 or page_cnt & (page_cnt - 1):
            raise ValueError(f"page_cnt must be a power of two, got {page_cnt}")

        self.bpf = bpf
        self.name = name
        self.page_cnt = page_cnt

        self.lost_count = 0
        self.decode_errors = 0
        self.received = 0
        self.is_open = False

        self._batch: List[SyscallEvent] = []
        self.logger = logging.getLogger(__name__)

    def open(self):
        """
        Open the per-CPU rings and register the callbacks.
        """
        self.bpf[self.name].open_perf_buffer(
            self._handle_sample,
            page_cnt=self.page_cnt,
            lost_cb=self._handle_lost,
        )
        self.is_open = True
        self.logger.debug(f"Opened perf buffer '{self.name}' ({self.page_cnt} pages/CPU)")

    def poll(self, timeout_ms: int) -> List[SyscallEvent]:
        """
        Wait up to timeout_ms for samples and return what arrived.

        Args:
            timeout_ms: Maximum wait in milliseconds (0 returns immediately)

        Returns:
            Decoded events, possibly empty
        """
        if not self.is_open:
            raise RuntimeError("Channel not open. Call open() first.")

        self._batch = []
        self.bpf.perf_buffer_poll(timeout=timeout_ms)

        batch, self._batch = self._batch, []
        return batch

    def _handle_sample(self, cpu, data, size):
        """
        Perf buffer callback: copy one sample out of the ring.

        Args:
            cpu: CPU whose ring held the sample
            data: Address of the raw sample
            size: Sample size in bytes
        """
        try:
            record = decode_event(data, size)
        except ValueError as e:
            self.decode_errors += 1
            self.logger.error(f"Dropping sample from CPU {cpu}: {e}")
            return

        self.received += 1
        self._batch.append(SyscallEvent.from_record(record))

    def _handle_lost(self, lost):
        """
        Perf buffer callback: a ring was full and samples were dropped.
        """
        self.lost_count += lost
        self.logger.debug(f"Lost {lost} samples (total {self.lost_count})")

    def get_stats(self) -> dict:
        return {
            'received': self.received,
            'lost': self.lost_count,
            'decode_errors': self.decode_errors,
        }

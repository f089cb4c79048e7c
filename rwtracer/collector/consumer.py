# rwtracer/collector/consumer.py - Event consumer
"""
Drains the event channel and forwards each event to the sinks.
"""

import logging
import threading
from typing import List, Sequence

from rwtracer.collector.channel import EventChannel
from rwtracer.collector.event_handler import SyscallEvent


class EventConsumer:
    """
    Poll loop over an EventChannel.

    Each delivered event is written to every sink exactly once; the consumer
    adds no buffering or de-duplication of its own.
    """

    def __init__(self, channel: EventChannel, sinks: Sequence, poll_timeout_ms: int = 100):
        """
        Args:
            channel: Open event channel
            sinks: Objects with write(line) and a name attribute
            poll_timeout_ms: Poll timeout; bounds how long a stop request waits
        """
        self.channel = channel
        self.sinks = list(sinks)
        self.poll_timeout_ms = poll_timeout_ms

        self.dispatched = 0
        self._failed_sinks = set()
        self.logger = logging.getLogger(__name__)

    def dispatch(self, event: SyscallEvent):
        """
        Forward one event to every sink.

        A failing sink is reported once and does not affect the others.
        """
        line = event.message

        for sink in self.sinks:
            try:
                sink.write(line)
            except OSError as e:
                if id(sink) not in self._failed_sinks:
                    self._failed_sinks.add(id(sink))
                    self.logger.error(f"Write to {sink.name} failed: {e}")

        self.dispatched += 1

    def poll_once(self, timeout_ms: int) -> List[SyscallEvent]:
        """
        Poll the channel once and dispatch the batch.

        Returns:
            The dispatched events
        """
        batch = self.channel.poll(timeout_ms)
        for event in batch:
            self.dispatch(event)
        return batch

    def run(self, stop_event: threading.Event):
        """
        Poll until stop_event is set.

        The flag is only checked between polls, so a stop request waits at
        most one poll timeout.
        """
        self.logger.debug(f"Consumer running (poll timeout {self.poll_timeout_ms}ms)")

        while not stop_event.is_set():
            self.poll_once(self.poll_timeout_ms)

        self.logger.debug("Stop requested, consumer loop exiting")

    def drain(self) -> int:
        """
        Dispatch whatever is already waiting in the rings without blocking.

        Returns:
            Number of events dispatched
        """
        return len(self.poll_once(0))

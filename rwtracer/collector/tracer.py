# rwtracer/collector/tracer.py - Tracer lifecycle
"""
Lifecycle controller for a tracing session.

Startup is load -> configure -> attach -> poll. Teardown runs in reverse
(drain, detach, release) from whatever point was reached, including after
a failed startup step.
"""

import enum
import logging
import threading
from typing import List, Optional, Sequence

from rwtracer.collector.channel import EventChannel
from rwtracer.collector.consumer import EventConsumer
from rwtracer.collector.control_store import ControlStore, ProbeConfig
from rwtracer.collector.loader import Attachment, ProbeLoader
from rwtracer.collector.probes import ProbeEngine
from rwtracer.errors import ConfigureError


class TracerState(enum.IntEnum):
    CREATED = 0
    LOADED = 1
    CONFIGURED = 2
    ATTACHED = 3
    RUNNING = 4
    DRAINING = 5
    DETACHED = 6
    CLOSED = 7


class SyscallTracer:
    """
    Owns one tracing session from load to release.

    Transitions only move forward; any failure jumps to teardown and ends
    in CLOSED. Nothing is retried.
    """

    def __init__(self, config: dict, sinks: Sequence,
                 loader: Optional[ProbeLoader] = None,
                 engine: Optional[ProbeEngine] = None):
        """
        Args:
            config: Dictionary containing:
                - verbose: Emit a trace_pipe line per traced call
                - message: Free text stored in the control record
                - poll_timeout_ms: Perf buffer poll timeout
                - page_cnt: Pages per CPU ring
            sinks: Event sinks passed to the consumer
            loader: Probe loader (defaults to a privileged BCC loader)
            engine: Probe engine (defaults to read + write)
        """
        self.probe_config = ProbeConfig(
            verbose=bool(config.get('verbose', False)),
            message=config.get('message', ''),
        )
        self.poll_timeout_ms = config.get('poll_timeout_ms', 100)
        self.page_cnt = config.get('page_cnt', 64)

        self.sinks = list(sinks)
        self.loader = loader or ProbeLoader()
        self.engine = engine or ProbeEngine()

        self.state = TracerState.CREATED
        self.bpf = None
        self.control_store: Optional[ControlStore] = None
        self.channel: Optional[EventChannel] = None
        self.consumer: Optional[EventConsumer] = None
        self.attachments: List[Attachment] = []

        self.logger = logging.getLogger(__name__)

    def _advance(self, state: TracerState):
        if state <= self.state:
            raise RuntimeError(f"Invalid transition {self.state.name} -> {state.name}")

        self.logger.debug(f"State {self.state.name} -> {state.name}")
        self.state = state

    def load(self):
        """
        Render, compile and load the probe program.
        """
        self.loader.ensure_privileges()
        self.bpf = self.loader.load(self.engine.render(), self.engine.fn_names)
        self._advance(TracerState.LOADED)

    def configure(self):
        """
        Write the control record and open the event channel.
        """
        try:
            self.control_store = ControlStore(self.bpf['config_map'])
            self.control_store.set(self.probe_config)
        except Exception as e:
            raise ConfigureError(f"Failed to update config map: {e}") from e

        self.channel = EventChannel(self.bpf, page_cnt=self.page_cnt)
        try:
            self.channel.open()
        except Exception as e:
            raise ConfigureError(f"Failed to open perf buffer: {e}") from e

        self.consumer = EventConsumer(self.channel, self.sinks, self.poll_timeout_ms)
        self._advance(TracerState.CONFIGURED)

    def attach(self):
        """
        Attach every probe. All must succeed.
        """
        for point in self.engine.points:
            self.attachments.append(self.loader.attach(self.bpf, point))

        self._advance(TracerState.ATTACHED)
        labels = ' and '.join(p.label for p in self.engine.points)
        self.logger.info(f"Monitoring {labels} calls...")

    def start(self):
        """
        Run load, configure and attach in order.
        """
        if self.state != TracerState.CREATED:
            raise RuntimeError(f"Tracer already started (state {self.state.name})")

        self.load()
        self.configure()
        self.attach()

    def poll(self, stop_event: threading.Event):
        """
        Consume events until stop_event is set.
        """
        self._advance(TracerState.RUNNING)
        self.consumer.run(stop_event)

    def run(self, stop_event: threading.Event):
        """
        Full session: start, poll until stopped, then tear down.

        Raises:
            FatalStartupError: If load, configure or attach fails
        """
        try:
            self.start()
            self.poll(stop_event)
        finally:
            self.close()

    def close(self):
        """
        Tear down in reverse acquisition order. Safe to call more than once.
        """
        if self.state == TracerState.CLOSED:
            return

        if self.state == TracerState.RUNNING:
            self._advance(TracerState.DRAINING)
            try:
                drained = self.consumer.drain()
                self.logger.debug(f"Drained {drained} events")
            except Exception as e:
                self.logger.warning(f"Drain failed: {e}")

        for attachment in reversed(self.attachments):
            self.loader.detach(attachment)
        if self.attachments:
            self._advance(TracerState.DETACHED)

        if self.bpf is not None:
            try:
                self.bpf.cleanup()
            except Exception as e:
                self.logger.warning(f"Failed to release BPF resources: {e}")
            self.bpf = None

        self._advance(TracerState.CLOSED)
        self.logger.info("Tracer stopped")

    def get_stats(self) -> dict:
        """
        Get delivery statistics for the session.
        """
        stats = {'delivered': 0, 'lost': 0, 'decode_errors': 0}
        if self.consumer:
            stats['delivered'] = self.consumer.dispatched
        if self.channel:
            stats['lost'] = self.channel.lost_count
            stats['decode_errors'] = self.channel.decode_errors
        return stats

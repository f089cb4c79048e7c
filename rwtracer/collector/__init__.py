# rwtracer/collector/__init__.py - Event collection module
"""
Collector module for moving events from kernel space to the sinks.

This module provides:
- probes.py: Interception points and program rendering
- loader.py: BCC loading, kprobe attach/detach
- control_store.py: Single-slot control record in config_map
- channel.py: Perf buffer event channel
- event_handler.py: Decoded event records
- consumer.py: Poll loop and dispatch to sinks
- tracer.py: Session lifecycle
"""

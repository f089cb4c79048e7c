# rwtracer/collector/control_store.py - Single-slot control store
"""
Userspace view of the kernel config_map.

The map holds exactly one control record at key 0. Userspace writes it once
before probes are relied upon; every probe invocation reads it.
"""

import ctypes as ct
import logging
from dataclasses import dataclass
from typing import Optional

from rwtracer.ebpf.schema import ConfigRecord, MESSAGE_LEN

CONFIG_KEY = 0


def truncate_message(message: str) -> bytes:
    """
    Encode a message so it fits the record with a terminating NUL.

    Longer messages are cut silently at MESSAGE_LEN - 1 bytes.
    """
    return message.encode('utf-8')[:MESSAGE_LEN - 1]


@dataclass
class ProbeConfig:
    """
    Control record shared with the probes.
    """
    verbose: bool = False
    message: str = ""

    def to_record(self) -> ConfigRecord:
        return ConfigRecord(
            verbose=1 if self.verbose else 0,
            message=truncate_message(self.message),
        )

    @classmethod
    def from_record(cls, record: ConfigRecord) -> 'ProbeConfig':
        return cls(
            verbose=bool(record.verbose),
            message=record.message.decode('utf-8', 'replace'),
        )


class ControlStore:
    """
    Single-slot key-value store backed by a BPF hash map.

    Any mapping keyed by ctypes.c_uint works as the table, so tests can
    pass a fake instead of a live BCC table.
    """

    def __init__(self, table):
        """
        Args:
            table: BCC table for config_map (bpf["config_map"])
        """
        self.table = table
        self.logger = logging.getLogger(__name__)

    def set(self, config: ProbeConfig):
        """
        Overwrite the control record at slot 0.

        Args:
            config: New configuration
        """
        self.table[ct.c_uint(CONFIG_KEY)] = config.to_record()
        self.logger.debug(f"Control record set: verbose={config.verbose}")

    def get(self) -> Optional[ProbeConfig]:
        """
        Read the current control record.

        Returns:
            Latest ProbeConfig, or None if slot 0 has never been written
        """
        try:
            leaf = self.table[ct.c_uint(CONFIG_KEY)]
        except KeyError:
            return None

        return ProbeConfig.from_record(ConfigRecord.from_buffer_copy(bytes(leaf)))

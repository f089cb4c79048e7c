# rwtracer/exporters/log_file.py - Append-mode event log
"""
Appends event lines to a log file.
"""

import logging
from typing import Optional


class LogFileSink:
    """
    Appends one line per event to a file, flushing after each line.

    Opening failures are not fatal: the sink stays disabled and the tracer
    carries on with the remaining sinks.
    """

    def __init__(self, path: str):
        self.path = path
        self.fp = None
        self.logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return f"log file {self.path}"

    def open(self) -> bool:
        """
        Open the file in append mode.

        Returns:
            True if the file is open, False if it could not be opened
        """
        try:
            self.fp = open(self.path, 'a')
        except OSError as e:
            self.logger.warning(f"Failed to open log file {self.path}: {e}; continuing without it")
            self.fp = None
            return False

        return True

    def write(self, line: str):
        """
        Append one line.

        Raises:
            OSError: If the write or flush fails
        """
        if self.fp is None:
            return

        self.fp.write(line + '\n')
        self.fp.flush()

    def close(self):
        if self.fp is not None:
            try:
                self.fp.close()
            except OSError as e:
                self.logger.warning(f"Failed to close log file {self.path}: {e}")
            self.fp = None


def open_log_sink(path: Optional[str]) -> Optional[LogFileSink]:
    """
    Create and open a log sink, or None if no path is given or opening fails.
    """
    if not path:
        return None

    sink = LogFileSink(path)
    return sink if sink.open() else None

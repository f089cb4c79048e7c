# rwtracer/exporters/stdout.py - Console output
"""
Writes event lines and run summaries to stdout.
"""

import sys
from typing import Dict
from colorama import Fore, Style


class ConsoleSink:
    """
    Prints one line per event to stdout.
    """

    def __init__(self, stream=None, use_colors: bool = True):
        """
        Args:
            stream: Output stream (defaults to sys.stdout at write time)
            use_colors: Color the summary output
        """
        self.stream = stream
        self.use_colors = use_colors

    @property
    def name(self) -> str:
        return 'console'

    def _out(self):
        return self.stream if self.stream is not None else sys.stdout

    def write(self, line: str):
        """
        Write one event line. Event lines are never colored.
        """
        out = self._out()
        out.write(line + '\n')
        out.flush()

    def print_stats(self, stats: Dict):
        """
        Print the end-of-run summary.

        Args:
            stats: Dictionary with 'delivered' and 'lost' counts
        """
        header = f"{Fore.CYAN}Summary{Style.RESET_ALL}" if self.use_colors else "Summary"
        out = self._out()
        out.write(f"\n{header}\n")
        out.write(f"  Events delivered: {stats.get('delivered', 0)}\n")
        out.write(f"  Samples lost: {stats.get('lost', 0)}\n")
        out.flush()

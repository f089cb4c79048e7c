# rwtracer/exporters/__init__.py - Output sinks
"""
Sinks that receive one line per delivered event.

- stdout.py: console output
- log_file.py: append-mode event log
"""

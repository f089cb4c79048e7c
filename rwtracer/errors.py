# rwtracer/errors.py - Exception hierarchy
"""
Errors raised by the tracer.

Anything deriving from FatalStartupError aborts the startup sequence; the
lifecycle controller releases whatever was already acquired before it
propagates.
"""


class TracerError(Exception):
    """Base class for tracer errors."""


class FatalStartupError(TracerError):
    """Startup cannot continue."""


class PrivilegeError(FatalStartupError):
    """Missing root privileges or memlock limit could not be raised."""


class LoadError(FatalStartupError):
    """Probe program missing, malformed, or rejected by the verifier."""


class AttachError(FatalStartupError):
    """Interception point does not exist or is already held."""


class ConfigureError(FatalStartupError):
    """Control record could not be written into the kernel map."""

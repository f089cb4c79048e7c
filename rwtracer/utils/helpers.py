# rwtracer/utils/helpers.py - Helper functions
"""
Privilege and kernel prerequisite checks.
"""

import os
import platform
import resource
from typing import Tuple
import logging


logger = logging.getLogger(__name__)

MIN_KERNEL = (4, 9)


def check_root_privileges() -> bool:
    """
    Check if running with root privileges.

    Returns:
        True if running as root, False otherwise
    """
    return os.geteuid() == 0 if hasattr(os, 'geteuid') else False


def check_bcc_installed() -> bool:
    """
    Check if BCC is installed and available.

    Returns:
        True if BCC is available, False otherwise
    """
    try:
        import bcc  # noqa: F401
        return True
    except ImportError:
        return False


def parse_kernel_version(release: str) -> Tuple[int, int, int]:
    """
    Parse a kernel release string such as '6.8.0-45-generic'.

    Returns:
        Tuple of (major, minor, patch), zeros for missing parts
    """
    parts = release.split('-')[0].split('.')
    numbers = []
    for part in parts[:3]:
        digits = ''.join(ch for ch in part if ch.isdigit())
        numbers.append(int(digits) if digits else 0)

    while len(numbers) < 3:
        numbers.append(0)

    return tuple(numbers)


def check_kernel_version() -> Tuple[int, int, int]:
    """
    Get Linux kernel version.

    Returns:
        Tuple of (major, minor, patch) version numbers
    """
    return parse_kernel_version(platform.release())


def check_ebpf_support() -> bool:
    """
    Check if the kernel is recent enough for BCC kprobes and perf output.

    Returns:
        True if eBPF is supported, False otherwise
    """
    major, minor, _ = check_kernel_version()

    if (major, minor) < MIN_KERNEL:
        logger.warning(f"Kernel version {major}.{minor} may not fully support eBPF (4.9+ recommended)")
        return False

    return True


def raise_memlock_limit():
    """
    Lift RLIMIT_MEMLOCK so BPF maps and perf rings can be locked in memory.

    Raises:
        OSError: If the limit cannot be raised (typically not root)
    """
    try:
        resource.setrlimit(
            resource.RLIMIT_MEMLOCK,
            (resource.RLIM_INFINITY, resource.RLIM_INFINITY),
        )
    except ValueError as e:
        raise OSError(f"Failed to set RLIMIT_MEMLOCK: {e}") from e


def check_prerequisites() -> bool:
    """
    Check all prerequisites for running the tracer.

    Returns:
        True if all prerequisites are met, False otherwise
    """
    checks = [
        ("Root privileges", check_root_privileges()),
        ("BCC installed", check_bcc_installed()),
        ("eBPF support", check_ebpf_support()),
    ]

    all_passed = True

    print("Checking prerequisites...")
    for name, passed in checks:
        status = "✓" if passed else "✗"
        print(f"  {status} {name}")

        if not passed:
            all_passed = False

    return all_passed

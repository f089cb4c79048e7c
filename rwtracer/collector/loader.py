# rwtracer/collector/loader.py - Probe loading and attachment
"""
Compiles the probe program with BCC, loads it into the kernel and attaches
it to syscall entry points.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from rwtracer.collector.probes import InterceptionPoint
from rwtracer.ebpf.schema import check_layout
from rwtracer.errors import AttachError, LoadError, PrivilegeError
from rwtracer.utils.helpers import check_root_privileges, raise_memlock_limit


@dataclass
class Attachment:
    """
    Handle for one attached kprobe, used for teardown.
    """
    bpf: object
    point: InterceptionPoint
    kernel_func: str
    active: bool = True


class ProbeLoader:
    """
    Loads probe programs and manages their kprobe attachments.
    """

    # Kernel symbol variants, tried after the one BCC reports
    SYSCALL_PREFIXES = ['__x64_sys_', '__arm64_sys_', 'sys_', '__se_sys_']

    def __init__(self, bpf_factory=None, require_privileges: bool = True):
        """
        Args:
            bpf_factory: BPF class to instantiate (defaults to bcc.BPF)
            require_privileges: Check root and raise the memlock limit before loading
        """
        self.bpf_factory = bpf_factory
        self.require_privileges = require_privileges
        self.logger = logging.getLogger(__name__)

    def _get_factory(self):
        if self.bpf_factory is None:
            try:
                from bcc import BPF
            except ImportError as e:
                raise LoadError(
                    "BCC Python bindings not found (install python3-bpfcc)"
                ) from e
            self.bpf_factory = BPF

        return self.bpf_factory

    def ensure_privileges(self):
        """
        Verify the process may load BPF programs.

        Raises:
            PrivilegeError: If not root or the memlock limit cannot be lifted
        """
        if not self.require_privileges:
            return

        if not check_root_privileges():
            raise PrivilegeError("Root privileges are required to load eBPF programs")

        try:
            raise_memlock_limit()
        except OSError as e:
            raise PrivilegeError(str(e)) from e

        self.logger.debug("RLIMIT_MEMLOCK raised to unlimited")

    def load(self, program_text: str, fn_names: Iterable[str]):
        """
        Compile the program and load each probe function.

        Args:
            program_text: Rendered C source
            fn_names: Probe functions to load as kprobe programs

        Returns:
            Loaded BPF object

        Raises:
            LoadError: If the layout check, compilation or verification fails
        """
        if not program_text or not program_text.strip():
            raise LoadError("Empty probe program")

        try:
            check_layout(program_text)
        except ValueError as e:
            raise LoadError(f"Shared record layout check failed: {e}") from e

        factory = self._get_factory()

        try:
            bpf = factory(text=program_text)
        except Exception as e:
            raise LoadError(f"Failed to compile eBPF program: {e}") from e

        try:
            for fn_name in fn_names:
                # The verifier runs here
                bpf.load_func(fn_name, factory.KPROBE)
                self.logger.debug(f"Loaded {fn_name}")
        except Exception as e:
            bpf.cleanup()
            raise LoadError(f"Failed to load {fn_name}: {e}") from e

        self.logger.info("eBPF program loaded successfully")
        return bpf

    def candidate_symbols(self, bpf, point: InterceptionPoint) -> List[str]:
        """
        Kernel function names that may implement a syscall, most likely first.
        """
        candidates = []
        try:
            candidates.append(bpf.get_syscall_fnname(point.syscall))
        except Exception as e:
            self.logger.debug(f"get_syscall_fnname({point.syscall}) failed: {e}")

        for prefix in self.SYSCALL_PREFIXES:
            name = f"{prefix}{point.syscall}"
            if name not in candidates:
                candidates.append(name)

        return [c.decode() if isinstance(c, bytes) else c for c in candidates]

    def attach(self, bpf, point: InterceptionPoint) -> Attachment:
        """
        Attach the probe for one interception point.

        Args:
            bpf: Loaded BPF object
            point: Interception point to attach

        Returns:
            Attachment handle

        Raises:
            AttachError: If no kernel symbol variant could be attached
        """
        candidates = self.candidate_symbols(bpf, point)
        errors = []

        for kernel_func in candidates:
            try:
                bpf.attach_kprobe(event=kernel_func, fn_name=point.fn_name)
            except Exception as e:
                errors.append(f"{kernel_func}: {e}")
                continue

            self.logger.info(f"✓ Attached {point.fn_name} to {kernel_func}")
            return Attachment(bpf=bpf, point=point, kernel_func=kernel_func)

        raise AttachError(
            f"Failed to attach to {point.syscall}. Tried: {'; '.join(errors)}"
        )

    def detach(self, attachment: Attachment):
        """
        Detach a probe. Safe to call more than once; never raises.

        Args:
            attachment: Handle returned by attach()
        """
        if not attachment.active:
            return

        attachment.active = False
        try:
            attachment.bpf.detach_kprobe(
                event=attachment.kernel_func,
                fn_name=attachment.point.fn_name,
            )
            self.logger.debug(f"Detached {attachment.point.fn_name} from {attachment.kernel_func}")
        except Exception as e:
            self.logger.warning(f"Failed to detach {attachment.point.syscall}: {e}")

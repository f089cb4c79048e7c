# rwtracer/ebpf/schema.py - Shared record layout
"""
ctypes mirrors of the structures defined in probe.c.

The kernel and userspace sides are compiled independently and only agree on
field order and size. check_layout() compares the C definitions against the
ctypes ones so that drift is caught before anything is loaded.
"""

import ctypes as ct
import re
from typing import List, Tuple

TASK_COMM_LEN = 16
FUNC_NAME_LEN = 16
MESSAGE_LEN = 64


class Event(ct.Structure):
    """struct event"""
    _fields_ = [
        ("pid", ct.c_uint32),
        ("tgid", ct.c_uint32),
        ("comm", ct.c_char * TASK_COMM_LEN),
        ("func_name", ct.c_char * FUNC_NAME_LEN),
        ("timestamp", ct.c_uint64),
    ]


class ConfigRecord(ct.Structure):
    """struct config"""
    _fields_ = [
        ("verbose", ct.c_int),
        ("message", ct.c_char * MESSAGE_LEN),
    ]


# Sizes of the scalar C types used in probe.c
C_TYPE_SIZES = {
    'char': 1,
    'int': 4,
    'u32': 4,
    '__u32': 4,
    'u64': 8,
    '__u64': 8,
}

_FIELD_RE = re.compile(r'^\s*(\w+)\s+(\w+)\s*(?:\[(\w+)\])?\s*;')

Layout = List[Tuple[str, int, int]]


def ctypes_layout(struct_type) -> Layout:
    """
    Get (name, offset, size) for every field of a ctypes structure.
    """
    return [
        (name, getattr(struct_type, name).offset, ct.sizeof(ctype))
        for name, ctype in struct_type._fields_
    ]


def parse_c_struct(source: str, name: str) -> Tuple[Layout, int]:
    """
    Compute the layout of a C struct from source text.

    Only handles what probe.c uses: scalar types from C_TYPE_SIZES and
    fixed-size arrays whose length is a literal or a #define.

    Args:
        source: C source code
        name: Struct name without the 'struct' keyword

    Returns:
        Tuple of (fields as (name, offset, size), total size)

    Raises:
        ValueError: If the struct is missing or uses unknown types
    """
    defines = dict(re.findall(r'^\s*#define\s+(\w+)\s+(\d+)\s*$', source, re.MULTILINE))

    match = re.search(r'struct\s+%s\s*\{(.*?)\}\s*;' % re.escape(name), source, re.DOTALL)
    if not match:
        raise ValueError(f"struct {name} not found")

    fields = []
    offset = 0
    max_align = 1

    for line in match.group(1).splitlines():
        line = line.split('//')[0]
        if not line.strip():
            continue

        m = _FIELD_RE.match(line)
        if not m:
            raise ValueError(f"Cannot parse field in struct {name}: {line.strip()}")

        ctype, field, count = m.groups()
        if ctype not in C_TYPE_SIZES:
            raise ValueError(f"Unknown type {ctype} in struct {name}")

        elem = C_TYPE_SIZES[ctype]
        if count is None:
            length = 1
        elif count.isdigit():
            length = int(count)
        elif count in defines:
            length = int(defines[count])
        else:
            raise ValueError(f"Unknown array length {count} in struct {name}")

        # Natural alignment
        offset = (offset + elem - 1) // elem * elem
        fields.append((field, offset, elem * length))
        offset += elem * length
        max_align = max(max_align, elem)

    size = (offset + max_align - 1) // max_align * max_align
    return fields, size


def check_layout(source: str):
    """
    Verify that probe.c and the ctypes structures agree byte for byte.

    Args:
        source: Rendered program source

    Raises:
        ValueError: Describing the first mismatch found
    """
    for c_name, struct_type in (('event', Event), ('config', ConfigRecord)):
        fields, size = parse_c_struct(source, c_name)
        expected = ctypes_layout(struct_type)

        if fields != expected:
            raise ValueError(
                f"struct {c_name} layout mismatch: C {fields} vs ctypes {expected}"
            )
        if size != ct.sizeof(struct_type):
            raise ValueError(
                f"struct {c_name} size mismatch: C {size} vs ctypes {ct.sizeof(struct_type)}"
            )


def decode_event(data, size: int) -> Event:
    """
    Copy a raw perf sample into an Event.

    Args:
        data: Address of the sample (as passed by the perf buffer callback)
        size: Sample size in bytes; perf pads samples so it may exceed the record

    Returns:
        Event copied out of the ring buffer memory

    Raises:
        ValueError: If the sample is shorter than an Event
    """
    if size < ct.sizeof(Event):
        raise ValueError(f"Short event sample: {size} < {ct.sizeof(Event)} bytes")

    return Event.from_buffer_copy(ct.string_at(data, ct.sizeof(Event)))

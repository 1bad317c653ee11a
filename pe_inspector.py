#!/usr/bin/env python3
"""
PE Header Inspection

Detects Windows Portable Executable images by walking the fixed-layout headers
at the start of a stream: the DOS header, the NT signature and file header,
and the 32-bit or 64-bit optional header selected by the machine type.

Anything structurally wrong (bad magic, truncated header, unsupported machine)
is reported as "not an executable" rather than raised.
"""

import struct
from typing import BinaryIO, Optional

IMAGE_DOS_SIGNATURE = 0x5A4D  # MZ
IMAGE_NT_SIGNATURE = 0x00004550  # PE\0\0

IMAGE_NT_OPTIONAL_HDR32_MAGIC = 0x10B
IMAGE_NT_OPTIONAL_HDR64_MAGIC = 0x20B

IMAGE_FILE_MACHINE_I386 = 0x014C
IMAGE_FILE_MACHINE_IA64 = 0x0200
IMAGE_FILE_MACHINE_AMD64 = 0x8664

# e_magic, 29 reserved words, e_lfanew
DOS_HEADER = struct.Struct("<H58xi")

# Signature, Machine, NumberOfSections, TimeDateStamp, PointerToSymbolTable,
# NumberOfSymbols, SizeOfOptionalHeader, Characteristics
NT_HEADERS_COMMON = struct.Struct("<IHHIIIHH")

# Signature + file header + IMAGE_OPTIONAL_HEADER32 (no data directories)
NT_HEADERS32 = struct.Struct("<I20xH94x")

# Signature + file header + IMAGE_OPTIONAL_HEADER64 (no data directories)
NT_HEADERS64 = struct.Struct("<I20xH110x")

MACHINE_LAYOUTS = {
    IMAGE_FILE_MACHINE_I386: (NT_HEADERS32, IMAGE_NT_OPTIONAL_HDR32_MAGIC),
    IMAGE_FILE_MACHINE_IA64: (NT_HEADERS64, IMAGE_NT_OPTIONAL_HDR64_MAGIC),
    IMAGE_FILE_MACHINE_AMD64: (NT_HEADERS64, IMAGE_NT_OPTIONAL_HDR64_MAGIC),
}


def _read_struct(stream: BinaryIO, layout: struct.Struct, offset: int) -> Optional[tuple]:
    """Read one fixed-size header at offset, None on a short read"""
    stream.seek(offset)
    data = stream.read(layout.size)
    if len(data) != layout.size:
        return None
    return layout.unpack(data)


def is_valid_pe(stream: BinaryIO) -> bool:
    """Check whether a seekable binary stream starts with a valid PE image header

    Args:
        stream: Binary stream positioned anywhere; it is rewound

    Returns:
        True only if every header stage validates

    Raises:
        OSError: If the underlying stream cannot be read at all
    """
    dos_header = _read_struct(stream, DOS_HEADER, 0)
    if dos_header is None:
        return False

    e_magic, e_lfanew = dos_header
    if e_magic != IMAGE_DOS_SIGNATURE or e_lfanew < 0:
        return False

    nt_common = _read_struct(stream, NT_HEADERS_COMMON, e_lfanew)
    if nt_common is None:
        return False

    signature, machine = nt_common[0], nt_common[1]
    if signature != IMAGE_NT_SIGNATURE:
        return False

    layout = MACHINE_LAYOUTS.get(machine)
    if layout is None:
        return False

    nt_layout, expected_magic = layout
    nt_headers = _read_struct(stream, nt_layout, e_lfanew)
    if nt_headers is None:
        return False

    return nt_headers[1] == expected_magic

"""
Mach-O image header (``mach_header`` / ``mach_header_64``).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from . import constants as C
from .cursor import BIG_ENDIAN, LITTLE_ENDIAN, ByteCursor
from .errors import MalformedContainer

logger = logging.getLogger(__name__)


class Architecture(enum.Enum):
    X86 = "x86"
    X86_64 = "x86_64"
    ARM = "arm"
    ARM64 = "arm64"
    UNKNOWN = "unknown"


class FileType(enum.Enum):
    DYLIB = "dylib"
    EXECUTABLE = "executable"
    BUNDLE = "bundle"
    OBJECT = "object"
    UNSUPPORTED = "unsupported"


_ARCHITECTURES = {
    C.CPU_TYPE_X86: Architecture.X86,
    C.CPU_TYPE_X86_64: Architecture.X86_64,
    C.CPU_TYPE_ARM: Architecture.ARM,
    C.CPU_TYPE_ARM64: Architecture.ARM64,
}

_FILE_TYPES = {
    C.MH_DYLIB: FileType.DYLIB,
    C.MH_EXECUTE: FileType.EXECUTABLE,
    C.MH_BUNDLE: FileType.BUNDLE,
    C.MH_OBJECT: FileType.OBJECT,
}

# magic read little-endian -> (is_64_bit, byte order of the image)
_HEADER_MAGICS = {
    C.MH_MAGIC: (False, LITTLE_ENDIAN),
    C.MH_MAGIC_64: (True, LITTLE_ENDIAN),
    C.MH_CIGAM: (False, BIG_ENDIAN),
    C.MH_CIGAM_64: (True, BIG_ENDIAN),
}


def architecture_for(cpu_type: int) -> Architecture:
    return _ARCHITECTURES.get(cpu_type, Architecture.UNKNOWN)


def file_type_for(file_type: int) -> FileType:
    return _FILE_TYPES.get(file_type, FileType.UNSUPPORTED)


@dataclass(frozen=True)
class ImageHeader:
    magic: int
    cpu_type: int
    cpu_subtype: int
    file_type: int
    ncmds: int
    sizeofcmds: int
    flags: int
    is_64_bit: bool
    byteorder: str

    @property
    def size(self) -> int:
        """Size of the fixed header; the load command table starts here."""
        return C.MACH_HEADER_64_SIZE if self.is_64_bit else C.MACH_HEADER_SIZE

    @property
    def architecture(self) -> Architecture:
        return architecture_for(self.cpu_type)

    @property
    def kind(self) -> FileType:
        return file_type_for(self.file_type)


def parse_image_header(cursor: ByteCursor) -> ImageHeader:
    """Parse the header at the start of ``cursor``'s window.

    Unknown cpu and file types are kept as raw codes and map to
    ``Architecture.UNKNOWN`` / ``FileType.UNSUPPORTED``; an unknown magic is
    a hard failure.
    """
    if len(cursor) < 4:
        raise MalformedContainer(
            f"a {len(cursor)}-byte image cannot hold its magic",
            offset=cursor.absolute(0),
            structure="mach_header.magic",
        )
    magic = cursor.with_byteorder(LITTLE_ENDIAN).u32(0, "mach_header.magic")
    if magic not in _HEADER_MAGICS:
        raise MalformedContainer(
            f"unknown image magic {magic:#010x}",
            offset=cursor.absolute(0),
            structure="mach_header.magic",
        )
    is_64_bit, byteorder = _HEADER_MAGICS[magic]
    cursor = cursor.with_byteorder(byteorder)
    header_size = C.MACH_HEADER_64_SIZE if is_64_bit else C.MACH_HEADER_SIZE
    if header_size > len(cursor):
        raise MalformedContainer(
            f"{header_size}-byte header does not fit in a {len(cursor)}-byte image",
            offset=cursor.absolute(0),
            structure="mach_header_64" if is_64_bit else "mach_header",
        )
    if is_64_bit:
        fields = cursor.unpack("IIIIIIII", 0, "mach_header_64")
    else:
        fields = cursor.unpack("IIIIIII", 0, "mach_header")
    _, cpu_type, cpu_subtype, file_type, ncmds, sizeofcmds, flags = fields[:7]
    header = ImageHeader(
        magic=magic,
        cpu_type=cpu_type,
        cpu_subtype=cpu_subtype,
        file_type=file_type,
        ncmds=ncmds,
        sizeofcmds=sizeofcmds,
        flags=flags,
        is_64_bit=is_64_bit,
        byteorder=byteorder,
    )
    logger.debug(
        "image at %#x: cpu=%#x filetype=%#x ncmds=%d 64-bit=%s",
        cursor.start, cpu_type, file_type, ncmds, is_64_bit,
    )
    return header

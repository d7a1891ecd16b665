"""
Load command table walking and decoding of the commands this package reports
on: the six dylib commands and the segment commands carrying the section
table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from . import constants as C
from .cursor import ByteCursor
from .errors import MalformedContainer
from .header import ImageHeader

logger = logging.getLogger(__name__)


def load_command_name(kind: int) -> str:
    return C.LOAD_COMMAND_NAMES.get(kind, f"LC_UNKNOWN_{kind:#x}")


@dataclass(frozen=True)
class LoadCommand:
    index: int
    kind: int
    size: int
    # relative to the start of the image
    offset: int

    @property
    def name(self) -> str:
        return load_command_name(self.kind)

    @property
    def is_dylib(self) -> bool:
        return self.kind in C.DYLIB_COMMANDS

    @property
    def is_segment(self) -> bool:
        return self.kind in (C.LC_SEGMENT, C.LC_SEGMENT_64)


@dataclass(frozen=True)
class DylibCommand:
    command: LoadCommand
    path: str
    path_was_truncated: bool
    timestamp: int
    current_version: int
    compatibility_version: int


@dataclass(frozen=True)
class Section:
    segment_name: str
    section_name: str
    # file offset relative to the start of the image
    offset: int
    size: int
    flags: int

    @property
    def type(self) -> int:
        return self.flags & C.SECTION_TYPE

    @property
    def is_cstring_literals(self) -> bool:
        return self.type == C.S_CSTRING_LITERALS

    @property
    def is_zerofill(self) -> bool:
        return self.type in C.ZEROFILL_SECTION_TYPES


def walk_load_commands(image: ByteCursor, header: ImageHeader) -> Iterator[Tuple[LoadCommand, ByteCursor]]:
    """Yield each load command of ``image`` with a cursor over its bytes.

    ``cmdsize`` is checked before the cursor moves: it must cover at least
    the ``(cmd, cmdsize)`` pair and must keep the command inside the image.
    """
    position = header.size
    for index in range(header.ncmds):
        if position + C.LOAD_COMMAND_SIZE > len(image):
            raise MalformedContainer(
                f"load command {index} of {header.ncmds} starts past the end of a {len(image)}-byte image",
                offset=image.absolute(position),
                structure=f"load_command[{index}]",
            )
        kind, size = image.unpack("II", position, f"load_command[{index}]")
        if size < C.LOAD_COMMAND_SIZE:
            raise MalformedContainer(
                f"load command {index} declares size {size}, below the {C.LOAD_COMMAND_SIZE}-byte minimum",
                offset=image.absolute(position),
                structure="load_command.cmdsize",
            )
        if position + size > len(image):
            raise MalformedContainer(
                f"load command {index} of {size} bytes runs past the end of the image",
                offset=image.absolute(position),
                structure="load_command.cmdsize",
            )
        yield LoadCommand(index, kind, size, position), image.window(position, size)
        position += size


def decode_version(version: int) -> str:
    """Render a packed ``xxxx.yy.zz`` version as ``"major.minor.patch"``."""
    major = (version >> 16) & 0xFFFF
    minor = (version >> 8) & 0xFF
    patch = version & 0xFF
    return f"{major}.{minor}.{patch}"


def clip_path(raw: bytes, capacity: int) -> Tuple[str, bool]:
    """Copy ``raw`` into a ``capacity``-byte destination, terminator included."""
    truncated = len(raw) >= capacity
    if truncated:
        raw = raw[:capacity - 1]
    return raw.decode("utf-8", errors="replace"), truncated


def decode_dylib_command(image: ByteCursor, command: LoadCommand, capacity: int) -> DylibCommand:
    if command.size < C.DYLIB_COMMAND_SIZE:
        raise MalformedContainer(
            f"{command.name} is {command.size} bytes, a dylib command needs {C.DYLIB_COMMAND_SIZE}",
            offset=image.absolute(command.offset),
            structure="dylib_command",
        )
    name_offset, timestamp, current_version, compatibility_version = image.unpack(
        "IIII", command.offset + 8, "dylib_command.dylib")
    # the name offset is relative to the command, the string may only come from the image
    raw = image.cstring(command.offset + name_offset, "dylib_command.name")
    path, truncated = clip_path(raw, capacity)
    if truncated:
        logger.debug("dylib path at %#x truncated to %d bytes", image.absolute(command.offset), capacity - 1)
    return DylibCommand(
        command=command,
        path=path,
        path_was_truncated=truncated,
        timestamp=timestamp,
        current_version=current_version,
        compatibility_version=compatibility_version,
    )


def decode_segment_command(image: ByteCursor, command: LoadCommand) -> List[Section]:
    """Return the sections declared by an ``LC_SEGMENT``/``LC_SEGMENT_64``."""
    if command.kind == C.LC_SEGMENT_64:
        header_size, section_size, section_fmt = C.SEGMENT_COMMAND_64_SIZE, C.SECTION_64_SIZE, "QQIIIIIIII"
    else:
        header_size, section_size, section_fmt = C.SEGMENT_COMMAND_SIZE, C.SECTION_SIZE, "IIIIIIIII"
    if command.size < header_size:
        raise MalformedContainer(
            f"{command.name} is {command.size} bytes, needs at least {header_size}",
            offset=image.absolute(command.offset),
            structure="segment_command",
        )
    segment = image.window(command.offset, command.size, structure="segment_command")
    segment_name = segment.fixed_string(8, 16, "segment_command.segname")
    nsects = segment.u32(header_size - 8, "segment_command.nsects")
    if header_size + nsects * section_size > command.size:
        raise MalformedContainer(
            f"segment {segment_name!r} declares {nsects} sections that do not fit in {command.size} bytes",
            offset=image.absolute(command.offset),
            structure="segment_command.nsects",
        )
    sections = []
    for index in range(nsects):
        position = header_size + index * section_size
        section_name = segment.fixed_string(position, 16, "section.sectname")
        owner = segment.fixed_string(position + 16, 16, "section.segname")
        fields = segment.unpack(section_fmt, position + 32, "section")
        # addr, size, offset, align, reloff, nreloc, flags, ...
        size, offset, flags = fields[1], fields[2], fields[6]
        sections.append(Section(owner or segment_name, section_name, offset, size, flags))
    return sections

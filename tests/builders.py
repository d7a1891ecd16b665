"""
Synthetic Mach-O images for the test suite, assembled with ``struct``.
"""

import struct
from typing import Dict, List, Sequence, Tuple, Union

from machore import constants as C

Text = Union[str, bytes]

LIBSYSTEM = "/usr/lib/libSystem.B.dylib"


def _encode(value: Text) -> bytes:
    return value.encode() if isinstance(value, str) else value


def _pad(data: bytes, alignment: int) -> bytes:
    return data + b"\x00" * (-len(data) % alignment)


def _align_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


class _Section:
    def __init__(self, segment_name: str, section_name: str, data: bytes, flags: int, size: int) -> None:
        self.segment_name = segment_name
        self.section_name = section_name
        self.data = data
        self.flags = flags
        self.size = size

    @property
    def is_zerofill(self) -> bool:
        return (self.flags & C.SECTION_TYPE) in C.ZEROFILL_SECTION_TYPES


class ImageBuilder:
    """Builds one thin image.

    Segment commands come first, then dylib commands, then raw commands; the
    section bytes follow the load command table.
    """

    def __init__(
        self,
        cputype: int = C.CPU_TYPE_X86_64,
        cpusubtype: int = 3,
        filetype: int = C.MH_EXECUTE,
        is_64: bool = True,
        byteorder: str = "<",
        flags: int = 0,
    ) -> None:
        self.cputype = cputype
        self.cpusubtype = cpusubtype
        self.filetype = filetype
        self.is_64 = is_64
        self.byteorder = byteorder
        self.flags = flags
        self._sections: List[_Section] = []
        self._dylibs: List[Tuple[int, bytes, int, int, int]] = []
        self._raw: List[Tuple[int, bytes]] = []

    @property
    def header_size(self) -> int:
        return C.MACH_HEADER_64_SIZE if self.is_64 else C.MACH_HEADER_SIZE

    @property
    def alignment(self) -> int:
        return 8 if self.is_64 else 4

    def add_section(self, segment_name: str, section_name: str, data: bytes = b"",
                    flags: int = C.S_REGULAR, size: int = None) -> "ImageBuilder":
        self._sections.append(_Section(segment_name, section_name, data, flags,
                                       len(data) if size is None else size))
        return self

    def set_cstrings(self, strings: Sequence[Text], segment_name: str = "__TEXT",
                     section_name: str = "__cstring") -> "ImageBuilder":
        blob = b"".join(_encode(value) + b"\x00" for value in strings)
        return self.add_section(segment_name, section_name, blob, C.S_CSTRING_LITERALS)

    def add_dylib(self, path: Text, command: int = C.LC_LOAD_DYLIB, current_version: int = 0x10000,
                  compatibility_version: int = 0x10000, timestamp: int = 2) -> "ImageBuilder":
        self._dylibs.append((command, _encode(path), timestamp, current_version, compatibility_version))
        return self

    def add_raw_command(self, kind: int, payload: bytes = b"") -> "ImageBuilder":
        self._raw.append((kind, payload))
        return self

    def _segments(self) -> Dict[str, List[_Section]]:
        segments: Dict[str, List[_Section]] = {}
        for section in self._sections:
            segments.setdefault(section.segment_name, []).append(section)
        return segments

    def _segment_command(self, segment_name: str, sections: List[_Section], offsets: Dict[int, int]) -> bytes:
        e = self.byteorder
        name = segment_name.encode()
        if self.is_64:
            size = C.SEGMENT_COMMAND_64_SIZE + len(sections) * C.SECTION_64_SIZE
            out = struct.pack(e + "II16sQQQQiiII", C.LC_SEGMENT_64, size, name, 0, 0, 0, 0, 7, 5, len(sections), 0)
            for section in sections:
                out += struct.pack(e + "16s16sQQIIIIIIII", section.section_name.encode(), name, 0,
                                   section.size, offsets[id(section)], 0, 0, 0, section.flags, 0, 0, 0)
        else:
            size = C.SEGMENT_COMMAND_SIZE + len(sections) * C.SECTION_SIZE
            out = struct.pack(e + "II16sIIIIiiII", C.LC_SEGMENT, size, name, 0, 0, 0, 0, 7, 5, len(sections), 0)
            for section in sections:
                out += struct.pack(e + "16s16sIIIIIIIII", section.section_name.encode(), name, 0,
                                   section.size, offsets[id(section)], 0, 0, 0, section.flags, 0, 0)
        return out

    def build(self) -> bytes:
        e = self.byteorder
        segments = self._segments()
        segment_size, section_size = (
            (C.SEGMENT_COMMAND_64_SIZE, C.SECTION_64_SIZE) if self.is_64 else (C.SEGMENT_COMMAND_SIZE, C.SECTION_SIZE)
        )
        dylib_names = [_pad(path + b"\x00", self.alignment) for _, path, _, _, _ in self._dylibs]
        raw_payloads = [_pad(payload, self.alignment) for _, payload in self._raw]
        commands_size = (
            sum(segment_size + len(sections) * section_size for sections in segments.values())
            + sum(C.DYLIB_COMMAND_SIZE + len(name) for name in dylib_names)
            + sum(C.LOAD_COMMAND_SIZE + len(payload) for payload in raw_payloads)
        )

        offsets: Dict[int, int] = {}
        position = self.header_size + commands_size
        for section in self._sections:
            if section.is_zerofill:
                offsets[id(section)] = 0
                continue
            offsets[id(section)] = position
            position += len(section.data)

        commands = [self._segment_command(name, sections, offsets) for name, sections in segments.items()]
        for (command, _, timestamp, current, compat), name in zip(self._dylibs, dylib_names):
            commands.append(struct.pack(e + "IIIIII", command, C.DYLIB_COMMAND_SIZE + len(name),
                                        C.DYLIB_COMMAND_SIZE, timestamp, current, compat) + name)
        for (kind, _), payload in zip(self._raw, raw_payloads):
            commands.append(struct.pack(e + "II", kind, C.LOAD_COMMAND_SIZE + len(payload)) + payload)

        body = b"".join(commands)
        magic = C.MH_MAGIC_64 if self.is_64 else C.MH_MAGIC
        header = struct.pack(e + "IIIIIII", magic, self.cputype, self.cpusubtype, self.filetype,
                             len(commands), len(body), self.flags)
        if self.is_64:
            header += struct.pack(e + "I", 0)
        data = b"".join(section.data for section in self._sections if not section.is_zerofill)
        return header + body + data

    def fat_entry(self) -> Tuple[int, int, bytes]:
        return self.cputype, self.cpusubtype, self.build()


def build_fat(images: Sequence[Tuple[int, int, bytes]], align: int = 12, fat64: bool = False,
              byteorder: str = ">") -> bytes:
    """Wrap ``(cputype, cpusubtype, data)`` images in a fat container."""
    stride = C.FAT_ARCH_64_SIZE if fat64 else C.FAT_ARCH_SIZE
    magic = C.FAT_MAGIC_64 if fat64 else C.FAT_MAGIC
    out = bytearray(struct.pack(byteorder + "II", magic, len(images)))

    placements = []
    position = C.FAT_HEADER_SIZE + stride * len(images)
    for _, _, data in images:
        position = _align_up(position, 1 << align)
        placements.append(position)
        position += len(data)

    for (cputype, cpusubtype, data), offset in zip(images, placements):
        if fat64:
            out += struct.pack(byteorder + "IIQQII", cputype, cpusubtype, offset, len(data), align, 0)
        else:
            out += struct.pack(byteorder + "IIIII", cputype, cpusubtype, offset, len(data), align)
    for (_, _, data), offset in zip(images, placements):
        out += b"\x00" * (offset - len(out))
        out += data
    return bytes(out)


def fat_arch_offset(index: int, fat64: bool = False) -> int:
    """Position of fat_arch entry ``index``."""
    return C.FAT_HEADER_SIZE + index * (C.FAT_ARCH_64_SIZE if fat64 else C.FAT_ARCH_SIZE)


def patch_u32(data: bytes, offset: int, value: int, byteorder: str = "<") -> bytes:
    out = bytearray(data)
    struct.pack_into(byteorder + "I", out, offset, value)
    return bytes(out)


def ls_image(cputype: int = C.CPU_TYPE_X86_64, cpusubtype: int = 3) -> ImageBuilder:
    """An executable shaped like ``/bin/ls``."""
    return (
        ImageBuilder(cputype=cputype, cpusubtype=cpusubtype, filetype=C.MH_EXECUTE, flags=0x200085)
        .add_section("__TEXT", "__text", b"\x90" * 64, 0x80000400)
        .set_cstrings(["bin/ls", "Unix2003", "@(#)PROGRAM:ls  PROJECT:file_cmds-400", "%s: %s\n"])
        .add_section("__DATA", "__bss", flags=C.S_ZEROFILL, size=0x100)
        .add_raw_command(C.LC_UUID, bytes(range(16)))
        .add_dylib("/usr/lib/libutil.dylib")
        .add_dylib("/usr/lib/libncurses.5.4.dylib", current_version=0x050400, compatibility_version=0x050400)
        .add_dylib(LIBSYSTEM, current_version=0x05460000, compatibility_version=0x10000)
    )


def fat_ls() -> bytes:
    return build_fat([
        ls_image().fat_entry(),
        ls_image(C.CPU_TYPE_ARM64, 0x80000002).fat_entry(),
    ])

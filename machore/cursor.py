"""
Bounds-checked access to a window of an immutable byte buffer.

Every structure read in this package goes through ``ByteCursor``: offsets are
relative to the window start, and a read that would leave the window raises
instead of returning short data.
"""

from __future__ import annotations

import struct
from typing import Optional, Tuple, Union

from .errors import MalformedContainer, TruncatedInput

Buffer = Union[bytes, bytearray, memoryview]

LITTLE_ENDIAN = "<"
BIG_ENDIAN = ">"


class ByteCursor:
    """Read-only view over ``data[start:end]`` with a fixed byte order."""

    __slots__ = ("_data", "start", "end", "byteorder")

    def __init__(
        self,
        data: Buffer,
        start: int = 0,
        end: Optional[int] = None,
        byteorder: str = LITTLE_ENDIAN,
    ) -> None:
        if not isinstance(data, bytes):
            data = bytes(data)
        if end is None:
            end = len(data)
        if start < 0 or end < start or end > len(data):
            raise MalformedContainer(
                f"window [{start:#x}, {end:#x}) does not fit in a buffer of {len(data)} bytes",
                offset=start,
                structure="window",
            )
        self._data = data
        self.start = start
        self.end = end
        self.byteorder = byteorder

    def __len__(self) -> int:
        return self.end - self.start

    def __repr__(self) -> str:
        return f"ByteCursor(start={self.start:#x}, end={self.end:#x}, byteorder={self.byteorder!r})"

    @property
    def data(self) -> bytes:
        return self._data

    def absolute(self, offset: int) -> int:
        """Translate a window-relative offset into a buffer offset."""
        return self.start + offset

    def contains(self, offset: int, size: int = 0) -> bool:
        return offset >= 0 and size >= 0 and offset + size <= len(self)

    def _check(self, offset: int, size: int, structure: str) -> int:
        if offset < 0 or size < 0 or offset + size > len(self):
            raise TruncatedInput(
                f"need {size} bytes but the window holds {max(len(self) - max(offset, 0), 0)}",
                offset=self.absolute(offset),
                structure=structure,
            )
        return self.start + offset

    def read(self, offset: int, size: int, structure: str = "bytes") -> bytes:
        position = self._check(offset, size, structure)
        return self._data[position:position + size]

    def unpack(self, fmt: str, offset: int, structure: str = "struct") -> Tuple:
        size = struct.calcsize(self.byteorder + fmt)
        position = self._check(offset, size, structure)
        return struct.unpack_from(self.byteorder + fmt, self._data, position)

    def u32(self, offset: int, structure: str = "uint32") -> int:
        return self.unpack("I", offset, structure)[0]

    def u64(self, offset: int, structure: str = "uint64") -> int:
        return self.unpack("Q", offset, structure)[0]

    def fixed_string(self, offset: int, size: int, structure: str = "name") -> str:
        """Decode a NUL-padded fixed-width name field."""
        raw = self.read(offset, size, structure)
        return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")

    def cstring(self, offset: int, structure: str = "cstring") -> bytes:
        """Return the bytes of the NUL-terminated string at ``offset``.

        The terminator must lie inside the window.
        """
        position = self.absolute(offset)
        if not 0 <= offset < len(self):
            raise MalformedContainer(
                f"string offset {offset:#x} is outside its {len(self)}-byte window",
                offset=position,
                structure=structure,
            )
        terminator = self._data.find(b"\x00", position, self.end)
        if terminator == -1:
            raise MalformedContainer(
                "string is not terminated inside its window",
                offset=position,
                structure=structure,
            )
        return self._data[position:terminator]

    def window(self, offset: int, size: int, byteorder: Optional[str] = None, structure: str = "window") -> "ByteCursor":
        """Return a sub-cursor over ``[offset, offset + size)`` of this window."""
        if offset < 0 or size < 0 or offset + size > len(self):
            raise MalformedContainer(
                f"range of {size} bytes extends past the end of its {len(self)}-byte parent",
                offset=self.absolute(offset),
                structure=structure,
            )
        return ByteCursor(
            self._data,
            self.start + offset,
            self.start + offset + size,
            self.byteorder if byteorder is None else byteorder,
        )

    def with_byteorder(self, byteorder: str) -> "ByteCursor":
        return ByteCursor(self._data, self.start, self.end, byteorder)

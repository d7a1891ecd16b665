"""
Fat/thin classification and the fat architecture table.
"""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass
from typing import Iterator, Tuple

from . import constants as C
from .cursor import BIG_ENDIAN, LITTLE_ENDIAN, Buffer, ByteCursor
from .errors import MalformedContainer, TruncatedInput

logger = logging.getLogger(__name__)


class ContainerKind(enum.Enum):
    FAT32 = "fat32"
    FAT64 = "fat64"
    THIN = "thin"

    @property
    def is_fat(self) -> bool:
        return self is not ContainerKind.THIN


_FAT_MAGICS = {
    C.FAT_MAGIC: ContainerKind.FAT32,
    C.FAT_MAGIC_64: ContainerKind.FAT64,
}


def _classify(data: Buffer) -> Tuple[ContainerKind, str]:
    if len(data) < 4:
        raise TruncatedInput(
            f"need 4 bytes for the magic, buffer holds {len(data)}",
            offset=0,
            structure="magic",
        )
    big, little = struct.unpack_from(">I", data, 0)[0], struct.unpack_from("<I", data, 0)[0]
    if big in _FAT_MAGICS:
        return _FAT_MAGICS[big], BIG_ENDIAN
    if little in _FAT_MAGICS:
        # Byte-swapped fat header: fields are stored little-endian
        return _FAT_MAGICS[little], LITTLE_ENDIAN
    return ContainerKind.THIN, LITTLE_ENDIAN


def detect_container(data: Buffer) -> ContainerKind:
    """Classify ``data`` as a 32-bit fat, 64-bit fat or thin image."""
    kind, _ = _classify(data)
    logger.debug("container kind: %s", kind.value)
    return kind


@dataclass(frozen=True)
class FatArch:
    """One entry of the fat architecture table."""
    index: int
    cpu_type: int
    cpu_subtype: int
    offset: int
    size: int
    align: int


class FatSliceTable:
    """The architecture table of a fat container.

    The table extent is validated when the object is built; each entry's
    ``offset + size`` is validated when the entry is read, so a corrupt entry
    only affects its own slice. Iteration can be restarted at will.
    """

    def __init__(self, data: Buffer) -> None:
        kind, byteorder = _classify(data)
        if not kind.is_fat:
            raise MalformedContainer("not a fat container", offset=0, structure="fat_header")
        self.kind = kind
        # Fat fields are never in the image's own byte order
        self._cursor = ByteCursor(data, byteorder=byteorder)
        self.stride = C.FAT_ARCH_64_SIZE if kind is ContainerKind.FAT64 else C.FAT_ARCH_SIZE
        if len(self._cursor) < C.FAT_HEADER_SIZE:
            raise MalformedContainer(
                f"{C.FAT_HEADER_SIZE}-byte fat header does not fit in a {len(self._cursor)}-byte buffer",
                offset=0,
                structure="fat_header",
            )
        self.count = self._cursor.u32(4, "fat_header.nfat_arch")
        table_end = C.FAT_HEADER_SIZE + self.count * self.stride
        if table_end > len(self._cursor):
            raise MalformedContainer(
                f"{self.count} architecture entries need {table_end} bytes, buffer holds {len(self._cursor)}",
                offset=C.FAT_HEADER_SIZE,
                structure="fat_arch table",
            )
        logger.debug("fat container (%s) with %d architectures", kind.value, self.count)

    @property
    def byteorder(self) -> str:
        return self._cursor.byteorder

    def __len__(self) -> int:
        return self.count

    def __getitem__(self, index: int) -> FatArch:
        if not 0 <= index < self.count:
            raise IndexError(index)
        position = C.FAT_HEADER_SIZE + index * self.stride
        if self.kind is ContainerKind.FAT64:
            cpu_type, cpu_subtype, offset, size, align, _ = self._cursor.unpack(
                "IIQQII", position, "fat_arch_64")
        else:
            cpu_type, cpu_subtype, offset, size, align = self._cursor.unpack(
                "IIIII", position, "fat_arch")
        if offset + size > len(self._cursor):
            raise MalformedContainer(
                f"architecture {index} spans [{offset:#x}, {offset + size:#x}) "
                f"past the end of a {len(self._cursor)}-byte buffer",
                offset=position,
                structure="fat_arch",
            )
        return FatArch(index, cpu_type, cpu_subtype, offset, size, align)

    def __iter__(self) -> Iterator[FatArch]:
        for index in range(self.count):
            yield self[index]

    def slice_cursor(self, entry: FatArch, byteorder: str = LITTLE_ENDIAN) -> ByteCursor:
        """Cursor over the bytes of one architecture slice."""
        return ByteCursor(self._cursor.data, entry.offset, entry.offset + entry.size, byteorder)

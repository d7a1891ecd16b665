"""
Top-level analysis: runs the container, header, load command and string
stages over one buffer and assembles the immutable result tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, TypeVar

from .container import ContainerKind, FatSliceTable, detect_container
from .cursor import Buffer, ByteCursor
from .errors import MachoError
from .header import Architecture, FileType, ImageHeader, parse_image_header
from .load_commands import (
    LoadCommand,
    Section,
    decode_dylib_command,
    decode_segment_command,
    decode_version,
    load_command_name,
    walk_load_commands,
)
from .options import AnalysisOptions
from .strings import ExtractedString, scan_string_sections

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DylibDependency:
    path: str
    path_was_truncated: bool
    version: str
    compatibility_version: str
    raw_version: int
    timestamp: int
    command: int

    @property
    def command_name(self) -> str:
        return load_command_name(self.command)


@dataclass(frozen=True)
class ArchSlice:
    index: int
    offset: int
    size: int
    header: ImageHeader
    architecture: Architecture
    file_type: FileType
    dependencies: Tuple[DylibDependency, ...]
    strings: Tuple[ExtractedString, ...]
    sections: Tuple[Section, ...]


@dataclass(frozen=True)
class SliceFailure:
    index: int
    offset: int
    error: MachoError


@dataclass(frozen=True)
class Analysis:
    is_multi_architecture: bool
    container: ContainerKind
    slices: Tuple[ArchSlice, ...]
    failures: Tuple[SliceFailure, ...] = ()


def parse_slice(image: ByteCursor, index: int, options: AnalysisOptions) -> ArchSlice:
    """Parse the image occupying ``image``'s window."""
    header = parse_image_header(image)
    image = image.with_byteorder(header.byteorder)

    dependencies: List[DylibDependency] = []
    sections: List[Section] = []
    for command, _ in walk_load_commands(image, header):
        if command.is_dylib:
            dylib = decode_dylib_command(image, command, options.path_capacity)
            dependencies.append(DylibDependency(
                path=dylib.path,
                path_was_truncated=dylib.path_was_truncated,
                version=decode_version(dylib.current_version),
                compatibility_version=decode_version(dylib.compatibility_version),
                raw_version=dylib.current_version,
                timestamp=dylib.timestamp,
                command=command.kind,
            ))
        elif command.is_segment:
            sections.extend(decode_segment_command(image, command))

    strings = tuple(scan_string_sections(image, sections, options))
    logger.debug(
        "slice %d: %s %s, %d dependencies, %d sections, %d strings",
        index, header.architecture.value, header.kind.value, len(dependencies), len(sections), len(strings),
    )
    return ArchSlice(
        index=index,
        offset=image.start,
        size=len(image),
        header=header,
        architecture=header.architecture,
        file_type=header.kind,
        dependencies=tuple(dependencies),
        strings=strings,
        sections=tuple(sections),
    )


@dataclass(frozen=True)
class CommandListing:
    index: int
    offset: int
    size: int
    header: ImageHeader
    commands: Tuple[LoadCommand, ...]


T = TypeVar("T")


def map_images(
    data: bytes,
    parse: Callable[[ByteCursor, int], T],
) -> Tuple[ContainerKind, List[T], List[SliceFailure]]:
    """Apply ``parse`` to every image in ``data``.

    Errors in a thin image propagate. In a fat container the table itself
    must be sound; after that each slice succeeds or fails on its own.
    """
    kind = detect_container(data)
    if not kind.is_fat:
        return kind, [parse(ByteCursor(data), 0)], []

    table = FatSliceTable(data)
    results: List[T] = []
    failures: List[SliceFailure] = []
    for index in range(len(table)):
        offset = 0
        try:
            entry = table[index]
            offset = entry.offset
            results.append(parse(table.slice_cursor(entry), index))
        except MachoError as exc:
            logger.warning("slice %d at %#x skipped: %s", index, offset, exc)
            failures.append(SliceFailure(index, offset, exc))
    return kind, results, failures


def parse_macho(data: Buffer, options: Optional[AnalysisOptions] = None) -> Analysis:
    """Analyse a thin or fat Mach-O buffer.

    Slices that fail in a fat container are reported in
    ``Analysis.failures`` instead of aborting the whole analysis.
    """
    if options is None:
        options = AnalysisOptions()
    if not isinstance(data, bytes):
        data = bytes(data)
    kind, slices, failures = map_images(data, lambda image, index: parse_slice(image, index, options))
    return Analysis(
        is_multi_architecture=kind.is_fat,
        container=kind,
        slices=tuple(slices),
        failures=tuple(failures),
    )


def read_load_commands(image: ByteCursor, index: int = 0) -> CommandListing:
    header = parse_image_header(image)
    image = image.with_byteorder(header.byteorder)
    commands = tuple(command for command, _ in walk_load_commands(image, header))
    return CommandListing(index, image.start, len(image), header, commands)


def list_load_commands(data: Buffer) -> Tuple[ContainerKind, List[CommandListing], List[SliceFailure]]:
    """Walk the load command table of every image without decoding it."""
    if not isinstance(data, bytes):
        data = bytes(data)
    return map_images(data, read_load_commands)

"""
Printable string extraction from C-string literal sections.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .cursor import ByteCursor
from .errors import MalformedContainer
from .load_commands import Section
from .options import AnalysisOptions

logger = logging.getLogger(__name__)

PRINTABLE_BYTES = rb"\t\n\r\x20-\x7e"
PRINTABLE_RUN = re.compile(rb"[" + PRINTABLE_BYTES + rb"]+")


@dataclass(frozen=True)
class ExtractedString:
    content: str
    # content length plus the NUL terminator
    byte_length: int
    source_segment: str
    source_section: str
    file_absolute_offset: int


def section_cursor(image: ByteCursor, section: Section) -> ByteCursor:
    if not image.contains(section.offset, section.size):
        raise MalformedContainer(
            f"section {section.segment_name},{section.section_name} spans "
            f"[{section.offset:#x}, {section.offset + section.size:#x}) outside a {len(image)}-byte image",
            offset=image.absolute(0),
            structure="section",
        )
    return image.window(section.offset, section.size)


def scan_section(image: ByteCursor, section: Section, min_length: int = 1) -> Iterator[ExtractedString]:
    """Yield every maximal printable run of ``section`` that a NUL terminates."""
    window = section_cursor(image, section)
    data = window.read(0, len(window), "section data")
    for match in PRINTABLE_RUN.finditer(data):
        if match.end() >= len(data) or data[match.end()] != 0:
            continue
        if match.end() - match.start() < min_length:
            continue
        content = match.group().decode("ascii")
        yield ExtractedString(
            content=content,
            byte_length=len(content) + 1,
            source_segment=section.segment_name,
            source_section=section.section_name,
            file_absolute_offset=window.absolute(match.start()),
        )


def scan_string_sections(
    image: ByteCursor,
    sections: Iterable[Section],
    options: AnalysisOptions,
) -> Iterator[ExtractedString]:
    """Extract strings from every section ``options`` selects, in table order."""
    emitted = 0
    for section in sections:
        if section.is_zerofill:
            continue
        if not options.selects(section.segment_name, section.section_name, section.is_cstring_literals):
            continue
        logger.debug(
            "scanning %s,%s (%d bytes at %#x)",
            section.segment_name, section.section_name, section.size, image.absolute(section.offset),
        )
        for extracted in scan_section(image, section, options.min_string_length):
            if options.max_strings is not None and emitted >= options.max_strings:
                return
            emitted += 1
            yield extracted

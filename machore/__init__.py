"""
machore - bounds-checked Mach-O structure interpreter.

Reports, per architecture slice of a thin or fat Mach-O buffer, the target
architecture, the file type, the linked dylibs and the printable strings of
the C-string sections.
"""

from .analysis import (
    Analysis,
    ArchSlice,
    CommandListing,
    DylibDependency,
    SliceFailure,
    list_load_commands,
    parse_macho,
    parse_slice,
)
from .container import ContainerKind, FatArch, FatSliceTable, detect_container
from .cursor import ByteCursor
from .errors import MachoError, MalformedContainer, TruncatedInput
from .header import Architecture, FileType, ImageHeader, parse_image_header
from .load_commands import (
    LoadCommand,
    Section,
    decode_dylib_command,
    decode_segment_command,
    decode_version,
    walk_load_commands,
)
from .options import AnalysisOptions
from .strings import ExtractedString, scan_string_sections

__version__ = "0.1.0"

__all__ = [
    "Analysis",
    "AnalysisOptions",
    "ArchSlice",
    "Architecture",
    "ByteCursor",
    "CommandListing",
    "ContainerKind",
    "DylibDependency",
    "ExtractedString",
    "FatArch",
    "FatSliceTable",
    "FileType",
    "ImageHeader",
    "LoadCommand",
    "MachoError",
    "MalformedContainer",
    "Section",
    "SliceFailure",
    "TruncatedInput",
    "decode_dylib_command",
    "decode_segment_command",
    "decode_version",
    "detect_container",
    "list_load_commands",
    "parse_image_header",
    "parse_macho",
    "parse_slice",
    "scan_string_sections",
    "walk_load_commands",
]

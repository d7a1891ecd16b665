"""
Tunables for a single ``parse_macho`` call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_PATH_CAPACITY = 1024
DEFAULT_STRING_SECTIONS = (("__TEXT", "__cstring"),)


@dataclass(frozen=True)
class AnalysisOptions:
    # Destination capacity for dependency paths, terminator included
    path_capacity: int = DEFAULT_PATH_CAPACITY
    # (segment, section) pairs whose bytes are scanned for strings
    string_sections: Tuple[Tuple[str, str], ...] = DEFAULT_STRING_SECTIONS
    # Also scan every section typed S_CSTRING_LITERALS
    all_cstring_sections: bool = False
    min_string_length: int = 1
    # Per-slice cap on extracted strings; None keeps them all
    max_strings: Optional[int] = None

    def __post_init__(self) -> None:
        if self.path_capacity < 1:
            raise ValueError(f"path_capacity must be positive, got {self.path_capacity}")
        if self.min_string_length < 1:
            raise ValueError(f"min_string_length must be positive, got {self.min_string_length}")
        if self.max_strings is not None and self.max_strings < 0:
            raise ValueError(f"max_strings must not be negative, got {self.max_strings}")
        object.__setattr__(
            self, "string_sections", tuple((str(seg), str(sect)) for seg, sect in self.string_sections)
        )

    def selects(self, segment_name: str, section_name: str, is_cstring_literals: bool) -> bool:
        if self.all_cstring_sections and is_cstring_literals:
            return True
        return (segment_name, section_name) in self.string_sections

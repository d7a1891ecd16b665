"""
Exceptions raised by the Mach-O structure interpreter.
"""

from __future__ import annotations

from typing import Optional


class MachoError(Exception):
    """Base class for every parse failure.

    ``offset`` is the absolute position in the input buffer where the failing
    read started and ``structure`` names what was being read there.
    """

    def __init__(self, message: str, offset: Optional[int] = None, structure: Optional[str] = None) -> None:
        self.offset = offset
        self.structure = structure
        details = []
        if structure:
            details.append(f"structure={structure}")
        if offset is not None:
            details.append(f"offset={offset:#x}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class TruncatedInput(MachoError):
    """The buffer ends before the structure being read does."""


class MalformedContainer(MachoError):
    """A declared offset, size or count is inconsistent, or a magic is unknown."""

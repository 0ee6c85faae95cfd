# src/fpga_arch_core/ingest/exceptions.py
"""
Diagnosable exceptions for the ingestion stage.

Ingestion is schema-agnostic, so only two things can go wrong here: the source
cannot be read at all, or its bytes are not well-formed XML. Both are terminal for
the parse call and both carry enough position information for a caller to point
at the offending spot.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass(frozen=True)
class ArchitectureSourceError(DiagnosableError):
    """Raised when the architecture source cannot be opened or read."""
    details: str
    source: str

    def __str__(self):
        return f"Cannot read architecture source '{self.source}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Architecture Source Error",
            details=self.details,
            suggestion="Ensure the file exists, has read permissions and is not empty.",
            context={'source': self.source}
        )


@dataclass(frozen=True)
class MalformedXmlError(DiagnosableError):
    """
    Raised when the input is not well-formed XML.
    `line` and `column` are 1-based; `byte_offset` is 0-based into the raw input.
    """
    details: str
    line: int
    column: int
    byte_offset: Optional[int] = None
    source: Optional[str] = None

    def __str__(self):
        where = f"line {self.line}, column {self.column}"
        if self.byte_offset is not None:
            where += f" (byte {self.byte_offset})"
        return f"Malformed XML at {where}: {self.details}"

    def get_diagnostic_report(self) -> str:
        details = f"{self.details}\nPosition: line {self.line}, column {self.column}"
        if self.byte_offset is not None:
            details += f", byte offset {self.byte_offset}"
        return format_diagnostic_report(
            error_type="Malformed XML",
            details=details,
            suggestion="Fix the XML syntax at the reported position (unclosed tags, stray '<' or '&', bad quoting).",
            context={'source': self.source, 'line': self.line}
        )

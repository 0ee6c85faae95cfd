# src/fpga_arch_core/grid/exceptions.py
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass(frozen=True)
class GridExpressionError(DiagnosableError):
    """A placement formula that passed the character whitelist but is not a valid expression."""
    expression: str
    details: str = ""
    layout: Optional[str] = None
    tile: Optional[str] = None
    line: Optional[int] = None

    def __str__(self):
        where = f" for tile '{self.tile}' in layout '{self.layout}'" if self.tile else ""
        extra = f": {self.details}" if self.details else ""
        return f"Cannot evaluate placement formula '{self.expression}'{where}{extra}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Grid Placement Formula Error",
            details=str(self),
            suggestion="Formulas may only combine W, H, w, h and integers with '+', '-', '*', '/' and parentheses.",
            context={'element_path': f"layout/{self.layout}" if self.layout else None,
                     'line': self.line, 'user_input': self.expression}
        )


@dataclass(frozen=True)
class GridDimensionError(DiagnosableError):
    layout: str
    width: Optional[int]
    height: Optional[int]
    details: str = ""

    def __str__(self):
        return f"Invalid grid dimensions {self.width}x{self.height} for layout '{self.layout}': {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Grid Dimension Error",
            details=str(self),
            suggestion="Supply a positive width and/or height; an auto layout needs at least one of them.",
            context={'element_path': f"layout/{self.layout}"}
        )

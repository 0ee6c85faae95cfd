# src/fpga_arch_core/schema/exceptions.py
"""
Defines the diagnosable exception for the schema-mapping stage.

The mapper knows the vocabulary of the architecture dialect but nothing about
cross-references, so its single failure mode is "this known element does not carry
what it must". `SchemaError` covers the three shapes that takes:

1.  A required attribute is missing (`raw_value` is None).
2.  An attribute is present but cannot be coerced or is outside its allowed set
    (`raw_value` holds the offending text).
3.  A required child element is missing or duplicated (`attribute` is None).
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass(frozen=True)
class SchemaError(DiagnosableError):
    element: str
    attribute: Optional[str] = None
    raw_value: Optional[str] = None
    details: str = ""
    element_path: Optional[str] = None
    line: Optional[int] = None

    def __str__(self):
        target = f"<{self.element}>"
        if self.attribute:
            target += f" attribute '{self.attribute}'"
        if self.raw_value is not None:
            target += f" (value '{self.raw_value}')"
        where = f" at {self.element_path}" if self.element_path else ""
        return f"Schema error in {target}{where}: {self.details or 'invalid'}"

    def get_diagnostic_report(self) -> str:
        if self.attribute and self.raw_value is None:
            suggestion = f"Add the required '{self.attribute}' attribute to the <{self.element}> element."
        elif self.attribute:
            suggestion = f"Correct the value of '{self.attribute}' on <{self.element}> to match the documented type."
        else:
            suggestion = f"Check the child elements of <{self.element}> against the architecture format documentation."
        return format_diagnostic_report(
            error_type="Architecture Schema Error",
            details=str(self),
            suggestion=suggestion,
            context={'element_path': self.element_path, 'line': self.line, 'user_input': self.raw_value}
        )

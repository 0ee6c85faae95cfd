# src/fpga_arch_core/interconnect/exceptions.py
"""
Defines the diagnosable exceptions for interconnect resolution: a symbolic port
range that does not fit the declared port, a reference that leaves the allowed
scope (the pb_type itself and its immediate children in the same mode), and an
interconnect whose source and sink pin counts are incompatible with its kind.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass(frozen=True)
class PinRangeError(DiagnosableError):
    port: str
    requested_range: str
    actual_width: Optional[int] = None
    details: str = ""
    node_path: Optional[str] = None
    interconnect: Optional[str] = None

    def __str__(self):
        width = f" (declared width {self.actual_width})" if self.actual_width is not None else ""
        where = f" in interconnect '{self.interconnect}' of '{self.node_path}'" if self.interconnect else ""
        extra = f": {self.details}" if self.details else ""
        return f"Pin range {self.requested_range} is invalid for '{self.port}'{width}{where}{extra}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Pin Range Error",
            details=str(self),
            suggestion=(
                f"Use indices within 0..{self.actual_width - 1} for '{self.port}'."
                if self.actual_width else f"Check the pin range used for '{self.port}'."
            ),
            context={'element_path': self.node_path, 'user_input': self.requested_range}
        )


@dataclass(frozen=True)
class MalformedPortReferenceError(PinRangeError):
    """A port-range token that does not follow `block[a:b].port[c:d]`."""

    def __str__(self):
        where = f" in interconnect '{self.interconnect}' of '{self.node_path}'" if self.interconnect else ""
        extra = f": {self.details}" if self.details else ""
        return f"Malformed port reference '{self.requested_range}'{where}{extra}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Malformed Port Reference",
            details=str(self),
            suggestion="Write port references as 'instance.port', optionally with '[i]' or '[msb:lsb]' ranges on either part.",
            context={'element_path': self.node_path, 'user_input': self.requested_range}
        )


@dataclass(frozen=True)
class ScopeViolationError(DiagnosableError):
    referencing_node: str
    referenced_port: str
    interconnect: Optional[str] = None
    mode: Optional[str] = None

    def __str__(self):
        mode = f" (mode '{self.mode}')" if self.mode else ""
        return (
            f"Interconnect '{self.interconnect}' of '{self.referencing_node}'{mode} references '{self.referenced_port}', "
            f"which is neither the pb_type itself nor one of its children in that mode"
        )

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Interconnect Scope Violation",
            details=str(self),
            suggestion="Interconnect may only connect ports of the enclosing pb_type and of its immediate children in the same mode.",
            context={'element_path': self.referencing_node, 'user_input': self.referenced_port}
        )


@dataclass(frozen=True)
class CardinalityError(DiagnosableError):
    interconnect: str
    kind: str
    source_count: int
    sink_count: int
    node_path: Optional[str] = None
    details: str = ""

    def __str__(self):
        extra = f": {self.details}" if self.details else ""
        return (
            f"{self.kind} interconnect '{self.interconnect}' of '{self.node_path}' has {self.source_count} source pin(s) "
            f"and {self.sink_count} sink pin(s){extra}"
        )

    def get_diagnostic_report(self) -> str:
        if self.kind == "direct":
            suggestion = "A direct interconnect connects pins one to one; make the input and output ranges the same width."
        else:
            suggestion = "Every mux input must be as wide as the mux output; adjust the input ranges or split the mux."
        return format_diagnostic_report(
            error_type="Interconnect Cardinality Error",
            details=str(self),
            suggestion=suggestion,
            context={'element_path': self.node_path}
        )

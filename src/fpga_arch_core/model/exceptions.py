# src/fpga_arch_core/model/exceptions.py
"""
Defines the diagnosable exceptions raised while assembling the semantic model.
Every error carries the reference chain that led to it, so a failure deep inside
a nested hierarchy can be traced back to the definition that started the walk.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import DiagnosableError, format_diagnostic_report


def _chain_text(chain: Tuple[str, ...]) -> str:
    return " -> ".join(chain) if chain else "<top level>"


@dataclass(frozen=True)
class CyclicHierarchyError(DiagnosableError):
    """A pb_type definition references itself, directly or through its descendants."""
    path: Tuple[str, ...]
    line: Optional[int] = None

    def __str__(self):
        return f"Cyclic pb_type hierarchy detected: {_chain_text(self.path)}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Cyclic pb_type Hierarchy",
            details=(
                f"The definition '{self.path[-1]}' is reached again while it is still being resolved.\n"
                f"Reference chain: {_chain_text(self.path)}"
            ),
            suggestion="Break the cycle so that no pb_type contains, directly or indirectly, a reference to itself.",
            context={'element_path': _chain_text(self.path), 'line': self.line}
        )


@dataclass(frozen=True)
class UnresolvedReferenceError(DiagnosableError):
    """A name (pb_type, tile, switch, port) does not resolve to a declaration."""
    name: str
    kind: str = "pb_type"
    reference_chain: Tuple[str, ...] = ()
    line: Optional[int] = None

    def __str__(self):
        return f"Unresolved {self.kind} reference '{self.name}' (referenced from {_chain_text(self.reference_chain)})"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unresolved Reference",
            details=str(self),
            suggestion=f"Declare a {self.kind} named '{self.name}', or correct the spelling of the reference.",
            context={'element_path': _chain_text(self.reference_chain), 'line': self.line, 'user_input': self.name}
        )


@dataclass(frozen=True)
class DuplicateNameError(DiagnosableError):
    """Two declarations of the same kind share a name within one scope."""
    scope: str
    kind: str
    name: str
    line: Optional[int] = None

    def __str__(self):
        return f"Duplicate {self.kind} name '{self.name}' in scope '{self.scope}'"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Duplicate Name",
            details=str(self),
            suggestion=f"Rename one of the {self.kind} declarations so that every name in '{self.scope}' is unique.",
            context={'element_path': self.scope, 'line': self.line, 'user_input': self.name}
        )


@dataclass(frozen=True)
class HierarchyLimitError(DiagnosableError):
    """Instantiating the pb_type hierarchy would exceed the configured node budget."""
    limit: int
    chain: Tuple[str, ...] = ()

    def __str__(self):
        return f"pb_type hierarchy exceeds the limit of {self.limit} nodes while expanding {_chain_text(self.chain)}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Hierarchy Size Limit Exceeded",
            details=str(self),
            suggestion="Raise 'build.max_hierarchy_nodes' in the configuration if the architecture is legitimately this large.",
            context={'element_path': _chain_text(self.chain)}
        )

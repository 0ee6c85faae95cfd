# src/fpga_arch_core/errors.py
import logging
from typing import Any, Dict, Protocol, abstractmethod
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class ArchError(Exception):
    """Base class for all custom, user-facing errors in the architecture core."""
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """
    A protocol for exceptions that can generate their own rich diagnostic report.
    Rendering collaborators depend on this protocol only, never on the concrete
    exception classes, when presenting a failure to the user.
    """
    def get_diagnostic_report(self) -> str:
        """Generates a complete, user-friendly, multi-line report string."""
        ...

class DiagnosableError(ArchError, Diagnosable):
    """
    Common, concrete base class for every error in the parse/resolve/layout taxonomy.

    1. It inherits from `ArchError`, so a caller can catch the whole family with a
       single `except` clause.
    2. It declares `get_diagnostic_report` abstract, so a subclass that forgets to
       describe itself fails at instantiation time instead of at report time.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        raise NotImplementedError


# --- Stateless Formatting Utility ---

def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    A stateless helper to format the final multi-line report string, ensuring a
    consistent look and feel for all user-facing diagnostics.

    Args:
        error_type: The high-level category of the error (e.g., "Unresolved Reference").
        details: A detailed, potentially multi-line description of the problem.
        suggestion: Actionable advice for the user to resolve the issue.
        context: Contextual information (element path, source, line, offending value).

    Returns:
        A formatted report string ready for display.
    """
    lines = [
        "\n",
        "============ FPGA Architecture Core: Actionable Diagnostic Report ============",
        f"Error Type:     {error_type}",
    ]
    if source := context.get('source'):
        lines.append(f"Source:         {source}")
    if element_path := context.get('element_path'):
        lines.append(f"Element Path:   {element_path}")
    if (line := context.get('line')) is not None:
        lines.append(f"Line:           {line}")
    if (user_input := context.get('user_input')) is not None:
        lines.append(f"User Input:     '{user_input}'")

    lines.append("\nDetails:")
    for line_text in details.splitlines():
        lines.append(f"  {line_text}")

    if suggestion:
        lines.append("\nSuggestion:")
        for line_text in suggestion.splitlines():
            lines.append(f"  {line_text}")

    lines.append("==============================================================================")
    return "\n".join(lines)

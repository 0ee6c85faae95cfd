# src/fpga_arch_core/validation/issues.py
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class ValidationIssueLevel(Enum):
    """Severity level of a validation issue."""
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ValidationIssue:
    """
    A single advisory finding about an architecture that loaded successfully.
    `node_path` and `mode` locate the finding inside the pb_type hierarchy when it
    concerns one.
    """
    level: ValidationIssueLevel
    code: str
    message: str
    node_path: Optional[str] = None
    mode: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        parts = [f"[{self.level.name} - {self.code}]"]
        if self.node_path:
            where = f"{self.node_path} (mode '{self.mode}')" if self.mode else self.node_path
            parts.append(f"Context: {where}")
        parts.append(f"Message: {self.message}")
        return " ".join(parts)

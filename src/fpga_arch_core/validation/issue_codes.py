# src/fpga_arch_core/validation/issue_codes.py
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class SemanticIssueCode(Enum):
    """
    Registry of advisory issue codes and their message templates.
    Each enum member's value is a tuple: (code_str, message_template_str).
    """

    # --- Interconnect Issues (IC_...) ---
    IC_UNDRIVEN_INPUT = ("IC_UNDRIVEN_INPUT", "Input pin '{pin}' of child instance '{instance}' is not driven by any interconnect.")
    IC_MULTI_DRIVEN = ("IC_MULTI_DRIVEN", "Pin '{pin}' is driven by {driver_count} independent drivers ({interconnects}) outside a mux or crossbar.")

    # --- Tile & Layout Issues (TILE_...) ---
    TILE_UNPLACED = ("TILE_UNPLACED", "Tile '{tile}' is not placed by any grid location of any layout.")

    # --- Definition Issues (PB_...) ---
    PB_UNUSED_ROOT = ("PB_UNUSED_ROOT", "Top-level pb_type '{pb_type}' is not the site of any sub-tile.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def template(self) -> str:
        return self.value[1]

    def format_message(self, **kwargs) -> str:
        """Formats the message template with provided keyword arguments."""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.error(f"Missing key {e} for formatting message template of {self.name} (code: {self.code}): '{self.template}'. Provided args: {kwargs}")
            return f"Error formatting message for {self.code}: Missing key {e}. Template: '{self.template}' Args: {kwargs}"

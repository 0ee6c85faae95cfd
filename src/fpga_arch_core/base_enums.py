# src/fpga_arch_core/base_enums.py
from enum import Enum, auto


class PortDirection(Enum):
    INPUT = "input"
    OUTPUT = "output"
    CLOCK = "clock"


class InterconnectKind(Enum):
    DIRECT = "direct"
    MUX = "mux"
    COMPLETE = "complete"


class GridLocationKind(Enum):
    FILL = "fill"
    PERIMETER = "perimeter"
    CORNERS = "corners"
    SINGLE = "single"
    COL = "col"
    ROW = "row"
    REGION = "region"


class LayoutKind(Enum):
    AUTO = auto()
    FIXED = auto()

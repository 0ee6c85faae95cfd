# src/fpga_arch_core/model/__init__.py
from .builder import ArchitectureBuilder
from .data_structures import (
    AUTO_LAYOUT_NAME,
    EMPTY_TILE_NAME,
    Architecture,
    AutoLayout,
    ChildSlot,
    FixedLayout,
    Interconnect,
    Layout,
    Mode,
    PBType,
    Port,
    Site,
    SubTile,
    Tile,
    Timing,
)
from .exceptions import (
    CyclicHierarchyError,
    DuplicateNameError,
    HierarchyLimitError,
    UnresolvedReferenceError,
)

__all__ = [
    "ArchitectureBuilder",
    "AUTO_LAYOUT_NAME", "EMPTY_TILE_NAME",
    "Architecture", "AutoLayout", "ChildSlot", "FixedLayout", "Interconnect", "Layout",
    "Mode", "PBType", "Port", "Site", "SubTile", "Tile", "Timing",
    "CyclicHierarchyError", "DuplicateNameError", "HierarchyLimitError", "UnresolvedReferenceError",
]

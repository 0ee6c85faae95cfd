# src/fpga_arch_core/schema/__init__.py
from .exceptions import SchemaError
from .mapper import SchemaMapper
from .records import (
    ArchitectureRecords,
    ChildRefRecord,
    Extensions,
    GridLocationRecord,
    InterconnectRecord,
    MetaRecord,
    ModeRecord,
    PBTypeRecord,
    PortRecord,
    SwitchBlockRecord,
    TileRecord,
    TimingRecord,
    WireConnRecord,
)

__all__ = [
    "SchemaError",
    "SchemaMapper",
    "ArchitectureRecords",
    "ChildRefRecord",
    "Extensions",
    "GridLocationRecord",
    "InterconnectRecord",
    "MetaRecord",
    "ModeRecord",
    "PBTypeRecord",
    "PortRecord",
    "SwitchBlockRecord",
    "TileRecord",
    "TimingRecord",
    "WireConnRecord",
]

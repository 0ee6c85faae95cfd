# src/fpga_arch_core/schema/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..base_enums import GridLocationKind, InterconnectKind, PortDirection
from ..ingest.xml_tree import XmlElement

# The classes in this module are the Intermediate Representation (IR) produced by
# the SchemaMapper: typed, flat, and unresolved. Names are still plain strings;
# the ArchitectureBuilder is the only consumer that turns them into links.

def _empty_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class Extensions:
    """Opaque bag of unknown attributes and child elements, kept verbatim."""
    attributes: Mapping[str, str] = field(default_factory=_empty_mapping)
    elements: Tuple[XmlElement, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.attributes) or bool(self.elements)


NO_EXTENSIONS = Extensions()

@dataclass(frozen=True)
class MetaRecord:
    """One `<meta name="...">value</meta>` entry."""
    name: str
    value: str = ""
    extensions: Extensions = NO_EXTENSIONS


Metadata = Tuple[MetaRecord, ...]


@dataclass(frozen=True)
class TimingRecord:
    """
    A timing annotation stored opaquely. `values` holds the numeric attributes
    (max, min, value), `ports` the port references (in_port, out_port, port, clock).
    """
    kind: str
    values: Mapping[str, float]
    ports: Mapping[str, str]
    matrix: Tuple[Tuple[float, ...], ...] = ()
    matrix_type: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class PortRecord:
    name: str
    direction: PortDirection
    num_pins: int
    equivalent: str = "none"
    is_non_clock_global: bool = False
    port_class: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class PackPatternRecord:
    name: str
    in_port: str
    out_port: str
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class InterconnectRecord:
    kind: InterconnectKind
    name: str
    input: str
    output: str
    pack_patterns: Tuple[PackPatternRecord, ...] = ()
    timings: Tuple[TimingRecord, ...] = ()
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class ChildRefRecord:
    """
    One child entry of a mode. Exactly one of `definition_key` (an inline body
    mapped as its own PBTypeRecord) or `ref` (a top-level definition name) is set.
    """
    name: str
    num_pb: int
    definition_key: Optional[str] = None
    ref: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class ModeRecord:
    name: str
    children: Tuple[ChildRefRecord, ...] = ()
    interconnects: Tuple[InterconnectRecord, ...] = ()
    implicit: bool = False
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class PBTypeRecord:
    """
    A pb_type body. `key` is the top-level name for complexblocklist entries and a
    dotted path (parent key, mode, name) for inline bodies.
    """
    key: str
    name: str
    num_pb: int
    blif_model: Optional[str] = None
    pb_class: Optional[str] = None
    ports: Tuple[PortRecord, ...] = ()
    modes: Tuple[ModeRecord, ...] = ()
    timings: Tuple[TimingRecord, ...] = ()
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS
    is_top_level: bool = False
    element_path: str = ""
    line: Optional[int] = None


@dataclass(frozen=True)
class SiteRecord:
    pb_type: str
    pin_mapping: str = "direct"
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class FcRecord:
    in_type: Optional[str] = None
    in_val: Optional[float] = None
    out_type: Optional[str] = None
    out_val: Optional[float] = None
    overrides: Tuple[Mapping[str, str], ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class PinLocRecord:
    side: str
    xoffset: int = 0
    yoffset: int = 0
    pins: Tuple[str, ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class PinLocationsRecord:
    pattern: str = "spread"
    locations: Tuple[PinLocRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SubTileRecord:
    name: str
    capacity: int
    sites: Tuple[SiteRecord, ...]
    ports: Tuple[PortRecord, ...] = ()
    fc: Optional[FcRecord] = None
    pin_locations: Optional[PinLocationsRecord] = None
    implicit: bool = False
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class TileRecord:
    name: str
    width: int
    height: int
    area: Optional[float] = None
    sub_tiles: Tuple[SubTileRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    element_path: str = ""
    line: Optional[int] = None


@dataclass(frozen=True)
class GridLocationRecord:
    kind: GridLocationKind
    tile: str
    priority: int
    # Placement formulas, kept as text; None means "not given".
    expressions: Mapping[str, str] = field(default_factory=_empty_mapping)
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class AutoLayoutRecord:
    aspect_ratio: float
    grid_locations: Tuple[GridLocationRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class FixedLayoutRecord:
    name: str
    width: int
    height: int
    grid_locations: Tuple[GridLocationRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class ChannelDistributionRecord:
    distr: str
    peak: float
    width: Optional[float] = None
    xpeak: Optional[float] = None
    dc: Optional[float] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class DeviceRecord:
    sizing: Mapping[str, float] = field(default_factory=_empty_mapping)
    input_switch_name: Optional[str] = None
    grid_logic_tile_area: Optional[float] = None
    switch_block_type: Optional[str] = None
    switch_block_fs: Optional[int] = None
    chan_width_x: Optional[ChannelDistributionRecord] = None
    chan_width_y: Optional[ChannelDistributionRecord] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SwitchRecord:
    name: str
    switch_type: str
    values: Mapping[str, float] = field(default_factory=_empty_mapping)
    buf_size: Optional[str] = None
    delay_by_fanin: Tuple[Tuple[int, float], ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SegmentRecord:
    name: str
    length: int
    segment_type: str
    freq: float = 1.0
    r_metal: float = 0.0
    c_metal: float = 0.0
    axis: str = "xy"
    res_type: str = "GENERAL"
    switches: Mapping[str, str] = field(default_factory=_empty_mapping)
    sb_pattern: Tuple[bool, ...] = ()
    cb_pattern: Tuple[bool, ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class DirectRecord:
    name: str
    from_pin: str
    to_pin: str
    x_offset: int = 0
    y_offset: int = 0
    z_offset: int = 0
    switch_name: Optional[str] = None
    from_side: Optional[str] = None
    to_side: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class ModelPortRecord:
    name: str
    is_clock: bool = False
    clock: Optional[str] = None
    combinational_sink_ports: Tuple[str, ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class ModelRecord:
    name: str
    never_prune: bool = False
    input_ports: Tuple[ModelPortRecord, ...] = ()
    output_ports: Tuple[ModelPortRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SwitchPointRecord:
    """Switchpoints (0-based offsets along a wire) of one segment type."""
    segment_type: str
    switchpoints: Tuple[int, ...]
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SwitchFuncRecord:
    """A permutation formula for one pair of switch-block sides, e.g. `lr`."""
    func_type: str
    formula: str
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class WireConnRecord:
    # `num_conns` is a formula over from/to, kept as text.
    num_conns: str
    from_points: Tuple[SwitchPointRecord, ...]
    to_points: Tuple[SwitchPointRecord, ...]
    from_order: str = "shuffled"
    to_order: str = "shuffled"
    switch_override: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class SwitchBlockRecord:
    """
    One custom switch block. `location` is EVERYWHERE, PERIMETER, CORNER, FRINGE,
    CORE or XY_SPECIFIED; `x` and `y` are set only for the latter.
    """
    name: str
    sb_type: str
    location: str
    x: Optional[int] = None
    y: Optional[int] = None
    funcs: Tuple[SwitchFuncRecord, ...] = ()
    wireconns: Tuple[WireConnRecord, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    line: Optional[int] = None


@dataclass(frozen=True)
class ArchitectureRecords:
    """The flat, unresolved output of the SchemaMapper for one document."""
    models: Tuple[ModelRecord, ...] = ()
    tiles: Tuple[TileRecord, ...] = ()
    auto_layouts: Tuple[AutoLayoutRecord, ...] = ()
    fixed_layouts: Tuple[FixedLayoutRecord, ...] = ()
    device: DeviceRecord = field(default_factory=DeviceRecord)
    switches: Tuple[SwitchRecord, ...] = ()
    segments: Tuple[SegmentRecord, ...] = ()
    directs: Tuple[DirectRecord, ...] = ()
    switch_blocks: Tuple[SwitchBlockRecord, ...] = ()
    pb_types: Tuple[PBTypeRecord, ...] = ()
    layout_extensions: Extensions = NO_EXTENSIONS
    extensions: Extensions = NO_EXTENSIONS

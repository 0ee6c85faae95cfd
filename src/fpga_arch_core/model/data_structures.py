# src/fpga_arch_core/model/data_structures.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Sequence, Tuple, Union

from ..base_enums import InterconnectKind, LayoutKind, PortDirection
from ..schema.records import (
    DeviceRecord,
    DirectRecord,
    Extensions,
    FcRecord,
    GridLocationRecord,
    Metadata,
    ModelRecord,
    NO_EXTENSIONS,
    PackPatternRecord,
    PinLocationsRecord,
    SegmentRecord,
    SwitchBlockRecord,
    SwitchRecord,
    TimingRecord,
)
from .exceptions import UnresolvedReferenceError

logger = logging.getLogger(__name__)

# Leaf records that need no linking are carried into the model unchanged.
Timing = TimingRecord
PackPattern = PackPatternRecord
GridLocation = GridLocationRecord
Device = DeviceRecord
Switch = SwitchRecord
Segment = SegmentRecord
Direct = DirectRecord
SwitchBlock = SwitchBlockRecord
Model = ModelRecord

AUTO_LAYOUT_NAME = "auto"
EMPTY_TILE_NAME = "EMPTY"


@dataclass(frozen=True)
class Port:
    """A named bundle of `width` pins, indexed 0..width-1."""
    name: str
    direction: PortDirection
    width: int
    equivalent: str = "none"
    is_non_clock_global: bool = False
    port_class: Optional[str] = None
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class Interconnect:
    name: str
    kind: InterconnectKind
    input: str
    output: str
    pack_patterns: Tuple[PackPattern, ...] = ()
    timings: Tuple[Timing, ...] = ()
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class ChildSlot:
    """`num_pb` instances of the arena node `handle`, named `name` inside one mode."""
    name: str
    num_pb: int
    handle: int
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class Mode:
    name: str
    children: Tuple[ChildSlot, ...] = ()
    interconnects: Tuple[Interconnect, ...] = ()
    implicit: bool = False
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS

    def child(self, name: str) -> Optional[ChildSlot]:
        for slot in self.children:
            if slot.name == name:
                return slot
        return None


@dataclass(frozen=True)
class PBType:
    """
    One node of the pb_type arena. Links point from parent to child only (through
    `Mode.children`), so a node never needs to know who instantiated it.

    `definition` is the key of the declaration this node was instantiated from; two
    nodes built from the same definition are structurally identical apart from
    `handle` and `path`.
    """
    handle: int
    name: str
    path: str
    definition: str
    num_pb: int = 1
    blif_model: Optional[str] = None
    pb_class: Optional[str] = None
    ports: Tuple[Port, ...] = ()
    modes: Tuple[Mode, ...] = ()
    timings: Tuple[Timing, ...] = ()
    metadata: Metadata = ()
    extensions: Extensions = NO_EXTENSIONS

    @property
    def is_leaf(self) -> bool:
        return not self.modes

    def port(self, name: str) -> Optional[Port]:
        for port in self.ports:
            if port.name == name:
                return port
        return None

    def ports_by_direction(self, direction: PortDirection) -> Tuple[Port, ...]:
        return tuple(p for p in self.ports if p.direction == direction)

    def mode(self, name: Optional[str] = None) -> Mode:
        """Returns the named mode, or the first declared mode when `name` is None."""
        if not self.modes:
            raise UnresolvedReferenceError(name=name or "<any>", kind="mode", reference_chain=(self.path,))
        if name is None:
            return self.modes[0]
        for mode in self.modes:
            if mode.name == name:
                return mode
        raise UnresolvedReferenceError(name=name, kind="mode", reference_chain=(self.path,))


@dataclass(frozen=True)
class Site:
    pb_type: str
    handle: int
    pin_mapping: str = "direct"
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class SubTile:
    name: str
    capacity: int
    sites: Tuple[Site, ...]
    ports: Tuple[Port, ...] = ()
    fc: Optional[FcRecord] = None
    pin_locations: Optional[PinLocationsRecord] = None
    implicit: bool = False
    extensions: Extensions = NO_EXTENSIONS


@dataclass(frozen=True)
class Tile:
    name: str
    width: int
    height: int
    sub_tiles: Tuple[SubTile, ...]
    area: Optional[float] = None
    extensions: Extensions = NO_EXTENSIONS

    @property
    def capacity(self) -> int:
        return sum(st.capacity for st in self.sub_tiles)


@dataclass(frozen=True)
class AutoLayout:
    aspect_ratio: float
    grid_locations: Tuple[GridLocation, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    name: str = AUTO_LAYOUT_NAME
    kind: LayoutKind = LayoutKind.AUTO

    def dimensions(self, width: Optional[int] = None, height: Optional[int] = None) -> Tuple[int, int]:
        """
        Derives the grid size from the aspect ratio (width / height). With only one
        dimension supplied the other is rounded half-up and clamped to at least 1.
        """
        if width is None and height is None:
            raise ValueError("An auto layout needs at least one of width or height.")
        if width is not None and width < 1 or height is not None and height < 1:
            raise ValueError(f"Grid dimensions must be positive, got width={width}, height={height}.")
        if height is None:
            height = max(1, math.floor(width / self.aspect_ratio + 0.5))
        elif width is None:
            width = max(1, math.floor(height * self.aspect_ratio + 0.5))
        return width, height


@dataclass(frozen=True)
class FixedLayout:
    name: str
    width: int
    height: int
    grid_locations: Tuple[GridLocation, ...] = ()
    extensions: Extensions = NO_EXTENSIONS
    kind: LayoutKind = LayoutKind.FIXED

    def dimensions(self, width: Optional[int] = None, height: Optional[int] = None) -> Tuple[int, int]:
        return self.width, self.height


Layout = Union[AutoLayout, FixedLayout]


@dataclass(frozen=True)
class Architecture:
    """
    The final, immutable semantic model produced by the ArchitectureBuilder.

    `pb_types` is the arena of every instantiated pb_type node, addressed by integer
    handle; `roots` maps each top-level definition name to the handle of its tree.
    """
    tiles: Tuple[Tile, ...]
    layouts: Tuple[Layout, ...]
    pb_types: Tuple[PBType, ...]
    roots: Mapping[str, int]
    models: Tuple[Model, ...] = ()
    device: Device = field(default_factory=Device)
    switches: Tuple[Switch, ...] = ()
    segments: Tuple[Segment, ...] = ()
    directs: Tuple[Direct, ...] = ()
    switch_blocks: Tuple[SwitchBlock, ...] = ()
    layout_extensions: Extensions = NO_EXTENSIONS
    extensions: Extensions = NO_EXTENSIONS

    # Derived name indexes; excluded from comparison and repr.
    _tile_index: Mapping[str, int] = field(init=False, repr=False, compare=False)
    _layout_index: Mapping[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_tile_index", MappingProxyType({t.name: i for i, t in enumerate(self.tiles)}))
        object.__setattr__(self, "_layout_index", MappingProxyType({l.name: i for i, l in enumerate(self.layouts)}))

    # --- Lookups ---

    def tile(self, name: str) -> Tile:
        index = self._tile_index.get(name)
        if index is None:
            raise UnresolvedReferenceError(name=name, kind="tile")
        return self.tiles[index]

    def pb_type(self, name: str) -> PBType:
        """Returns the root node of the top-level pb_type definition `name`."""
        handle = self.roots.get(name)
        if handle is None:
            raise UnresolvedReferenceError(name=name, kind="pb_type")
        return self.pb_types[handle]

    def node(self, handle: int) -> PBType:
        if not 0 <= handle < len(self.pb_types):
            raise UnresolvedReferenceError(name=str(handle), kind="pb_type handle")
        return self.pb_types[handle]

    def find_pb_type(self, path: Union[str, Sequence[str]], mode: Optional[str] = None) -> PBType:
        """
        Walks a slash-separated path of child slot names from a root definition,
        e.g. "clb/fle/ble4/lut4". Each step searches the given `mode` when it names a
        mode of the current node, otherwise every mode in declaration order.
        """
        parts = path.split("/") if isinstance(path, str) else list(path)
        if not parts or not parts[0]:
            raise UnresolvedReferenceError(name=str(path), kind="pb_type path")
        node = self.pb_type(parts[0])
        walked = [parts[0]]
        for part in parts[1:]:
            candidates = [m for m in node.modes if m.name == mode] or list(node.modes)
            slot = next((m.child(part) for m in candidates if m.child(part) is not None), None)
            if slot is None:
                raise UnresolvedReferenceError(name=part, kind="pb_type", reference_chain=tuple(walked))
            node = self.pb_types[slot.handle]
            walked.append(part)
        return node

    def modes_of(self, pb: Union[PBType, int, str]) -> Tuple[Mode, ...]:
        return self.resolve_node(pb).modes

    def children_of(self, pb: Union[PBType, int, str], mode: Optional[str] = None) -> Tuple[Tuple[ChildSlot, PBType], ...]:
        node = self.resolve_node(pb)
        if node.is_leaf:
            return ()
        return tuple((slot, self.pb_types[slot.handle]) for slot in node.mode(mode).children)

    def layout(self, name: str) -> Layout:
        index = self._layout_index.get(name)
        if index is None:
            raise UnresolvedReferenceError(name=name, kind="layout")
        return self.layouts[index]

    def layout_names(self) -> Tuple[str, ...]:
        return tuple(l.name for l in self.layouts)

    def tile_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tiles)

    def iter_subtree(self, pb: Union[PBType, int, str]) -> Iterator[PBType]:
        """Yields a node and all its descendants, across every mode, in pre-order."""
        stack = [self.resolve_node(pb).handle]
        while stack:
            node = self.pb_types[stack.pop()]
            yield node
            for mode in reversed(node.modes):
                stack.extend(slot.handle for slot in reversed(mode.children))

    def resolve_node(self, pb: Union[PBType, int, str]) -> PBType:
        if isinstance(pb, PBType):
            return pb
        if isinstance(pb, int):
            return self.node(pb)
        return self.find_pb_type(pb)

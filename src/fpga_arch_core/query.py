# src/fpga_arch_core/query.py
"""
The read-only facade handed to rendering collaborators.

`ArchitectureQuery` wraps one immutable `Architecture` and memoises the derived
results a viewer asks for repeatedly: connectivity per (node, mode), geometry per
(node, mode, expand state) and device grids per (layout, width, height). All
results are immutable, so one query object can serve several threads.
"""
import logging
from typing import Optional, Tuple, Union

from .cache import GeometryCache, create_connectivity_key, create_geometry_key, create_grid_key
from .config import CoreConfig
from .grid import DeviceGrid, build_device_grid
from .interconnect import ConnectivityGraph, InterconnectResolver
from .layout import BlockGeometry, ExpandState, LayoutEngine
from .model.data_structures import Architecture, ChildSlot, Layout, Mode, PBType, Tile
from .validation import SemanticValidator, ValidationIssue

logger = logging.getLogger(__name__)

PBRef = Union[PBType, int, str]


class ArchitectureQuery:

    def __init__(self, architecture: Architecture, config: Optional[CoreConfig] = None):
        self.architecture = architecture
        self.config = config or CoreConfig()
        self.cache = GeometryCache()
        self._resolver = InterconnectResolver(architecture)
        self._engine = LayoutEngine(architecture, self.config.layout, connectivity=self.connectivity)

    # --- Model lookups ---

    def tile(self, name: str) -> Tile:
        return self.architecture.tile(name)

    def tile_names(self) -> Tuple[str, ...]:
        return self.architecture.tile_names()

    def pb_type(self, name: str) -> PBType:
        return self.architecture.pb_type(name)

    def find_pb_type(self, path: str, mode: Optional[str] = None) -> PBType:
        return self.architecture.find_pb_type(path, mode)

    def modes_of(self, pb: PBRef) -> Tuple[Mode, ...]:
        return self.architecture.modes_of(pb)

    def mode_names(self, pb: PBRef) -> Tuple[str, ...]:
        return tuple(m.name for m in self.architecture.modes_of(pb))

    def children_of(self, pb: PBRef, mode: Optional[str] = None) -> Tuple[Tuple[ChildSlot, PBType], ...]:
        return self.architecture.children_of(pb, mode)

    def layout(self, name: str) -> Layout:
        return self.architecture.layout(name)

    def layout_names(self) -> Tuple[str, ...]:
        return self.architecture.layout_names()

    # --- Derived, cached results ---

    def connectivity(self, pb: PBRef, mode: Optional[str] = None) -> ConnectivityGraph:
        node = self.architecture.resolve_node(pb)
        selected = None if node.is_leaf else node.mode(mode).name
        key = create_connectivity_key(node, selected)
        return self.cache.get_or_compute(key, lambda: self._resolver.resolve(node, selected))

    def geometry(self, pb: PBRef, mode: Optional[str] = None,
                 expand_state: Optional[ExpandState] = None) -> BlockGeometry:
        node = self.architecture.resolve_node(pb)
        state = expand_state or ExpandState()
        key = create_geometry_key(node, mode, state, self.config.layout)
        return self.cache.get_or_compute(key, lambda: self._engine.layout(node, mode, state))

    def device_grid(self, layout: str, width: Optional[int] = None, height: Optional[int] = None) -> DeviceGrid:
        key = create_grid_key(layout, width, height)
        return self.cache.get_or_compute(key, lambda: build_device_grid(self.architecture, layout, width, height))

    def validate(self) -> Tuple[ValidationIssue, ...]:
        return tuple(SemanticValidator(self.architecture).validate())

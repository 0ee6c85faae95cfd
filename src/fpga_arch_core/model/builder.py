# src/fpga_arch_core/model/builder.py
"""
Defines the ArchitectureBuilder, which assembles the flat records produced by the
SchemaMapper into the final, immutable `Architecture` model.

Architectural Role:
The builder is the only stage that turns names into links. It works in three passes:

1.  **Name Uniqueness:** Every scope (tiles, top-level definitions, ports, modes,
    children and interconnects of each definition, sub-tiles, layouts, switches,
    segments, models) is checked for duplicate names before anything is linked.

2.  **Hierarchy Instantiation:** Each top-level pb_type definition is expanded into
    arena nodes with an explicit-stack depth-first walk. A definition that is
    entered while it is still on the active resolution path is a cycle. Every
    instantiation creates fresh nodes, so the result is a tree with exactly one
    parent per node; the total is capped by `BuildConfig.max_hierarchy_nodes`.

3.  **Cross-Reference Resolution:** Sub-tile sites, layout grid locations, segment,
    connection-block and switch-block override switches, and `.subckt` models are
    resolved by name.

Errors propagate unchanged; no partial model is ever returned.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..config import BuildConfig
from ..schema.records import (
    ArchitectureRecords,
    ChildRefRecord,
    PBTypeRecord,
    PortRecord,
    TileRecord,
)
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
)
from .exceptions import (
    CyclicHierarchyError,
    DuplicateNameError,
    HierarchyLimitError,
    UnresolvedReferenceError,
)

logger = logging.getLogger(__name__)

# BLIF primitives every architecture may use without declaring a model.
BUILTIN_BLIF_MODELS = frozenset({".names", ".latch", ".input", ".output"})


def _check_unique(names: Iterable[Tuple[str, Optional[int]]], scope: str, kind: str) -> None:
    seen: Set[str] = set()
    for name, line in names:
        if name in seen:
            raise DuplicateNameError(scope=scope, kind=kind, name=name, line=line)
        seen.add(name)


def _to_port(record: PortRecord) -> Port:
    return Port(
        name=record.name,
        direction=record.direction,
        width=record.num_pins,
        equivalent=record.equivalent,
        is_non_clock_global=record.is_non_clock_global,
        port_class=record.port_class,
        extensions=record.extensions,
    )


@dataclass
class _Frame:
    """Bookkeeping for one definition currently on the depth-first walk."""
    handle: int
    record: PBTypeRecord
    name: str
    path: str
    num_pb: int
    chain: Tuple[str, ...]
    # child_handles[mode_index][child_index]; filled in as children complete.
    child_handles: List[List[Optional[int]]] = field(default_factory=list)


class ArchitectureBuilder:
    """Synthesizes an `Architecture` from `ArchitectureRecords`."""

    def __init__(self, config: Optional[BuildConfig] = None):
        self.config = config or BuildConfig()

    def build(self, records: ArchitectureRecords) -> Architecture:
        logger.info("--- Starting architecture model synthesis ---")
        definitions = self._collect_definitions(records)
        self._check_scopes(records)

        arena: List[Optional[PBType]] = []
        roots: Dict[str, int] = {}
        for record in records.pb_types:
            if record.is_top_level:
                roots[record.name] = self._instantiate(record, definitions, arena)
        logger.debug(f"Instantiated {len(arena)} pb_type node(s) for {len(roots)} top-level definition(s).")

        tiles = tuple(self._build_tile(t, roots) for t in records.tiles)
        layouts = self._build_layouts(records, {t.name for t in tiles})
        self._resolve_switch_references(records)
        self._resolve_models(records, arena)

        architecture = Architecture(
            tiles=tiles,
            layouts=layouts,
            pb_types=tuple(arena),
            roots=MappingProxyType(roots),
            models=records.models,
            device=records.device,
            switches=records.switches,
            segments=records.segments,
            directs=records.directs,
            switch_blocks=records.switch_blocks,
            layout_extensions=records.layout_extensions,
            extensions=records.extensions,
        )
        logger.info(
            f"--- Architecture model synthesis successful: {len(tiles)} tile(s), "
            f"{len(arena)} pb_type node(s), {len(layouts)} layout(s). ---"
        )
        return architecture

    # --- Pass 1: uniqueness ---

    def _collect_definitions(self, records: ArchitectureRecords) -> Dict[str, PBTypeRecord]:
        _check_unique(((r.name, r.line) for r in records.pb_types if r.is_top_level), "complexblocklist", "pb_type")
        definitions: Dict[str, PBTypeRecord] = {}
        for record in records.pb_types:
            _check_unique(((p.name, record.line) for p in record.ports), record.element_path, "port")
            _check_unique(((m.name, m.line) for m in record.modes), record.element_path, "mode")
            for mode in record.modes:
                mode_scope = f"{record.element_path}/mode[{mode.name}]"
                _check_unique(((c.name, c.line) for c in mode.children), mode_scope, "pb_type child")
                _check_unique(((i.name, i.line) for i in mode.interconnects), mode_scope, "interconnect")
            definitions[record.key] = record
        return definitions

    def _check_scopes(self, records: ArchitectureRecords) -> None:
        _check_unique(((t.name, t.line) for t in records.tiles), "tiles", "tile")
        for tile in records.tiles:
            _check_unique(((st.name, st.line) for st in tile.sub_tiles), tile.element_path, "sub_tile")
            for sub_tile in tile.sub_tiles:
                _check_unique(((p.name, sub_tile.line) for p in sub_tile.ports),
                              f"{tile.element_path}/sub_tile[{sub_tile.name}]", "port")
        layout_names = [(AUTO_LAYOUT_NAME, l.line) for l in records.auto_layouts]
        layout_names += [(l.name, l.line) for l in records.fixed_layouts]
        _check_unique(layout_names, "layout", "layout")
        _check_unique(((s.name, None) for s in records.switches), "switchlist", "switch")
        _check_unique(((s.name, None) for s in records.segments), "segmentlist", "segment")
        _check_unique(((d.name, None) for d in records.directs), "directlist", "direct")
        _check_unique(((b.name, b.line) for b in records.switch_blocks), "switchblocklist", "switchblock")
        _check_unique(((m.name, None) for m in records.models), "models", "model")

    # --- Pass 2: hierarchy ---

    def _instantiate(self, top: PBTypeRecord, definitions: Dict[str, PBTypeRecord],
                     arena: List[Optional[PBType]]) -> int:
        """
        Expands one top-level definition into arena nodes and returns the root handle.
        Handles are allocated on entry (pre-order) and nodes are filled in on exit.
        """
        active: Set[str] = set()
        root_handle = len(arena)
        # Stack entries: ("enter", record, slot name, num_pb, parent frame, mode index, child index)
        #                ("exit", frame)
        stack: List[tuple] = [("enter", top, top.name, top.num_pb, None, 0, 0)]
        while stack:
            entry = stack.pop()
            if entry[0] == "exit":
                frame = entry[1]
                active.discard(frame.record.key)
                arena[frame.handle] = self._make_node(frame)
                continue

            _, record, slot_name, num_pb, parent, mode_index, child_index = entry
            chain = (parent.chain if parent else ()) + (record.name,)
            if record.key in active:
                raise CyclicHierarchyError(path=chain, line=record.line)
            if len(arena) >= self.config.max_hierarchy_nodes:
                raise HierarchyLimitError(limit=self.config.max_hierarchy_nodes, chain=chain)

            handle = len(arena)
            arena.append(None)
            path = f"{parent.path}/{slot_name}" if parent else slot_name
            frame = _Frame(handle=handle, record=record, name=slot_name, path=path, num_pb=num_pb, chain=chain,
                           child_handles=[[None] * len(m.children) for m in record.modes])
            if parent is not None:
                parent.child_handles[mode_index][child_index] = handle
            active.add(record.key)
            logger.debug(f"Entering pb_type '{path}' (definition '{record.key}', handle {handle}).")

            stack.append(("exit", frame))
            pending = []
            for m_index, mode in enumerate(record.modes):
                for c_index, child in enumerate(mode.children):
                    child_record = self._lookup_child(child, definitions, chain)
                    pending.append(("enter", child_record, child.name, child.num_pb, frame, m_index, c_index))
            stack.extend(reversed(pending))
        return root_handle

    @staticmethod
    def _lookup_child(child: ChildRefRecord, definitions: Dict[str, PBTypeRecord],
                      chain: Tuple[str, ...]) -> PBTypeRecord:
        key = child.ref if child.ref is not None else child.definition_key
        record = definitions.get(key)
        if record is None or (child.ref is not None and not record.is_top_level):
            raise UnresolvedReferenceError(name=child.ref or key, kind="pb_type", reference_chain=chain,
                                           line=child.line)
        return record

    @staticmethod
    def _make_node(frame: _Frame) -> PBType:
        record = frame.record
        modes = []
        for mode_record, handles in zip(record.modes, frame.child_handles):
            children = tuple(
                ChildSlot(name=c.name, num_pb=c.num_pb, handle=h, extensions=c.extensions)
                for c, h in zip(mode_record.children, handles)
            )
            interconnects = tuple(
                Interconnect(
                    name=i.name, kind=i.kind, input=i.input, output=i.output,
                    pack_patterns=i.pack_patterns, timings=i.timings,
                    metadata=i.metadata, extensions=i.extensions,
                )
                for i in mode_record.interconnects
            )
            modes.append(Mode(
                name=mode_record.name,
                children=children,
                interconnects=interconnects,
                implicit=mode_record.implicit,
                metadata=mode_record.metadata,
                extensions=mode_record.extensions,
            ))
        return PBType(
            handle=frame.handle,
            name=frame.name,
            path=frame.path,
            definition=record.key,
            num_pb=frame.num_pb,
            blif_model=record.blif_model,
            pb_class=record.pb_class,
            ports=tuple(_to_port(p) for p in record.ports),
            modes=tuple(modes),
            timings=record.timings,
            metadata=record.metadata,
            extensions=record.extensions,
        )

    # --- Pass 3: cross-references ---

    @staticmethod
    def _build_tile(record: TileRecord, roots: Dict[str, int]) -> Tile:
        sub_tiles = []
        for sub_tile in record.sub_tiles:
            sites = []
            for site in sub_tile.sites:
                handle = roots.get(site.pb_type)
                if handle is None:
                    raise UnresolvedReferenceError(name=site.pb_type, kind="pb_type",
                                                   reference_chain=(record.name, sub_tile.name), line=sub_tile.line)
                sites.append(Site(pb_type=site.pb_type, handle=handle, pin_mapping=site.pin_mapping,
                                  extensions=site.extensions))
            sub_tiles.append(SubTile(
                name=sub_tile.name,
                capacity=sub_tile.capacity,
                sites=tuple(sites),
                ports=tuple(_to_port(p) for p in sub_tile.ports),
                fc=sub_tile.fc,
                pin_locations=sub_tile.pin_locations,
                implicit=sub_tile.implicit,
                extensions=sub_tile.extensions,
            ))
        return Tile(name=record.name, width=record.width, height=record.height, sub_tiles=tuple(sub_tiles),
                    area=record.area, extensions=record.extensions)

    @staticmethod
    def _build_layouts(records: ArchitectureRecords, tile_names: Set[str]) -> Tuple[Layout, ...]:
        layouts: List[Layout] = []
        for auto in records.auto_layouts:
            layouts.append(AutoLayout(aspect_ratio=auto.aspect_ratio, grid_locations=auto.grid_locations,
                                      extensions=auto.extensions))
        for fixed in records.fixed_layouts:
            layouts.append(FixedLayout(name=fixed.name, width=fixed.width, height=fixed.height,
                                       grid_locations=fixed.grid_locations, extensions=fixed.extensions))
        for layout in layouts:
            for location in layout.grid_locations:
                if location.tile != EMPTY_TILE_NAME and location.tile not in tile_names:
                    raise UnresolvedReferenceError(name=location.tile, kind="tile",
                                                   reference_chain=("layout", layout.name), line=location.line)
        return tuple(layouts)

    @staticmethod
    def _resolve_switch_references(records: ArchitectureRecords) -> None:
        switch_names = {s.name for s in records.switches}
        for segment in records.segments:
            for role, switch_name in segment.switches.items():
                if switch_name not in switch_names:
                    raise UnresolvedReferenceError(name=switch_name, kind="switch",
                                                   reference_chain=("segmentlist", segment.name, role))
        input_switch = records.device.input_switch_name
        if input_switch is not None and input_switch not in switch_names:
            raise UnresolvedReferenceError(name=input_switch, kind="switch",
                                           reference_chain=("device", "connection_block"))
        for direct in records.directs:
            if direct.switch_name is not None and direct.switch_name not in switch_names:
                raise UnresolvedReferenceError(name=direct.switch_name, kind="switch",
                                               reference_chain=("directlist", direct.name))
        for switch_block in records.switch_blocks:
            for wireconn in switch_block.wireconns:
                if wireconn.switch_override is not None and wireconn.switch_override not in switch_names:
                    raise UnresolvedReferenceError(name=wireconn.switch_override, kind="switch",
                                                   reference_chain=("switchblocklist", switch_block.name),
                                                   line=wireconn.line)

    @staticmethod
    def _resolve_models(records: ArchitectureRecords, arena: List[Optional[PBType]]) -> None:
        model_names = {m.name for m in records.models}
        seen_definitions: Set[str] = set()
        for node in arena:
            if node.definition in seen_definitions or not node.blif_model:
                continue
            seen_definitions.add(node.definition)
            blif_model = node.blif_model.strip()
            if blif_model in BUILTIN_BLIF_MODELS:
                continue
            if blif_model.startswith(".subckt"):
                model_name = blif_model[len(".subckt"):].strip()
                if model_name not in model_names:
                    raise UnresolvedReferenceError(name=model_name, kind="model", reference_chain=(node.path,))

# src/fpga_arch_core/layout/engine.py
"""
Computes renderer-agnostic geometry for one pb_type instance and its visible
subtree.

The engine runs in two steps. `_measure` sizes every visible instance bottom-up;
`_place` then assigns positions top-down, anchors pins on block boundaries and
builds the routing plan of every expanded block. Collapsed non-leaf children are
fixed placeholders, so cost is bounded by what is visible, not by hierarchy depth.

Placement rules:
- Inputs sit on the left edge, outputs on the right edge, clocks on the bottom
  edge; pins are spread evenly in port declaration order, then pin index.
- Children of an expanded block are grouped per child slot. A mode with a single
  child slot stacks it vertically; several slots are laid out left to right, each
  slot's instances stacked vertically.
- Mux instances and complete crossbars become hubs. The pins feeding a hub are
  ordered by the crossing-reduction heuristic in `crossings.py`.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from ..base_enums import InterconnectKind, PortDirection
from ..config import LayoutConfig
from ..interconnect.connectivity import ConnectivityGraph, Pin, ResolvedInterconnect
from ..interconnect.resolver import InterconnectResolver, child_label
from ..model.data_structures import Architecture, Mode, PBType
from .crossings import reduce_crossings
from .geometry import (
    BlockGeometry,
    ExpandState,
    Hub,
    PinAnchor,
    PinSide,
    Point,
    Rect,
    RoutingPlan,
    SegmentRole,
    WireSegment,
)

logger = logging.getLogger(__name__)

ConnectivityProvider = Callable[[PBType, Optional[str]], ConnectivityGraph]
Size = Tuple[float, float]


def instance_path_of(parent_path: str, slot_name: str, index: int) -> str:
    return f"{parent_path}.{child_label(slot_name, index)}"


def _pin_count(node: PBType, direction: PortDirection) -> int:
    return sum(p.width for p in node.ports if p.direction == direction)


class LayoutEngine:
    """
    Pure function of (architecture, node, mode, expand state, config). The engine
    keeps no state between calls other than its collaborators, so repeated calls
    with identical inputs produce identical geometry.
    """

    def __init__(
        self,
        architecture: Architecture,
        config: Optional[LayoutConfig] = None,
        connectivity: Optional[ConnectivityProvider] = None,
    ):
        self.architecture = architecture
        self.config = config or LayoutConfig()
        if connectivity is None:
            resolver = InterconnectResolver(architecture)
            connectivity = lambda node, mode: resolver.resolve(node, mode)
        self._connectivity = connectivity

    def layout(
        self,
        pb: Union[PBType, int, str],
        mode: Optional[str] = None,
        expand_state: Optional[ExpandState] = None,
    ) -> BlockGeometry:
        node = self.architecture.resolve_node(pb)
        state = expand_state or ExpandState()
        root_path = node.name
        if mode is not None:
            node.mode(mode)
            state = state.with_mode(root_path, mode)
        state = state.with_expanded(root_path)
        logger.debug(f"Laying out '{node.path}' with {len(state.expanded)} expanded instance(s).")
        sizes: Dict[str, Size] = {}
        self._measure(node, root_path, state, sizes)
        return self._place(node, root_path, 0.0, 0.0, state, sizes)

    # --- Measuring ---

    def _selected_mode(self, node: PBType, path: str, state: ExpandState) -> Optional[Mode]:
        if node.is_leaf:
            return None
        return node.mode(state.mode_for(path))

    def _measure(self, node: PBType, path: str, state: ExpandState, sizes: Dict[str, Size]) -> Size:
        cfg = self.config
        mode = self._selected_mode(node, path, state)
        children = mode.children if mode is not None else ()

        if children and not state.is_expanded(path):
            size = (cfg.collapsed_width, cfg.collapsed_height)
        elif not children:
            size = self._leaf_size(node)
        else:
            slot_sizes = [self._measure_slot(path, slot.name, slot.num_pb, self.architecture.pb_types[slot.handle],
                                             state, sizes) for slot in children]
            gaps = cfg.padding * (len(slot_sizes) - 1)
            if len(slot_sizes) == 1:
                total_w = max(w for w, _ in slot_sizes)
                total_h = sum(h for _, h in slot_sizes) + gaps
            else:
                total_w = sum(w for w, _ in slot_sizes) + gaps
                total_h = max(h for _, h in slot_sizes)
            max_pins = max(_pin_count(node, PortDirection.INPUT), _pin_count(node, PortDirection.OUTPUT))
            width = max(cfg.min_block_width, total_w + 2 * cfg.padding + self._gutter_width(mode))
            height = max(cfg.min_block_height,
                         cfg.header_height + 2 * cfg.padding + total_h,
                         (max_pins + 1) * cfg.pin_spacing)
            size = (width, height)
        sizes[path] = size
        return size

    def _measure_slot(self, parent_path: str, slot_name: str, num_pb: int, child: PBType,
                      state: ExpandState, sizes: Dict[str, Size]) -> Size:
        """Returns (column width, stacked height) of every instance of one child slot."""
        instance_sizes = [
            self._measure(child, instance_path_of(parent_path, slot_name, i), state, sizes) for i in range(num_pb)
        ]
        max_w = max(w for w, _ in instance_sizes)
        max_h = max(h for _, h in instance_sizes)
        return max_w, max_h * num_pb + self.config.padding * (num_pb - 1)

    def _leaf_size(self, node: PBType) -> Size:
        cfg = self.config
        inputs = _pin_count(node, PortDirection.INPUT)
        outputs = _pin_count(node, PortDirection.OUTPUT)
        clocks = _pin_count(node, PortDirection.CLOCK)
        max_side = max(inputs, outputs)
        pins_height = (max_side + 1) * cfg.pin_spacing if max_side else 0.0
        clock_width = (clocks + 1) * cfg.pin_spacing if clocks else 0.0
        return max(cfg.min_block_width, clock_width), max(cfg.min_block_height, cfg.header_height + pins_height)

    def _gutter_width(self, mode: Optional[Mode]) -> float:
        if mode is None or not mode.interconnects:
            return 0.0
        width = self.config.interconnect_width
        if any(ic.kind is InterconnectKind.COMPLETE for ic in mode.interconnects):
            width += self.config.crossbar_width
        return width

    # --- Placing ---

    def _place(self, node: PBType, path: str, x: float, y: float, state: ExpandState,
               sizes: Dict[str, Size]) -> BlockGeometry:
        cfg = self.config
        width, height = sizes[path]
        rect = Rect(x, y, width, height)
        mode = self._selected_mode(node, path, state)
        expanded = state.is_expanded(path)
        pins = self._anchor_pins(node, node.name, rect)

        children: List[BlockGeometry] = []
        routing = RoutingPlan()
        if mode is not None and expanded:
            origin_x = x + cfg.padding + self._gutter_width(mode) / 2
            origin_y = y + cfg.header_height + cfg.padding
            cursor_x, cursor_y = origin_x, origin_y
            vertical = len(mode.children) == 1
            for slot in mode.children:
                child = self.architecture.pb_types[slot.handle]
                instance_paths = [instance_path_of(path, slot.name, i) for i in range(slot.num_pb)]
                slot_w = max(sizes[p][0] for p in instance_paths)
                step_h = max(sizes[p][1] for p in instance_paths) + cfg.padding
                for i, instance_path in enumerate(instance_paths):
                    children.append(self._place(child, instance_path, cursor_x, cursor_y + i * step_h, state, sizes))
                if vertical:
                    cursor_y += step_h * slot.num_pb
                else:
                    cursor_x += slot_w + cfg.padding
            routing = self._route(node, mode, pins, children)

        return BlockGeometry(
            instance_path=path,
            pb_type=node.name,
            handle=node.handle,
            mode=mode.name if mode is not None else None,
            rect=rect,
            expanded=expanded,
            pins=pins,
            children=tuple(children),
            routing=routing,
        )

    def _anchor_pins(self, node: PBType, label: str, rect: Rect) -> Tuple[PinAnchor, ...]:
        header = self.config.header_height
        top = rect.y + header if rect.height > header else rect.y
        span = rect.bottom - top
        anchors: List[PinAnchor] = []
        for direction, side in ((PortDirection.INPUT, PinSide.LEFT), (PortDirection.OUTPUT, PinSide.RIGHT),
                                (PortDirection.CLOCK, PinSide.BOTTOM)):
            pins = [Pin(label, port.name, i) for port in node.ports if port.direction == direction
                    for i in range(port.width)]
            count = len(pins)
            for k, pin in enumerate(pins):
                if side is PinSide.BOTTOM:
                    position = Point(rect.x + (k + 1) * rect.width / (count + 1), rect.bottom)
                else:
                    edge_x = rect.x if side is PinSide.LEFT else rect.right
                    position = Point(edge_x, top + (k + 1) * span / (count + 1))
                anchors.append(PinAnchor(pin=pin, side=side, position=position))
        return tuple(anchors)

    # --- Routing ---

    def _route(self, node: PBType, mode: Mode, pins: Tuple[PinAnchor, ...],
               children: List[BlockGeometry]) -> RoutingPlan:
        connectivity = self._connectivity(node, mode.name)
        positions: Dict[Pin, Point] = {a.pin: a.position for a in pins}
        for child_geometry in children:
            # Child blocks label their own pins with their slot name; the parent scope uses `slot[i]`.
            label = child_geometry.instance_path.rsplit(".", 1)[-1]
            for anchor in child_geometry.pins:
                positions[Pin(label, anchor.pin.port, anchor.pin.index)] = anchor.position

        segments: List[WireSegment] = []
        hubs: List[Hub] = []
        for resolved in connectivity.interconnects:
            if resolved.kind is InterconnectKind.DIRECT:
                for connection in resolved.connections:
                    segments.append(WireSegment(
                        start=positions[connection.source], end=positions[connection.sink],
                        interconnect=resolved.name, kind=resolved.kind, role=SegmentRole.DIRECT,
                        source=connection.source, sink=connection.sink,
                    ))
            elif resolved.kind is InterconnectKind.MUX:
                for j, (sink, sources) in enumerate(resolved.mux_instances()):
                    hub, hub_segments = self._route_mux(resolved, j, sink, sources, positions)
                    hubs.append(hub)
                    segments.extend(hub_segments)
            else:
                hub, hub_segments = self._route_complete(resolved, positions)
                hubs.append(hub)
                segments.extend(hub_segments)
        logger.debug(f"Routed '{node.path}' mode '{mode.name}': {len(segments)} segment(s), {len(hubs)} hub(s).")
        return RoutingPlan(segments=tuple(segments), hubs=tuple(hubs))

    def _slot_column(self, x: float, center_y: float, count: int) -> Tuple[Point, ...]:
        spacing = self.config.mux_slot_spacing
        top = center_y - (count + 1) * spacing / 2
        return tuple(Point(x, top + (k + 1) * spacing) for k in range(count))

    def _order(self, pins: Tuple[Pin, ...], slots: Tuple[Point, ...], positions: Dict[Pin, Point]):
        """Assigns pins to slots; returns (ordered pins, crossings)."""
        anchors = np.array([[positions[p].x, positions[p].y] for p in pins], dtype=float).reshape(-1, 2)
        slot_array = np.array([[s.x, s.y] for s in slots], dtype=float).reshape(-1, 2)
        result = reduce_crossings(anchors, slot_array, max_passes=self.config.crossing_passes)
        ordered = tuple(pins[i] for i in result.order)
        return ordered, result.crossings

    def _route_mux(self, resolved: ResolvedInterconnect, index: int, sink: Pin, sources: Tuple[Pin, ...],
                   positions: Dict[Pin, Point]):
        cfg = self.config
        sink_pos = positions[sink]
        height = (len(sources) + 1) * cfg.mux_slot_spacing
        rect = Rect(sink_pos.x - 2 * cfg.mux_width, sink_pos.y - height / 2, cfg.mux_width, height)
        slots = self._slot_column(rect.x, sink_pos.y, len(sources))
        ordered, crossings = self._order(sources, slots, positions)
        output = Point(rect.right, sink_pos.y)

        segments = [
            WireSegment(start=positions[pin], end=slot, interconnect=resolved.name, kind=resolved.kind,
                        role=SegmentRole.MUX_INPUT, source=pin, sink=sink)
            for pin, slot in zip(ordered, slots)
        ]
        segments.append(WireSegment(start=output, end=sink_pos, interconnect=resolved.name, kind=resolved.kind,
                                    role=SegmentRole.MUX_OUTPUT, sink=sink))
        hub = Hub(interconnect=resolved.name, kind=resolved.kind, index=index, rect=rect,
                  inputs=slots, outputs=(output,), input_pins=ordered, output_pins=(sink,), crossings=crossings)
        return hub, segments

    def _route_complete(self, resolved: ResolvedInterconnect, positions: Dict[Pin, Point]):
        cfg = self.config
        sources = tuple(dict.fromkeys(resolved.source_pins))
        sinks = tuple(dict.fromkeys(resolved.sinks))
        source_xy = np.array([[positions[p].x, positions[p].y] for p in sources], dtype=float).reshape(-1, 2)
        sink_xy = np.array([[positions[p].x, positions[p].y] for p in sinks], dtype=float).reshape(-1, 2)
        center = (source_xy.mean(axis=0) + sink_xy.mean(axis=0)) / 2
        height = (max(len(sources), len(sinks)) + 1) * cfg.mux_slot_spacing
        rect = Rect(float(center[0]) - cfg.crossbar_width / 2, float(center[1]) - height / 2,
                    cfg.crossbar_width, height)
        input_slots = self._slot_column(rect.x, float(center[1]), len(sources))
        output_slots = self._slot_column(rect.right, float(center[1]), len(sinks))
        ordered_sources, in_crossings = self._order(sources, input_slots, positions)
        ordered_sinks, out_crossings = self._order(sinks, output_slots, positions)

        segments: List[WireSegment] = []
        for pin, slot in zip(ordered_sources, input_slots):
            segments.append(WireSegment(start=positions[pin], end=slot, interconnect=resolved.name,
                                        kind=resolved.kind, role=SegmentRole.FEEDER, source=pin))
        for pin, slot in zip(ordered_sinks, output_slots):
            segments.append(WireSegment(start=slot, end=positions[pin], interconnect=resolved.name,
                                        kind=resolved.kind, role=SegmentRole.DRAIN, sink=pin))
        in_slot = dict(zip(ordered_sources, input_slots))
        out_slot = dict(zip(ordered_sinks, output_slots))
        for connection in resolved.connections:
            segments.append(WireSegment(start=in_slot[connection.source], end=out_slot[connection.sink],
                                        interconnect=resolved.name, kind=resolved.kind, role=SegmentRole.CROSS,
                                        source=connection.source, sink=connection.sink))
        hub = Hub(interconnect=resolved.name, kind=resolved.kind, index=0, rect=rect,
                  inputs=input_slots, outputs=output_slots, input_pins=ordered_sources, output_pins=ordered_sinks,
                  crossings=in_crossings + out_crossings)
        return hub, segments

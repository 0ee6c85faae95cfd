# src/fpga_arch_core/interconnect/resolver.py
"""
Expands the symbolic port ranges of every interconnect into explicit pins and
checks the structural rules of each interconnect kind.

The scope of an interconnect declared in mode M of pb_type P is P itself plus the
immediate children of P under M. Inside its own interconnect P is named by its
declared name, never by the slot name of an instantiation, so a definition
resolves the same way wherever it is used. Pins are labelled by instance: the
parent uses its own name, and child instance `i` of slot `s` is `s[i]`.
"""
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from ..base_enums import InterconnectKind
from ..model.data_structures import Architecture, Interconnect, Mode, PBType
from ..model.exceptions import UnresolvedReferenceError
from .connectivity import (
    PARENT_OWNER,
    Connection,
    ConnectivityGraph,
    Pin,
    PinInfo,
    ResolvedInterconnect,
    build_graph,
)
from .exceptions import CardinalityError, MalformedPortReferenceError, PinRangeError, ScopeViolationError
from .port_ranges import PortRangeRef, format_range, parse_port_list, range_indices

logger = logging.getLogger(__name__)


def child_label(slot_name: str, index: int) -> str:
    return f"{slot_name}[{index}]"


class _Scope:
    """The instances visible to one (pb_type, mode) pair."""

    def __init__(self, architecture: Architecture, node: PBType, mode: Optional[Mode]):
        self.node = node
        self.mode = mode
        self.parent_name = node.definition.rsplit(".", 1)[-1]
        self.children: Dict[str, Tuple[int, PBType]] = {}
        if mode is not None:
            for slot in mode.children:
                self.children[slot.name] = (slot.num_pb, architecture.pb_types[slot.handle])

    def pins(self) -> Tuple[PinInfo, ...]:
        infos: List[PinInfo] = []
        for order, port in enumerate(self.node.ports):
            for i in range(port.width):
                infos.append(PinInfo(Pin(self.node.name, port.name, i), port.direction, PARENT_OWNER, 0, order))
        for slot_name, (num_pb, child) in self.children.items():
            for instance in range(num_pb):
                label = child_label(slot_name, instance)
                for order, port in enumerate(child.ports):
                    for i in range(port.width):
                        infos.append(PinInfo(Pin(label, port.name, i), port.direction, slot_name, instance, order))
        return tuple(infos)


class InterconnectResolver:
    """
    Resolves interconnect for nodes of one immutable `Architecture`. The resolver
    holds no mutable state, so one instance may serve concurrent callers.
    """

    def __init__(self, architecture: Architecture):
        self.architecture = architecture

    def resolve(self, pb: Union[PBType, int, str], mode: Optional[str] = None) -> ConnectivityGraph:
        node = self.architecture.resolve_node(pb)
        selected = None if node.is_leaf else node.mode(mode)
        scope = _Scope(self.architecture, node, selected)
        pins = scope.pins()
        interconnects = tuple(self._resolve_one(scope, ic) for ic in (selected.interconnects if selected else ()))
        graph = build_graph(pins, interconnects)
        logger.debug(f"Resolved {len(interconnects)} interconnect(s) for '{node.path}' in mode '{selected.name if selected else None}'.")
        return ConnectivityGraph(
            node_path=node.path,
            handle=node.handle,
            mode=selected.name if selected else None,
            pins=pins,
            interconnects=interconnects,
            graph=graph,
        )

    def validate_architecture(self) -> int:
        """
        Resolves every (definition, mode) pair once, raising the first violation.
        Returns the number of pairs checked.
        """
        logger.info("Validating interconnect of every pb_type definition and mode.")
        checked: Set[Tuple[str, str]] = set()
        for node in self.architecture.pb_types:
            for mode in node.modes:
                key = (node.definition, mode.name)
                if key in checked:
                    continue
                checked.add(key)
                scope = _Scope(self.architecture, node, mode)
                for interconnect in mode.interconnects:
                    self._resolve_one(scope, interconnect)
        logger.info(f"Interconnect validation complete: {len(checked)} (definition, mode) pair(s) checked.")
        return len(checked)

    # --- Expansion ---

    def _resolve_one(self, scope: _Scope, interconnect: Interconnect) -> ResolvedInterconnect:
        sources = tuple(self._expand_list(scope, interconnect, interconnect.input))
        sink_groups = self._expand_list(scope, interconnect, interconnect.output)
        sinks = tuple(p for group in sink_groups for p in group)
        source_pins = [p for group in sources for p in group]
        kind = interconnect.kind

        if kind is InterconnectKind.DIRECT:
            if len(source_pins) != len(sinks):
                raise CardinalityError(interconnect=interconnect.name, kind=kind.value,
                                       source_count=len(source_pins), sink_count=len(sinks),
                                       node_path=scope.node.path)
            connections = tuple(Connection(s, d) for s, d in zip(source_pins, sinks))
        elif kind is InterconnectKind.MUX:
            for group in sources:
                if len(group) != len(sinks):
                    raise CardinalityError(interconnect=interconnect.name, kind=kind.value,
                                           source_count=len(group), sink_count=len(sinks),
                                           node_path=scope.node.path,
                                           details="each mux input must match the width of the mux output")
            connections = tuple(
                Connection(group[j], sink, mux_index=j) for j, sink in enumerate(sinks) for group in sources
            )
        else:
            connections = tuple(Connection(s, d) for d in sinks for s in source_pins)

        return ResolvedInterconnect(
            name=interconnect.name,
            kind=kind,
            sources=sources,
            sinks=sinks,
            connections=connections,
        )

    def _expand_list(self, scope: _Scope, interconnect: Interconnect, text: str) -> List[Tuple[Pin, ...]]:
        try:
            refs = parse_port_list(text)
        except MalformedPortReferenceError as e:
            raise MalformedPortReferenceError(port=e.port, requested_range=e.requested_range, details=e.details,
                                              node_path=scope.node.path, interconnect=interconnect.name) from None
        return [self._expand(scope, interconnect, ref) for ref in refs]

    def _expand(self, scope: _Scope, interconnect: Interconnect, ref: PortRangeRef) -> Tuple[Pin, ...]:
        node_path = scope.node.path
        if ref.instance == scope.parent_name:
            target, num_instances, is_parent = scope.node, 1, True
        elif ref.instance in scope.children:
            num_instances, target = scope.children[ref.instance]
            is_parent = False
        else:
            raise ScopeViolationError(referencing_node=node_path, referenced_port=ref.token,
                                      interconnect=interconnect.name,
                                      mode=scope.mode.name if scope.mode else None)

        instances = range_indices(ref.instance_range, num_instances)
        if max(instances) >= num_instances:
            raise PinRangeError(port=ref.instance, requested_range=format_range(ref.instance_range),
                                actual_width=num_instances, node_path=node_path, interconnect=interconnect.name,
                                details="instance index out of range")

        port = target.port(ref.port)
        if port is None:
            raise UnresolvedReferenceError(name=ref.port, kind="port",
                                           reference_chain=(node_path, interconnect.name, ref.token))
        pins = range_indices(ref.pin_range, port.width)
        if max(pins) >= port.width:
            raise PinRangeError(port=f"{ref.instance}.{ref.port}", requested_range=format_range(ref.pin_range),
                                actual_width=port.width, node_path=node_path, interconnect=interconnect.name)

        return tuple(
            Pin(scope.node.name if is_parent else child_label(ref.instance, i), port.name, p)
            for i in instances
            for p in pins
        )

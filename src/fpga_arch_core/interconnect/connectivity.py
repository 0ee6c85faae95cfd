# src/fpga_arch_core/interconnect/connectivity.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple

import networkx as nx

from ..base_enums import InterconnectKind, PortDirection

logger = logging.getLogger(__name__)

PARENT_OWNER = ""


@dataclass(frozen=True, order=True)
class Pin:
    """One explicit pin: `instance` is the parent's name or a child label like `ble[3]`."""
    instance: str
    port: str
    index: int

    def __str__(self):
        return f"{self.instance}.{self.port}[{self.index}]"


@dataclass(frozen=True)
class PinInfo:
    """Static facts about a pin in scope. `owner` is the child slot name, or "" for the parent."""
    pin: Pin
    direction: PortDirection
    owner: str
    instance_index: int
    port_order: int


@dataclass(frozen=True)
class Connection:
    source: Pin
    sink: Pin
    mux_index: Optional[int] = None


@dataclass(frozen=True)
class ResolvedInterconnect:
    """
    An interconnect with every symbolic range expanded.

    `sources` keeps one tuple of pins per input token so mux inputs stay grouped;
    `sinks` is the concatenation of all output tokens. For a mux, instance `j`
    drives `sinks[j]` from pin `j` of every source token.
    """
    name: str
    kind: InterconnectKind
    sources: Tuple[Tuple[Pin, ...], ...]
    sinks: Tuple[Pin, ...]
    connections: Tuple[Connection, ...]

    @property
    def source_pins(self) -> Tuple[Pin, ...]:
        return tuple(p for group in self.sources for p in group)

    def mux_instances(self) -> Tuple[Tuple[Pin, Tuple[Pin, ...]], ...]:
        if self.kind is not InterconnectKind.MUX:
            return ()
        return tuple((sink, tuple(group[j] for group in self.sources)) for j, sink in enumerate(self.sinks))


@dataclass(frozen=True)
class ConnectivityGraph:
    """
    The pin-level topology of one pb_type node under one mode. It carries no
    geometry. `graph` is a frozen `networkx.MultiDiGraph` whose nodes are `Pin`s and
    whose edges carry `kind`, `interconnect` and `mux_index` attributes.
    """
    node_path: str
    handle: int
    mode: Optional[str]
    pins: Tuple[PinInfo, ...]
    interconnects: Tuple[ResolvedInterconnect, ...]
    graph: nx.MultiDiGraph = field(compare=False, repr=False)

    def pin_info(self, pin: Pin) -> PinInfo:
        return self.graph.nodes[pin]["info"]

    def drivers_of(self, pin: Pin) -> Tuple[Pin, ...]:
        return tuple(dict.fromkeys(src for src, _ in self.graph.in_edges(pin)))

    def fanout_of(self, pin: Pin) -> Tuple[Pin, ...]:
        return tuple(dict.fromkeys(dst for _, dst in self.graph.out_edges(pin)))

    def edges(self) -> Iterator[Tuple[Pin, Pin, Dict]]:
        return iter(self.graph.edges(data=True))

    def interconnect(self, name: str) -> ResolvedInterconnect:
        for resolved in self.interconnects:
            if resolved.name == name:
                return resolved
        raise KeyError(name)


def build_graph(pins: Tuple[PinInfo, ...], interconnects: Tuple[ResolvedInterconnect, ...]) -> nx.MultiDiGraph:
    graph = nx.MultiDiGraph()
    for info in pins:
        graph.add_node(info.pin, info=info)
    for resolved in interconnects:
        for k, connection in enumerate(resolved.connections):
            graph.add_edge(
                connection.source,
                connection.sink,
                key=f"{resolved.name}:{k}",
                kind=resolved.kind,
                interconnect=resolved.name,
                mux_index=connection.mux_index,
            )
    logger.debug(f"Built connectivity graph with {graph.number_of_nodes()} pin(s) and {graph.number_of_edges()} edge(s).")
    return nx.freeze(graph)

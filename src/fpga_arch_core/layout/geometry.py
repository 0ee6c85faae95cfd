# src/fpga_arch_core/layout/geometry.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Mapping, Optional, Tuple

from ..base_enums import InterconnectKind
from ..interconnect.connectivity import Pin

# All coordinates are logical units: origin top-left, x grows right, y grows down.


class PinSide(Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTTOM = "bottom"


class SegmentRole(Enum):
    DIRECT = "direct"
    MUX_INPUT = "mux_input"
    MUX_OUTPUT = "mux_output"
    FEEDER = "feeder"
    DRAIN = "drain"
    CROSS = "cross"


@dataclass(frozen=True, order=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, other: "Rect") -> bool:
        return (self.x <= other.x and self.y <= other.y
                and other.right <= self.right and other.bottom <= self.bottom)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)


@dataclass(frozen=True)
class PinAnchor:
    pin: Pin
    side: PinSide
    position: Point


@dataclass(frozen=True)
class WireSegment:
    start: Point
    end: Point
    interconnect: str
    kind: InterconnectKind
    role: SegmentRole
    source: Optional[Pin] = None
    sink: Optional[Pin] = None


@dataclass(frozen=True)
class Hub:
    """
    A synthetic routing node: one per mux instance, one per complete crossbar.
    `input_pins[k]` is the source pin routed to `inputs[k]`; likewise for outputs.
    """
    interconnect: str
    kind: InterconnectKind
    index: int
    rect: Rect
    inputs: Tuple[Point, ...]
    outputs: Tuple[Point, ...]
    input_pins: Tuple[Pin, ...]
    output_pins: Tuple[Pin, ...]
    crossings: int = 0


@dataclass(frozen=True)
class RoutingPlan:
    segments: Tuple[WireSegment, ...] = ()
    hubs: Tuple[Hub, ...] = ()

    def segments_for(self, interconnect: str) -> Tuple[WireSegment, ...]:
        return tuple(s for s in self.segments if s.interconnect == interconnect)


@dataclass(frozen=True)
class BlockGeometry:
    """
    The geometry of one pb_type instance. `children` holds every child instance of
    the selected mode (collapsed ones as fixed placeholders); `routing` is empty
    unless the block is expanded.
    """
    instance_path: str
    pb_type: str
    handle: int
    mode: Optional[str]
    rect: Rect
    expanded: bool
    pins: Tuple[PinAnchor, ...] = ()
    children: Tuple["BlockGeometry", ...] = ()
    routing: RoutingPlan = field(default_factory=RoutingPlan)

    def anchor(self, port: str, index: int) -> PinAnchor:
        for anchor in self.pins:
            if anchor.pin.port == port and anchor.pin.index == index:
                return anchor
        raise KeyError(f"{port}[{index}]")

    def walk(self) -> Iterator["BlockGeometry"]:
        """Yields this block and every nested child block, pre-order."""
        stack = [self]
        while stack:
            block = stack.pop()
            yield block
            stack.extend(reversed(block.children))

    def find(self, instance_path: str) -> Optional["BlockGeometry"]:
        return next((b for b in self.walk() if b.instance_path == instance_path), None)


@dataclass(frozen=True)
class ExpandState:
    """
    Presentation state supplied by the caller: which instance paths are expanded
    and which mode each instance shows. Instances without a mode entry show their
    first declared mode. The root instance is always expanded.
    """
    expanded: frozenset = frozenset()
    modes: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def create(cls, expanded: Iterable[str] = (), modes: Optional[Mapping[str, str]] = None) -> "ExpandState":
        return cls(expanded=frozenset(expanded), modes=tuple(sorted((modes or {}).items())))

    def mode_for(self, instance_path: str) -> Optional[str]:
        for path, mode in self.modes:
            if path == instance_path:
                return mode
        return None

    def is_expanded(self, instance_path: str) -> bool:
        return instance_path in self.expanded

    def with_expanded(self, *instance_paths: str) -> "ExpandState":
        return ExpandState(expanded=self.expanded | frozenset(instance_paths), modes=self.modes)

    def with_mode(self, instance_path: str, mode: str) -> "ExpandState":
        modes = dict(self.modes)
        modes[instance_path] = mode
        return ExpandState(expanded=self.expanded, modes=tuple(sorted(modes.items())))

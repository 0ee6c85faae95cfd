# src/fpga_arch_core/layout/__init__.py
from .crossings import CrossingResult, count_crossings, reduce_crossings
from .engine import LayoutEngine, instance_path_of
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

__all__ = [
    "CrossingResult", "count_crossings", "reduce_crossings",
    "LayoutEngine", "instance_path_of",
    "BlockGeometry", "ExpandState", "Hub", "PinAnchor", "PinSide", "Point", "Rect",
    "RoutingPlan", "SegmentRole", "WireSegment",
]

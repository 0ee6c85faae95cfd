# src/fpga_arch_core/grid/device_grid.py
"""
Turns a declared layout into concrete tile placements on a W x H device grid.

Grid locations are applied in declaration order. A placement fails when the tile
does not fit inside the grid or when any cell under its footprint already holds a
higher priority; on equal priority the later location wins. Every tile it overlaps
is removed whole, and the cells of the removed tiles lose their priority. `EMPTY`
behaves like a 1x1 tile that leaves its cell empty.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Tuple

import numpy as np

from ..base_enums import GridLocationKind
from ..model.data_structures import EMPTY_TILE_NAME, Architecture, AutoLayout, GridLocation, Layout
from .exceptions import GridDimensionError
from .expressions import evaluate_formula

logger = logging.getLogger(__name__)

_NO_PRIORITY = np.iinfo(np.int64).min
_FREE = -1

# Defaults used when a formula attribute is absent.
_FORMULA_DEFAULTS = {
    "startx": "0",
    "endx": "W - 1",
    "incrx": "w",
    "starty": "0",
    "endy": "H - 1",
    "incry": "h",
}


@dataclass(frozen=True)
class GridPlacement:
    """One tile instance anchored at (x, y), covering `width` x `height` cells."""
    tile: str
    x: int
    y: int
    width: int
    height: int
    priority: int

    def covers(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height


@dataclass(frozen=True)
class DeviceGrid:
    layout: str
    width: int
    height: int
    placements: Tuple[GridPlacement, ...]

    def tile_at(self, x: int, y: int) -> Optional[GridPlacement]:
        """Returns the placement covering cell (x, y), or None for an empty cell."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Cell ({x}, {y}) is outside the {self.width}x{self.height} grid.")
        for placement in self.placements:
            if placement.covers(x, y):
                return placement
        return None

    def placements_of(self, tile: str) -> Tuple[GridPlacement, ...]:
        return tuple(p for p in self.placements if p.tile == tile)

    def tile_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for placement in self.placements:
            counts[placement.tile] = counts.get(placement.tile, 0) + 1
        return counts

    def __iter__(self) -> Iterator[GridPlacement]:
        return iter(self.placements)


class _GridBuilder:
    """Mutable working state for one `build_device_grid` call."""

    def __init__(self, layout_name: str, width: int, height: int, tile_sizes: Mapping[str, Tuple[int, int]]):
        self.layout_name = layout_name
        self.width = width
        self.height = height
        self.tile_sizes = tile_sizes
        # Indexed [y, x].
        self.priorities = np.full((height, width), _NO_PRIORITY, dtype=np.int64)
        self.owners = np.full((height, width), _FREE, dtype=np.int64)
        self.placements: Dict[int, GridPlacement] = {}
        self._next_id = 0

    def size_of(self, tile: str) -> Tuple[int, int]:
        return self.tile_sizes.get(tile, (1, 1))

    def place(self, x: int, y: int, tile: str, priority: int) -> bool:
        w, h = self.size_of(tile)
        if x + w > self.width or y + h > self.height:
            return False
        footprint = (slice(y, y + h), slice(x, x + w))
        if priority < self.priorities[footprint].max():
            return False

        for owner in np.unique(self.owners[footprint]):
            if owner == _FREE:
                continue
            old = self.placements.pop(int(owner))
            old_area = (slice(old.y, old.y + old.height), slice(old.x, old.x + old.width))
            self.owners[old_area] = _FREE
            self.priorities[old_area] = _NO_PRIORITY

        if tile == EMPTY_TILE_NAME:
            self.priorities[y, x] = priority
            return True
        self.owners[footprint] = self._next_id
        self.priorities[footprint] = priority
        self.placements[self._next_id] = GridPlacement(tile=tile, x=x, y=y, width=w, height=h, priority=priority)
        self._next_id += 1
        return True

    def formula(self, location: GridLocation, attribute: str, tile_w: int, tile_h: int) -> Optional[int]:
        text = location.expressions.get(attribute, _FORMULA_DEFAULTS.get(attribute))
        if text is None:
            return None
        return evaluate_formula(text, self.width, self.height, tile_w, tile_h)

    def apply(self, location: GridLocation) -> None:
        tile, priority = location.tile, location.priority
        tile_w, tile_h = self.size_of(tile)
        kind = location.kind
        W, H = self.width, self.height

        if kind is GridLocationKind.FILL:
            for y in range(0, H, tile_h):
                self._sweep_row(y, tile, priority, tile_w)
        elif kind is GridLocationKind.PERIMETER:
            self._sweep_row(0, tile, priority, tile_w)
            if H > 1:
                self._sweep_row(H - 1, tile, priority, tile_w)
            self._sweep_col(0, tile, priority, tile_h)
            if W > 1:
                self._sweep_col(W - 1, tile, priority, tile_h)
        elif kind is GridLocationKind.CORNERS:
            for x, y in ((0, 0), (W - 1, 0), (0, H - 1), (W - 1, H - 1)):
                self.place(x, y, tile, priority)
        elif kind is GridLocationKind.SINGLE:
            x = self.formula(location, "x", tile_w, tile_h)
            y = self.formula(location, "y", tile_w, tile_h)
            if x is not None and y is not None and x < W and y < H:
                self.place(x, y, tile, priority)
        elif kind is GridLocationKind.COL:
            start_x = self.formula(location, "startx", tile_w, tile_h)
            start_y = self.formula(location, "starty", tile_w, tile_h)
            if start_x is None or start_y is None:
                return
            incr_y = self.formula(location, "incry", tile_w, tile_h) or tile_h
            repeat_x = self.formula(location, "repeatx", tile_w, tile_h) or W
            for x in range(start_x, W, repeat_x):
                for y in range(start_y, H, incr_y):
                    self.place(x, y, tile, priority)
        elif kind is GridLocationKind.ROW:
            start_x = self.formula(location, "startx", tile_w, tile_h)
            start_y = self.formula(location, "starty", tile_w, tile_h)
            if start_x is None or start_y is None:
                return
            incr_x = self.formula(location, "incrx", tile_w, tile_h) or tile_w
            repeat_y = self.formula(location, "repeaty", tile_w, tile_h) or H
            for y in range(start_y, H, repeat_y):
                for x in range(start_x, W, incr_x):
                    self.place(x, y, tile, priority)
        elif kind is GridLocationKind.REGION:
            start_x = self.formula(location, "startx", tile_w, tile_h)
            end_x = self.formula(location, "endx", tile_w, tile_h)
            start_y = self.formula(location, "starty", tile_w, tile_h)
            end_y = self.formula(location, "endy", tile_w, tile_h)
            if None in (start_x, end_x, start_y, end_y):
                return
            incr_x = self.formula(location, "incrx", tile_w, tile_h) or max(1, end_x - start_x + 1)
            incr_y = self.formula(location, "incry", tile_w, tile_h) or max(1, end_y - start_y + 1)
            for y in range(start_y, min(end_y, H - 1) + 1, incr_y):
                for x in range(start_x, min(end_x, W - 1) + 1, incr_x):
                    self.place(x, y, tile, priority)

    def _sweep_row(self, y: int, tile: str, priority: int, step: int) -> None:
        x = 0
        while x < self.width:
            x += step if self.place(x, y, tile, priority) else 1

    def _sweep_col(self, x: int, tile: str, priority: int, step: int) -> None:
        y = 0
        while y < self.height:
            y += step if self.place(x, y, tile, priority) else 1

    def result(self) -> DeviceGrid:
        return DeviceGrid(
            layout=self.layout_name,
            width=self.width,
            height=self.height,
            placements=tuple(sorted(self.placements.values(), key=lambda p: (p.y, p.x))),
        )


def build_device_grid(
    architecture: Architecture,
    layout_name: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> DeviceGrid:
    """
    Computes the tile placements of layout `layout_name`. An auto layout needs a
    caller-supplied width and/or height; a fixed layout uses its declared size and
    ignores both arguments.
    """
    layout: Layout = architecture.layout(layout_name)
    if isinstance(layout, AutoLayout):
        try:
            grid_w, grid_h = layout.dimensions(width, height)
        except ValueError as e:
            raise GridDimensionError(layout=layout_name, width=width, height=height, details=str(e)) from e
    else:
        grid_w, grid_h = layout.dimensions()

    tile_sizes = {t.name: (t.width, t.height) for t in architecture.tiles}
    builder = _GridBuilder(layout.name, grid_w, grid_h, tile_sizes)
    logger.info(f"Building device grid for layout '{layout.name}' ({grid_w}x{grid_h}, {len(layout.grid_locations)} location rule(s)).")
    for location in layout.grid_locations:
        before = len(builder.placements)
        builder.apply(location)
        logger.debug(f"Applied {location.kind.value} '{location.tile}' (priority {location.priority}): {len(builder.placements) - before:+d} tile(s).")
    grid = builder.result()
    logger.info(f"Device grid '{layout.name}' holds {len(grid.placements)} placement(s).")
    return grid

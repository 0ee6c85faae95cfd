# src/fpga_arch_core/grid/__init__.py
from .device_grid import DeviceGrid, GridPlacement, build_device_grid
from .exceptions import GridDimensionError, GridExpressionError
from .expressions import evaluate_formula, parse_formula

__all__ = [
    "DeviceGrid", "GridPlacement", "build_device_grid",
    "GridDimensionError", "GridExpressionError",
    "evaluate_formula", "parse_formula",
]

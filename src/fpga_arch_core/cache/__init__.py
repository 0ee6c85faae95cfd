# src/fpga_arch_core/cache/__init__.py
"""
Exposes the public interface of the cache package.
"""
from .service import GeometryCache
from .keys import create_connectivity_key, create_geometry_key, create_grid_key

__all__ = [
    "GeometryCache",
    "create_connectivity_key",
    "create_geometry_key",
    "create_grid_key",
]

# src/fpga_arch_core/cache/keys.py
"""
Builds the cache keys for derived results of one immutable `Architecture`.

A key captures every input that can change the result and nothing else. Keys are
plain tuples led by a namespace string, so results of different kinds never collide
inside one cache.
"""
from dataclasses import astuple
from typing import Optional, Tuple

from ..config import LayoutConfig
from ..layout.geometry import ExpandState
from ..model.data_structures import PBType


def create_connectivity_key(node: PBType, mode: Optional[str]) -> Tuple:
    """
    Connectivity depends on the node's definition and mode only, so two arena nodes
    instantiated from the same definition share one entry. The node path is kept
    because the resolved graph reports it.
    """
    return ("connectivity", node.definition, node.path, mode)


def create_geometry_key(node: PBType, mode: Optional[str], expand_state: ExpandState,
                        config: LayoutConfig) -> Tuple:
    """
    Geometry depends on the exact node (its instance path labels the output), the
    root mode, the full expand state and every layout constant. Expanded paths are
    sorted so the key is independent of set iteration order.
    """
    return (
        "geometry",
        node.handle,
        mode,
        tuple(sorted(expand_state.expanded)),
        expand_state.modes,
        astuple(config),
    )


def create_grid_key(layout_name: str, width: Optional[int], height: Optional[int]) -> Tuple:
    return ("device_grid", layout_name, width, height)

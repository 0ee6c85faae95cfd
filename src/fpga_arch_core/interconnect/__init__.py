# src/fpga_arch_core/interconnect/__init__.py
from .connectivity import Connection, ConnectivityGraph, Pin, PinInfo, ResolvedInterconnect
from .exceptions import CardinalityError, MalformedPortReferenceError, PinRangeError, ScopeViolationError
from .port_ranges import PortRangeRef, parse_port_list, parse_port_range
from .resolver import InterconnectResolver

__all__ = [
    "Connection", "ConnectivityGraph", "Pin", "PinInfo", "ResolvedInterconnect",
    "CardinalityError", "MalformedPortReferenceError", "PinRangeError", "ScopeViolationError",
    "PortRangeRef", "parse_port_list", "parse_port_range",
    "InterconnectResolver",
]

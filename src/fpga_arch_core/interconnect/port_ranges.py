# src/fpga_arch_core/interconnect/port_ranges.py
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .exceptions import MalformedPortReferenceError

logger = logging.getLogger(__name__)

_NAME = r"[^\s.\[\]:]+"
_RANGE = r"(?:\[(?P<{0}_a>\d+)(?::(?P<{0}_b>\d+))?\])?"
PORT_RANGE_REGEX = re.compile(
    rf"^(?P<instance>{_NAME}){_RANGE.format('inst')}\.(?P<port>{_NAME}){_RANGE.format('pin')}$"
)

IndexRange = Tuple[int, int]


@dataclass(frozen=True)
class PortRangeRef:
    """
    One parsed `instance[a:b].port[c:d]` token. Ranges keep the direction they
    were written in, so `[3:0]` is `(3, 0)` and expands 3, 2, 1, 0; `[n]` is
    `(n, n)`. None means "the whole range", taken in ascending order.
    """
    token: str
    instance: str
    instance_range: Optional[IndexRange]
    port: str
    pin_range: Optional[IndexRange]


def _bounds(match: re.Match, prefix: str) -> Optional[IndexRange]:
    a = match.group(f"{prefix}_a")
    if a is None:
        return None
    b = match.group(f"{prefix}_b")
    return int(a), int(b if b is not None else a)


def parse_port_range(token: str) -> PortRangeRef:
    match = PORT_RANGE_REGEX.match(token)
    if match is None:
        raise MalformedPortReferenceError(port=token, requested_range=token,
                                          details="expected 'instance[range].port[range]'")
    return PortRangeRef(
        token=token,
        instance=match.group("instance"),
        instance_range=_bounds(match, "inst"),
        port=match.group("port"),
        pin_range=_bounds(match, "pin"),
    )


def parse_port_list(text: str) -> List[PortRangeRef]:
    """Splits a whitespace-separated list of tokens, preserving their order."""
    tokens = text.split()
    if not tokens:
        raise MalformedPortReferenceError(port="", requested_range=text, details="no port reference given")
    return [parse_port_range(t) for t in tokens]


def range_indices(bounds: Optional[IndexRange], size: int) -> range:
    """Indices selected by `bounds` in written order; all of `size` when None."""
    if bounds is None:
        return range(size)
    first, last = bounds
    step = -1 if first > last else 1
    return range(first, last + step, step)


def format_range(bounds: Optional[IndexRange]) -> str:
    if bounds is None:
        return "[*]"
    first, last = bounds
    return f"[{first}]" if first == last else f"[{first}:{last}]"

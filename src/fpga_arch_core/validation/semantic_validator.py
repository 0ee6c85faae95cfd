# src/fpga_arch_core/validation/semantic_validator.py
import logging
from collections import defaultdict
from typing import Dict, List, Set, Tuple

from ..base_enums import InterconnectKind, PortDirection
from ..interconnect.connectivity import PARENT_OWNER, ConnectivityGraph
from ..interconnect.resolver import InterconnectResolver
from ..model.data_structures import EMPTY_TILE_NAME, Architecture
from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import SemanticIssueCode

logger = logging.getLogger(__name__)


class SemanticValidator:
    """
    Performs advisory checks on an architecture that has already loaded.

    Loading enforces every hard invariant; the findings here are legal but usually
    unintended (an input left floating, a tile no layout ever places). Nothing is
    raised: the caller decides what to do with the returned issues.

    Each (definition, mode) pair is checked once, however many times the definition
    is instantiated in the hierarchy.
    """

    def __init__(self, architecture: Architecture):
        if not isinstance(architecture, Architecture):
            raise TypeError("SemanticValidator requires a built Architecture object.")
        self.architecture = architecture
        self.issues: List[ValidationIssue] = []
        self._resolver = InterconnectResolver(architecture)
        self._validated_modes: Set[Tuple[str, str]] = set()

    def validate(self) -> List[ValidationIssue]:
        self.issues = []
        self._validated_modes.clear()
        logger.info("Starting advisory validation of the architecture...")

        for node in self.architecture.pb_types:
            for mode in node.modes:
                key = (node.definition, mode.name)
                if key in self._validated_modes:
                    continue
                self._validated_modes.add(key)
                graph = self._resolver.resolve(node, mode.name)
                self._check_undriven_inputs(graph)
                self._check_multi_driven_pins(graph)
        self._check_unplaced_tiles()
        self._check_unused_roots()

        if self.issues:
            warnings = sum(1 for i in self.issues if i.level == ValidationIssueLevel.WARNING)
            infos = sum(1 for i in self.issues if i.level == ValidationIssueLevel.INFO)
            logger.info(f"Validation complete. Found: {warnings} warnings, {infos} info messages.")
        else:
            logger.info("Validation complete with no issues found.")
        return self.issues

    def _add_issue(self, level: ValidationIssueLevel, code_enum: SemanticIssueCode,
                   node_path: str = None, mode: str = None, **kwargs):
        self.issues.append(ValidationIssue(
            level=level, code=code_enum.code, message=code_enum.format_message(**kwargs),
            node_path=node_path, mode=mode, details=kwargs,
        ))

    # --- Interconnect checks ---

    def _check_undriven_inputs(self, graph: ConnectivityGraph):
        for info in graph.pins:
            if info.owner == PARENT_OWNER or info.direction == PortDirection.OUTPUT:
                continue
            if graph.graph.in_degree(info.pin) == 0:
                self._add_issue(ValidationIssueLevel.WARNING, SemanticIssueCode.IC_UNDRIVEN_INPUT,
                                node_path=graph.node_path, mode=graph.mode,
                                pin=str(info.pin), instance=info.pin.instance)

    def _check_multi_driven_pins(self, graph: ConnectivityGraph):
        """
        A pin may be driven by one direct connection or by one mux/crossbar. Every
        direct edge counts as a driver of its own; each mux or crossbar counts once.
        """
        drivers: Dict[object, Set[str]] = defaultdict(set)
        for source, sink, data in graph.edges():
            if data["kind"] is InterconnectKind.DIRECT:
                drivers[sink].add(f"{data['interconnect']}:{source}")
            else:
                drivers[sink].add(data["interconnect"])
        for sink in sorted(drivers):
            entries = drivers[sink]
            if len(entries) > 1:
                names = sorted({entry.split(":", 1)[0] for entry in entries})
                self._add_issue(ValidationIssueLevel.WARNING, SemanticIssueCode.IC_MULTI_DRIVEN,
                                node_path=graph.node_path, mode=graph.mode,
                                pin=str(sink), driver_count=len(entries), interconnects=", ".join(names))

    # --- Tile checks ---

    def _check_unplaced_tiles(self):
        placed = {loc.tile for layout in self.architecture.layouts for loc in layout.grid_locations}
        placed.discard(EMPTY_TILE_NAME)
        for tile in self.architecture.tiles:
            if tile.name not in placed:
                self._add_issue(ValidationIssueLevel.INFO, SemanticIssueCode.TILE_UNPLACED, tile=tile.name)

    def _check_unused_roots(self):
        sited = {site.pb_type for tile in self.architecture.tiles for st in tile.sub_tiles for site in st.sites}
        for name in self.architecture.roots:
            if name not in sited:
                self._add_issue(ValidationIssueLevel.INFO, SemanticIssueCode.PB_UNUSED_ROOT,
                                node_path=name, pb_type=name)

# src/fpga_arch_core/__init__.py
import logging
from typing import Optional

from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("FPGA Architecture Core package initialized.")

from .base_enums import GridLocationKind, InterconnectKind, LayoutKind, PortDirection
from .config import BuildConfig, ConfigError, CoreConfig, LayoutConfig, load_config
from .errors import ArchError, Diagnosable, DiagnosableError
from .ingest import ArchitectureSourceError, MalformedXmlError, XmlTreeReader
from .ingest.xml_tree import ArchitectureSource
from .schema import SchemaError, SchemaMapper
from .model import (
    Architecture,
    ArchitectureBuilder,
    CyclicHierarchyError,
    DuplicateNameError,
    HierarchyLimitError,
    UnresolvedReferenceError,
)
from .interconnect import (
    CardinalityError,
    ConnectivityGraph,
    InterconnectResolver,
    MalformedPortReferenceError,
    Pin,
    PinRangeError,
    ScopeViolationError,
)
from .layout import BlockGeometry, ExpandState, LayoutEngine
from .grid import DeviceGrid, GridPlacement, build_device_grid
from .query import ArchitectureQuery
from .validation import SemanticValidator, ValidationIssue


def load_architecture(source: ArchitectureSource, config: Optional[CoreConfig] = None) -> Architecture:
    """
    Parses an architecture description into a validated, immutable `Architecture`.

    `source` is a file path, raw bytes or a binary stream. Every stage either
    returns its complete result or raises one of the typed errors of the
    `DiagnosableError` family; nothing partial is ever returned.
    """
    config = config or CoreConfig()
    root = XmlTreeReader().read(source)
    records = SchemaMapper().map(root)
    architecture = ArchitectureBuilder(config.build).build(records)
    InterconnectResolver(architecture).validate_architecture()
    return architecture


__all__ = [
    # Entry point
    "load_architecture",
    # Configuration
    "BuildConfig", "ConfigError", "CoreConfig", "LayoutConfig", "load_config",
    # Enumerations
    "GridLocationKind", "InterconnectKind", "LayoutKind", "PortDirection",
    # Pipeline stages
    "XmlTreeReader", "SchemaMapper", "ArchitectureBuilder", "InterconnectResolver", "LayoutEngine",
    # Model and derived data
    "Architecture", "ConnectivityGraph", "Pin", "BlockGeometry", "ExpandState",
    "DeviceGrid", "GridPlacement", "build_device_grid",
    # Facades
    "ArchitectureQuery", "SemanticValidator", "ValidationIssue",
    # Errors (Actionable Diagnostics)
    "ArchError", "Diagnosable", "DiagnosableError",
    "ArchitectureSourceError", "MalformedXmlError", "SchemaError",
    "CyclicHierarchyError", "DuplicateNameError", "HierarchyLimitError", "UnresolvedReferenceError",
    "CardinalityError", "MalformedPortReferenceError", "PinRangeError", "ScopeViolationError",
]

# src/fpga_arch_core/ingest/__init__.py
from .xml_tree import XmlElement, XmlTreeReader
from .exceptions import ArchitectureSourceError, MalformedXmlError

__all__ = [
    "XmlElement",
    "XmlTreeReader",
    "ArchitectureSourceError",
    "MalformedXmlError",
]

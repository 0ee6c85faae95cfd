# src/fpga_arch_core/ingest/xml_tree.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple, Union

from lxml import etree

from .exceptions import ArchitectureSourceError, MalformedXmlError

logger = logging.getLogger(__name__)

ArchitectureSource = Union[str, os.PathLike, bytes, bytearray, Any]


@dataclass(frozen=True)
class XmlElement:
    """
    A generic, schema-agnostic labelled tree node.

    Attribute order is the document order. `text` is None when the element holds
    only whitespace; comments and processing instructions never appear.
    """
    tag: str
    attributes: Mapping[str, str]
    children: Tuple["XmlElement", ...] = ()
    text: Optional[str] = None
    line: Optional[int] = None

    def iter_children(self, tag: Optional[str] = None) -> Iterator["XmlElement"]:
        for child in self.children:
            if tag is None or child.tag == tag:
                yield child

    def first_child(self, tag: str) -> Optional["XmlElement"]:
        return next(self.iter_children(tag), None)


class XmlTreeReader:
    """
    Turns raw architecture-description XML into an `XmlElement` tree.
    No semantic validation happens here; unknown elements and attributes survive.
    """

    def __init__(self):
        # Entity expansion and network fetches are disabled so hostile documents
        # cannot blow up memory or reach out of the process.
        self._parser_options = dict(
            remove_comments=True,
            remove_pis=True,
            resolve_entities=False,
            no_network=True,
            huge_tree=False,
        )

    def read(self, source: ArchitectureSource) -> XmlElement:
        """Reads a path, raw bytes or a binary stream and returns the root element."""
        data, source_label = self._load_bytes(source)
        logger.info(f"Ingesting architecture XML from {source_label} ({len(data)} bytes).")
        return self.read_bytes(data, source_label)

    def read_bytes(self, data: bytes, source_label: str = "<bytes>") -> XmlElement:
        if not data.strip():
            raise MalformedXmlError(details="Document is empty.", line=1, column=1,
                                    byte_offset=0, source=source_label)
        parser = etree.XMLParser(**self._parser_options)
        try:
            root = etree.fromstring(data, parser)
        except etree.XMLSyntaxError as e:
            line = e.lineno or 1
            column = e.offset or 1
            raise MalformedXmlError(
                details=str(e.msg or e),
                line=line,
                column=column,
                byte_offset=_byte_offset(data, line, column),
                source=source_label,
            ) from e
        if root is None:
            raise MalformedXmlError(details="Document has no root element.", line=1, column=1,
                                    byte_offset=0, source=source_label)
        tree = _convert(root)
        logger.debug(f"Ingested root element <{tree.tag}> with {len(tree.children)} child element(s).")
        return tree

    def _load_bytes(self, source: ArchitectureSource) -> Tuple[bytes, str]:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source), "<bytes>"
        if isinstance(source, (str, os.PathLike)):
            path = Path(source)
            if not path.is_file():
                raise ArchitectureSourceError(details=f"Architecture file not found at path: {path}", source=str(path))
            try:
                data = path.read_bytes()
            except OSError as e:
                raise ArchitectureSourceError(details=f"Failed to read file: {e}", source=str(path)) from e
            return data, str(path)
        if hasattr(source, "read"):
            label = str(getattr(source, "name", "<stream>"))
            try:
                data = source.read()
            except OSError as e:
                raise ArchitectureSourceError(details=f"Failed to read stream: {e}", source=label) from e
            if isinstance(data, str):
                data = data.encode("utf-8")
            return bytes(data), label
        raise TypeError(f"Unsupported architecture source type: {type(source).__name__}")


def _local_name(name: str) -> str:
    return etree.QName(name).localname if name.startswith("{") else name


def _attributes(element) -> dict:
    """
    Attributes keyed by local name. A namespaced attribute whose local name is
    shared with another attribute of the same element keeps its `{uri}name` key.
    """
    counts: dict = {}
    for key in element.attrib.keys():
        local = _local_name(key)
        counts[local] = counts.get(local, 0) + 1
    attributes = {}
    for key, value in element.attrib.items():
        local = _local_name(key)
        attributes[local if counts[local] == 1 or local == key else key] = value
    return attributes


def _convert(element) -> XmlElement:
    children = []
    text_parts = [element.text or ""]
    for child in element:
        # Unresolved entity references show up as non-element nodes.
        if isinstance(child.tag, str):
            children.append(_convert(child))
        text_parts.append(child.tail or "")
    text = "".join(text_parts).strip() or None
    return XmlElement(
        tag=_local_name(element.tag),
        attributes=MappingProxyType(_attributes(element)),
        children=tuple(children),
        text=text,
        line=element.sourceline,
    )


def _byte_offset(data: bytes, line: int, column: int) -> int:
    """Converts a 1-based (line, column) position into a 0-based byte offset."""
    offset = 0
    for index, raw_line in enumerate(data.split(b"\n"), start=1):
        if index == line:
            return min(offset + max(column - 1, 0), len(data))
        offset += len(raw_line) + 1
    return len(data)

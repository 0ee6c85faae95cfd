# src/fpga_arch_core/schema/mapper.py
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..base_enums import GridLocationKind, InterconnectKind, PortDirection
from ..ingest.xml_tree import XmlElement
from .exceptions import SchemaError
from .records import (
    ArchitectureRecords,
    AutoLayoutRecord,
    ChannelDistributionRecord,
    ChildRefRecord,
    DeviceRecord,
    DirectRecord,
    Extensions,
    FcRecord,
    FixedLayoutRecord,
    GridLocationRecord,
    InterconnectRecord,
    Metadata,
    MetaRecord,
    ModelPortRecord,
    ModelRecord,
    ModeRecord,
    PackPatternRecord,
    PBTypeRecord,
    PinLocationsRecord,
    PinLocRecord,
    PortRecord,
    SegmentRecord,
    SiteRecord,
    SubTileRecord,
    SwitchBlockRecord,
    SwitchFuncRecord,
    SwitchPointRecord,
    SwitchRecord,
    TileRecord,
    TimingRecord,
    WireConnRecord,
)
from .rules import ELEMENT_SCHEMAS, create_validators

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("tiles", "layout", "complexblocklist")
OPTIONAL_SECTIONS = ("models", "device", "switchlist", "segmentlist", "directlist", "switchblocklist")

PORT_TAGS = {"input": PortDirection.INPUT, "output": PortDirection.OUTPUT, "clock": PortDirection.CLOCK}
TIMING_TAGS = ("delay_constant", "delay_matrix", "T_setup", "T_hold", "T_clock_to_Q")
_TIMING_SCHEMAS = {
    "delay_constant": "delay_constant",
    "delay_matrix": "delay_matrix",
    "T_setup": "t_setup_hold",
    "T_hold": "t_setup_hold",
    "T_clock_to_Q": "t_clock_to_q",
}
_TIMING_PORT_KEYS = ("in_port", "out_port", "port", "clock")
_TIMING_VALUE_KEYS = ("max", "min", "value")
SEGMENT_SWITCH_TAGS = ("mux", "mux_inc", "mux_dec", "wire_switch", "opin_switch")
SWITCH_VALUE_KEYS = ("R", "Cin", "Cout", "Cinternal", "Tdel", "mux_trans_size", "power_buf_size")


def _freeze(mapping: Dict[str, Any]):
    return MappingProxyType(dict(mapping))


def _parse_switchpoints(text: str) -> Tuple[int, ...]:
    return tuple(int(token) for token in text.split(","))


class SchemaMapper:
    """
    Walks a generic `XmlElement` tree and produces the flat, unresolved
    `ArchitectureRecords` IR. Its sole responsibility is vocabulary: which attributes
    an element must carry, their types, and their defaults. Cross-references are
    left as plain names for the ArchitectureBuilder.
    """

    def __init__(self):
        self._validators = create_validators()
        logger.info("SchemaMapper initialized with per-element attribute validation rules.")

    def map(self, root: XmlElement) -> ArchitectureRecords:
        if root.tag != "architecture":
            raise SchemaError(element=root.tag, details="Root element must be <architecture>.",
                              element_path=root.tag, line=root.line)
        logger.info("Mapping architecture document onto domain records.")

        sections: Dict[str, XmlElement] = {}
        unknown: List[XmlElement] = []
        for child in root.children:
            if child.tag in REQUIRED_SECTIONS or child.tag in OPTIONAL_SECTIONS:
                if child.tag in sections:
                    raise SchemaError(element="architecture", details=f"Duplicate <{child.tag}> section.",
                                      element_path="architecture", line=child.line)
                sections[child.tag] = child
            else:
                unknown.append(child)
        for required in REQUIRED_SECTIONS:
            if required not in sections:
                raise SchemaError(element="architecture", details=f"Missing required child element <{required}>.",
                                  element_path="architecture", line=root.line)

        models = self._map_models(sections.get("models"), unknown)
        tiles = self._map_tiles(sections["tiles"], unknown)
        auto_layouts, fixed_layouts, layout_extensions = self._map_layouts(sections["layout"])
        device = self._map_device(sections.get("device"))
        switches = self._map_switches(sections.get("switchlist"), unknown)
        segments = self._map_segments(sections.get("segmentlist"), unknown)
        directs = self._map_directs(sections.get("directlist"), unknown)
        switch_blocks = self._map_switch_blocks(sections.get("switchblocklist"), unknown)
        pb_types = self._map_complex_blocks(sections["complexblocklist"], unknown)

        records = ArchitectureRecords(
            models=models,
            tiles=tiles,
            auto_layouts=auto_layouts,
            fixed_layouts=fixed_layouts,
            device=device,
            switches=switches,
            segments=segments,
            directs=directs,
            switch_blocks=switch_blocks,
            pb_types=pb_types,
            layout_extensions=layout_extensions,
            extensions=Extensions(attributes=MappingProxyType(dict(root.attributes)), elements=tuple(unknown)),
        )
        logger.info(
            f"Mapped {len(tiles)} tile(s), {len(pb_types)} pb_type body(ies), "
            f"{len(auto_layouts) + len(fixed_layouts)} layout(s); {len(unknown)} unrecognised element(s) preserved."
        )
        return records

    # --- Attribute handling ---

    def _validated(self, element: XmlElement, schema_name: str, path: str) -> Tuple[Dict[str, Any], Dict[str, str]]:
        """Validates and coerces an element's attributes; returns (known values, unknown attributes)."""
        schema = ELEMENT_SCHEMAS[schema_name]
        validator = self._validators[schema_name]
        if not validator.validate(dict(element.attributes)):
            errors = validator.errors
            # Report the first failing attribute in document order, then schema order.
            ordered = [a for a in element.attributes if a in errors] + [a for a in schema if a in errors and a not in element.attributes]
            ordered = ordered or sorted(errors)
            attribute = ordered[0]
            messages = errors[attribute]
            details = "; ".join(str(m) for m in messages) if isinstance(messages, list) else str(messages)
            raw_value = element.attributes.get(attribute)
            if raw_value is None:
                details = f"Missing required attribute '{attribute}'."
            raise SchemaError(element=element.tag, attribute=attribute, raw_value=raw_value,
                              details=details, element_path=path, line=element.line)
        document = validator.document
        known = {key: document[key] for key in schema if key in document}
        unknown = {key: value for key, value in element.attributes.items() if key not in schema}
        return known, unknown

    @staticmethod
    def _extensions(attributes: Dict[str, str], elements: Iterable[XmlElement] = ()) -> Extensions:
        elements = tuple(elements)
        if not attributes and not elements:
            return Extensions()
        return Extensions(attributes=_freeze(attributes), elements=elements)

    @staticmethod
    def _retain(element: XmlElement, extra: Dict[str, str], leftovers: List[XmlElement],
                known_children: Iterable[str] = ()) -> None:
        """Keeps `element` verbatim among `leftovers` when it carries content no record field holds."""
        known_children = set(known_children)
        if extra or any(child.tag not in known_children for child in element.children):
            leftovers.append(element)

    @staticmethod
    def _missing_child(element: XmlElement, child_tag: str, path: str) -> SchemaError:
        return SchemaError(element=element.tag, details=f"Missing required child element <{child_tag}>.",
                           element_path=path, line=element.line)

    def _single_child(self, element: XmlElement, tag: str, path: str) -> Optional[XmlElement]:
        matches = list(element.iter_children(tag))
        if len(matches) > 1:
            raise SchemaError(element=element.tag, details=f"Duplicate <{tag}> child element.",
                              element_path=path, line=matches[1].line)
        return matches[0] if matches else None

    # --- Shared sub-elements ---

    def _map_metadata(self, element: Optional[XmlElement], path: str, leftovers: List[XmlElement]) -> Metadata:
        if element is None:
            return ()
        self._retain(element, dict(element.attributes), leftovers, known_children=("meta",))
        entries = []
        for meta in element.iter_children("meta"):
            attrs, extra = self._validated(meta, "meta", f"{path}/metadata/meta")
            entries.append(MetaRecord(name=attrs["name"], value=meta.text or "",
                                      extensions=self._extensions(extra, meta.children)))
        return tuple(entries)

    def _map_timing(self, element: XmlElement, path: str) -> TimingRecord:
        attrs, extra = self._validated(element, _TIMING_SCHEMAS[element.tag], path)
        values = {k: attrs[k] for k in _TIMING_VALUE_KEYS if k in attrs}
        ports = {k: attrs[k] for k in _TIMING_PORT_KEYS if k in attrs}
        matrix: Tuple[Tuple[float, ...], ...] = ()
        if element.tag == "delay_matrix":
            matrix = self._parse_matrix(element, path)
        return TimingRecord(kind=element.tag, values=_freeze(values), ports=_freeze(ports), matrix=matrix,
                            matrix_type=attrs.get("type"), extensions=self._extensions(extra))

    @staticmethod
    def _parse_matrix(element: XmlElement, path: str) -> Tuple[Tuple[float, ...], ...]:
        rows = []
        for raw_row in (element.text or "").splitlines():
            if not raw_row.strip():
                continue
            try:
                rows.append(tuple(float(token) for token in raw_row.split()))
            except ValueError:
                raise SchemaError(element=element.tag, raw_value=raw_row.strip(),
                                  details="Delay matrix entries must be numbers.",
                                  element_path=path, line=element.line) from None
        return tuple(rows)

    def _map_port(self, element: XmlElement, schema_name: str, path: str) -> PortRecord:
        attrs, extra = self._validated(element, schema_name, path)
        return PortRecord(
            name=attrs["name"],
            direction=PORT_TAGS[element.tag],
            num_pins=attrs["num_pins"],
            equivalent=attrs["equivalent"],
            is_non_clock_global=attrs["is_non_clock_global"],
            port_class=attrs.get("port_class"),
            extensions=self._extensions(extra),
        )

    # --- models ---

    def _map_models(self, section: Optional[XmlElement], unknown: List[XmlElement]) -> Tuple[ModelRecord, ...]:
        if section is None:
            return ()
        models = []
        for element in section.children:
            if element.tag != "model":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "model", "models/model")
            path = f"models/model[{attrs['name']}]"
            ports = {"input_ports": [], "output_ports": []}
            leftovers = [c for c in element.children if c.tag not in ports]
            for group_tag, collected in ports.items():
                for group in element.iter_children(group_tag):
                    self._retain(group, dict(group.attributes), leftovers, known_children=("port",))
                    for port in group.iter_children("port"):
                        port_attrs, port_extra = self._validated(port, "model_port", f"{path}/{group_tag}/port")
                        collected.append(ModelPortRecord(
                            name=port_attrs["name"],
                            is_clock=port_attrs["is_clock"],
                            clock=port_attrs.get("clock"),
                            combinational_sink_ports=tuple(port_attrs.get("combinational_sink_ports", "").split()),
                            extensions=self._extensions(port_extra, port.children),
                        ))
            models.append(ModelRecord(
                name=attrs["name"],
                never_prune=attrs["never_prune"],
                input_ports=tuple(ports["input_ports"]),
                output_ports=tuple(ports["output_ports"]),
                extensions=self._extensions(extra, leftovers),
            ))
        logger.debug(f"Mapped {len(models)} model(s).")
        return tuple(models)

    # --- tiles ---

    def _map_tiles(self, section: XmlElement, unknown: List[XmlElement]) -> Tuple[TileRecord, ...]:
        tiles = []
        for element in section.children:
            if element.tag != "tile":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "tile", "tiles/tile")
            path = f"tiles/tile[{attrs['name']}]"
            sub_tile_elements = list(element.iter_children("sub_tile"))
            if sub_tile_elements:
                sub_tiles = []
                for sub_element in sub_tile_elements:
                    sub_attrs, sub_extra = self._validated(sub_element, "sub_tile", f"{path}/sub_tile")
                    sub_tiles.append(self._map_sub_tile(
                        sub_element, sub_attrs["name"], sub_attrs["capacity"], False, sub_extra,
                        f"{path}/sub_tile[{sub_attrs['name']}]",
                    ))
                leftovers = [c for c in element.children if c.tag != "sub_tile"]
            else:
                # Legacy form: the tile itself carries the sub-tile content.
                sub_tiles = [self._map_sub_tile(element, attrs["name"], attrs["capacity"], True, {}, path)]
                leftovers = []
            tiles.append(TileRecord(
                name=attrs["name"],
                width=attrs["width"],
                height=attrs["height"],
                area=attrs.get("area"),
                sub_tiles=tuple(sub_tiles),
                extensions=self._extensions(extra, leftovers),
                element_path=path,
                line=element.line,
            ))
        logger.debug(f"Mapped {len(tiles)} tile(s).")
        return tuple(tiles)

    def _map_sub_tile(self, element: XmlElement, name: str, capacity: int, implicit: bool,
                      extra: Dict[str, str], path: str) -> SubTileRecord:
        sites: List[SiteRecord] = []
        ports: List[PortRecord] = []
        fc: Optional[FcRecord] = None
        pin_locations: Optional[PinLocationsRecord] = None
        leftovers: List[XmlElement] = []
        saw_sites = False

        for child in element.children:
            if child.tag == "equivalent_sites":
                saw_sites = True
                self._retain(child, dict(child.attributes), leftovers, known_children=("site",))
                for site in child.iter_children("site"):
                    site_attrs, site_extra = self._validated(site, "site", f"{path}/equivalent_sites/site")
                    sites.append(SiteRecord(pb_type=site_attrs["pb_type"], pin_mapping=site_attrs["pin_mapping"],
                                            extensions=self._extensions(site_extra, site.children)))
            elif child.tag in PORT_TAGS:
                ports.append(self._map_port(child, "tile_port", f"{path}/{child.tag}"))
            elif child.tag == "fc":
                fc = self._map_fc(child, f"{path}/fc")
            elif child.tag == "pinlocations":
                pin_locations = self._map_pin_locations(child, f"{path}/pinlocations")
            else:
                leftovers.append(child)

        if not saw_sites:
            if not implicit:
                raise self._missing_child(element, "equivalent_sites", path)
            # A legacy tile hosts the complex block of the same name.
            sites.append(SiteRecord(pb_type=name))
        if not sites:
            raise SchemaError(element="equivalent_sites", details="At least one <site> is required.",
                              element_path=f"{path}/equivalent_sites", line=element.line)

        return SubTileRecord(
            name=name,
            capacity=capacity,
            sites=tuple(sites),
            ports=tuple(ports),
            fc=fc,
            pin_locations=pin_locations,
            implicit=implicit,
            extensions=self._extensions(extra, leftovers),
            line=element.line,
        )

    def _map_fc(self, element: XmlElement, path: str) -> FcRecord:
        attrs, extra = self._validated(element, "fc", path)
        overrides = tuple(MappingProxyType(dict(o.attributes)) for o in element.iter_children("fc_override"))
        # Overrides keep every attribute; only their children can be left over.
        leftovers = [c for c in element.children if c.tag != "fc_override"]
        leftovers += [o for o in element.iter_children("fc_override") if o.children]
        return FcRecord(in_type=attrs["in_type"], in_val=attrs["in_val"],
                        out_type=attrs["out_type"], out_val=attrs["out_val"], overrides=overrides,
                        extensions=self._extensions(extra, leftovers))

    def _map_pin_locations(self, element: XmlElement, path: str) -> PinLocationsRecord:
        attrs, extra = self._validated(element, "pinlocations", path)
        locations = []
        for loc in element.iter_children("loc"):
            loc_attrs, loc_extra = self._validated(loc, "loc", f"{path}/loc")
            locations.append(PinLocRecord(
                side=loc_attrs["side"],
                xoffset=loc_attrs["xoffset"],
                yoffset=loc_attrs["yoffset"],
                pins=tuple((loc.text or "").split()),
                extensions=self._extensions(loc_extra, loc.children),
            ))
        leftovers = [c for c in element.children if c.tag != "loc"]
        return PinLocationsRecord(pattern=attrs["pattern"], locations=tuple(locations),
                                  extensions=self._extensions(extra, leftovers))

    # --- layouts ---

    def _map_layouts(self, section: XmlElement) -> Tuple[Tuple[AutoLayoutRecord, ...], Tuple[FixedLayoutRecord, ...], Extensions]:
        auto_layouts, fixed_layouts, leftovers = [], [], []
        for element in section.children:
            if element.tag == "auto_layout":
                attrs, extra = self._validated(element, "auto_layout", "layout/auto_layout")
                locations, loc_leftovers = self._map_grid_locations(element, "layout/auto_layout")
                auto_layouts.append(AutoLayoutRecord(
                    aspect_ratio=attrs["aspect_ratio"],
                    grid_locations=locations,
                    extensions=self._extensions(extra, loc_leftovers),
                    line=element.line,
                ))
            elif element.tag == "fixed_layout":
                attrs, extra = self._validated(element, "fixed_layout", "layout/fixed_layout")
                path = f"layout/fixed_layout[{attrs['name']}]"
                locations, loc_leftovers = self._map_grid_locations(element, path)
                fixed_layouts.append(FixedLayoutRecord(
                    name=attrs["name"],
                    width=attrs["width"],
                    height=attrs["height"],
                    grid_locations=locations,
                    extensions=self._extensions(extra, loc_leftovers),
                    line=element.line,
                ))
            else:
                leftovers.append(element)
        if not auto_layouts and not fixed_layouts:
            raise SchemaError(element="layout", details="At least one <auto_layout> or <fixed_layout> is required.",
                              element_path="layout", line=section.line)
        if len(auto_layouts) > 1:
            raise SchemaError(element="layout", details="Only one <auto_layout> may be declared.",
                              element_path="layout", line=section.line)
        logger.debug(f"Mapped {len(auto_layouts)} auto and {len(fixed_layouts)} fixed layout(s).")
        return tuple(auto_layouts), tuple(fixed_layouts), self._extensions(dict(section.attributes), leftovers)

    def _map_grid_locations(self, layout: XmlElement, path: str) -> Tuple[Tuple[GridLocationRecord, ...], List[XmlElement]]:
        kinds = {kind.value: kind for kind in GridLocationKind}
        locations, leftovers = [], []
        for element in layout.children:
            kind = kinds.get(element.tag)
            if kind is None:
                leftovers.append(element)
                continue
            location_path = f"{path}/{element.tag}"
            attrs, extra = self._validated(element, "grid_location", location_path)
            if kind is GridLocationKind.SINGLE:
                for required in ("x", "y"):
                    if required not in attrs:
                        raise SchemaError(element=element.tag, attribute=required,
                                          details=f"Missing required attribute '{required}'.",
                                          element_path=location_path, line=element.line)
            expressions = {k: v for k, v in attrs.items() if k not in ("type", "priority")}
            location_leftovers = [c for c in element.children if c.tag != "metadata"]
            metadata = self._map_metadata(element.first_child("metadata"), location_path, location_leftovers)
            locations.append(GridLocationRecord(
                kind=kind,
                tile=attrs["type"],
                priority=attrs["priority"],
                expressions=_freeze(expressions),
                metadata=metadata,
                extensions=self._extensions(extra, location_leftovers),
                line=element.line,
            ))
        return tuple(locations), leftovers

    # --- device ---

    def _map_device(self, section: Optional[XmlElement]) -> DeviceRecord:
        if section is None:
            return DeviceRecord()
        fields: Dict[str, Any] = {}
        leftovers = []
        for element in section.children:
            path = f"device/{element.tag}"
            if element.tag == "sizing":
                attrs, extra = self._validated(element, "sizing", path)
                self._retain(element, extra, leftovers)
                fields["sizing"] = _freeze(attrs)
            elif element.tag == "connection_block":
                attrs, extra = self._validated(element, "connection_block", path)
                self._retain(element, extra, leftovers)
                fields["input_switch_name"] = attrs["input_switch_name"]
            elif element.tag == "area":
                attrs, extra = self._validated(element, "area", path)
                self._retain(element, extra, leftovers)
                fields["grid_logic_tile_area"] = attrs.get("grid_logic_tile_area")
            elif element.tag == "switch_block":
                attrs, extra = self._validated(element, "switch_block", path)
                self._retain(element, extra, leftovers)
                fields["switch_block_type"] = attrs["type"]
                fields["switch_block_fs"] = attrs.get("fs")
            elif element.tag == "chan_width_distr":
                self._retain(element, dict(element.attributes), leftovers, known_children=("x", "y"))
                for axis in ("x", "y"):
                    axis_element = self._single_child(element, axis, path)
                    if axis_element is None:
                        continue
                    attrs, extra = self._validated(axis_element, "chan_width", f"{path}/{axis}")
                    fields[f"chan_width_{axis}"] = ChannelDistributionRecord(
                        extensions=self._extensions(extra, axis_element.children), **attrs)
            else:
                leftovers.append(element)
        return DeviceRecord(extensions=self._extensions(dict(section.attributes), leftovers), **fields)

    # --- switches, segments, directs ---

    def _map_switches(self, section: Optional[XmlElement], unknown: List[XmlElement]) -> Tuple[SwitchRecord, ...]:
        if section is None:
            return ()
        switches = []
        for element in section.children:
            if element.tag != "switch":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "switch", "switchlist/switch")
            path = f"switchlist/switch[{attrs['name']}]"
            by_fanin, leftovers = [], []
            for child in element.children:
                if child.tag == "Tdel":
                    tdel, tdel_extra = self._validated(child, "switch_tdel", f"{path}/Tdel")
                    self._retain(child, tdel_extra, leftovers)
                    by_fanin.append((tdel["num_inputs"], tdel["delay"]))
                else:
                    leftovers.append(child)
            switches.append(SwitchRecord(
                name=attrs["name"],
                switch_type=attrs["type"],
                values=_freeze({k: attrs[k] for k in SWITCH_VALUE_KEYS if k in attrs}),
                buf_size=attrs.get("buf_size"),
                delay_by_fanin=tuple(by_fanin),
                extensions=self._extensions(extra, leftovers),
            ))
        return tuple(switches)

    def _map_segments(self, section: Optional[XmlElement], unknown: List[XmlElement]) -> Tuple[SegmentRecord, ...]:
        if section is None:
            return ()
        segments = []
        for element in section.children:
            if element.tag != "segment":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "segment", "segmentlist/segment")
            path = f"segmentlist/segment[{attrs['name']}]"
            switches: Dict[str, str] = {}
            patterns = {"sb": (), "cb": ()}
            leftovers = []
            for child in element.children:
                if child.tag in SEGMENT_SWITCH_TAGS:
                    ref, ref_extra = self._validated(child, "named_ref", f"{path}/{child.tag}")
                    self._retain(child, ref_extra, leftovers)
                    switches[child.tag] = ref["name"]
                elif child.tag in patterns:
                    _, pattern_extra = self._validated(child, "segment_pattern", f"{path}/{child.tag}")
                    self._retain(child, pattern_extra, leftovers)
                    patterns[child.tag] = self._parse_pattern(child, f"{path}/{child.tag}")
                else:
                    leftovers.append(child)
            segments.append(SegmentRecord(
                name=attrs["name"],
                length=attrs["length"],
                segment_type=attrs["type"],
                freq=attrs["freq"],
                r_metal=attrs["Rmetal"],
                c_metal=attrs["Cmetal"],
                axis=attrs["axis"],
                res_type=attrs["res_type"],
                switches=_freeze(switches),
                sb_pattern=patterns["sb"],
                cb_pattern=patterns["cb"],
                extensions=self._extensions(extra, leftovers),
            ))
        return tuple(segments)

    @staticmethod
    def _parse_pattern(element: XmlElement, path: str) -> Tuple[bool, ...]:
        tokens = (element.text or "").split()
        for token in tokens:
            if token not in ("0", "1"):
                raise SchemaError(element=element.tag, raw_value=element.text,
                                  details=f"Pattern entries must be 0 or 1, found '{token}'.",
                                  element_path=path, line=element.line)
        return tuple(token == "1" for token in tokens)

    def _map_directs(self, section: Optional[XmlElement], unknown: List[XmlElement]) -> Tuple[DirectRecord, ...]:
        if section is None:
            return ()
        directs = []
        for element in section.children:
            if element.tag != "direct":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "direct", "directlist/direct")
            directs.append(DirectRecord(
                name=attrs["name"],
                from_pin=attrs["from_pin"],
                to_pin=attrs["to_pin"],
                x_offset=attrs["x_offset"],
                y_offset=attrs["y_offset"],
                z_offset=attrs["z_offset"],
                switch_name=attrs.get("switch_name"),
                from_side=attrs.get("from_side"),
                to_side=attrs.get("to_side"),
                extensions=self._extensions(extra, element.children),
            ))
        return tuple(directs)

    # --- custom switch blocks ---

    def _map_switch_blocks(self, section: Optional[XmlElement], unknown: List[XmlElement]) -> Tuple[SwitchBlockRecord, ...]:
        if section is None:
            return ()
        if section.attributes:
            unknown.append(section)
        switch_blocks = []
        for element in section.children:
            if element.tag != "switchblock":
                unknown.append(element)
                continue
            attrs, extra = self._validated(element, "switchblock", "switchblocklist/switchblock")
            path = f"switchblocklist/switchblock[{attrs['name']}]"
            location_element = self._single_child(element, "switchblock_location", path)
            if location_element is None:
                raise self._missing_child(element, "switchblock_location", path)
            funcs_element = self._single_child(element, "switchfuncs", path)
            if funcs_element is None:
                raise self._missing_child(element, "switchfuncs", path)

            leftovers = [c for c in element.children
                         if c.tag not in ("switchblock_location", "switchfuncs", "wireconn")]
            location, x, y = self._map_switch_block_location(location_element, f"{path}/switchblock_location",
                                                             leftovers)
            self._retain(funcs_element, dict(funcs_element.attributes), leftovers, known_children=("func",))
            funcs = []
            for func in funcs_element.iter_children("func"):
                func_attrs, func_extra = self._validated(func, "switch_func", f"{path}/switchfuncs/func")
                funcs.append(SwitchFuncRecord(func_type=func_attrs["type"], formula=func_attrs["formula"],
                                              extensions=self._extensions(func_extra, func.children)))
            wireconns = tuple(self._map_wireconn(w, f"{path}/wireconn") for w in element.iter_children("wireconn"))
            switch_blocks.append(SwitchBlockRecord(
                name=attrs["name"],
                sb_type=attrs["type"],
                location=location,
                x=x,
                y=y,
                funcs=tuple(funcs),
                wireconns=wireconns,
                extensions=self._extensions(extra, leftovers),
                line=element.line,
            ))
        logger.debug(f"Mapped {len(switch_blocks)} custom switch block(s).")
        return tuple(switch_blocks)

    def _map_switch_block_location(self, element: XmlElement, path: str,
                                   leftovers: List[XmlElement]) -> Tuple[str, Optional[int], Optional[int]]:
        attrs, extra = self._validated(element, "switchblock_location", path)
        self._retain(element, extra, leftovers)
        location = attrs["type"]
        if location == "XY_SPECIFIED":
            for required in ("x", "y"):
                if required not in attrs:
                    raise SchemaError(element=element.tag, attribute=required,
                                      details=f"Missing required attribute '{required}'.",
                                      element_path=path, line=element.line)
            return location, attrs["x"], attrs["y"]
        for coordinate in ("x", "y"):
            if coordinate in attrs:
                raise SchemaError(element=element.tag, attribute=coordinate,
                                  raw_value=element.attributes.get(coordinate),
                                  details=f"Only XY_SPECIFIED locations take '{coordinate}'.",
                                  element_path=path, line=element.line)
        return location, None, None

    def _map_wireconn(self, element: XmlElement, path: str) -> WireConnRecord:
        attrs, extra = self._validated(element, "wireconn", path)
        points = {}
        for side in ("from", "to"):
            type_key, switchpoint_key = f"{side}_type", f"{side}_switchpoint"
            if (type_key in attrs) != (switchpoint_key in attrs):
                missing = switchpoint_key if type_key in attrs else type_key
                raise SchemaError(element="wireconn", attribute=missing,
                                  details=f"Missing required attribute '{missing}'.",
                                  element_path=path, line=element.line)
            collected = []
            if type_key in attrs:
                switchpoints = _parse_switchpoints(attrs[switchpoint_key])
                # Every listed segment type shares the attribute's switchpoints.
                for segment_type in attrs[type_key].split(","):
                    collected.append(SwitchPointRecord(segment_type=segment_type.strip(), switchpoints=switchpoints))
            for point in element.iter_children(side):
                point_attrs, point_extra = self._validated(point, "wireconn_point", f"{path}/{side}")
                collected.append(SwitchPointRecord(
                    segment_type=point_attrs["type"],
                    switchpoints=_parse_switchpoints(point_attrs["switchpoint"]),
                    extensions=self._extensions(point_extra, point.children),
                ))
            if not collected:
                raise SchemaError(element="wireconn", details=f"No '{side}' connection points were given.",
                                  element_path=path, line=element.line)
            points[side] = tuple(collected)
        return WireConnRecord(
            num_conns=attrs["num_conns"],
            from_points=points["from"],
            to_points=points["to"],
            from_order=attrs["from_order"],
            to_order=attrs["to_order"],
            switch_override=attrs.get("switch_override"),
            extensions=self._extensions(extra, (c for c in element.children if c.tag not in ("from", "to"))),
            line=element.line,
        )

    # --- complex blocks ---

    def _map_complex_blocks(self, section: XmlElement, unknown: List[XmlElement]) -> Tuple[PBTypeRecord, ...]:
        records: List[PBTypeRecord] = []
        for element in section.children:
            if element.tag != "pb_type":
                unknown.append(element)
                continue
            if "ref" in element.attributes:
                raise SchemaError(element="pb_type", attribute="ref", raw_value=element.attributes["ref"],
                                  details="Top-level definitions cannot be references.",
                                  element_path="complexblocklist/pb_type", line=element.line)
            name = element.attributes.get("name")
            self._map_pb_type(element, key=name, parent_path="complexblocklist", is_top_level=True, records=records)
        logger.debug(f"Mapped {len(records)} pb_type body(ies) from the complex block list.")
        return tuple(records)

    def _map_pb_type(self, element: XmlElement, key: Optional[str], parent_path: str,
                     is_top_level: bool, records: List[PBTypeRecord]) -> PBTypeRecord:
        attrs, extra = self._validated(element, "pb_type", f"{parent_path}/pb_type")
        name = attrs["name"]
        key = key or name
        path = f"{parent_path}/pb_type[{name}]"

        ports: List[PortRecord] = []
        timings: List[TimingRecord] = []
        mode_elements: List[XmlElement] = []
        has_implicit_content = False
        metadata: Metadata = ()
        leftovers: List[XmlElement] = []
        for child in element.children:
            if child.tag in PORT_TAGS:
                ports.append(self._map_port(child, "pb_port", f"{path}/{child.tag}"))
            elif child.tag == "mode":
                mode_elements.append(child)
            elif child.tag in ("pb_type", "interconnect"):
                has_implicit_content = True
            elif child.tag in TIMING_TAGS:
                timings.append(self._map_timing(child, f"{path}/{child.tag}"))
            elif child.tag == "metadata":
                metadata = self._map_metadata(child, path, leftovers)
            else:
                leftovers.append(child)

        if mode_elements and has_implicit_content:
            raise SchemaError(
                element="pb_type",
                details="A pb_type cannot mix <mode> children with direct <pb_type>/<interconnect> children.",
                element_path=path, line=element.line,
            )

        # Children are collected separately so the parent's record precedes its descendants.
        descendants: List[PBTypeRecord] = []
        modes: List[ModeRecord] = []
        if mode_elements:
            for mode_element in mode_elements:
                mode_attrs, mode_extra = self._validated(mode_element, "mode", f"{path}/mode")
                modes.append(self._map_mode(mode_element, key, mode_attrs["name"], False, mode_extra,
                                            f"{path}/mode[{mode_attrs['name']}]", descendants))
        elif has_implicit_content:
            modes.append(self._map_mode(element, key, "default", True, {}, f"{path}/mode[default]", descendants))

        record = PBTypeRecord(
            key=key,
            name=name,
            num_pb=attrs["num_pb"],
            blif_model=attrs.get("blif_model"),
            pb_class=attrs.get("class"),
            ports=tuple(ports),
            modes=tuple(modes),
            timings=tuple(timings),
            metadata=metadata,
            extensions=self._extensions(extra, leftovers),
            is_top_level=is_top_level,
            element_path=path,
            line=element.line,
        )
        records.append(record)
        records.extend(descendants)
        return record

    def _map_mode(self, element: XmlElement, parent_key: str, mode_name: str, implicit: bool,
                  extra: Dict[str, str], path: str, records: List[PBTypeRecord]) -> ModeRecord:
        children: List[ChildRefRecord] = []
        interconnects: List[InterconnectRecord] = []
        metadata: Metadata = ()
        leftovers: List[XmlElement] = []
        for child in element.children:
            if child.tag == "pb_type":
                children.append(self._map_child(child, parent_key, mode_name, path, records))
            elif child.tag == "interconnect":
                interconnects.extend(self._map_interconnect_block(child, f"{path}/interconnect", leftovers))
            elif implicit:
                # Remaining children belong to the enclosing pb_type.
                continue
            elif child.tag == "metadata":
                metadata = self._map_metadata(child, path, leftovers)
            else:
                leftovers.append(child)
        return ModeRecord(
            name=mode_name,
            children=tuple(children),
            interconnects=tuple(interconnects),
            implicit=implicit,
            metadata=metadata,
            extensions=self._extensions(extra, leftovers),
            line=element.line,
        )

    def _map_child(self, element: XmlElement, parent_key: str, mode_name: str, path: str,
                   records: List[PBTypeRecord]) -> ChildRefRecord:
        if "ref" in element.attributes:
            ref = element.attributes["ref"]
            body = [c.tag for c in element.children if c.tag in PORT_TAGS or c.tag in ("mode", "pb_type", "interconnect")]
            if body:
                raise SchemaError(element="pb_type", attribute="ref", raw_value=ref,
                                  details="A pb_type reference cannot declare its own body.",
                                  element_path=f"{path}/pb_type", line=element.line)
            attrs, extra = self._validated(element, "pb_type_ref", f"{path}/pb_type")
            return ChildRefRecord(name=attrs.get("name", ref), num_pb=attrs["num_pb"], ref=ref,
                                  extensions=self._extensions(extra, element.children), line=element.line)
        name = element.attributes.get("name", "")
        key = f"{parent_key}.{mode_name}.{name}"
        record = self._map_pb_type(element, key=key, parent_path=path, is_top_level=False, records=records)
        return ChildRefRecord(name=record.name, num_pb=record.num_pb, definition_key=key, line=element.line)

    def _map_interconnect_block(self, element: XmlElement, path: str,
                                leftovers: List[XmlElement]) -> List[InterconnectRecord]:
        kinds = {kind.value: kind for kind in InterconnectKind}
        interconnects = []
        for child in element.children:
            kind = kinds.get(child.tag)
            if kind is None:
                leftovers.append(child)
                continue
            attrs, extra = self._validated(child, "interconnect_edge", f"{path}/{child.tag}")
            edge_path = f"{path}/{child.tag}[{attrs['name']}]"
            pack_patterns, timings, edge_leftovers = [], [], []
            metadata: Metadata = ()
            for grandchild in child.children:
                if grandchild.tag == "pack_pattern":
                    pattern, pattern_extra = self._validated(grandchild, "pack_pattern", f"{edge_path}/pack_pattern")
                    pack_patterns.append(PackPatternRecord(
                        extensions=self._extensions(pattern_extra, grandchild.children), **pattern))
                elif grandchild.tag in TIMING_TAGS:
                    timings.append(self._map_timing(grandchild, f"{edge_path}/{grandchild.tag}"))
                elif grandchild.tag == "metadata":
                    metadata = self._map_metadata(grandchild, edge_path, edge_leftovers)
                else:
                    edge_leftovers.append(grandchild)
            interconnects.append(InterconnectRecord(
                kind=kind,
                name=attrs["name"],
                input=attrs["input"],
                output=attrs["output"],
                pack_patterns=tuple(pack_patterns),
                timings=tuple(timings),
                metadata=metadata,
                extensions=self._extensions(extra, edge_leftovers),
                line=child.line,
            ))
        return interconnects

import networkx as nx
import pytest

from fpga_arch_core import load_architecture
from fpga_arch_core.base_enums import InterconnectKind, PortDirection
from fpga_arch_core.ingest import XmlTreeReader
from fpga_arch_core.interconnect import (
    CardinalityError,
    InterconnectResolver,
    MalformedPortReferenceError,
    Pin,
    PinRangeError,
    ScopeViolationError,
    parse_port_list,
    parse_port_range,
)
from fpga_arch_core.interconnect.port_ranges import format_range, range_indices
from fpga_arch_core.model import ArchitectureBuilder, UnresolvedReferenceError
from fpga_arch_core.schema import SchemaMapper


def build_unchecked(data: bytes):
    """Builds the model without the load-time interconnect validation pass."""
    return ArchitectureBuilder().build(SchemaMapper().map(XmlTreeReader().read(data)))


def resolve_top(data: bytes, mode=None):
    arch = build_unchecked(data)
    return InterconnectResolver(arch).resolve("top", mode)


def single_child_arch(arch_xml, edges: str, num_pb: int = 2) -> bytes:
    return arch_xml(f"""
    <pb_type name="top">
      <input name="i" num_pins="4"/>
      <output name="o" num_pins="4"/>
      <pb_type name="c" num_pb="{num_pb}">
        <input name="a" num_pins="2"/>
        <output name="z" num_pins="2"/>
      </pb_type>
      <interconnect>
        {edges}
      </interconnect>
    </pb_type>
    """)


# --- Port-range grammar ---

@pytest.mark.parametrize("token, expected", [
    ("clb.I", ("clb", None, "I", None)),
    ("fle[3:0].out", ("fle", (3, 0), "out", None)),
    ("fle[0:3].out", ("fle", (0, 3), "out", None)),
    ("lut4[0:0].in[3:0]", ("lut4", (0, 0), "in", (3, 0))),
    ("top.s[5]", ("top", None, "s", (5, 5))),
])
def test_parse_port_range(token, expected):
    ref = parse_port_range(token)
    assert (ref.instance, ref.instance_range, ref.port, ref.pin_range) == expected


@pytest.mark.parametrize("token", ["clb", "clb.", ".I", "clb.I[", "clb.I[a:b]", "a.b.c", "x[1:2:3].p"])
def test_malformed_port_reference(token):
    with pytest.raises(MalformedPortReferenceError):
        parse_port_range(token)


def test_port_list_keeps_token_order():
    refs = parse_port_list("  ff.Q   lut4.out ")
    assert [r.instance for r in refs] == ["ff", "lut4"]
    with pytest.raises(MalformedPortReferenceError):
        parse_port_list("   ")


# --- Expansion ---

def test_passthrough_direct(passthrough_xml):
    graph = resolve_top(passthrough_xml)
    (resolved,) = graph.interconnects
    pairs = {(c.source, c.sink) for c in resolved.connections}
    assert pairs == {
        (Pin("top", "in", 0), Pin("top", "out", 0)),
        (Pin("top", "in", 1), Pin("top", "out", 1)),
    }
    assert graph.mode == "default"
    assert graph.drivers_of(Pin("top", "out", 1)) == (Pin("top", "in", 1),)


def test_pins_in_scope(passthrough_xml):
    graph = resolve_top(passthrough_xml)
    assert [str(info.pin) for info in graph.pins] == ["top.in[0]", "top.in[1]", "top.out[0]", "top.out[1]"]
    assert graph.pin_info(Pin("top", "in", 0)).direction is PortDirection.INPUT


def test_direct_concatenates_child_instances(arch_xml):
    data = single_child_arch(arch_xml, """
        <direct name="down" input="top.i" output="c[1:0].a"/>
        <direct name="up" input="c.z" output="top.o"/>
    """)
    graph = resolve_top(data)
    down = graph.interconnect("down")
    # Instances are taken in written order, so c[1] comes first.
    assert down.sinks == (Pin("c[1]", "a", 0), Pin("c[1]", "a", 1), Pin("c[0]", "a", 0), Pin("c[0]", "a", 1))
    assert [c.source.index for c in down.connections] == [0, 1, 2, 3]
    up = graph.interconnect("up")
    assert up.connections[3].source == Pin("c[1]", "z", 1)
    assert up.connections[3].sink == Pin("top", "o", 3)


def test_reversed_pin_range_swaps_bits(arch_xml):
    body = """
    <pb_type name="top">
      <input name="in" num_pins="2"/>
      <output name="out" num_pins="2"/>
      <interconnect>
        <direct name="swap" input="top.in[1:0]" output="top.out[0:1]"/>
      </interconnect>
    </pb_type>
    """
    swap = resolve_top(arch_xml(body)).interconnect("swap")
    assert [(str(c.source), str(c.sink)) for c in swap.connections] == [
        ("top.in[1]", "top.out[0]"),
        ("top.in[0]", "top.out[1]"),
    ]


def test_reversed_instance_range(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="d" input="c[1:0].z[0]" output="top.o[0:1]"/>')
    d = resolve_top(data).interconnect("d")
    assert d.connections[0].source == Pin("c[1]", "z", 0)
    assert d.connections[0].sink == Pin("top", "o", 0)
    assert d.connections[1].source == Pin("c[0]", "z", 0)


@pytest.mark.parametrize("bounds, size, expected", [
    (None, 3, [0, 1, 2]),
    ((3, 0), 4, [3, 2, 1, 0]),
    ((1, 3), 4, [1, 2, 3]),
    ((2, 2), 4, [2]),
])
def test_range_indices(bounds, size, expected):
    assert list(range_indices(bounds, size)) == expected


def test_format_range_keeps_direction():
    assert format_range((7, 4)) == "[7:4]"
    assert format_range((4, 7)) == "[4:7]"
    assert format_range((2, 2)) == "[2]"
    assert format_range(None) == "[*]"


def test_direct_width_mismatch(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="bad" input="top.i[2:0]" output="c.a"/>')
    with pytest.raises(CardinalityError) as excinfo:
        resolve_top(data)
    err = excinfo.value
    assert (err.interconnect, err.source_count, err.sink_count) == ("bad", 3, 4)
    assert "bad" in err.get_diagnostic_report()


def test_complete_is_a_full_bipartite_graph(arch_xml):
    data = single_child_arch(arch_xml, '<complete name="xbar" input="top.i c.z" output="c.a"/>')
    resolved = resolve_top(data).interconnect("xbar")
    assert len(resolved.source_pins) == 8
    assert len(resolved.sinks) == 4
    assert len(resolved.connections) == 32
    assert len({(c.source, c.sink) for c in resolved.connections}) == 32


def test_mux_fan_in(mux_fan_in_xml):
    graph = resolve_top(mux_fan_in_xml)
    mux = graph.interconnect("sel")
    assert mux.kind is InterconnectKind.MUX
    ((sink, inputs),) = mux.mux_instances()
    assert sink == Pin("leaf[0]", "in", 0)
    assert [p.index for p in inputs] == [5, 4, 3, 2, 1, 0]
    assert {c.mux_index for c in mux.connections} == {0}
    assert len(graph.drivers_of(sink)) == 6


def test_mux_input_width_must_match_output(arch_xml):
    data = single_child_arch(arch_xml, '<mux name="m" input="top.i[1:0] top.i[2]" output="c[0].a"/>')
    with pytest.raises(CardinalityError) as excinfo:
        resolve_top(data)
    assert (excinfo.value.source_count, excinfo.value.sink_count) == (1, 2)


def test_multi_bit_mux_keeps_bit_alignment(arch_xml):
    data = single_child_arch(arch_xml, '<mux name="m" input="top.i[1:0] top.i[3:2]" output="c[0].a"/>')
    mux = resolve_top(data).interconnect("m")
    instances = dict(mux.mux_instances())
    assert instances[Pin("c[0]", "a", 0)] == (Pin("top", "i", 1), Pin("top", "i", 3))
    assert instances[Pin("c[0]", "a", 1)] == (Pin("top", "i", 0), Pin("top", "i", 2))


# --- Errors ---

def test_scope_violation(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="far" input="cousin.z" output="top.o[1:0]"/>')
    with pytest.raises(ScopeViolationError) as excinfo:
        resolve_top(data)
    assert excinfo.value.referenced_port == "cousin.z"
    assert excinfo.value.interconnect == "far"


def test_grandchild_is_out_of_scope(sample_arch):
    # lut4 is visible from ble4 but not from clb.
    graph = InterconnectResolver(sample_arch).resolve("clb")
    assert {info.owner for info in graph.pins} == {"", "fle"}


def test_unknown_port(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="d" input="c.nope" output="top.o"/>')
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        resolve_top(data)
    assert (excinfo.value.name, excinfo.value.kind) == ("nope", "port")


def test_pin_index_out_of_range(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="d" input="top.i[7:4]" output="top.o"/>')
    with pytest.raises(PinRangeError) as excinfo:
        resolve_top(data)
    assert excinfo.value.actual_width == 4
    assert excinfo.value.requested_range == "[7:4]"


def test_instance_index_out_of_range(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="d" input="top.i[1:0]" output="c[2].a"/>')
    with pytest.raises(PinRangeError) as excinfo:
        resolve_top(data)
    assert excinfo.value.actual_width == 2


def test_malformed_token_carries_context(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="d" input="top.i[" output="top.o"/>')
    with pytest.raises(MalformedPortReferenceError) as excinfo:
        resolve_top(data)
    assert excinfo.value.interconnect == "d"
    assert excinfo.value.node_path == "top"


def test_load_architecture_validates_interconnect(arch_xml):
    data = single_child_arch(arch_xml, '<direct name="bad" input="top.i[2:0]" output="c.a"/>')
    with pytest.raises(CardinalityError):
        load_architecture(data)


# --- The sample architecture ---

def test_parent_referenced_by_definition_name(sample_arch):
    # fle[3:0].out is driven back into clb.O through the parent name "clb".
    graph = InterconnectResolver(sample_arch).resolve("clb")
    outs = graph.interconnect("clbouts1")
    assert outs.sinks == tuple(Pin("clb", "O", i) for i in range(4))
    assert outs.connections[0].source == Pin("fle[3]", "out", 0)
    assert outs.connections[2].source == Pin("fle[1]", "out", 0)


REF_LEAF = """
<pb_type name="leaf">
  <input name="i" num_pins="1"/>
  <output name="o" num_pins="1"/>
  <interconnect>
    <direct name="p" input="{parent}.i" output="{parent}.o"/>
  </interconnect>
</pb_type>
<pb_type name="top">
  <pb_type ref="leaf" name="myleaf"/>
</pb_type>
"""


def test_parent_is_named_by_its_definition_in_every_instance(arch_xml):
    arch = load_architecture(arch_xml(REF_LEAF.format(parent="leaf")))
    resolver = InterconnectResolver(arch)
    for path in ("leaf", "top/myleaf"):
        (connection,) = resolver.resolve(path).interconnect("p").connections
        assert (connection.source.port, connection.sink.port) == ("i", "o")


def test_instance_slot_name_is_not_a_parent_name(arch_xml):
    # A name that only one instantiation carries must fail at load time.
    with pytest.raises(ScopeViolationError) as excinfo:
        load_architecture(arch_xml(REF_LEAF.format(parent="myleaf")))
    assert excinfo.value.referenced_port == "myleaf.i"


def test_sample_crossbar(sample_arch):
    graph = InterconnectResolver(sample_arch).resolve("clb")
    crossbar = graph.interconnect("crossbar")
    assert crossbar.kind is InterconnectKind.COMPLETE
    assert len(crossbar.source_pins) == 14
    assert len(crossbar.sinks) == 16
    assert graph.graph.number_of_edges() == 14 * 16 + 4 + 4


def test_graph_is_frozen(passthrough_xml):
    graph = resolve_top(passthrough_xml)
    with pytest.raises(nx.NetworkXError):
        graph.graph.add_edge(Pin("top", "in", 0), Pin("top", "out", 1))


def test_leaf_has_no_interconnect(sample_arch):
    graph = InterconnectResolver(sample_arch).resolve("clb/fle/ble4/lut4")
    assert graph.mode is None
    assert graph.interconnects == ()
    assert len(graph.pins) == 5


def test_resolve_named_mode(sample_arch):
    graph = InterconnectResolver(sample_arch).resolve("io", "outpad")
    assert graph.mode == "outpad"
    assert graph.interconnect("outpad").connections[0].sink == Pin("outpad[0]", "outpad", 0)


def test_validate_architecture_counts_definition_mode_pairs(sample_arch):
    # io: 2 modes, clb, fle, ble4, mult: 1 each.
    assert InterconnectResolver(sample_arch).validate_architecture() == 6

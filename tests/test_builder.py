import pytest

from fpga_arch_core.config import BuildConfig
from fpga_arch_core.ingest import XmlTreeReader
from fpga_arch_core.model import (
    ArchitectureBuilder,
    AutoLayout,
    CyclicHierarchyError,
    DuplicateNameError,
    FixedLayout,
    HierarchyLimitError,
    UnresolvedReferenceError,
)
from fpga_arch_core.schema import SchemaMapper


def build_bytes(data: bytes, config: BuildConfig = None):
    records = SchemaMapper().map(XmlTreeReader().read(data))
    return ArchitectureBuilder(config).build(records)


# --- The sample architecture ---

def test_roots_and_tiles(sample_arch):
    assert set(sample_arch.roots) == {"io", "clb", "mult"}
    assert sample_arch.tile_names() == ("io", "clb", "mult")
    io_tile = sample_arch.tile("io")
    assert io_tile.capacity == 8
    assert io_tile.sub_tiles[0].sites[0].handle == sample_arch.roots["io"]


def test_find_pb_type_walks_slot_names(sample_arch):
    lut = sample_arch.find_pb_type("clb/fle/ble4/lut4")
    assert lut.name == "lut4"
    assert lut.path == "clb/fle/ble4/lut4"
    assert lut.is_leaf
    assert lut.blif_model == ".names"
    assert lut.port("in").width == 4
    assert sample_arch.find_pb_type(["clb", "fle"]).num_pb == 4


def test_find_pb_type_unknown_step(sample_arch):
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        sample_arch.find_pb_type("clb/fle/nope")
    assert excinfo.value.name == "nope"
    assert excinfo.value.reference_chain == ("clb", "fle")


def test_modes_and_children(sample_arch):
    assert [m.name for m in sample_arch.modes_of("io")] == ["inpad", "outpad"]
    children = sample_arch.children_of("io", "outpad")
    assert [(slot.name, node.blif_model) for slot, node in children] == [("outpad", ".output")]
    assert sample_arch.children_of("clb/fle/ble4/lut4") == ()
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        sample_arch.children_of("io", "bidir")
    assert excinfo.value.kind == "mode"


def test_every_node_has_a_single_parent(sample_arch):
    seen = []
    for node in sample_arch.pb_types:
        for mode in node.modes:
            seen.extend(slot.handle for slot in mode.children)
    assert len(seen) == len(set(seen))
    assert set(seen) | set(sample_arch.roots.values()) == {n.handle for n in sample_arch.pb_types}


def test_iter_subtree_is_pre_order(sample_arch):
    paths = [n.path for n in sample_arch.iter_subtree("clb")]
    assert paths == ["clb", "clb/fle", "clb/fle/ble4", "clb/fle/ble4/lut4", "clb/fle/ble4/ff"]


def test_layouts(sample_arch):
    assert sample_arch.layout_names() == ("auto", "small")
    auto = sample_arch.layout("auto")
    assert isinstance(auto, AutoLayout)
    assert auto.dimensions(width=10) == (10, 10)
    assert isinstance(sample_arch.layout("small"), FixedLayout)
    with pytest.raises(UnresolvedReferenceError):
        sample_arch.layout("huge")


def test_auto_layout_dimensions_round_half_up():
    auto = AutoLayout(aspect_ratio=2.0)
    assert auto.dimensions(width=5) == (5, 3)
    assert auto.dimensions(height=3) == (6, 3)
    assert auto.dimensions(width=1) == (1, 1)
    with pytest.raises(ValueError):
        auto.dimensions()


# --- Hierarchy resolution ---

def test_references_instantiate_fresh_nodes(arch_xml):
    body = """
    <pb_type name="leaf" blif_model=".names"><input name="i" num_pins="1"/></pb_type>
    <pb_type name="top">
      <pb_type ref="leaf" name="a"/>
      <pb_type ref="leaf" name="b" num_pb="2"/>
    </pb_type>
    """
    arch = build_bytes(arch_xml(body))
    (a_slot, a), (b_slot, b) = arch.children_of("top")
    assert a.handle != b.handle != arch.roots["leaf"]
    assert a.definition == b.definition == "leaf"
    assert (a.path, b.path) == ("top/a", "top/b")
    assert b_slot.num_pb == 2 and b.num_pb == 2


def test_self_reference_is_a_cycle(arch_xml):
    body = '<pb_type name="top"><pb_type ref="top" name="inner"/></pb_type>'
    with pytest.raises(CyclicHierarchyError) as excinfo:
        build_bytes(arch_xml(body))
    assert excinfo.value.path == ("top", "top")


def test_mutual_reference_is_a_cycle(arch_xml):
    body = """
    <pb_type name="top"><pb_type ref="a"/></pb_type>
    <pb_type name="a"><pb_type ref="b"/></pb_type>
    <pb_type name="b"><pb_type ref="a"/></pb_type>
    """
    with pytest.raises(CyclicHierarchyError) as excinfo:
        build_bytes(arch_xml(body))
    assert excinfo.value.path[-1] == "a"
    assert "Cyclic" in excinfo.value.get_diagnostic_report()


def test_reused_definition_in_siblings_is_not_a_cycle(arch_xml):
    body = """
    <pb_type name="leaf"/>
    <pb_type name="mid"><pb_type ref="leaf" name="l1"/><pb_type ref="leaf" name="l2"/></pb_type>
    <pb_type name="top"><pb_type ref="mid" name="m1"/><pb_type ref="mid" name="m2"/></pb_type>
    """
    arch = build_bytes(arch_xml(body))
    assert len(list(arch.iter_subtree("top"))) == 7


def test_deep_reference_chain(arch_xml):
    depth = 50
    body = [f'<pb_type name="p{i}"><pb_type ref="p{i + 1}"/></pb_type>' for i in range(depth - 1)]
    body.append(f'<pb_type name="p{depth - 1}" blif_model=".names"/>')
    arch = build_bytes(arch_xml("\n".join(body), site="p0"))
    deepest = list(arch.iter_subtree("p0"))[-1]
    assert deepest.path.count("/") == depth - 1
    assert deepest.definition == f"p{depth - 1}"


def test_unresolved_child_reference(arch_xml):
    body = '<pb_type name="top"><pb_type ref="foo"/></pb_type>'
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml(body))
    assert excinfo.value.name == "foo"
    assert excinfo.value.kind == "pb_type"
    assert excinfo.value.reference_chain == ("top",)


def test_hierarchy_limit(arch_xml):
    body = """
    <pb_type name="leaf"/>
    <pb_type name="top"><pb_type ref="leaf" name="a"/><pb_type ref="leaf" name="b"/></pb_type>
    """
    with pytest.raises(HierarchyLimitError) as excinfo:
        build_bytes(arch_xml(body), BuildConfig(max_hierarchy_nodes=3))
    assert excinfo.value.limit == 3


# --- Name uniqueness ---

@pytest.mark.parametrize("body, kind", [
    ('<pb_type name="top"/><pb_type name="top"/>', "pb_type"),
    ('<pb_type name="top"><input name="i" num_pins="1"/><output name="i" num_pins="1"/></pb_type>', "port"),
    ('<pb_type name="top"><mode name="m"/><mode name="m"/></pb_type>', "mode"),
    ('<pb_type name="top"><pb_type name="c"/><pb_type name="c"/></pb_type>', "pb_type child"),
    ('<pb_type name="top"><interconnect><direct name="d" input="top.i" output="top.o"/>'
     '<mux name="d" input="top.i" output="top.o"/></interconnect></pb_type>', "interconnect"),
])
def test_duplicate_names(arch_xml, body, kind):
    with pytest.raises(DuplicateNameError) as excinfo:
        build_bytes(arch_xml(body))
    assert excinfo.value.kind == kind


def test_same_name_in_different_scopes_is_allowed(arch_xml):
    body = """
    <pb_type name="top">
      <input name="in" num_pins="1"/>
      <mode name="a"><pb_type name="x"><input name="in" num_pins="1"/></pb_type></mode>
      <mode name="b"><pb_type name="x"><input name="in" num_pins="1"/></pb_type></mode>
    </pb_type>
    """
    arch = build_bytes(arch_xml(body))
    assert arch.find_pb_type("top/x", mode="b").definition == "top.b.x"


def test_duplicate_tile(arch_xml):
    tiles = """
      <tiles>
        <tile name="t"><sub_tile name="s"><equivalent_sites><site pb_type="top"/></equivalent_sites></sub_tile></tile>
        <tile name="t"><sub_tile name="s"><equivalent_sites><site pb_type="top"/></equivalent_sites></sub_tile></tile>
      </tiles>
    """
    with pytest.raises(DuplicateNameError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top"/>', tiles=tiles))
    assert (excinfo.value.scope, excinfo.value.kind) == ("tiles", "tile")


# --- Cross-references ---

def test_site_must_name_a_top_level_definition(arch_xml):
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top"/>', site="missing"))
    assert excinfo.value.name == "missing"


def test_layout_must_name_a_declared_tile(arch_xml):
    layout = '<layout><auto_layout><fill type="ghost" priority="1"/></auto_layout></layout>'
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top"/>', layout=layout))
    assert (excinfo.value.name, excinfo.value.kind) == ("ghost", "tile")


def test_empty_tile_name_is_always_allowed(arch_xml):
    layout = '<layout><auto_layout><fill type="EMPTY" priority="1"/></auto_layout></layout>'
    arch = build_bytes(arch_xml('<pb_type name="top"/>', layout=layout))
    assert arch.layout("auto").grid_locations[0].tile == "EMPTY"


def test_segment_switch_must_exist(arch_xml):
    extra = """
      <switchlist><switch type="mux" name="sw"/></switchlist>
      <segmentlist><segment name="L1" length="1" type="unidir"><mux name="nope"/></segment></segmentlist>
    """
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top"/>', extra=extra))
    assert (excinfo.value.name, excinfo.value.kind) == ("nope", "switch")


def test_connection_block_switch_must_exist(arch_xml):
    extra = '<device><connection_block input_switch_name="cb"/></device>'
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top"/>', extra=extra))
    assert excinfo.value.reference_chain == ("device", "connection_block")


def test_subckt_model_must_be_declared(arch_xml):
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        build_bytes(arch_xml('<pb_type name="top" blif_model=".subckt adder"/>'))
    assert (excinfo.value.name, excinfo.value.kind) == ("adder", "model")


def test_declared_subckt_model_resolves(sample_arch):
    node = sample_arch.find_pb_type("mult/mult_4x4")
    assert node.blif_model == ".subckt multiply"

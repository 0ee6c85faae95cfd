import itertools

import pytest

from fpga_arch_core import load_architecture
from fpga_arch_core.base_enums import InterconnectKind
from fpga_arch_core.config import LayoutConfig
from fpga_arch_core.interconnect import InterconnectResolver, Pin
from fpga_arch_core.layout import ExpandState, LayoutEngine, PinSide, SegmentRole, instance_path_of
from fpga_arch_core.model import UnresolvedReferenceError


@pytest.fixture(scope="module")
def engine(sample_arch):
    return LayoutEngine(sample_arch)


def overlaps(a, b):
    return a.x < b.right and b.x < a.right and a.y < b.bottom and b.y < a.bottom


def test_instance_paths():
    assert instance_path_of("clb", "fle", 3) == "clb.fle[3]"
    assert instance_path_of("clb.fle[3]", "ble4", 0) == "clb.fle[3].ble4[0]"


def test_layout_is_deterministic(engine):
    state = ExpandState.create(expanded=["clb.fle[1]"])
    assert engine.layout("clb", expand_state=state) == engine.layout("clb", expand_state=state)


def test_leaf_block_size(engine):
    lut = engine.layout("clb/fle/ble4/lut4")
    assert lut.mode is None
    assert lut.expanded
    assert lut.children == ()
    assert lut.routing.segments == ()
    # Four inputs: header plus five pin pitches.
    assert (lut.rect.width, lut.rect.height) == (80.0, 35.0 + 5 * 25.0)


def test_collapsed_children_are_fixed_placeholders(engine):
    clb = engine.layout("clb")
    assert clb.expanded
    assert [c.instance_path for c in clb.children] == [f"clb.fle[{i}]" for i in range(4)]
    for child in clb.children:
        assert not child.expanded
        assert (child.rect.width, child.rect.height) == (80.0, 35.0)
        assert child.children == ()
        assert child.mode == "n1_lut4"


def test_block_size_from_children_and_gutter(engine):
    clb = engine.layout("clb")
    # One slot of four stacked placeholders, crossbar gutter, ten input pins.
    assert clb.rect.width == 80.0 + 2 * 50.0 + 80.0 + 60.0
    assert clb.rect.height == 35.0 + 2 * 50.0 + 4 * 35.0 + 3 * 50.0


def test_pin_sides_and_order(engine):
    clb = engine.layout("clb")
    inputs = [a for a in clb.pins if a.side is PinSide.LEFT]
    outputs = [a for a in clb.pins if a.side is PinSide.RIGHT]
    clocks = [a for a in clb.pins if a.side is PinSide.BOTTOM]
    assert [a.pin.index for a in inputs] == list(range(10))
    assert all(a.position.x == clb.rect.x for a in inputs)
    ys = [a.position.y for a in inputs]
    assert ys == sorted(ys) and len(set(ys)) == 10
    assert all(clb.rect.y + 35.0 < y < clb.rect.bottom for y in ys)
    assert all(a.position.x == clb.rect.right for a in outputs)
    assert [a.pin for a in clocks] == [Pin("clb", "clk", 0)]
    assert clocks[0].position.y == clb.rect.bottom
    assert clb.anchor("O", 2).pin == Pin("clb", "O", 2)


def test_expanding_a_child_grows_the_parent(engine):
    collapsed = engine.layout("clb")
    expanded = engine.layout("clb", expand_state=ExpandState.create(expanded=["clb.fle[0]"]))
    fle0 = expanded.find("clb.fle[0]")
    assert fle0.expanded
    assert [c.instance_path for c in fle0.children] == ["clb.fle[0].ble4[0]"]
    assert not fle0.children[0].expanded
    assert expanded.rect.width > collapsed.rect.width
    assert expanded.rect.height > collapsed.rect.height


def test_children_are_nested_and_disjoint(engine):
    state = ExpandState.create(expanded=["clb.fle[0]", "clb.fle[0].ble4[0]", "clb.fle[2]"])
    root = engine.layout("clb", expand_state=state)
    for block in root.walk():
        for child in block.children:
            assert block.rect.contains(child.rect)
        for a, b in itertools.combinations(block.children, 2):
            assert not overlaps(a.rect, b.rect)


def test_horizontal_slots(engine):
    state = ExpandState.create(expanded=["clb.fle[0]", "clb.fle[0].ble4[0]"])
    ble = engine.layout("clb", expand_state=state).find("clb.fle[0].ble4[0]")
    lut, ff = ble.children
    assert lut.rect.right < ff.rect.x
    assert lut.rect.y == ff.rect.y


def test_mode_selection(engine):
    io_default = engine.layout("io")
    assert io_default.mode == "inpad"
    io_out = engine.layout("io", mode="outpad")
    assert io_out.mode == "outpad"
    assert [c.instance_path for c in io_out.children] == ["io.outpad[0]"]
    via_state = engine.layout("io", expand_state=ExpandState.create(modes={"io": "outpad"}))
    assert via_state == io_out


def test_invalid_mode(engine):
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        engine.layout("io", mode="bidir")
    assert excinfo.value.kind == "mode"


def test_direct_routing(passthrough_xml):
    engine = LayoutEngine(load_architecture(passthrough_xml))
    top = engine.layout("top")
    segments = top.routing.segments_for("pass")
    assert [s.role for s in segments] == [SegmentRole.DIRECT, SegmentRole.DIRECT]
    first = segments[0]
    assert first.start == top.anchor("in", 0).position
    assert first.end == top.anchor("out", 0).position
    assert top.routing.hubs == ()


def test_mux_becomes_one_hub_per_instance(mux_fan_in_xml):
    engine = LayoutEngine(load_architecture(mux_fan_in_xml))
    top = engine.layout("top")
    (hub,) = top.routing.hubs
    assert hub.kind is InterconnectKind.MUX
    assert set(hub.input_pins) == {Pin("top", "s", i) for i in range(6)}
    assert hub.output_pins == (Pin("leaf[0]", "in", 0),)
    leaf = top.find("top.leaf[0]")
    sink_position = leaf.anchor("in", 0).position
    assert hub.rect.right < sink_position.x
    roles = [s.role for s in top.routing.segments_for("sel")]
    assert roles.count(SegmentRole.MUX_INPUT) == 6
    assert roles.count(SegmentRole.MUX_OUTPUT) == 1


def test_mux_hubs_in_sample(engine):
    state = ExpandState.create(expanded=["clb.fle[0]", "clb.fle[0].ble4[0]"])
    ble = engine.layout("clb", expand_state=state).find("clb.fle[0].ble4[0]")
    mux_hubs = [h for h in ble.routing.hubs if h.kind is InterconnectKind.MUX]
    assert len(mux_hubs) == 1
    assert set(mux_hubs[0].input_pins) == {Pin("ff[0]", "Q", 0), Pin("lut4[0]", "out", 0)}


def test_crossbar_hub(engine):
    clb = engine.layout("clb")
    hubs = {h.interconnect: h for h in clb.routing.hubs}
    assert set(hubs) == {"crossbar", "clks"}
    crossbar = hubs["crossbar"]
    assert len(crossbar.inputs) == 14
    assert len(crossbar.outputs) == 16
    roles = [s.role for s in clb.routing.segments_for("crossbar")]
    assert roles.count(SegmentRole.FEEDER) == 14
    assert roles.count(SegmentRole.DRAIN) == 16
    assert roles.count(SegmentRole.CROSS) == 14 * 16
    assert len(clb.routing.segments_for("clbouts1")) == 4


def test_config_changes_dimensions(sample_arch):
    engine = LayoutEngine(sample_arch, LayoutConfig(collapsed_width=100.0, collapsed_height=40.0))
    clb = engine.layout("clb")
    assert (clb.children[0].rect.width, clb.children[0].rect.height) == (100.0, 40.0)


def test_custom_connectivity_provider(sample_arch):
    calls = []
    resolver = InterconnectResolver(sample_arch)

    def provider(node, mode):
        calls.append((node.path, mode))
        return resolver.resolve(node, mode)

    LayoutEngine(sample_arch, connectivity=provider).layout("clb")
    assert calls == [("clb", "default")]

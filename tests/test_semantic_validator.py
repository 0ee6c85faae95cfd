import pytest

from fpga_arch_core import load_architecture
from fpga_arch_core.validation import SemanticValidator, ValidationIssueLevel


def codes(issues):
    return [i.code for i in issues]


def validate_bytes(data: bytes):
    return SemanticValidator(load_architecture(data)).validate()


def test_sample_architecture_is_clean(sample_arch):
    assert SemanticValidator(sample_arch).validate() == []


def test_requires_an_architecture():
    with pytest.raises(TypeError):
        SemanticValidator({"tiles": []})


def test_undriven_child_input(arch_xml):
    issues = validate_bytes(arch_xml("""
    <pb_type name="top">
      <input name="i" num_pins="1"/>
      <pb_type name="c">
        <input name="a" num_pins="2"/>
        <clock name="clk" num_pins="1"/>
      </pb_type>
      <interconnect>
        <direct name="d" input="top.i" output="c.a[0]"/>
      </interconnect>
    </pb_type>
    """))
    undriven = [i for i in issues if i.code == "IC_UNDRIVEN_INPUT"]
    assert sorted(i.details["pin"] for i in undriven) == ["c[0].a[1]", "c[0].clk[0]"]
    assert all(i.level is ValidationIssueLevel.WARNING for i in undriven)
    assert undriven[0].node_path == "top"
    assert undriven[0].mode == "default"


def test_parent_inputs_are_not_reported(passthrough_xml):
    assert codes(validate_bytes(passthrough_xml)) == []


def test_two_directs_into_one_pin(arch_xml):
    issues = validate_bytes(arch_xml("""
    <pb_type name="top">
      <input name="i" num_pins="2"/>
      <output name="o" num_pins="1"/>
      <interconnect>
        <direct name="d1" input="top.i[0]" output="top.o"/>
        <direct name="d2" input="top.i[1]" output="top.o"/>
      </interconnect>
    </pb_type>
    """))
    (issue,) = issues
    assert issue.code == "IC_MULTI_DRIVEN"
    assert issue.details["pin"] == "top.o[0]"
    assert issue.details["driver_count"] == 2
    assert issue.details["interconnects"] == "d1, d2"
    assert "top.o[0]" in str(issue)


def test_mux_fan_in_is_a_single_driver(mux_fan_in_xml):
    assert validate_bytes(mux_fan_in_xml) == []


def test_mux_plus_direct_is_multi_driven(arch_xml):
    issues = validate_bytes(arch_xml("""
    <pb_type name="top">
      <input name="i" num_pins="3"/>
      <output name="o" num_pins="1"/>
      <interconnect>
        <mux name="m" input="top.i[0] top.i[1]" output="top.o"/>
        <direct name="d" input="top.i[2]" output="top.o"/>
      </interconnect>
    </pb_type>
    """))
    assert codes(issues) == ["IC_MULTI_DRIVEN"]
    assert issues[0].details["interconnects"] == "d, m"


def test_unplaced_tile_and_unused_root(arch_xml):
    tiles = """
      <tiles>
        <tile name="t"><sub_tile name="t"><equivalent_sites><site pb_type="top"/></equivalent_sites></sub_tile></tile>
        <tile name="spare"><sub_tile name="spare"><equivalent_sites><site pb_type="top"/></equivalent_sites></sub_tile></tile>
      </tiles>
    """
    issues = validate_bytes(arch_xml('<pb_type name="top"/><pb_type name="orphan"/>', tiles=tiles))
    by_code = {i.code: i for i in issues}
    assert set(by_code) == {"TILE_UNPLACED", "PB_UNUSED_ROOT"}
    assert by_code["TILE_UNPLACED"].details["tile"] == "spare"
    assert by_code["PB_UNUSED_ROOT"].node_path == "orphan"
    assert all(i.level is ValidationIssueLevel.INFO for i in issues)


def test_definitions_are_checked_once(arch_xml):
    issues = validate_bytes(arch_xml("""
    <pb_type name="leaf"><input name="a" num_pins="1"/></pb_type>
    <pb_type name="mid">
      <pb_type ref="leaf"/>
    </pb_type>
    <pb_type name="top">
      <pb_type ref="mid" name="m1"/>
      <pb_type ref="mid" name="m2"/>
    </pb_type>
    """))
    undriven = [i for i in issues if i.code == "IC_UNDRIVEN_INPUT"]
    # mid's leaf input is undriven; mid is instantiated three times but reported once.
    assert [i.details["pin"] for i in undriven if i.details["instance"] == "leaf[0]"] == ["leaf[0].a[0]"]


def test_validate_can_run_twice(sample_arch):
    validator = SemanticValidator(sample_arch)
    assert validator.validate() == validator.validate() == []


def test_issue_levels_are_advisory_only():
    # Hard failures are raised as errors at load time, never reported as issues.
    assert [level.name for level in ValidationIssueLevel] == ["WARNING", "INFO"]

import io

import pytest

from fpga_arch_core import (
    ArchError,
    Architecture,
    ArchitectureSourceError,
    CardinalityError,
    CyclicHierarchyError,
    Diagnosable,
    DiagnosableError,
    MalformedXmlError,
    SchemaError,
    UnresolvedReferenceError,
    load_architecture,
)

REPORT_BANNER = "FPGA Architecture Core: Actionable Diagnostic Report"


def test_sample_loads_from_every_source_kind(sample_arch_path):
    data = sample_arch_path.read_bytes()
    from_path = load_architecture(sample_arch_path)
    from_str = load_architecture(str(sample_arch_path))
    from_bytes = load_architecture(data)
    from_stream = load_architecture(io.BytesIO(data))
    for arch in (from_path, from_str, from_bytes, from_stream):
        assert isinstance(arch, Architecture)
        assert arch.tile_names() == ("io", "clb", "mult")
    assert from_path.find_pb_type("clb/fle/ble4/lut4").num_pb == 1


def test_malformed_xml_report():
    with pytest.raises(MalformedXmlError) as excinfo:
        load_architecture(b"<architecture>\n  <tiles>\n</architecture>\n")
    err = excinfo.value
    assert err.line >= 2
    report = err.get_diagnostic_report()
    assert REPORT_BANNER in report
    assert "Malformed XML" in report


def test_schema_error_report():
    with pytest.raises(SchemaError) as excinfo:
        load_architecture(b"<architecture><tiles/><layout/></architecture>")
    assert "complexblocklist" in str(excinfo.value)
    assert "Architecture Schema Error" in excinfo.value.get_diagnostic_report()


def test_missing_file(tmp_path):
    with pytest.raises(ArchitectureSourceError):
        load_architecture(tmp_path / "missing.xml")


def test_unresolved_site_reference(arch_xml):
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        load_architecture(arch_xml('<pb_type name="top"/>', site="nowhere"))
    assert excinfo.value.name == "nowhere"
    assert "nowhere" in excinfo.value.get_diagnostic_report()


def test_cycle_report(arch_xml):
    body = '<pb_type name="a"><pb_type ref="a" name="x"/></pb_type>'
    with pytest.raises(CyclicHierarchyError) as excinfo:
        load_architecture(arch_xml(body, site="a"))
    assert excinfo.value.path[0] == excinfo.value.path[-1] == "a"
    assert "a -> a" in excinfo.value.get_diagnostic_report()


def test_interconnect_errors_surface_at_load(arch_xml):
    body = """
    <pb_type name="top">
      <input name="i" num_pins="2"/>
      <output name="o" num_pins="1"/>
      <interconnect>
        <direct name="d" input="top.i" output="top.o"/>
      </interconnect>
    </pb_type>
    """
    with pytest.raises(CardinalityError):
        load_architecture(arch_xml(body))


@pytest.mark.parametrize("data", [
    b"<architecture>",
    b"<architecture/>",
    b"<architecture><tiles/><layout/><complexblocklist/><tiles/></architecture>",
])
def test_every_failure_is_diagnosable(data):
    with pytest.raises(DiagnosableError) as excinfo:
        load_architecture(data)
    err = excinfo.value
    assert isinstance(err, ArchError)
    assert isinstance(err, Diagnosable)
    assert REPORT_BANNER in err.get_diagnostic_report()


def test_errors_are_frozen():
    err = SchemaError(element="pb_type", attribute="name")
    with pytest.raises(AttributeError):
        err.element = "mode"

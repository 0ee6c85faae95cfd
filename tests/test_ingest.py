import io

import pytest

from fpga_arch_core.ingest import ArchitectureSourceError, MalformedXmlError, XmlTreeReader


@pytest.fixture
def reader():
    return XmlTreeReader()


def test_reads_path_and_bytes_identically(reader, sample_arch_path):
    from_path = reader.read(sample_arch_path)
    from_str_path = reader.read(str(sample_arch_path))
    from_bytes = reader.read(sample_arch_path.read_bytes())
    assert from_path == from_bytes == from_str_path
    assert from_path.tag == "architecture"


def test_reads_binary_stream(reader):
    stream = io.BytesIO(b"<architecture><tiles/></architecture>")
    root = reader.read(stream)
    assert [c.tag for c in root.children] == ["tiles"]


def test_comments_and_processing_instructions_are_dropped(reader):
    root = reader.read(b"<?xml version='1.0'?><a><!-- note --><?pi data?><b x='1'/></a>")
    assert [c.tag for c in root.children] == ["b"]
    assert root.text is None


def test_attributes_keep_document_order_and_are_read_only(reader):
    root = reader.read(b'<a zeta="1" alpha="2" mid="3"/>')
    assert list(root.attributes) == ["zeta", "alpha", "mid"]
    with pytest.raises(TypeError):
        root.attributes["zeta"] = "x"


def test_text_and_line_numbers(reader):
    root = reader.read(b"<a>\n  <b>  hello  </b>\n  <c>   </c>\n</a>")
    b, c = root.children
    assert b.text == "hello"
    assert c.text is None
    assert b.line == 2
    assert c.line == 3


def test_namespace_prefixes_are_reduced_to_local_names(reader):
    root = reader.read(b'<x:a xmlns:x="urn:test"><x:b x:attr="v"/></x:a>')
    assert root.tag == "a"
    assert root.children[0].tag == "b"
    assert root.children[0].attributes["attr"] == "v"


def test_colliding_local_attribute_names_keep_their_namespace(reader):
    root = reader.read(
        b'<a xmlns:x="urn:x" xmlns:y="urn:y" name="plain" x:name="from_x" y:kind="k" x:tag="t1" y:tag="t2"/>'
    )
    assert dict(root.attributes) == {
        "name": "plain",
        "{urn:x}name": "from_x",
        "kind": "k",
        "{urn:x}tag": "t1",
        "{urn:y}tag": "t2",
    }


def test_iter_children_and_first_child(reader):
    root = reader.read(b"<a><b n='1'/><c/><b n='2'/></a>")
    assert [e.attributes["n"] for e in root.iter_children("b")] == ["1", "2"]
    assert root.first_child("c") is not None
    assert root.first_child("missing") is None


def test_syntax_error_reports_position(reader):
    with pytest.raises(MalformedXmlError) as excinfo:
        reader.read(b"<a>\n  <b>\n</a>")
    err = excinfo.value
    assert err.line >= 2
    assert err.column >= 1
    assert err.byte_offset is not None and err.byte_offset >= 0
    assert "Malformed" in err.get_diagnostic_report() or "XML" in err.get_diagnostic_report()


def test_empty_document_is_malformed(reader):
    with pytest.raises(MalformedXmlError):
        reader.read(b"   ")


def test_missing_file_is_a_source_error(reader, tmp_path):
    with pytest.raises(ArchitectureSourceError) as excinfo:
        reader.read(tmp_path / "nope.xml")
    assert "nope.xml" in excinfo.value.source


def test_external_entities_are_not_resolved(reader, tmp_path):
    secret = tmp_path / "secret.txt"
    secret.write_text("top secret")
    doc = (
        f'<?xml version="1.0"?><!DOCTYPE a [<!ENTITY xxe SYSTEM "file://{secret}">]>'
        "<a>&xxe;</a>"
    ).encode()
    root = reader.read(doc)
    assert root.text is None or "top secret" not in root.text

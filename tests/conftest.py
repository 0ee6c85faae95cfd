# tests/conftest.py
from pathlib import Path

import pytest

from fpga_arch_core import Architecture, load_architecture

DATA_DIR = Path(__file__).parent / "data"
SAMPLE_ARCH_PATH = DATA_DIR / "k4_n4.xml"

DEFAULT_TILES = """
  <tiles>
    <tile name="t">
      <sub_tile name="t">
        <equivalent_sites><site pb_type="{site}"/></equivalent_sites>
      </sub_tile>
    </tile>
  </tiles>
"""

DEFAULT_LAYOUT = """
  <layout>
    <auto_layout aspect_ratio="1.0">
      <fill type="t" priority="1"/>
    </auto_layout>
  </layout>
"""


def wrap_arch(complexblocks: str, site: str = "top", tiles: str = None, layout: str = None, extra: str = "") -> bytes:
    """
    Wraps a <complexblocklist> body into a minimal complete architecture document.
    The default tile 't' hosts the top-level pb_type named by `site`.
    """
    tiles = tiles if tiles is not None else DEFAULT_TILES.format(site=site)
    layout = layout if layout is not None else DEFAULT_LAYOUT
    return (
        "<architecture>\n"
        f"{tiles}\n{layout}\n{extra}\n"
        f"  <complexblocklist>\n{complexblocks}\n  </complexblocklist>\n"
        "</architecture>\n"
    ).encode("utf-8")


@pytest.fixture(scope="session")
def sample_arch_path() -> Path:
    return SAMPLE_ARCH_PATH


@pytest.fixture(scope="session")
def arch_xml():
    """Returns the `wrap_arch` helper for building small inline documents."""
    return wrap_arch


@pytest.fixture(scope="session")
def sample_arch() -> Architecture:
    return load_architecture(SAMPLE_ARCH_PATH)


@pytest.fixture
def passthrough_xml() -> bytes:
    """A two-level block whose only mode wires in[2] straight to out[2]."""
    return wrap_arch("""
    <pb_type name="top">
      <input name="in" num_pins="2"/>
      <output name="out" num_pins="2"/>
      <interconnect>
        <direct name="pass" input="top.in" output="top.out"/>
      </interconnect>
    </pb_type>
    """)


@pytest.fixture
def mux_fan_in_xml() -> bytes:
    """A parent with six 1-bit inputs feeding one child input through a single mux."""
    return wrap_arch("""
    <pb_type name="top">
      <input name="s" num_pins="6"/>
      <output name="o" num_pins="1"/>
      <pb_type name="leaf" blif_model=".names">
        <input name="in" num_pins="1"/>
        <output name="out" num_pins="1"/>
      </pb_type>
      <interconnect>
        <mux name="sel" input="top.s[5] top.s[4] top.s[3] top.s[2] top.s[1] top.s[0]" output="leaf.in"/>
        <direct name="drive" input="leaf.out" output="top.o"/>
      </interconnect>
    </pb_type>
    """)

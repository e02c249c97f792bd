import sys
from pathlib import Path

import pytest

from fontTools.feaLib.builder import addOpenTypeFeaturesFromString
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import newTable

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


SAMPLE_TTX = """\
<?xml version="1.0" encoding="UTF-8"?>
<ttFont sfntVersion="\\x00\\x01\\x00\\x00" ttLibVersion="4.53">

  <GlyphOrder>
    <!-- The 'id' attribute is only for humans; it is ignored when parsed. -->
    <GlyphID id="0" name=".notdef"/>
    <GlyphID id="1" name="A"/>
    <GlyphID id="2" name="customglyph123"/>
    <GlyphID id="3" name=".null"/>
  </GlyphOrder>

  <hmtx>
    <mtx name=".notdef" width="500" lsb="50"/>
    <mtx name=".null" width="0" lsb="0"/>
    <mtx name="A" width="501" lsb="50"/>
    <mtx name="customglyph123" width="502" lsb="50"/>
  </hmtx>

  <cmap>
    <tableVersion version="0"/>
    <cmap_format_4 platformID="3" platEncID="1" language="0">
      <map code="0x5c" name="A"/><!-- REVERSE SOLIDUS -->
      <map code="0x2603" name="customglyph123"/><!-- SNOWMAN -->
    </cmap_format_4>
  </cmap>

  <hdmx>
    <hdmxData>
                ppem:  12 ;

             .notdef:   6 ;
                .null:   0 ;
                    A:   7 ;
       customglyph123:   8 ;
    </hdmxData>
  </hdmx>

  <GSUB>
    <Version value="0x00010000"/>
    <LookupList>
      <!-- LookupCount=2 -->
      <Lookup index="0">
        <LookupType value="1"/>
        <LookupFlag value="0"/>
        <!-- SubTableCount=1 -->
        <SingleSubst index="0">
          <Substitution in="A" out="customglyph123"/>
        </SingleSubst>
      </Lookup>
      <Lookup index="1">
        <LookupType value="6"/>
        <LookupFlag value="0"/>
        <!-- SubTableCount=1 -->
        <ChainContextSubst index="0" Format="2">
          <Coverage>
            <Glyph value="customglyph123"/>
          </Coverage>
          <InputClassDef>
            <ClassDef glyph="customglyph123" class="1"/>
          </InputClassDef>
          <!-- ChainSubClassSetCount=2 -->
          <ChainSubClassSet index="1">
            <ChainSubClassRule index="0">
              <!-- InputGlyphCount=2 -->
              <Input index="0" value="1"/>
            </ChainSubClassRule>
          </ChainSubClassSet>
        </ChainContextSubst>
      </Lookup>
    </LookupList>
  </GSUB>

  <glyf>
    <TTGlyph name=".notdef"/><!-- contains no outline data -->
    <TTGlyph name=".null"/><!-- contains no outline data -->
    <TTGlyph name="A" xMin="50" yMin="0" xMax="250" yMax="110">
      <contour>
        <pt x="50" y="0" on="1"/>
      </contour>
      <instructions/>
    </TTGlyph>
    <TTGlyph name="customglyph123" xMin="0" yMin="0" xMax="250" yMax="110">
      <component glyphName="A" x="0" y="0" flags="0x4"/>
    </TTGlyph>
  </glyf>

  <post>
    <formatType value="2.0"/>
    <psNames>
      <!-- This file uses unique glyph names based on the information
           found in the 'post' table. -->
    </psNames>
    <extraNames>
      <!-- following are the name that are not taken from the standard Mac glyph order -->
      <psName name="customglyph123"/>
    </extraNames>
  </post>

</ttFont>
"""


class FakeFont:
    """Decoder stand-in backed by a code point to glyph ID dict."""

    def __init__(self, cmap):
        self.cmap = cmap

    def glyph_index_for_codepoint(self, codepoint):
        return self.cmap.get(codepoint)


@pytest.fixture
def sample_lines():
    return SAMPLE_TTX.split("\n")


@pytest.fixture
def sample_font():
    return FakeFont({0x5C: 1, 0x2603: 2})


def build_test_font(
    path: Path,
    glyph_order: list[str],
    cmap: dict[int, str],
    features: str | None = None,
    hdmx: bool = False,
) -> Path:
    """Build a small TrueType font where glyph i has advance width 500 + i.

    With hdmx, glyph i gets a 12ppem device width of 10 + i.
    """
    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap(cmap)

    glyphs = {}
    metrics = {}
    for i, glyph_name in enumerate(glyph_order):
        pen = TTGlyphPen(None)
        if glyph_name != ".null":
            pen.moveTo((50, 0))
            pen.lineTo((50, 100 + 10 * i))
            pen.lineTo((250, 100 + 10 * i))
            pen.lineTo((250, 0))
            pen.closePath()
        glyphs[glyph_name] = pen.glyph()
        metrics[glyph_name] = (500 + i, 50)

    fb.setupGlyf(glyphs)
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable({"familyName": "Reindex Test", "styleName": "Regular"})
    fb.setupOS2()
    fb.setupPost()

    if hdmx:
        table = newTable("hdmx")
        table.hdmx = {12: {name: 10 + i for i, name in enumerate(glyph_order)}}
        fb.font["hdmx"] = table

    if features:
        addOpenTypeFeaturesFromString(fb.font, features)

    fb.save(str(path))
    return path


@pytest.fixture
def make_font(tmp_path):
    def make(glyph_order, cmap, name="source.ttf", **kwargs):
        return build_test_font(tmp_path / name, glyph_order, cmap, **kwargs)
    return make


@pytest.fixture
def fake_font():
    return FakeFont

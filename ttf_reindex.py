#!/usr/bin/env python3
"""
Re-index a TrueType font so that its glyph order follows Unicode code point
order, renaming glyphs to the Adobe Glyph List for New Fonts convention.

Usage:
    uv run python ttf_reindex.py <src.ttf> <dst.ttf> [glyph_names.yaml]

    The optional YAML file maps PostScript glyph names to code points, in the
    same shape as postscript_glyph_names.yaml. Its entries take precedence
    over the AGLFN name for their code point.

The font is round-tripped through ttx: the binary font is dumped to TTX, the
glyph order and every by-name reference to a renamed glyph are rewritten,
and the TTX is compiled back to the destination path.

Only the Basic Multilingual Plane is scanned for code points.
"""

import io
import re
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from fontTools.agl import UV2AGL
from fontTools.ttLib import TTFont
from fontTools.ttLib.standardGlyphOrder import standardGlyphOrder


# Code points probed by the resolver: [0, SCAN_LIMIT).
SCAN_LIMIT = 0xFFFF

# Sorts unmapped glyphs after every real code point.
NOT_SEEN = 0x7FFFFFFF

PRIVATE_USE_START = 0xE000
PRIVATE_USE_END = 0xF8FF

# Names a 'post' table can refer to without spelling them out in extraNames.
BUILT_IN_NAMES = frozenset(standardGlyphOrder)

GLYPH_ORDER_START = "<GlyphOrder>"
GLYPH_ORDER_END = "</GlyphOrder>"
EXTRA_NAMES_START = "<extraNames>"
EXTRA_NAMES_END = "</extraNames>"

GLYPH_ORDER_COMMENT = "<!-- The 'id' attribute is only for humans; it is ignored when parsed. -->"
EXTRA_NAMES_COMMENT = "<!-- following are the name that are not taken from the standard Mac glyph order -->"

HDMX_START = "<hdmxData>"
HDMX_END = "</hdmxData>"

# Elements that refer to glyphs by name, and the attributes holding the names.
REFERENCE_ATTRIBUTES = {
    "GlyphID": ("name",),           # GlyphOrder
    "TTGlyph": ("name",),           # glyf
    "component": ("glyphName",),    # glyf composites
    "mtx": ("name",),               # hmtx, vmtx
    "map": ("name",),               # cmap
    "psName": ("name",),            # post
    "yPel": ("glyph",),             # LTSH
    "pair": ("l", "r"),             # kern
    "glyphName": ("value",),        # VORG
    "glyphVariations": ("glyph",),  # gvar
    "Map": ("glyph",),              # HVAR, VVAR
    "ColorGlyph": ("name",),        # COLR v0
    "layer": ("name",),
    "glyph": ("name", "value"),     # sbix, MATH
    "glyphLoc": ("name",),          # EBLC, CBLC
    "ebdtComponent": ("name",),     # EBDT, CBDT
    "Glyph": ("value",),            # Coverage, COLR v1
    "ClassDef": ("glyph",),
    "Substitution": ("in", "out"),
    "AlternateSet": ("glyph",),
    "Alternate": ("glyph",),
    "LigatureSet": ("glyph",),
    "Ligature": ("components", "glyph"),
    "SecondGlyph": ("value",),
    "Substitute": ("value",),
    "BaseGlyph": ("value",),
    "LayerGlyph": ("value",),
    "VariantGlyph": ("value",),
}

# Context rule sequences hold glyph names in format 1 and class numbers in
# format 2, so they are renamed but not checked against the glyph order.
GLYPH_OR_CLASS_ATTRIBUTES = {
    "Backtrack": ("value",),
    "Input": ("value",),
    "LookAhead": ("value",),
}

# Comma-separated glyph lists.
LIST_ATTRIBUTES = {("Substitution", "out"), ("Ligature", "components")}

TAG_RE = re.compile(r"^\s*<([A-Za-z_][\w.-]*)[\s/>]")
BITMAP_TAG_RE = re.compile(r"^[ce]bdt_bitmap_format_\d+$")
GLYPH_ID_RE = re.compile(r'^\s*<GlyphID id="[^"]*" name="([^"]*)"/>\s*$')
HDMX_ROW_RE = re.compile(r"^(\s*)([^\s:]+)(:.*)$")
ATTRIBUTE_RES = {
    attr: re.compile(rf'(\s{attr}=")([^"]*)(")')
    for attrs in (*REFERENCE_ATTRIBUTES.values(), *GLYPH_OR_CLASS_ATTRIBUTES.values())
    for attr in attrs
}


class DecodeError(ValueError):
    """The font bytes could not be decoded."""


@dataclass
class GlyphEntry:
    """One row of the source glyph order."""

    old_id: int
    old_name: str
    new_name: str = ""
    codepoint: int | None = None

    def __post_init__(self):
        if not self.new_name:
            self.new_name = self.old_name


@dataclass
class ReindexResult:
    lines: list[str]
    entries: list[GlyphEntry]
    order: list[int]
    renames: dict[str, str] = field(default_factory=dict)
    extra_names: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Font decoder
# ---------------------------------------------------------------------------

class FontHandle:
    """Code point to glyph ID lookups over a decoded font."""

    def __init__(self, font: TTFont):
        try:
            self._cmap = font.getBestCmap() or {}
            self._glyph_ids = font.getReverseGlyphMap()
        except Exception as e:
            raise DecodeError(f"cannot decode cmap: {e}") from e

    def glyph_index_for_codepoint(self, codepoint: int) -> int | None:
        """Return the glyph ID mapped from codepoint, or None."""
        name = self._cmap.get(codepoint)
        if name is None:
            return None
        try:
            return self._glyph_ids[name]
        except KeyError:
            raise DecodeError(
                f"cmap maps U+{codepoint:04X} to unknown glyph {name!r}"
            ) from None


def parse(data: bytes) -> FontHandle:
    """Decode binary font data."""
    try:
        font = TTFont(io.BytesIO(data))
    except Exception as e:
        raise DecodeError(f"cannot parse font: {e}") from e
    return FontHandle(font)


def load_postscript_glyph_names(path: Path) -> dict:
    """Load PostScript glyph name to Unicode codepoint mapping from YAML."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of glyph name to code point")
    for name, codepoint in data.items():
        if not isinstance(codepoint, int):
            raise ValueError(f"{path}: code point for {name!r} is not an integer")
    return data


def standard_names_with(overrides: dict | None = None) -> dict[int, str]:
    """Return the AGLFN code point to name table, with overrides applied."""
    names = dict(UV2AGL)
    for name, codepoint in (overrides or {}).items():
        names[codepoint] = name
    return names


# ---------------------------------------------------------------------------
# TTX glyph order
# ---------------------------------------------------------------------------

def load_glyph_order(lines: list[str]) -> list[GlyphEntry]:
    """Build one GlyphEntry per GlyphID record of the GlyphOrder block."""
    entries = []
    in_block = False
    for line in lines:
        marker = line.strip()
        if not in_block:
            if marker == GLYPH_ORDER_START:
                in_block = True
            continue
        if marker == GLYPH_ORDER_END:
            break
        m = GLYPH_ID_RE.match(line)
        if m:
            entries.append(GlyphEntry(old_id=len(entries), old_name=m.group(1)))
    else:
        if in_block:
            raise ValueError(f"TTX ends inside {GLYPH_ORDER_START} block")
        raise ValueError(f"TTX has no {GLYPH_ORDER_START} block")

    if not entries:
        raise ValueError(f"TTX {GLYPH_ORDER_START} block is empty")
    return entries


# ---------------------------------------------------------------------------
# Codepoint resolver
# ---------------------------------------------------------------------------

def resolve_codepoints(entries: list[GlyphEntry], font) -> None:
    """Record the lowest code point mapping to each glyph.

    Glyph 0 is the .notdef placeholder; a cmap entry pointing at it means
    "no glyph" and is ignored.
    """
    for r in range(SCAN_LIMIT):
        glyph_id = font.glyph_index_for_codepoint(r)
        if not glyph_id:
            continue
        if glyph_id >= len(entries):
            raise ValueError(
                f"U+{r:04X} maps to glyph {glyph_id}, "
                f"but the glyph order has only {len(entries)} glyphs"
            )
        entry = entries[glyph_id]
        if entry.codepoint is None:
            entry.codepoint = r


# ---------------------------------------------------------------------------
# Name assigner
# ---------------------------------------------------------------------------

def is_private_use(codepoint: int) -> bool:
    return PRIVATE_USE_START <= codepoint <= PRIVATE_USE_END


def canonical_name(codepoint: int, standard_names: dict[int, str] = UV2AGL) -> str:
    """Return the standard glyph name for a code point, e.g. uni01F3."""
    name = standard_names.get(codepoint)
    if name is None:
        name = f"uni{codepoint:04X}"
    return name


def assign_names(
    entries: list[GlyphEntry], standard_names: dict[int, str] = UV2AGL
) -> dict[str, str]:
    """Set new_name on every entry and return the old-to-new rename map.

    Private Use Area glyphs and glyphs without a code point keep their
    names.
    """
    renames = {}
    for entry in entries:
        if entry.codepoint is None or is_private_use(entry.codepoint):
            entry.new_name = entry.old_name
            continue
        entry.new_name = canonical_name(entry.codepoint, standard_names)
        if entry.new_name != entry.old_name:
            renames[entry.old_name] = entry.new_name

    owners = {}
    for entry in entries:
        if entry.new_name in owners:
            other = owners[entry.new_name]
            raise ValueError(
                f"glyphs {other.old_name!r} (id {other.old_id}) and "
                f"{entry.old_name!r} (id {entry.old_id}) would both be "
                f"named {entry.new_name!r}"
            )
        owners[entry.new_name] = entry
    return renames


def extra_names(entries: list[GlyphEntry]) -> list[str]:
    """New names that the 'post' table must spell out."""
    return sorted({e.new_name for e in entries if e.new_name not in BUILT_IN_NAMES})


# ---------------------------------------------------------------------------
# Order planner
# ---------------------------------------------------------------------------

def _sort_key(entry: GlyphEntry):
    codepoint = NOT_SEEN if entry.codepoint is None else entry.codepoint
    return codepoint, entry.old_name


def plan_order(entries: list[GlyphEntry]) -> list[int]:
    """Return old glyph IDs in their new order.

    The first glyph must stay .notdef, so it is never moved.
    """
    if not entries:
        return []
    rest = sorted(entries[1:], key=_sort_key)
    return [entries[0].old_id] + [e.old_id for e in rest]


# ---------------------------------------------------------------------------
# Reference rewriter
# ---------------------------------------------------------------------------

def _tag(line: str) -> str | None:
    m = TAG_RE.match(line)
    return m.group(1) if m else None


def _glyph_attributes(tag: str | None) -> tuple[str, ...]:
    if tag is None:
        return ()
    if tag in REFERENCE_ATTRIBUTES:
        return REFERENCE_ATTRIBUTES[tag]
    if BITMAP_TAG_RE.match(tag):
        return ("name",)
    return ()


def _split(tag: str, attr: str, value: str) -> list[str]:
    if (tag, attr) in LIST_ATTRIBUTES:
        return value.split(",")
    return [value]


def referenced_names(line: str) -> list[str]:
    """Return the glyph names a recognized record refers to.

    Context rule sequences are left out, since their values may be class
    numbers.
    """
    tag = _tag(line)
    names = []
    for attr in _glyph_attributes(tag):
        m = ATTRIBUTE_RES[attr].search(line)
        if m:
            names.extend(_split(tag, attr, m.group(2)))
    return names


def rewrite_line(line: str, renames: dict[str, str]) -> str:
    """Rename the glyph-valued attributes of one TTX element line."""
    tag = _tag(line)
    attrs = _glyph_attributes(tag) + GLYPH_OR_CLASS_ATTRIBUTES.get(tag, ())
    for attr in attrs:
        def replace(m):
            names = [renames.get(n, n) for n in _split(tag, attr, m.group(2))]
            return m.group(1) + ",".join(names) + m.group(3)

        line = ATTRIBUTE_RES[attr].sub(replace, line, count=1)
    return line


def hdmx_row_name(line: str) -> str | None:
    """Return the glyph name of an hdmxData row, e.g. '      A:   5   6 ;'."""
    m = HDMX_ROW_RE.match(line)
    if not m or m.group(2) == "ppem":
        return None
    return m.group(2)


def rewrite_hdmx_row(line: str, renames: dict[str, str]) -> str:
    m = HDMX_ROW_RE.match(line)
    if not m or m.group(2) not in renames:
        return line
    return m.group(1) + renames[m.group(2)] + m.group(3)


def rewrite_references(lines: list[str], renames: dict[str, str]) -> list[str]:
    """Rename every by-name glyph reference in the TTX lines."""
    out = []
    in_hdmx = False
    for line in lines:
        marker = line.strip()
        if marker == HDMX_START:
            in_hdmx = True
        elif marker == HDMX_END:
            in_hdmx = False
        elif in_hdmx:
            out.append(rewrite_hdmx_row(line, renames))
            continue
        out.append(rewrite_line(line, renames))
    return out


# ---------------------------------------------------------------------------
# Table emitter
# ---------------------------------------------------------------------------

NORMAL = "normal"
IN_GLYPH_ORDER = "in_glyph_order"
IN_EXTRA_NAMES = "in_extra_names"


def _child_indent(line: str) -> str:
    return line[: len(line) - len(line.lstrip())] + "  "


def emit(
    lines: list[str],
    entries: list[GlyphEntry],
    order: list[int],
    extra: list[str],
    renames: dict[str, str],
) -> list[str]:
    """Write the reindexed TTX.

    The GlyphOrder and extraNames blocks are replaced wholesale; every other
    line goes through the reference rewriter.
    """
    known = {e.old_name for e in entries}
    out = []
    state = NORMAL
    in_hdmx = False
    for lineno, line in enumerate(lines, start=1):
        marker = line.strip()

        if state == IN_GLYPH_ORDER:
            if marker == GLYPH_ORDER_END:
                out.append(line)
                state = NORMAL
            continue
        if state == IN_EXTRA_NAMES:
            if marker == EXTRA_NAMES_END:
                out.append(line)
                state = NORMAL
            continue

        if marker == GLYPH_ORDER_START:
            out.append(line)
            indent = _child_indent(line)
            out.append(indent + GLYPH_ORDER_COMMENT)
            for new_id, old_id in enumerate(order):
                out.append(f'{indent}<GlyphID id="{new_id}" name="{entries[old_id].new_name}"/>')
            state = IN_GLYPH_ORDER
            continue
        if marker == EXTRA_NAMES_START:
            out.append(line)
            indent = _child_indent(line)
            out.append(indent + EXTRA_NAMES_COMMENT)
            for name in extra:
                out.append(f'{indent}<psName name="{name}"/>')
            state = IN_EXTRA_NAMES
            continue

        if marker == HDMX_START:
            in_hdmx = True
        elif marker == HDMX_END:
            in_hdmx = False
        elif in_hdmx:
            name = hdmx_row_name(line)
            if name is not None and name not in known:
                raise ValueError(f"line {lineno}: hdmx row for unknown glyph {name!r}")
            out.append(rewrite_hdmx_row(line, renames))
            continue

        for name in referenced_names(line):
            if name not in known:
                raise ValueError(f"line {lineno}: reference to unknown glyph {name!r}")
        out.append(rewrite_line(line, renames))

    if state == IN_GLYPH_ORDER:
        raise ValueError(f"TTX ends before {GLYPH_ORDER_END}")
    if state == IN_EXTRA_NAMES:
        raise ValueError(f"TTX ends before {EXTRA_NAMES_END}")
    return out


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------

def reindex_ttx(
    lines: list[str], font, standard_names: dict[int, str] = UV2AGL
) -> ReindexResult:
    """Reindex an in-memory TTX document against its decoded font."""
    entries = load_glyph_order(lines)
    resolve_codepoints(entries, font)
    renames = assign_names(entries, standard_names)
    extra = extra_names(entries)
    order = plan_order(entries)
    out = emit(lines, entries, order, extra, renames)
    return ReindexResult(
        lines=out, entries=entries, order=order, renames=renames, extra_names=extra
    )


def run_ttx(input_path: Path, output_path: Path) -> None:
    """Convert between binary and TTX with fontTools' ttx, in a subprocess."""
    cmd = [sys.executable, "-m", "fontTools.ttx", "-q", "-o", str(output_path), str(input_path)]
    proc = subprocess.run(cmd, capture_output=True, text=True)
    if proc.returncode != 0:
        err = proc.stderr.strip() or proc.stdout.strip()
        raise RuntimeError(
            f"ttx failed with exit status {proc.returncode}.\n"
            f"Command: {' '.join(cmd)}\n"
            f"Output:\n{err}"
        )


def reindex_font(
    src: Path, dst: Path, standard_names: dict[int, str] = UV2AGL
) -> ReindexResult:
    """Reindex the font at src and write the result to dst."""
    font = parse(Path(src).read_bytes())

    with tempfile.TemporaryDirectory(prefix="ttf-reindex-") as td:
        ttx_path = Path(td) / "font.ttx"
        run_ttx(src, ttx_path)
        lines = ttx_path.read_text(encoding="utf-8").split("\n")
        result = reindex_ttx(lines, font, standard_names)
        ttx_path.write_text("\n".join(result.lines), encoding="utf-8")
        run_ttx(ttx_path, dst)

    return result


def main():
    if len(sys.argv) < 3:
        print("Usage: uv run python ttf_reindex.py <src.ttf> <dst.ttf> [glyph_names.yaml]")
        print("\nExample:")
        print("  uv run python ttf_reindex.py Go-Regular.ttf build/Go-Regular.ttf")
        sys.exit(1)

    src = Path(sys.argv[1])
    dst = Path(sys.argv[2])

    if not src.exists():
        print(f"Error: Input path not found: {src}", file=sys.stderr)
        sys.exit(1)

    try:
        standard_names = UV2AGL
        if len(sys.argv) > 3:
            standard_names = standard_names_with(load_postscript_glyph_names(Path(sys.argv[3])))
        result = reindex_font(src, dst, standard_names)
    except (ValueError, RuntimeError, OSError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Wrote {dst}")
    print(f"  Glyphs: {len(result.entries)}")
    print(f"  Renamed: {len(result.renames)}")
    print(f"  Extra names: {len(result.extra_names)}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Print the official Unicode names for code points.

Usage:
    uv run python runename.py 5c 2603 U+1F574

    U+0000005C REVERSE SOLIDUS
    U+00002603 SNOWMAN
    U+0001F574 MAN IN BUSINESS SUIT LEVITATING
"""

import sys
import unicodedata


def codepoint_name(codepoint: int) -> str:
    """Return the character name, or <control> for C0/C1 controls.

    Values past the last code point have no name.
    """
    if not 0 <= codepoint <= sys.maxunicode:
        return ""
    char = chr(codepoint)
    if unicodedata.category(char) == "Cc":
        return "<control>"
    return unicodedata.name(char, "")


def describe(arg: str) -> str:
    """Format one command-line argument as a 'U+XXXXXXXX NAME' line."""
    if arg.startswith("U+") or arg.startswith("u+"):
        arg = arg[2:]
    try:
        codepoint = int(arg, 16)
    except ValueError as e:
        return f"U+{0:08X} !{e}"
    return f"U+{codepoint:08X} {codepoint_name(codepoint)}"


def main():
    for arg in sys.argv[1:]:
        print(describe(arg))


if __name__ == "__main__":
    main()

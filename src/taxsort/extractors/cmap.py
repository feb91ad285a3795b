"""
ToUnicode character map discovery.

Statement generators frequently subset fonts and re-encode glyphs as 1- or
2-byte codes; the only route back to readable text is the embedded
ToUnicode CMap. Supported sections:

- begincodespacerange / endcodespacerange: source code byte widths
- beginbfchar / endbfchar: <src> <dst> single-code mappings
- beginbfrange / endbfrange: <lo> <hi> <dst> and <lo> <hi> [<d1> <d2> ...]

Destinations are UTF-16BE. Maps are scoped to one document pass and never
persisted.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Upper bound on codes expanded from a single bfrange entry
MAX_RANGE_SPAN = 0x10000

_HEX = r"<([0-9A-Fa-f\s]*)>"

CODESPACE_SECTION = re.compile(r"begincodespacerange(.*?)endcodespacerange", re.S)
BFCHAR_SECTION = re.compile(r"beginbfchar(.*?)endbfchar", re.S)
BFRANGE_SECTION = re.compile(r"beginbfrange(.*?)endbfrange", re.S)
HEX_PAIR = re.compile(rf"{_HEX}\s*{_HEX}")
RANGE_ENTRY = re.compile(rf"{_HEX}\s*{_HEX}\s*(?:{_HEX}|\[([^\]]*)\])")
HEX_ITEM = re.compile(_HEX)
WHITESPACE = re.compile(r"\s+")


def _hex_bytes(value: str) -> bytes:
    """Decode a hex token body; an odd trailing digit is padded with 0."""
    cleaned = WHITESPACE.sub("", value)
    if len(cleaned) % 2:
        cleaned += "0"
    return bytes.fromhex(cleaned)


def _unicode_text(destination: bytes) -> str:
    """Interpret a destination code as UTF-16BE text."""
    if len(destination) == 1:
        return chr(destination[0])
    return destination.decode("utf-16-be", errors="ignore")


@dataclass(frozen=True)
class UnicodeCharacterMap:
    """Fixed-width byte code → Unicode text mapping from one CMap."""

    mapping: dict[bytes, str]
    code_widths: tuple[int, ...]  # Descending, e.g. (2,) or (2, 1)

    def decode(self, data: bytes) -> str:
        """
        Decode a string token through this map.

        Longest code width is tried first at every position; unmapped
        codes are skipped by the narrowest width.
        """
        if not self.mapping or not self.code_widths:
            return ""

        step = min(self.code_widths)
        out: list[str] = []
        i = 0
        while i < len(data):
            for width in self.code_widths:
                code = data[i : i + width]
                if len(code) == width and code in self.mapping:
                    out.append(self.mapping[code])
                    i += width
                    break
            else:
                i += step
        return "".join(out)


def _parse_bfchar(section: str, mapping: dict[bytes, str], widths: set[int]) -> None:
    for src_hex, dst_hex in HEX_PAIR.findall(section):
        source = _hex_bytes(src_hex)
        if not source:
            continue
        mapping[source] = _unicode_text(_hex_bytes(dst_hex))
        widths.add(len(source))


def _parse_bfrange(section: str, mapping: dict[bytes, str], widths: set[int]) -> None:
    for lo_hex, hi_hex, dst_hex, dst_array in RANGE_ENTRY.findall(section):
        lo_bytes = _hex_bytes(lo_hex)
        hi_bytes = _hex_bytes(hi_hex)
        if not lo_bytes or len(lo_bytes) != len(hi_bytes):
            continue

        width = len(lo_bytes)
        lo = int.from_bytes(lo_bytes, "big")
        hi = int.from_bytes(hi_bytes, "big")
        if hi < lo:
            continue
        hi = min(hi, lo + MAX_RANGE_SPAN - 1)
        widths.add(width)

        if dst_array:
            # One explicit destination per code
            for offset, item in enumerate(HEX_ITEM.findall(dst_array)):
                if lo + offset > hi:
                    break
                mapping[(lo + offset).to_bytes(width, "big")] = _unicode_text(_hex_bytes(item))
            continue

        destination = _hex_bytes(dst_hex)
        if not destination:
            continue
        base = int.from_bytes(destination, "big")
        for offset in range(hi - lo + 1):
            try:
                target = (base + offset).to_bytes(len(destination), "big")
            except OverflowError:
                break
            mapping[(lo + offset).to_bytes(width, "big")] = _unicode_text(target)


def defines_character_map(text: str) -> bool:
    """True for a block holding a CMap program (bfchar or bfrange sections)."""
    return "beginbfchar" in text or "beginbfrange" in text


def parse_character_map(text: str) -> UnicodeCharacterMap | None:
    """
    Build a character map from one (latin-1 decoded) content block.

    Returns:
        UnicodeCharacterMap, or None if the block defines no mappings
    """
    if not defines_character_map(text):
        return None

    mapping: dict[bytes, str] = {}
    widths: set[int] = set()

    for section in CODESPACE_SECTION.findall(text):
        for lo_hex, _ in HEX_PAIR.findall(section):
            lo_bytes = _hex_bytes(lo_hex)
            if lo_bytes:
                widths.add(len(lo_bytes))

    for section in BFCHAR_SECTION.findall(text):
        _parse_bfchar(section, mapping, widths)
    for section in BFRANGE_SECTION.findall(text):
        _parse_bfrange(section, mapping, widths)

    if not mapping:
        return None

    logger.debug("Discovered character map: %d codes, widths=%s", len(mapping), sorted(widths))
    return UnicodeCharacterMap(
        mapping=mapping,
        code_widths=tuple(sorted(widths, reverse=True)),
    )


def find_character_maps(texts: Iterable[str]) -> list[UnicodeCharacterMap]:
    """Collect one character map per block that defines one."""
    maps = []
    for text in texts:
        cmap = parse_character_map(text)
        if cmap is not None:
            maps.append(cmap)
    return maps

"""
Text extraction from raw statement PDF bytes.
"""

from .cmap import UnicodeCharacterMap, defines_character_map, find_character_maps, parse_character_map
from .pdf_text import extract_candidates, readability_score

__all__ = [
    "UnicodeCharacterMap",
    "defines_character_map",
    "extract_candidates",
    "find_character_maps",
    "parse_character_map",
    "readability_score",
]

"""
PDF text candidate extractor.

Recovers human-readable line candidates from raw statement PDF bytes
without a PDF object model:

1. Forward scan for stream/endstream content blocks, inflating
   /FlateDecode blocks (failures fall back to the raw bytes)
2. Literal (...) and hex <...> strings shown by Tj, ', " and [...] TJ
3. Every string token decoded raw and through each discovered ToUnicode
   map; the most readable decoding wins
4. Blunt printable-line pass when text operators yield too little

Extraction never raises for malformed input; it degrades to fewer
candidates. Same bytes in, same candidates out.
"""

import logging
import re
import zlib
from collections.abc import Iterator
from dataclasses import dataclass

from .cmap import UnicodeCharacterMap, defines_character_map, find_character_maps

logger = logging.getLogger(__name__)

STREAM_TAG = b"stream"
ENDSTREAM_TAG = b"endstream"
FLATE_MARKER = b"/FlateDecode"
IMAGE_MARKERS = (b"/Subtype/Image", b"/Subtype /Image")

# Bytes before a stream keyword searched for the stream dictionary
HEADER_WINDOW = 320

# Inflated block size cap
MAX_INFLATED_BYTES = 16 * 1024 * 1024

# Below this many operator candidates the printable-line pass runs too
STRUCTURED_FALLBACK_THRESHOLD = 200

MIN_CANDIDATE_LENGTH = 4
MIN_ALPHA_CHARS = 2

# Single-string show operators and the array show operator
SINGLE_SHOW_OPERATORS = ("Tj", "'", '"')
ARRAY_SHOW_OPERATORS = ("TJ",)

# Where a string operand or an array can start
OPERAND_START = re.compile(r"[(<\[]")
HEX_BODY = re.compile(r"[0-9A-Fa-f\s]*>")

# Longer literal strings are treated as unterminated
MAX_LITERAL_LENGTH = 4096

NON_PRINTABLE = re.compile(r"[^\x09\x0a\x0d\x20-\x7e]")
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
WHITESPACE = re.compile(r"\s+")
LINE_BREAK = re.compile(r"\r\n|\r|\n")
LETTER = re.compile(r"[A-Za-z]")

# Page/font/resource/object declaration syntax
STRUCTURE_NOISE = re.compile(
    r"/(?:Type|Pages?|Parent|Font|Resources|MediaBox|CropBox|Contents|XObject|ProcSet"
    r"|Filter|Length|BaseFont|Encoding|ToUnicode|Catalog|FontDescriptor)\b"
    r"|\b\d+\s+\d+\s+obj\b|\bendobj\b|\bendstream\b|\bstartxref\b|<<|>>"
)

# "(text) Tj", "[(a) 10 (b)] TJ", "<0041> Tj"
TEXT_SHOW_WRAPPER = re.compile(r"^[\[(<].*[)\]>]\s*(?:Tj|TJ|'|\")$")

# Operands followed by a content-stream operator, e.g. "/F1 12 Tf", "72 720 Td"
OPERATOR_LINE = re.compile(
    r"^(?:(?:[-+]?(?:\d+\.?\d*|\.\d+)|/[^\s/\[\]()<>]+)\s+)*"
    r"(?:BT|ET|Tf|Td|TD|Tm|T\*|Tc|Tw|Tz|TL|Tr|Ts|cm|re|rg|RG|gs|cs|CS|sc|scn|SC|SCN"
    r"|Do|BDC|BMC|EMC|[qQfFSsnWgGwJjMdilmch])$"
)

ALLOWED_PUNCTUATION = frozenset(".,-/$&#'()*:@%+")

_NAMED_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "(": "(",
    ")": ")",
    "\\": "\\",
}


@dataclass(frozen=True)
class ContentBlock:
    """One stream/endstream payload and what its dictionary says about it."""

    raw: bytes
    is_flate: bool = False
    is_image: bool = False


def iter_content_blocks(pdf_bytes: bytes) -> Iterator[ContentBlock]:
    """Scan the byte stream once for stream/endstream blocks."""
    cursor = 0
    total = len(pdf_bytes)

    while cursor < total:
        stream_pos = pdf_bytes.find(STREAM_TAG, cursor)
        if stream_pos == -1:
            return

        data_start = stream_pos + len(STREAM_TAG)
        if pdf_bytes[data_start : data_start + 2] == b"\r\n":
            data_start += 2
        elif pdf_bytes[data_start : data_start + 1] in (b"\n", b"\r"):
            data_start += 1

        end_pos = pdf_bytes.find(ENDSTREAM_TAG, data_start)
        if end_pos == -1:
            return

        header = pdf_bytes[max(0, stream_pos - HEADER_WINDOW) : stream_pos]
        # Ignore whatever belongs to the previous stream
        previous_end = header.rfind(ENDSTREAM_TAG)
        if previous_end != -1:
            header = header[previous_end + len(ENDSTREAM_TAG) :]

        yield ContentBlock(
            raw=pdf_bytes[data_start:end_pos],
            is_flate=FLATE_MARKER in header,
            is_image=any(marker in header for marker in IMAGE_MARKERS),
        )
        cursor = end_pos + len(ENDSTREAM_TAG)


def inflate(data: bytes) -> bytes | None:
    """
    Deflate-decompress a block (zlib wrapper first, then raw deflate).

    Returns:
        Inflated bytes, or None if neither variant decodes
    """
    for wbits in (zlib.MAX_WBITS, -zlib.MAX_WBITS):
        try:
            inflated = zlib.decompressobj(wbits).decompress(data, MAX_INFLATED_BYTES)
        except zlib.error:
            continue
        if inflated:
            return inflated
    return None


def recover_block(block: ContentBlock) -> bytes:
    """Usable bytes of a block; undecodable flate data is kept raw."""
    if block.is_flate:
        inflated = inflate(block.raw)
        if inflated is not None:
            return inflated
        logger.debug("Inflate failed for %d-byte block, using raw bytes", len(block.raw))
    return block.raw


def decode_literal_string(body: str) -> str:
    """Decode escapes inside a (...) string body (without the parentheses)."""
    out: list[str] = []
    i = 0
    length = len(body)
    while i < length:
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        if i + 1 >= length:
            break
        nxt = body[i + 1]
        if nxt in _NAMED_ESCAPES:
            out.append(_NAMED_ESCAPES[nxt])
            i += 2
        elif nxt in "01234567":
            digits = nxt
            j = i + 2
            while j < length and len(digits) < 3 and body[j] in "01234567":
                digits += body[j]
                j += 1
            out.append(chr(int(digits, 8) & 0xFF))
            i = j
        elif nxt in "\r\n":
            # Line continuation
            i += 2
            if nxt == "\r" and i < length and body[i] == "\n":
                i += 1
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


def decode_hex_string(body: str) -> str:
    """Decode a <...> string body to latin-1 characters."""
    cleaned = WHITESPACE.sub("", body)
    if len(cleaned) % 2:
        cleaned += "0"
    try:
        return bytes.fromhex(cleaned).decode("latin-1")
    except ValueError:
        return ""


def _decode_string_token(token: str) -> bytes:
    if token.startswith("("):
        value = decode_literal_string(token[1:-1])
    else:
        value = decode_hex_string(token[1:-1])
    return value.encode("latin-1")


def _literal_end(text: str, start: int) -> int:
    """
    Offset just past the literal string opening at `start`.

    Unescaped parentheses nest; escaped ones are skipped. Returns -1 for
    an unterminated string.
    """
    depth = 0
    i = start
    length = min(len(text), start + MAX_LITERAL_LENGTH)
    while i < length:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return -1


def _hex_end(text: str, start: int) -> int:
    """Offset just past the hex string opening at `start`, or -1."""
    match = HEX_BODY.match(text, start + 1)
    return match.end() if match else -1


def _string_end(text: str, start: int) -> int:
    if text[start] == "(":
        return _literal_end(text, start)
    if text.startswith("<<", start):
        return -1
    return _hex_end(text, start)


def _array_strings(text: str, start: int) -> tuple[int, list[str]] | None:
    """
    String operands of the array opening at `start`.

    Returns:
        (offset past the closing bracket, string tokens), or None when the
        array is unterminated, nested or holds a malformed string
    """
    tokens: list[str] = []
    i = start + 1
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "]":
            return i + 1, tokens
        if ch == "[":
            return None
        if ch in "(<":
            end = _string_end(text, i)
            if end == -1:
                return None
            tokens.append(text[i:end])
            i = end
            continue
        i += 1
    return None


def _followed_by(text: str, offset: int, operators: tuple[str, ...]) -> bool:
    length = len(text)
    while offset < length and text[offset].isspace():
        offset += 1
    return any(text.startswith(operator, offset) for operator in operators)


def iter_string_tokens(text: str) -> Iterator[bytes]:
    """Yield the raw bytes shown by each text-show operator, in stream order."""
    cursor = 0
    while True:
        match = OPERAND_START.search(text, cursor)
        if match is None:
            return
        start = match.start()

        if text[start] == "[":
            parsed = _array_strings(text, start)
            if parsed is None:
                cursor = start + 1
                continue
            end, tokens = parsed
            if tokens and _followed_by(text, end, ARRAY_SHOW_OPERATORS):
                yield b"".join(_decode_string_token(token) for token in tokens)
            cursor = end
            continue

        end = _string_end(text, start)
        if end == -1:
            cursor = start + (2 if text.startswith("<<", start) else 1)
            continue
        if _followed_by(text, end, SINGLE_SHOW_OPERATORS):
            yield _decode_string_token(text[start:end])
        cursor = end


def readability_score(text: str) -> int:
    """
    Score how human-readable a decoding is.

    Letters/digits +2, whitespace +1, allow-listed punctuation 0,
    anything else -3. Empty text scores -100.
    """
    if not text:
        return -100
    score = 0
    for ch in text:
        if ch.isalnum():
            score += 2
        elif ch.isspace():
            score += 1
        elif ch not in ALLOWED_PUNCTUATION:
            score -= 3
    return score


def best_decoding(token: bytes, cmaps: list[UnicodeCharacterMap]) -> str:
    """Pick the most readable of the raw and character-map decodings."""
    best = token.decode("latin-1")
    best_score = readability_score(best)
    for cmap in cmaps:
        candidate = cmap.decode(token)
        score = readability_score(candidate)
        if score > best_score:
            best, best_score = candidate, score
    return best


def _normalize(value: str) -> str:
    return WHITESPACE.sub(" ", CONTROL_CHARS.sub(" ", value)).strip()


def is_structure_noise(value: str) -> bool:
    """True for PDF page/font/resource/object declaration syntax."""
    return bool(STRUCTURE_NOISE.search(value))


def _accept_operator_value(value: str) -> bool:
    if len(value) < MIN_CANDIDATE_LENGTH:
        return False
    if sum(1 for ch in value if ch.isalpha()) < MIN_ALPHA_CHARS:
        return False
    return not is_structure_noise(value)


def _accept_printable_line(line: str) -> bool:
    if len(line) < MIN_CANDIDATE_LENGTH or not LETTER.search(line):
        return False
    if is_structure_noise(line):
        return False
    return not (TEXT_SHOW_WRAPPER.match(line) or OPERATOR_LINE.match(line))


def _collect_operator_text(
    text: str,
    cmaps: list[UnicodeCharacterMap],
    out: dict[str, None],
    max_lines: int,
) -> bool:
    """Add decoded text-show strings; returns True once max_lines is reached."""
    for token in iter_string_tokens(text):
        value = _normalize(best_decoding(token, cmaps))
        if _accept_operator_value(value):
            out.setdefault(value, None)
            if len(out) >= max_lines:
                return True
    return False


def _collect_printable_lines(text: str, out: dict[str, None], max_lines: int) -> bool:
    """Add printable raw lines; returns True once max_lines is reached."""
    cleaned = NON_PRINTABLE.sub(" ", text)
    for raw_line in LINE_BREAK.split(cleaned):
        line = WHITESPACE.sub(" ", raw_line).strip()
        if _accept_printable_line(line):
            out.setdefault(line, None)
            if len(out) >= max_lines:
                return True
    return False


def extract_candidates(pdf_bytes: bytes, max_lines: int = 5000) -> list[str]:
    """
    Extract de-duplicated text line candidates from raw PDF bytes.

    Args:
        pdf_bytes: Raw document bytes (never mutated)
        max_lines: Stop once this many candidates are collected

    Returns:
        Distinct candidates in discovery order
    """
    if not pdf_bytes or max_lines <= 0:
        return []

    found = list(iter_content_blocks(pdf_bytes))
    if found:
        blocks = [recover_block(block) for block in found if not block.is_image]
    else:
        # No stream structure at all; scan the whole document as one block
        blocks = [bytes(pdf_bytes)]

    decoded = [block.decode("latin-1") for block in blocks]
    cmaps = find_character_maps(decoded)
    # CMap programs carry no page text
    texts = [text for text in decoded if not defines_character_map(text)]

    out: dict[str, None] = {}
    for text in texts:
        if _collect_operator_text(text, cmaps, out, max_lines):
            return list(out)

    if len(out) < min(STRUCTURED_FALLBACK_THRESHOLD, max_lines):
        for text in texts:
            if _collect_printable_lines(text, out, max_lines):
                break

    logger.debug(
        "Extracted %d candidates from %d blocks (%d character maps)",
        len(out),
        len(texts),
        len(cmaps),
    )
    return list(out)

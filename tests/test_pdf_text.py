"""Tests for the PDF text candidate extractor."""

import zlib

import pytest
from conftest import SHIFTED_CMAP, build_pdf, shifted_content, text_content

from taxsort.extractors.pdf_text import (
    ContentBlock,
    decode_hex_string,
    decode_literal_string,
    extract_candidates,
    inflate,
    iter_content_blocks,
    iter_string_tokens,
    readability_score,
    recover_block,
)


class TestContentBlocks:
    """Tests for stream/endstream scanning."""

    def test_finds_every_stream(self):
        """Each stream payload becomes one block."""
        pdf = build_pdf(b"BT (first) Tj ET", b"BT (second) Tj ET")
        blocks = list(iter_content_blocks(pdf))

        assert len(blocks) == 2
        assert blocks[0].raw == b"BT (first) Tj ET\n"
        assert blocks[1].raw == b"BT (second) Tj ET\n"

    def test_flate_flag_from_dictionary(self):
        """/FlateDecode before the stream keyword marks the block compressed."""
        plain = list(iter_content_blocks(build_pdf(b"BT ET")))
        packed = list(iter_content_blocks(build_pdf(b"BT ET", compress=True)))

        assert plain[0].is_flate is False
        assert packed[0].is_flate is True

    def test_flag_does_not_leak_into_next_stream(self):
        """A previous stream's dictionary is not read as the next one's."""
        pdf = build_pdf(b"BT ET", compress=True) + build_pdf(b"BT (x) Tj ET")
        blocks = list(iter_content_blocks(pdf))

        assert blocks[0].is_flate is True
        assert blocks[-1].is_flate is False

    def test_unterminated_stream_is_ignored(self):
        """A stream without endstream yields nothing."""
        assert list(iter_content_blocks(b"1 0 obj\n<< >>\nstream\nBT (x) Tj")) == []


class TestInflate:
    """Tests for block decompression."""

    def test_zlib_wrapper(self):
        assert inflate(zlib.compress(b"hello statement")) == b"hello statement"

    def test_raw_deflate(self):
        compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        data = compressor.compress(b"raw deflate body") + compressor.flush()
        assert inflate(data) == b"raw deflate body"

    def test_garbage_returns_none(self):
        assert inflate(b"\x00\x01not deflate at all") is None

    def test_undecodable_block_kept_raw(self):
        """Inflate failure falls back to the raw bytes."""
        block = ContentBlock(raw=b"(plain) Tj", is_flate=True)
        assert recover_block(block) == b"(plain) Tj"


class TestStringDecoding:
    """Tests for literal and hex string decoding."""

    def test_named_escapes(self):
        assert decode_literal_string(r"A\(B\)") == "A(B)"
        assert decode_literal_string(r"line\nbreak") == "line\nbreak"
        assert decode_literal_string(r"back\\slash") == "back\\slash"

    def test_octal_escapes(self):
        assert decode_literal_string(r"\101BC") == "ABC"
        assert decode_literal_string(r"\40X") == " X"

    def test_line_continuation(self):
        assert decode_literal_string("AB\\\nCD") == "ABCD"

    def test_unknown_escape_keeps_character(self):
        assert decode_literal_string(r"AT\&T") == "AT&T"

    def test_hex_string(self):
        assert decode_hex_string("414243") == "ABC"
        assert decode_hex_string("41 42\n43") == "ABC"

    def test_odd_hex_padded(self):
        """An odd trailing digit is padded with 0."""
        assert decode_hex_string("41424") == "AB@"

    def test_text_show_operators(self):
        """Tj, TJ arrays and hex strings are all recovered in order."""
        text = "BT (Hello) Tj [(Wor) -20 (ld)] TJ <414243> Tj (quote) ' ET"
        assert list(iter_string_tokens(text)) == [b"Hello", b"World", b"ABC", b"quote"]

    def test_balanced_parentheses_inside_literal(self):
        """Unescaped nested parentheses belong to the string."""
        text = "BT (01/05 AMAZON (MKTP) PURCHASE 45.00) Tj [(A (B)) 10 (C)] TJ ET"
        assert list(iter_string_tokens(text)) == [b"01/05 AMAZON (MKTP) PURCHASE 45.00", b"A (B)C"]

    def test_escaped_and_nested_parentheses_mix(self):
        text = r"(PAY \(1\) (REF) DONE) Tj"
        assert list(iter_string_tokens(text)) == [b"PAY (1) (REF) DONE"]

    def test_strings_without_show_operator_skipped(self):
        """Dictionaries, operands of other operators and open strings yield nothing."""
        text = "<< /MCID 0 >> BDC (not shown) Tf (unterminated Tj <4142> Tj"
        assert list(iter_string_tokens(text)) == [b"AB"]


class TestReadabilityScore:
    """Tests for the decoding readability heuristic."""

    def test_empty(self):
        assert readability_score("") == -100

    def test_letters_digits_spaces(self):
        assert readability_score("AB 1") == 7

    def test_allowed_punctuation_is_neutral(self):
        assert readability_score("$1.00") == 6

    def test_symbols_penalized(self):
        assert readability_score("~~") == -6


class TestExtractCandidates:
    """Tests for end-to-end candidate extraction."""

    def test_text_operators(self):
        """Transaction text is recovered, numeric glyph runs are not."""
        pdf = build_pdf(
            b"BT\n/F1 12 Tf\n72 720 Td\n"
            b"(01/12 ONLINE PAYMENT RECEIVED 125.00 CR) Tj\n"
            b"(1 0 4 246 28 803 31 1061 39 1427) Tj\n"
            b"[(AMAZON ) 100 (MARKETPLACE PMTS 34.22)] TJ\n"
            b"ET\n"
        )
        candidates = extract_candidates(pdf)

        assert "01/12 ONLINE PAYMENT RECEIVED 125.00 CR" in candidates
        assert "AMAZON MARKETPLACE PMTS 34.22" in candidates
        assert "1 0 4 246 28 803 31 1061 39 1427" not in candidates

    def test_compressed_matches_uncompressed(self, sample_statement_pdf, compressed_statement_pdf):
        assert set(extract_candidates(sample_statement_pdf)) == set(
            extract_candidates(compressed_statement_pdf)
        )

    def test_idempotent(self, compressed_statement_pdf):
        """Same bytes in, same candidates out."""
        first = extract_candidates(compressed_statement_pdf)
        second = extract_candidates(compressed_statement_pdf)
        assert set(first) == set(second)

    def test_candidates_are_distinct(self):
        pdf = build_pdf(text_content(["01/05 COFFEE SHOP 4.50", "01/05 COFFEE SHOP 4.50"]))
        candidates = extract_candidates(pdf)
        assert candidates.count("01/05 COFFEE SHOP 4.50") == 1

    def test_operator_lines_not_candidates(self, sample_statement_pdf):
        """Blunt pass skips operator and text-show wrapper lines."""
        candidates = extract_candidates(sample_statement_pdf)

        assert "/F1 12 Tf" not in candidates
        assert "72 720 Td" not in candidates
        assert not any(candidate.endswith(") Tj") for candidate in candidates)

    def test_structure_noise_rejected(self):
        pdf = build_pdf(b"BT (/Type /Page /Parent 3 0 R) Tj (REAL MERCHANT 9.99) Tj ET")
        candidates = extract_candidates(pdf)

        assert "REAL MERCHANT 9.99" in candidates
        assert not any("/Type" in candidate for candidate in candidates)

    def test_character_map_decoding(self):
        """Glyph codes re-encoded by a subset font decode through ToUnicode."""
        pdf = build_pdf(SHIFTED_CMAP, shifted_content(["01/15 OFFICE DEPOT #42 57.10"]), compress=True)
        candidates = extract_candidates(pdf)

        assert "01/15 OFFICE DEPOT #42 57.10" in candidates
        assert not any("begincmap" in candidate for candidate in candidates)

    def test_nested_parentheses_candidate(self):
        pdf = build_pdf(b"BT\n/F1 12 Tf\n(01/05 AMAZON (MKTP) PURCHASE 45.00) Tj\nET\n")
        assert extract_candidates(pdf) == ["01/05 AMAZON (MKTP) PURCHASE 45.00"]

    def test_image_streams_skipped(self):
        pdf = build_pdf(b"BT (HIDDEN IMAGE TEXT) Tj ET", image=True)
        assert "HIDDEN IMAGE TEXT" not in extract_candidates(pdf)

    def test_document_without_streams(self):
        """Without stream framing the whole document is scanned line by line."""
        pdf = b"%PDF-1.4\n01/05 COFFEE SHOP 4.50\n\x00\x01\x02\n"
        assert "01/05 COFFEE SHOP 4.50" in extract_candidates(pdf)

    def test_max_lines(self, sample_statement_pdf):
        assert len(extract_candidates(sample_statement_pdf, max_lines=2)) == 2

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\x00\x01\x02\x03",
            b"stream\n\xff\xfe\xfdendstream",
            b"1 0 obj << /Filter /FlateDecode >> stream\nnot zlib\nendstream",
        ],
    )
    def test_malformed_input_never_raises(self, data):
        assert isinstance(extract_candidates(data), list)

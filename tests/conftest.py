"""Test fixtures and utilities."""

import zlib
from decimal import Decimal

import pytest

from taxsort.schemas.transactions import ParsedTransaction

# Lines as they appear on real statements
AMEX_PAYMENT_LINE = "01/12 01/13 ONLINE PAYMENT RECEIVED 125.00 CR"
DISCOVER_PURCHASE_LINE = "02/01 02/02 WALMART SUPERCENTER #1234 84.27"
AMEX_SUMMARY_LINE = "01/31 AMERICAN EXPRESS ACCOUNT SUMMARY 200.00"
CASH_APP_LINE = "Jan 14 CASH CARD STARBUCKS 6.45"

SAMPLE_STATEMENT_LINES = [
    "Page 1 of 3",
    "New Balance $1,234.56",
    "01/16 DELTA AIR LINES 412.20",
    "01/16 DELTA AIR LINES $412.20",
    "01/20 COFFEE SHOP 4.50",
]


def _escape_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def text_content(lines: list[str]) -> bytes:
    """Content stream showing each line with a Tj operator."""
    body = ["BT", "/F1 12 Tf", "72 720 Td"]
    for line in lines:
        body.append(f"({_escape_literal(line)}) Tj")
        body.append("0 -14 Td")
    body.append("ET")
    return ("\n".join(body) + "\n").encode("latin-1")


def build_pdf(*streams: bytes, compress: bool = False, image: bool = False) -> bytes:
    """
    Assemble a minimal PDF-shaped byte string from content streams.

    Not a valid PDF for a viewer; just the object/stream framing that
    statement generators emit.
    """
    out = [b"%PDF-1.7\n"]
    for number, data in enumerate(streams, start=1):
        entries = b""
        payload = data
        if compress:
            payload = zlib.compress(data)
            entries += b" /Filter /FlateDecode"
        if image:
            entries += b" /Subtype /Image"
        out.append(b"%d 0 obj\n<< /Length %d%s >>\nstream\n" % (number, len(payload), entries))
        out.append(payload)
        out.append(b"\nendstream\nendobj\n")
    out.append(b"trailer\n<< /Size %d >>\n%%%%EOF\n" % (len(streams) + 1))
    return b"".join(out)


# Codes 0x1020..0x107E map to U+0020..U+007E
CMAP_OFFSET = 0x1000
SHIFTED_CMAP = b"""/CIDInit /ProcSet findresource begin
12 dict begin
begincmap
1 begincodespacerange
<0000> <FFFF>
endcodespacerange
1 beginbfrange
<1020> <107E> <0020>
endbfrange
endcmap
end
end
"""


def shifted_hex(text: str) -> str:
    """Hex string body of text encoded with the shifted 2-byte font codes."""
    return "".join(f"{CMAP_OFFSET + ord(ch):04X}" for ch in text)


def shifted_content(lines: list[str]) -> bytes:
    """Content stream showing lines through the shifted font encoding."""
    body = ["BT", "/F2 10 Tf"]
    body.extend(f"<{shifted_hex(line)}> Tj" for line in lines)
    body.append("ET")
    return ("\n".join(body) + "\n").encode("latin-1")


def make_transaction(
    description: str,
    amount: str = "42.00",
    posted_date: str = "2024-01-05",
    raw_line: str | None = None,
) -> ParsedTransaction:
    """ParsedTransaction with a plausible raw line."""
    return ParsedTransaction(
        posted_date=posted_date,
        amount=Decimal(amount),
        description=description,
        raw_line=raw_line if raw_line is not None else f"01/05 {description} {amount}",
    )


@pytest.fixture
def sample_statement_pdf() -> bytes:
    """Uncompressed one-page statement."""
    return build_pdf(text_content(SAMPLE_STATEMENT_LINES))


@pytest.fixture
def compressed_statement_pdf() -> bytes:
    """Same statement with a FlateDecode content stream."""
    return build_pdf(text_content(SAMPLE_STATEMENT_LINES), compress=True)


@pytest.fixture
def amex_statement_pdf() -> bytes:
    """AMEX statement with a payment, a purchase and a summary row."""
    return build_pdf(
        text_content(
            [
                AMEX_PAYMENT_LINE,
                "01/15 01/16 DELTA AIR LINES 412.20",
                AMEX_SUMMARY_LINE,
            ]
        )
    )


@pytest.fixture
def payroll_transaction() -> ParsedTransaction:
    return make_transaction("DIRECT DEPOSIT PAYROLL", amount="2500.00")


@pytest.fixture
def mystery_transaction() -> ParsedTransaction:
    return make_transaction("MYSTERY VENDOR ZXQ")

"""
Statement line parser.

Turns one candidate text line into a ParsedTransaction, or rejects it.

Pipeline per line:
1. Normalize whitespace, enforce length bounds
2. Reject noise: adapter + base phrases, metadata "Keyword:" prefixes,
   lines dominated by PDF syntax tokens
3. Require a currency amount token (the last one on the line wins)
4. Institution strategy first; any failure falls through to the generic parser
5. Generic parser: first date, last amount, remainder is the description
"""

import datetime
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..schemas.transactions import ParsedTransaction
from .adapters import GENERIC_ADAPTER, InstitutionAdapter, ParseHelpers

logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 8
MAX_LINE_LENGTH = 160
MIN_DESCRIPTION_LENGTH = 3

BASE_NOISE_WORDS = frozenset(
    {
        "previous balance",
        "new balance",
        "ending balance",
        "beginning balance",
        "credit limit",
        "minimum payment",
        "available credit",
        "account number",
        "payment due",
        "finance charge",
        "interest charged",
        "total fees",
        "activity summary",
        "account summary",
    }
)

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# MM/DD/YYYY or MM/DD/YY
FULL_DATE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})(?![\d/])")
# MM/DD, year taken from the statement
SHORT_DATE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{1,2})(?![\d/])")
# Jan 5, Jan 05 2024, January 5, 2024
MONTH_NAME_DATE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|"
    r"sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?\s+(\d{1,2})\b(?![.,]\d)"
    r"(?:,?\s*(\d{4})\b(?![.,]\d))?",
    re.IGNORECASE,
)

# $1,234.56  (125.00)  -45.10, optionally followed by CR/DB
AMOUNT_TOKEN = re.compile(
    r"(?<![\d,.])"
    r"(?P<amount>\(\$?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)|-?\$?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2})"
    r"(?!\d)(?:\s*(?P<indicator>CR|DB)\b)?",
    re.IGNORECASE,
)

INDICATOR_SUFFIX = re.compile(r"\s*(CR|DB)$", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")

# "Statement Closing Date: 01/31/2024", "Account ending in 1234: ..."
METADATA_PREFIX = re.compile(
    r"^\s*(?:statement|closing|opening|billing|account|payment|due|period|page|member"
    r"|customer|balance|total|new|previous|minimum)\b[\w\s/#&-]{0,30}:",
    re.IGNORECASE,
)

STRUCTURAL_TOKEN = re.compile(
    r"^(?:/[A-Za-z][\w.+-]*|R|obj|endobj|stream|endstream|xref|trailer|startxref"
    r"|BT|ET|Tj|TJ|Tf|Td|TD|Tm|<<|>>)$"
)
STRUCTURAL_MIN_TOKENS = 4
STRUCTURAL_RATIO = 0.3

METADATA_PHRASES = (
    "account summary",
    "statement period",
    "previous balance",
    "new balance",
    "ending balance",
    "beginning balance",
    "closing date",
    "payment due",
    "minimum payment",
    "credit limit",
    "available credit",
    "total fees",
    "interest charged",
    "year to date",
    "billing period",
    "daily balance",
)

METADATA_KEYWORDS = frozenset(
    {
        "balance",
        "statement",
        "period",
        "summary",
        "total",
        "payment",
        "due",
        "minimum",
        "limit",
        "available",
        "previous",
        "ending",
        "beginning",
        "closing",
        "opening",
        "cycle",
        "billing",
    }
)
METADATA_KEYWORD_RATIO = 0.6
METADATA_KEYWORD_MIN = 2

WORD = re.compile(r"[a-z]+")


@dataclass(frozen=True)
class DateToken:
    """A date found in a line: ISO value plus the matched span."""

    value: str  # YYYY-MM-DD
    token: str
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class AmountToken:
    """A currency amount found in a line."""

    token: str  # Amount text without the CR/DB indicator
    value: Decimal
    indicator: Optional[str]
    start: int
    end: int


def normalize_line(line: str) -> str:
    """Collapse whitespace runs and trim."""
    return WHITESPACE.sub(" ", line or "").strip()


def parse_amount(token: str) -> Optional[Decimal]:
    """
    Parse a currency amount token.

    Handles "$", thousands separators, "(...)" and leading "-" (negative),
    and a trailing CR (negative) or DB (positive) indicator.

    Returns:
        Decimal amount, or None if the token is not a finite number
    """
    if not token:
        return None

    clean = token.strip()
    indicator = None
    match = INDICATOR_SUFFIX.search(clean)
    if match:
        indicator = match.group(1).upper()
        clean = clean[: match.start()].strip()

    clean = clean.replace("$", "").replace(",", "").strip()
    negative = False
    if clean.startswith("(") and clean.endswith(")"):
        negative = True
        clean = clean[1:-1].strip()
    if clean.startswith("-"):
        negative = True
        clean = clean[1:].strip()

    try:
        value = Decimal(clean)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None

    if indicator == "CR":
        return -value
    if indicator == "DB":
        return value
    return -value if negative else value


def _iso_date(year: int, month: int, day: int) -> Optional[str]:
    if year < 100:
        year += 2000
    try:
        return datetime.date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date_token(text: str, statement_year: int) -> Optional[DateToken]:
    """
    Find the first date in text.

    Tried in order: MM/DD/YYYY|YY, bare MM/DD (statement year), then
    "Mon DD[, YYYY]" (statement year when absent). Within a pattern the
    first valid calendar date wins.
    """
    if not text:
        return None

    for match in FULL_DATE.finditer(text):
        value = _iso_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))
        if value:
            return DateToken(value, match.group(0), match.start(), match.end())

    for match in SHORT_DATE.finditer(text):
        value = _iso_date(statement_year, int(match.group(1)), int(match.group(2)))
        if value:
            return DateToken(value, match.group(0), match.start(), match.end())

    for match in MONTH_NAME_DATE.finditer(text):
        month = MONTHS[match.group(1)[:3].lower()]
        year = int(match.group(3)) if match.group(3) else statement_year
        value = _iso_date(year, month, int(match.group(2)))
        if value:
            return DateToken(value, match.group(0), match.start(), match.end())

    return None


def find_amount_token(line: str) -> Optional[AmountToken]:
    """Last parseable currency amount on the line."""
    last = None
    for match in AMOUNT_TOKEN.finditer(line or ""):
        value = parse_amount(match.group("amount"))
        if value is None:
            continue
        indicator = match.group("indicator")
        last = AmountToken(
            token=match.group("amount"),
            value=value,
            indicator=indicator.upper() if indicator else None,
            start=match.start("amount"),
            end=match.end("amount"),
        )
    return last


def is_structure_dominated(line: str) -> bool:
    """True if PDF syntax tokens make up most of the line."""
    tokens = line.split()
    if not tokens:
        return False
    structural = sum(1 for token in tokens if STRUCTURAL_TOKEN.match(token))
    return structural >= STRUCTURAL_MIN_TOKENS or structural / len(tokens) >= STRUCTURAL_RATIO


def is_noise_line(
    line: str,
    adapter: Optional[InstitutionAdapter] = None,
    max_line_length: int = MAX_LINE_LENGTH,
) -> bool:
    """
    Decide whether a normalized line is statement boilerplate.

    Oversized lines count as structural noise.
    """
    if len(line) > max_line_length:
        return True

    lower = line.lower()
    noise_words = BASE_NOISE_WORDS
    if adapter is not None and adapter.noise_words:
        noise_words = noise_words | adapter.noise_words
    if any(phrase in lower for phrase in noise_words):
        return True

    if METADATA_PREFIX.match(line):
        return True

    return is_structure_dominated(line)


def is_metadata_description(description: str) -> bool:
    """
    Judge whether a leftover description reads like statement metadata.

    Either a curated summary/period phrase, or a description made mostly of
    metadata keywords.
    """
    lower = (description or "").lower()
    if any(phrase in lower for phrase in METADATA_PHRASES):
        return True

    words = WORD.findall(lower)
    if not words:
        return False
    keywords = sum(1 for word in words if word in METADATA_KEYWORDS)
    return keywords >= METADATA_KEYWORD_MIN and keywords / len(words) >= METADATA_KEYWORD_RATIO


def _acceptable_description(description: str) -> bool:
    return len(description) >= MIN_DESCRIPTION_LENGTH and not is_metadata_description(description)


def looks_like_candidate(line: str, statement_year: int) -> bool:
    """A line carrying both a date and an amount counts toward parser confidence."""
    return find_amount_token(line) is not None and parse_date_token(line, statement_year) is not None


def parse_generic_line(line: str, statement_year: int) -> Optional[ParsedTransaction]:
    """
    Institution-agnostic strategy: first date, last amount.

    A trailing CR/DB indicator is not applied here; institution
    strategies interpret it.
    """
    normalized = normalize_line(line)
    amount = find_amount_token(normalized)
    if amount is None:
        return None

    date = parse_date_token(normalized, statement_year)
    if date is None:
        return None
    if date.start < amount.end and amount.start < date.end:
        return None

    # Cut both tokens out by position, later span first
    spans = sorted([(date.start, date.end), (amount.start, amount.end)], reverse=True)
    remainder = normalized
    for start, end in spans:
        remainder = remainder[:start] + " " + remainder[end:]

    description = normalize_line(remainder)
    if not _acceptable_description(description):
        return None

    return ParsedTransaction(
        posted_date=date.value,
        amount=amount.value,
        description=description,
        raw_line=normalized,
    )


HELPERS = ParseHelpers(
    parse_amount=parse_amount,
    parse_date_token=parse_date_token,
    parse_generic_line=parse_generic_line,
)


def parse_line(
    line: str,
    statement_year: int,
    adapter: Optional[InstitutionAdapter] = None,
    max_line_length: int = MAX_LINE_LENGTH,
    min_line_length: int = MIN_LINE_LENGTH,
) -> Optional[ParsedTransaction]:
    """
    Parse one candidate line into a transaction.

    Args:
        line: Raw candidate text
        statement_year: Year used to complete dates printed without one
        adapter: Institution adapter (GENERIC_ADAPTER when None)
        max_line_length: Longer lines are rejected as structural noise
        min_line_length: Shorter lines are rejected outright

    Returns:
        ParsedTransaction or None if the line is not a transaction
    """
    adapter = adapter or GENERIC_ADAPTER
    normalized = normalize_line(line)
    if len(normalized) < min_line_length:
        return None
    if is_noise_line(normalized, adapter, max_line_length):
        return None
    if find_amount_token(normalized) is None:
        return None

    if adapter.line_parser is not None:
        try:
            parsed = adapter.line_parser(normalized, statement_year, HELPERS)
        except Exception as e:
            logger.debug("%s strategy failed on %r: %s", adapter.parse_method, normalized, e)
            parsed = None
        if parsed is not None and _acceptable_description(parsed.description):
            return parsed

    return parse_generic_line(normalized, statement_year)

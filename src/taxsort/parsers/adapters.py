"""
Institution adapter registry.

A fixed, read-only table mapping an institution id to:
- extra noise phrases suppressed for that institution's statements
- an optional custom line-parsing strategy

Unknown institutions resolve to GENERIC_ADAPTER. Strategies receive a
ParseHelpers bundle instead of importing the generic parser, and may return
None to let the generic parser try the line.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Optional

from ..schemas.transactions import ParsedTransaction

UNKNOWN_INSTITUTION = "UNKNOWN"
GENERIC_PARSE_METHOD = "GENERIC_V1"

_AMOUNT = r"\(?-?\$?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?"

# "01/12 01/13 ONLINE PAYMENT RECEIVED 125.00 CR"
DUAL_DATE_AMOUNT_LINE = re.compile(
    r"^(?P<date1>\d{1,2}/\d{1,2})(?:\s+(?P<date2>\d{1,2}/\d{1,2}))?\s+(?P<description>.+?)\s+"
    rf"(?P<amount>{_AMOUNT})(?:\s*(?P<indicator>CR|DB))?$",
    re.IGNORECASE,
)

# "Jan 14 CASH CARD STARBUCKS 6.45"
MONTH_DAY_AMOUNT_LINE = re.compile(
    r"^(?P<month>jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+(?P<day>\d{1,2})\s+"
    rf"(?P<description>.+?)\s+(?P<amount>{_AMOUNT})$",
    re.IGNORECASE,
)

WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParseHelpers:
    """Generic parsing functions handed to custom line strategies."""

    parse_amount: Callable[[str], Optional[Decimal]]
    parse_date_token: Callable[[str, int], Any]  # -> DateToken | None
    parse_generic_line: Callable[[str, int], Optional[ParsedTransaction]]


LineStrategy = Callable[[str, int, ParseHelpers], Optional[ParsedTransaction]]


@dataclass(frozen=True)
class InstitutionAdapter:
    """Institution-specific noise suppression and line-parsing conventions."""

    institution: str
    parse_method: str
    noise_words: frozenset[str] = frozenset()
    line_parser: Optional[LineStrategy] = None
    fallback_to_generic: bool = False


def normalize_institution(value: Optional[str]) -> str:
    """Trim and upper-case an institution id; empty/None becomes UNKNOWN."""
    normalized = str(value if value is not None else "").strip().upper()
    return normalized or UNKNOWN_INSTITUTION


def _normalize_description(value: str) -> str:
    return WHITESPACE.sub(" ", value or "").strip()


def parse_amount_with_indicator(
    amount_token: str,
    indicator: Optional[str],
    helpers: ParseHelpers,
) -> Optional[Decimal]:
    """
    Parse an amount honoring a trailing CR/DB indicator.

    CR (credit, inflow) makes the amount negative; DB forces it positive.
    """
    amount = helpers.parse_amount(amount_token)
    if amount is None:
        return None
    direction = (indicator or "").strip().upper()
    if direction == "CR":
        return -abs(amount)
    if direction == "DB":
        return abs(amount)
    return amount


def parse_dual_date_line(
    normalized: str,
    statement_year: int,
    helpers: ParseHelpers,
) -> Optional[ParsedTransaction]:
    """Transaction date, optional posted date, description, amount, CR/DB."""
    match = DUAL_DATE_AMOUNT_LINE.match(normalized)
    if not match:
        return None

    # Prefer the posted date when both dates are printed
    posted_token = match.group("date2") or match.group("date1")
    posted = helpers.parse_date_token(posted_token, statement_year)
    if posted is None:
        return None

    description = _normalize_description(match.group("description"))
    if len(description) < 3:
        return None

    amount = parse_amount_with_indicator(match.group("amount"), match.group("indicator"), helpers)
    if amount is None:
        return None

    return ParsedTransaction(
        posted_date=posted.value,
        amount=amount,
        description=description,
        raw_line=normalized,
    )


def _dual_date_strategy(blocked_phrases: Iterable[str]) -> LineStrategy:
    """Dual-date strategy that rejects institution summary rows."""
    blocked = re.compile(
        r"\b(?:" + "|".join(re.escape(phrase) for phrase in blocked_phrases) + r")\b",
        re.IGNORECASE,
    )

    def parse(normalized: str, statement_year: int, helpers: ParseHelpers) -> Optional[ParsedTransaction]:
        parsed = parse_dual_date_line(normalized, statement_year, helpers)
        if parsed is None or blocked.search(parsed.description):
            return None
        return parsed

    return parse


def parse_cash_app_line(
    normalized: str,
    statement_year: int,
    helpers: ParseHelpers,
) -> Optional[ParsedTransaction]:
    """Cash App prints "Mon DD description amount"; other rows use dual-date."""
    match = MONTH_DAY_AMOUNT_LINE.match(normalized)
    if not match:
        return parse_dual_date_line(normalized, statement_year, helpers)

    date = helpers.parse_date_token(f"{match.group('month')} {match.group('day')}", statement_year)
    if date is None:
        return None

    description = _normalize_description(match.group("description"))
    if len(description) < 3:
        return None
    if re.search(r"\b(?:cash app summary|monthly statement|ending cash balance)\b", description, re.I):
        return None

    amount = helpers.parse_amount(match.group("amount"))
    if amount is None:
        return None

    return ParsedTransaction(
        posted_date=date.value,
        amount=amount,
        description=description,
        raw_line=normalized,
    )


def _create_adapter(
    institution: str,
    line_parser: Optional[LineStrategy],
    noise_words: Iterable[str],
) -> InstitutionAdapter:
    key = normalize_institution(institution)
    return InstitutionAdapter(
        institution=key,
        parse_method=f"{key}_V1",
        noise_words=frozenset(word.strip().lower() for word in noise_words if word.strip()),
        line_parser=line_parser,
        fallback_to_generic=False,
    )


GENERIC_ADAPTER = InstitutionAdapter(
    institution=UNKNOWN_INSTITUTION,
    parse_method=GENERIC_PARSE_METHOD,
    noise_words=frozenset(),
    line_parser=None,
    fallback_to_generic=True,
)

SUPPORTED_INSTITUTIONS: tuple[str, ...] = (
    "AMEX",
    "BLUEVINE",
    "CAPITAL_ONE",
    "CASH_APP",
    "DISCOVER",
    "SPACE_COAST",
)

_ADAPTERS: dict[str, InstitutionAdapter] = {
    "AMEX": _create_adapter(
        "AMEX",
        _dual_date_strategy(["total", "subtotal", "balance"]),
        [
            "american express",
            "payments and credits",
            "new charges",
            "total fees",
            "late payment warning",
        ],
    ),
    "BLUEVINE": _create_adapter(
        "BLUEVINE",
        _dual_date_strategy(["daily ledger balance", "beginning balance", "ending balance"]),
        [
            "deposits and other credits",
            "debits and other withdrawals",
            "daily ledger balance",
            "average balance",
            "running balance",
        ],
    ),
    "CAPITAL_ONE": _create_adapter(
        "CAPITAL_ONE",
        _dual_date_strategy(["account summary", "payment information", "interest charge calculation"]),
        [
            "payment information",
            "transactions by merchant category",
            "interest charge calculation",
            "account summary",
            "rewards summary",
        ],
    ),
    "CASH_APP": _create_adapter(
        "CASH_APP",
        parse_cash_app_line,
        [
            "cash app summary",
            "monthly statement",
            "direct deposit totals",
            "account activity summary",
            "ending cash balance",
        ],
    ),
    "DISCOVER": _create_adapter(
        "DISCOVER",
        _dual_date_strategy(["account summary", "payment due", "minimum payment"]),
        [
            "discover account summary",
            "credit line",
            "minimum payment",
            "cash advance line",
            "revolving account summary",
        ],
    ),
    "SPACE_COAST": _create_adapter(
        "SPACE_COAST",
        _dual_date_strategy(["shares and deposits", "withdrawals and debits", "dividends paid"]),
        [
            "shares and deposits",
            "withdrawals and debits",
            "dividends paid",
            "year-to-date dividends",
            "beginning balance",
            "ending balance",
        ],
    ),
}

ADAPTERS_BY_INSTITUTION = MappingProxyType(_ADAPTERS)


def resolve_adapter(institution: Optional[str]) -> InstitutionAdapter:
    """Adapter for an institution id; unknown ids get GENERIC_ADAPTER."""
    return ADAPTERS_BY_INSTITUTION.get(normalize_institution(institution), GENERIC_ADAPTER)


def has_adapter(institution: Optional[str]) -> bool:
    return normalize_institution(institution) in ADAPTERS_BY_INSTITUTION


def list_supported_institutions() -> list[str]:
    return list(SUPPORTED_INSTITUTIONS)

"""Tests for the statement line parser."""

from decimal import Decimal

import pytest
from conftest import AMEX_PAYMENT_LINE, AMEX_SUMMARY_LINE, CASH_APP_LINE, DISCOVER_PURCHASE_LINE

from taxsort.parsers.adapters import GENERIC_ADAPTER, InstitutionAdapter, resolve_adapter
from taxsort.parsers.line_parser import (
    find_amount_token,
    is_metadata_description,
    is_noise_line,
    looks_like_candidate,
    normalize_line,
    parse_amount,
    parse_date_token,
    parse_generic_line,
    parse_line,
)
from taxsort.schemas.transactions import ParsedTransaction


class TestAmountParsing:
    """Tests for currency amount parsing."""

    @pytest.mark.parametrize(
        "token,expected",
        [
            ("(125.00)", Decimal("-125.00")),
            ("125.00 CR", Decimal("-125.00")),
            ("125.00 DB", Decimal("125.00")),
            ("1,234.56", Decimal("1234.56")),
            ("$1,234.56", Decimal("1234.56")),
            ("-45.10", Decimal("-45.10")),
            ("($9.99)", Decimal("-9.99")),
            ("12.00 cr", Decimal("-12.00")),
        ],
    )
    def test_amount_formats(self, token, expected):
        assert parse_amount(token) == expected

    @pytest.mark.parametrize("token", ["", "abc", "$", "NaN", "Infinity"])
    def test_invalid_amounts(self, token):
        assert parse_amount(token) is None

    def test_last_amount_on_line(self):
        token = find_amount_token("01/05 PAYMENT 1,234.56 99.00")
        assert token.value == Decimal("99.00")

    def test_no_partial_number_match(self):
        """Digits before the token are part of the amount, not a prefix."""
        token = find_amount_token("REF 1234.56")
        assert token.value == Decimal("1234.56")

    def test_indicator_captured_separately(self):
        token = find_amount_token(AMEX_PAYMENT_LINE)

        assert token.token == "125.00"
        assert token.indicator == "CR"
        assert token.value == Decimal("125.00")

    def test_dates_are_not_amounts(self):
        assert find_amount_token("01/15/2024 ACCOUNT OPENED") is None


class TestDateParsing:
    """Tests for date token parsing."""

    def test_full_date(self):
        assert parse_date_token("01/05/2023 FOO", 2024).value == "2023-01-05"

    def test_two_digit_year(self):
        assert parse_date_token("01/05/23 FOO", 2024).value == "2023-01-05"

    def test_short_date_uses_statement_year(self):
        token = parse_date_token("02/02 WALMART", 2024)

        assert token.value == "2024-02-02"
        assert token.token == "02/02"
        assert token.start == 0

    def test_month_name(self):
        assert parse_date_token("Jan 14 STARBUCKS", 2024).value == "2024-01-14"
        assert parse_date_token("January 5, 2023 RENT", 2024).value == "2023-01-05"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Sept 3 PARKING", "2024-09-03"),
            ("Sep. 3 PARKING", "2024-09-03"),
            ("JUNE 30 RENT", "2024-06-30"),
            ("december 1 GYM", "2024-12-01"),
        ],
    )
    def test_month_spellings(self, text, expected):
        assert parse_date_token(text, 2024).value == expected

    @pytest.mark.parametrize("text", ["DECORATIONS 12 PACK", "MAYBE 3 ITEMS", "MARKET 7 AISLE", "JUNK 4 HAUL"])
    def test_words_starting_with_month_are_not_dates(self, text):
        assert parse_date_token(text, 2024) is None

    def test_first_valid_calendar_date_wins(self):
        assert parse_date_token("02/30 03/01 FOO", 2024).value == "2024-03-01"

    def test_full_date_preferred_over_short(self):
        assert parse_date_token("12/31 PAID 01/02/2025", 2024).value == "2025-01-02"

    def test_leap_day(self):
        assert parse_date_token("02/29 FOO", 2024).value == "2024-02-29"
        assert parse_date_token("02/29 FOO", 2023) is None

    def test_no_date(self):
        assert parse_date_token("NO DATE HERE 12.00", 2024) is None


class TestNoiseDetection:
    """Tests for boilerplate/metadata line detection."""

    @pytest.mark.parametrize(
        "line",
        [
            "New Balance $1,234.56",
            "Minimum Payment Due 35.00",
            "01/31 ACCOUNT SUMMARY 200.00",
            "Statement Closing Date: 01/31/2024",
            "Payment Due Date: 02/25/2024",
        ],
    )
    def test_metadata_lines(self, line):
        assert is_noise_line(line) is True

    def test_structural_syntax(self):
        assert is_noise_line("/Type /Page /Parent 3 0 R /MediaBox") is True

    def test_oversized_line(self):
        assert is_noise_line("01/05 " + "X" * 200 + " 5.00") is True

    def test_transaction_is_not_noise(self):
        assert is_noise_line(DISCOVER_PURCHASE_LINE) is False

    def test_adapter_noise_words(self):
        amex = resolve_adapter("AMEX")
        line = "Late Payment Warning 01/31 40.00"

        assert is_noise_line(line, amex) is True
        assert is_noise_line(line, GENERIC_ADAPTER) is False

    def test_metadata_description(self):
        assert is_metadata_description("Statement Period") is True
        assert is_metadata_description("TOTAL PAYMENT DUE") is True
        assert is_metadata_description("ONLINE PAYMENT RECEIVED") is False
        assert is_metadata_description("WALMART SUPERCENTER #1234") is False


class TestParseLine:
    """End-to-end line scenarios."""

    def test_amex_dual_date_credit(self):
        """AMEX: posted (second) date, CR makes the amount an inflow."""
        tx = parse_line(AMEX_PAYMENT_LINE, 2024, resolve_adapter("AMEX"))

        assert tx.posted_date == "2024-01-13"
        assert tx.amount == Decimal("-125.00")
        assert tx.description == "ONLINE PAYMENT RECEIVED"
        assert tx.raw_line == AMEX_PAYMENT_LINE

    def test_generic_same_line(self):
        """Generic: first date, CR indicator not applied."""
        tx = parse_line(AMEX_PAYMENT_LINE, 2024, GENERIC_ADAPTER)

        assert tx.posted_date == "2024-01-12"
        assert tx.amount == Decimal("125.00")

    def test_discover_purchase(self):
        tx = parse_line(DISCOVER_PURCHASE_LINE, 2024, resolve_adapter("DISCOVER"))

        assert tx.posted_date == "2024-02-02"
        assert tx.amount == Decimal("84.27")
        assert tx.description == "WALMART SUPERCENTER #1234"

    @pytest.mark.parametrize("institution", [None, "AMEX", "BLUEVINE", "DISCOVER", "CASH_APP"])
    def test_summary_rejected_for_any_adapter(self, institution):
        assert parse_line(AMEX_SUMMARY_LINE, 2024, resolve_adapter(institution)) is None

    def test_cash_app_month_name(self):
        tx = parse_line(CASH_APP_LINE, 2024, resolve_adapter("CASH_APP"))

        assert tx.posted_date == "2024-01-14"
        assert tx.description == "CASH CARD STARBUCKS"

    def test_adapter_defaults_to_generic(self):
        assert parse_line(AMEX_PAYMENT_LINE, 2024).posted_date == "2024-01-12"

    def test_whitespace_normalized(self):
        tx = parse_line("  02/01   02/02  WALMART   SUPERCENTER #1234   84.27 ", 2024, resolve_adapter("DISCOVER"))
        assert tx.raw_line == DISCOVER_PURCHASE_LINE

    def test_short_line(self):
        assert parse_line("1/1 5.00", 2024) is None

    def test_line_without_amount(self):
        assert parse_line("01/05 COFFEE SHOP", 2024) is None

    def test_line_without_date(self):
        assert parse_line("COFFEE SHOP 4.50", 2024) is None

    def test_month_prefixed_word_is_not_a_date(self):
        assert parse_line("DECORATIONS 12 PACK STORE 20.00", 2024) is None

    def test_description_too_short(self):
        assert parse_line("01/05 AB 4.50", 2024) is None

    def test_max_line_length(self):
        line = "01/05 " + "COFFEE " * 10 + "4.50"
        assert parse_line(line, 2024, max_line_length=40) is None
        assert parse_line(line, 2024) is not None

    def test_failing_strategy_falls_back_to_generic(self):
        """Adapter failures never abort parsing."""

        def broken(normalized, statement_year, helpers):
            raise RuntimeError("boom")

        adapter = InstitutionAdapter(institution="BROKEN", parse_method="BROKEN_V1", line_parser=broken)
        tx = parse_line(DISCOVER_PURCHASE_LINE, 2024, adapter)

        assert tx is not None
        assert tx.posted_date == "2024-02-01"

    def test_unusable_strategy_result_falls_back(self):
        def too_short(normalized, statement_year, helpers):
            return ParsedTransaction("2024-01-01", Decimal("1.00"), "X", normalized)

        adapter = InstitutionAdapter(institution="ODD", parse_method="ODD_V1", line_parser=too_short)
        tx = parse_line(DISCOVER_PURCHASE_LINE, 2024, adapter)

        assert tx.posted_date == "2024-02-01"
        assert tx.amount == Decimal("84.27")

    def test_strategy_receives_helpers(self):
        def via_generic(normalized, statement_year, helpers):
            return helpers.parse_generic_line(normalized, statement_year)

        adapter = InstitutionAdapter(institution="H", parse_method="H_V1", line_parser=via_generic)
        assert parse_line(DISCOVER_PURCHASE_LINE, 2024, adapter).posted_date == "2024-02-01"


class TestGenericHelpers:
    """Tests for the generic parser helpers."""

    def test_normalize_line(self):
        assert normalize_line("  a \t b\n c ") == "a b c"

    def test_generic_description(self):
        tx = parse_generic_line("01/16 DELTA AIR LINES $412.20", 2024)
        assert tx.description == "DELTA AIR LINES"

    def test_candidate_needs_date_and_amount(self):
        assert looks_like_candidate(DISCOVER_PURCHASE_LINE, 2024) is True
        assert looks_like_candidate("Page 1 of 3", 2024) is False
        assert looks_like_candidate("TOTAL 45.00", 2024) is False

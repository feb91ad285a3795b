"""
Statement-level orchestration: one document in, transactions + diagnostics out.

Deterministic and side-effect free apart from the single byte read in
parse_statement_file.
"""

import logging
from pathlib import Path
from typing import Optional

from ..extractors import extract_candidates
from ..schemas.dedupe import dedupe_transactions
from ..schemas.transactions import ParseDiagnostics, ParsedTransaction, StatementParseResult
from .adapters import resolve_adapter
from .line_parser import (
    MAX_LINE_LENGTH,
    MIN_LINE_LENGTH,
    is_noise_line,
    looks_like_candidate,
    normalize_line,
    parse_line,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDIDATES = 7000
DEFAULT_MAX_TRANSACTIONS = 2000


def compute_parser_confidence(candidate_lines: int, parsed_count: int) -> float:
    """
    Share of candidate lines that became transactions, clamped to [0, 1].

    With no candidates: 1.0 if anything parsed, else 0.0.
    """
    if candidate_lines <= 0:
        return 1.0 if parsed_count > 0 else 0.0
    return max(0.0, min(1.0, parsed_count / candidate_lines))


def parse_document(
    pdf_bytes: bytes,
    statement_year: int,
    institution: Optional[str] = None,
    *,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    max_transactions: int = DEFAULT_MAX_TRANSACTIONS,
    max_line_length: int = MAX_LINE_LENGTH,
    min_line_length: int = MIN_LINE_LENGTH,
) -> StatementParseResult:
    """
    Parse one statement document.

    Args:
        pdf_bytes: Raw document bytes
        statement_year: Year used to complete short dates
        institution: Institution id; unknown or None uses the generic adapter
        max_candidates: Extractor candidate cap
        max_transactions: Cap on de-duplicated transactions

    Returns:
        StatementParseResult with transactions in acceptance order
    """
    adapter = resolve_adapter(institution)
    lines = extract_candidates(pdf_bytes, max_lines=max_candidates)

    dropped_noise = 0
    candidate_lines = 0
    parsed: list[ParsedTransaction] = []

    for line in lines:
        normalized = normalize_line(line)
        if len(normalized) < min_line_length:
            continue
        if is_noise_line(normalized, adapter, max_line_length):
            dropped_noise += 1
            continue
        if looks_like_candidate(normalized, statement_year):
            candidate_lines += 1

        tx = parse_line(
            normalized,
            statement_year,
            adapter,
            max_line_length=max_line_length,
            min_line_length=min_line_length,
        )
        if tx is not None:
            parsed.append(tx)

    transactions = dedupe_transactions(parsed, limit=max_transactions)
    diagnostics = ParseDiagnostics(
        parse_method=adapter.parse_method,
        institution_adapter=adapter.institution,
        fallback_to_generic=adapter.fallback_to_generic,
        total_text_lines=len(lines),
        dropped_noise_lines=dropped_noise,
        candidate_lines=candidate_lines,
        raw_parsed_count=len(parsed),
        deduped_parsed_count=len(transactions),
        parser_confidence=compute_parser_confidence(candidate_lines, len(transactions)),
    )

    logger.info(
        "Parsed %d transactions (%d raw) from %d lines via %s, confidence %.3f",
        diagnostics.deduped_parsed_count,
        diagnostics.raw_parsed_count,
        diagnostics.total_text_lines,
        diagnostics.parse_method,
        diagnostics.parser_confidence,
    )
    return StatementParseResult(diagnostics=diagnostics, transactions=transactions)


def parse_statement_file(
    path: Path | str,
    statement_year: int,
    institution: Optional[str] = None,
    **kwargs,
) -> StatementParseResult:
    """Read a statement file once and parse it."""
    pdf_bytes = Path(path).read_bytes()
    return parse_document(pdf_bytes, statement_year, institution, **kwargs)

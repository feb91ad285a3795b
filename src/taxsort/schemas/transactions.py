"""
Canonical parsed-statement objects (SSOT).

Every parser and adapter produces ParsedTransaction; every document parse
produces exactly one ParseDiagnostics. No other module may invent another
"transaction" shape.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ParsedTransaction:
    """
    One accepted statement line.

    Amount sign convention:
    - positive: outflow / debit
    - negative: inflow / credit
    """

    posted_date: str  # ISO format YYYY-MM-DD
    amount: Decimal
    description: str
    raw_line: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "posted_date": self.posted_date,
            "amount": str(self.amount),
            "description": self.description,
            "raw_line": self.raw_line,
        }


@dataclass(frozen=True)
class ParseDiagnostics:
    """Read-only summary of one document parse."""

    parse_method: str
    institution_adapter: str
    fallback_to_generic: bool
    total_text_lines: int = 0
    dropped_noise_lines: int = 0
    candidate_lines: int = 0
    raw_parsed_count: int = 0
    deduped_parsed_count: int = 0
    parser_confidence: float = 0.0  # [0.0, 1.0]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "parse_method": self.parse_method,
            "institution_adapter": self.institution_adapter,
            "fallback_to_generic": self.fallback_to_generic,
            "total_text_lines": self.total_text_lines,
            "dropped_noise_lines": self.dropped_noise_lines,
            "candidate_lines": self.candidate_lines,
            "raw_parsed_count": self.raw_parsed_count,
            "deduped_parsed_count": self.deduped_parsed_count,
            "parser_confidence": self.parser_confidence,
        }


@dataclass
class StatementParseResult:
    """Transactions plus diagnostics for one document."""

    diagnostics: ParseDiagnostics
    transactions: list[ParsedTransaction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactions": [tx.to_dict() for tx in self.transactions],
            "diagnostics": self.diagnostics.to_dict(),
        }

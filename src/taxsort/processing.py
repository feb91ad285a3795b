"""
Statement processing: parse one document, classify every transaction and
route review items.

Stateless; persisting the result is the caller's job.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .classification.engine import ClassificationEngine
from .config import Config
from .parsers.statement import parse_document
from .review.routing import (
    ReviewItem,
    low_confidence_item,
    parse_warning_item,
    year_mismatch_item,
)
from .schemas.classification import ClassificationContext, ClassificationDecision, ClassificationRule
from .schemas.taxonomy import EntityType, Taxonomy, get_taxonomy_for_entity_year
from .schemas.transactions import ParseDiagnostics, ParsedTransaction, StatementParseResult

logger = logging.getLogger(__name__)


class StatementStatus(str, Enum):
    PROCESSED = "PROCESSED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


@dataclass(frozen=True)
class CategorizedTransaction:
    """A parsed transaction with its classification decision."""

    transaction: ParsedTransaction
    decision: ClassificationDecision

    def to_dict(self) -> dict[str, Any]:
        return {**self.transaction.to_dict(), **self.decision.to_dict()}


@dataclass
class ProcessedStatement:
    """Outcome of processing one statement document."""

    statement_id: Optional[str]
    status: StatementStatus
    taxonomy: Taxonomy
    diagnostics: ParseDiagnostics
    transactions: list[CategorizedTransaction] = field(default_factory=list)
    review_items: list[ReviewItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement_id": self.statement_id,
            "status": self.status.value,
            "taxonomy_id": self.taxonomy.id,
            "diagnostics": self.diagnostics.to_dict(),
            "transactions": [tx.to_dict() for tx in self.transactions],
            "review_items": [item.to_dict() for item in self.review_items],
        }


def process_statement(
    pdf_bytes: bytes,
    *,
    statement_year: int,
    institution: Optional[str],
    account_label: Optional[str],
    entity_type: EntityType | str,
    tenant_rules: Iterable[ClassificationRule] = (),
    tenant_id: Optional[str] = None,
    statement_id: Optional[str] = None,
    folder_year_mismatch: bool = False,
    engine: Optional[ClassificationEngine] = None,
    config: Optional[Config] = None,
    parse: Callable[..., StatementParseResult] = parse_document,
) -> ProcessedStatement:
    """
    Process one statement document end to end.

    Args:
        pdf_bytes: Raw document bytes
        statement_year: Tax year of the statement
        institution: Institution id (None/unknown uses the generic parser)
        account_label: Account label hint for classification
        entity_type: Entity type selecting the taxonomy
        tenant_rules: Tenant classification rules
        tenant_id: Only this tenant's rules apply (all rules when None)
        statement_id: Identifier copied onto review items
        folder_year_mismatch: Statement was filed under another year's folder
        engine: Classification engine (default engine when None)
        config: Thresholds and parser caps (defaults when None)
        parse: Document parser

    Returns:
        ProcessedStatement

    Raises:
        TaxonomyNotFoundError: If no taxonomy exists for entity type/year
    """
    config = config or Config()
    taxonomy = get_taxonomy_for_entity_year(entity_type, statement_year)
    engine = engine or ClassificationEngine(
        confidence_threshold=config.classification.confidence_threshold
    )

    parsed = parse(
        pdf_bytes,
        statement_year,
        institution,
        max_candidates=config.parser.max_candidates,
        max_transactions=config.parser.max_transactions,
        max_line_length=config.parser.max_line_length,
        min_line_length=config.parser.min_line_length,
    )

    review_items: list[ReviewItem] = []
    if folder_year_mismatch:
        review_items.append(year_mismatch_item(statement_year, statement_id))

    warning = parse_warning_item(
        parsed.diagnostics,
        config.review.parse_warning_threshold,
        statement_id,
    )
    if warning is not None:
        review_items.append(warning)

    context = ClassificationContext(
        taxonomy_id=taxonomy.id,
        account_label=account_label,
        tenant_rules=tuple(tenant_rules),
        tenant_id=tenant_id,
    )

    categorized: list[CategorizedTransaction] = []
    for index, tx in enumerate(parsed.transactions):
        decision = engine.classify(tx, context)
        categorized.append(CategorizedTransaction(transaction=tx, decision=decision))
        item = low_confidence_item(
            decision,
            engine.confidence_threshold,
            index,
            statement_id,
        )
        if item is not None:
            review_items.append(item)

    status = StatementStatus.NEEDS_REVIEW if review_items else StatementStatus.PROCESSED
    logger.info(
        "Processed statement %s: %d transactions, %d review items, %s",
        statement_id or "-",
        len(categorized),
        len(review_items),
        status.value,
    )

    return ProcessedStatement(
        statement_id=statement_id,
        status=status,
        taxonomy=taxonomy,
        diagnostics=parsed.diagnostics,
        transactions=categorized,
        review_items=review_items,
    )

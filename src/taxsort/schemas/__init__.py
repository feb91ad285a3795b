"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .classification import (
    ClassificationContext,
    ClassificationDecision,
    ClassificationMethod,
    ClassificationRule,
    RuleScope,
    Suggestion,
)
from .dedupe import compute_document_hash, dedupe_transactions, transaction_dedupe_key
from .taxonomy import (
    OTHER_EXPENSE,
    TAXONOMIES,
    EntityType,
    Taxonomy,
    TaxonomyCategory,
    TaxonomyId,
    TaxonomyNotFoundError,
    category_exists_in_taxonomy,
    get_taxonomy_by_id,
    get_taxonomy_for_entity_year,
)
from .transactions import ParseDiagnostics, ParsedTransaction, StatementParseResult

__all__ = [
    # Transactions
    "ParsedTransaction",
    "ParseDiagnostics",
    "StatementParseResult",
    # Dedupe
    "compute_document_hash",
    "dedupe_transactions",
    "transaction_dedupe_key",
    # Classification
    "ClassificationContext",
    "ClassificationDecision",
    "ClassificationMethod",
    "ClassificationRule",
    "RuleScope",
    "Suggestion",
    # Taxonomy
    "OTHER_EXPENSE",
    "TAXONOMIES",
    "EntityType",
    "Taxonomy",
    "TaxonomyCategory",
    "TaxonomyId",
    "TaxonomyNotFoundError",
    "category_exists_in_taxonomy",
    "get_taxonomy_by_id",
    "get_taxonomy_for_entity_year",
]

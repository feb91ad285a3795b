"""
Keyword-prior fallback provider.

Consulted when no rule is confident enough. Always answers; unmatched
text lands on other_expense with a low confidence so it gets reviewed.
"""

import re
from typing import Optional

from ..schemas.classification import ClassificationContext, Suggestion
from ..schemas.taxonomy import OTHER_EXPENSE
from ..schemas.transactions import ParsedTransaction
from .base import CategorySuggester, transaction_text

KEYWORD_PRIOR_REASON = "ai_keyword_prior"
FALLBACK_REASON = "ai_fallback_other"
FALLBACK_CONFIDENCE = 0.55

# Ordered: first match wins
KEYWORD_PRIORS: tuple[tuple[re.Pattern, str, float], ...] = (
    (re.compile(r"\b(ad|promo|campaign|marketing)\b", re.I), "advertising", 0.78),
    (re.compile(r"\b(cleaning|supplies|equipment|tools)\b", re.I), "supplies", 0.76),
    (re.compile(r"\b(internet|phone|electric|water)\b", re.I), "utilities", 0.79),
    (re.compile(r"\b(flight|hotel|lodging|uber|lyft)\b", re.I), "travel", 0.77),
    (re.compile(r"\b(lunch|dinner|restaurant|coffee)\b", re.I), "meals", 0.75),
    (re.compile(r"\b(tax|license|permit)\b", re.I), "taxes_licenses", 0.82),
)


class KeywordPriorProvider(CategorySuggester):
    """Small ordered keyword-prior table standing in for a model."""

    @property
    def name(self) -> str:
        return "keyword_prior"

    def suggest(
        self,
        transaction: ParsedTransaction,
        context: Optional[ClassificationContext] = None,
    ) -> Suggestion:
        text = transaction_text(transaction)
        for pattern, category_code, confidence in KEYWORD_PRIORS:
            if pattern.search(text):
                return Suggestion(
                    category_code=category_code,
                    confidence=confidence,
                    reason_code=KEYWORD_PRIOR_REASON,
                )
        return Suggestion(
            category_code=OTHER_EXPENSE,
            confidence=FALLBACK_CONFIDENCE,
            reason_code=FALLBACK_REASON,
        )

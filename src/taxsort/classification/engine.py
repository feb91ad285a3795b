"""
Classification engine: the top-level category decision for one transaction.

1. Rules; a suggestion at or above the threshold is taken as-is (RULE)
2. Otherwise the fallback provider (AI)
3. Every category is checked against the context's taxonomy; unknown
   codes are coerced to other_expense and flagged for review

Never raises for unknown categories or provider failures.
"""

import logging
from collections.abc import Callable
from typing import Optional

from ..schemas.classification import (
    ClassificationContext,
    ClassificationDecision,
    ClassificationMethod,
    Suggestion,
)
from ..schemas.taxonomy import OTHER_EXPENSE, category_exists_in_taxonomy
from ..schemas.transactions import ParsedTransaction
from .base import CategorySuggester
from .heuristic import KeywordPriorProvider
from .rules import RulesEngine

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.85

TAXONOMY_OK = "taxonomy_ok"
TAXONOMY_FALLBACK = "taxonomy_fallback"
RULE_LOW_CONFIDENCE = "rule_low_confidence"
RULE_NO_MATCH = "rule_no_match"
FALLBACK_OTHER_EXPENSE = "fallback_other_expense"
MANUAL_OVERRIDE = "manual_override"

# Confidence after coercing an unknown category
RULE_COERCED_CONFIDENCE = 0.5
AI_COERCED_CONFIDENCE = 0.45
PROVIDER_FAILURE_CONFIDENCE = 0.5


def manual_decision(category_code: str) -> ClassificationDecision:
    """Decision for a category assigned by a human."""
    return ClassificationDecision(
        category_code=category_code,
        confidence=1.0,
        method=ClassificationMethod.MANUAL,
        reason_codes=(MANUAL_OVERRIDE,),
        needs_review=False,
    )


class ClassificationEngine:
    """
    Combines a rules suggester and a fallback suggester.

    Both collaborators implement CategorySuggester and can be swapped
    (e.g. a model-backed fallback provider).
    """

    def __init__(
        self,
        rules_engine: Optional[CategorySuggester] = None,
        fallback_provider: Optional[CategorySuggester] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        category_exists: Callable[[str, str], bool] = category_exists_in_taxonomy,
    ):
        self.rules_engine = rules_engine or RulesEngine()
        self.fallback_provider = fallback_provider or KeywordPriorProvider()
        self.confidence_threshold = confidence_threshold
        self.category_exists = category_exists

    def classify(
        self,
        transaction: ParsedTransaction,
        context: ClassificationContext,
    ) -> ClassificationDecision:
        """
        Decide the category of one transaction.

        Args:
            transaction: Parsed transaction
            context: Taxonomy id, account label and tenant rules

        Returns:
            ClassificationDecision (always; worst case other_expense for review)
        """
        rule = self.rules_engine.suggest(transaction, context)
        if rule is not None and rule.confidence >= self.confidence_threshold:
            return self._rule_decision(rule, context)

        rule_tag = RULE_LOW_CONFIDENCE if rule is not None else RULE_NO_MATCH
        try:
            suggestion = self.fallback_provider.suggest(transaction, context)
        except Exception as e:
            logger.warning(
                "%s provider failed for %r: %s",
                self.fallback_provider.name,
                transaction.description,
                e,
            )
            suggestion = None

        if suggestion is None:
            return ClassificationDecision(
                category_code=OTHER_EXPENSE,
                confidence=PROVIDER_FAILURE_CONFIDENCE,
                method=ClassificationMethod.FALLBACK,
                reason_codes=(rule_tag, FALLBACK_OTHER_EXPENSE),
                needs_review=True,
            )

        return self._ai_decision(suggestion, rule_tag, context)

    def _rule_decision(self, rule: Suggestion, context: ClassificationContext) -> ClassificationDecision:
        if self.category_exists(context.taxonomy_id, rule.category_code):
            return ClassificationDecision(
                category_code=rule.category_code,
                confidence=rule.confidence,
                method=ClassificationMethod.RULE,
                reason_codes=(rule.reason_code, TAXONOMY_OK),
                needs_review=False,
            )

        logger.debug("Rule category %s not in %s, coercing", rule.category_code, context.taxonomy_id)
        return ClassificationDecision(
            category_code=OTHER_EXPENSE,
            confidence=RULE_COERCED_CONFIDENCE,
            method=ClassificationMethod.RULE,
            reason_codes=(rule.reason_code, TAXONOMY_FALLBACK),
            needs_review=True,
        )

    def _ai_decision(
        self,
        suggestion: Suggestion,
        rule_tag: str,
        context: ClassificationContext,
    ) -> ClassificationDecision:
        valid = self.category_exists(context.taxonomy_id, suggestion.category_code)
        if valid:
            category_code, confidence = suggestion.category_code, suggestion.confidence
        else:
            logger.debug(
                "Suggested category %s not in %s, coercing",
                suggestion.category_code,
                context.taxonomy_id,
            )
            category_code, confidence = OTHER_EXPENSE, AI_COERCED_CONFIDENCE

        return ClassificationDecision(
            category_code=category_code,
            confidence=confidence,
            method=ClassificationMethod.AI,
            reason_codes=(rule_tag, suggestion.reason_code),
            needs_review=confidence < self.confidence_threshold or not valid,
        )

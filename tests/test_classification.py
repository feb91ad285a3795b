"""Tests for the classification engine, keyword priors and the learned-rule guardrail."""

from typing import Optional

import pytest
from conftest import make_transaction

from taxsort.classification.base import CategorySuggester
from taxsort.classification.engine import ClassificationEngine, manual_decision
from taxsort.classification.guardrail import LearnedRuleBlockedError, ensure_learned_rule_allowed
from taxsort.classification.heuristic import KeywordPriorProvider
from taxsort.review.routing import ReviewItem, ReviewReason
from taxsort.schemas.classification import (
    ClassificationContext,
    ClassificationMethod,
    ClassificationRule,
    Suggestion,
)
from taxsort.schemas.taxonomy import TaxonomyId


class FixedProvider(CategorySuggester):
    """Provider answering with a canned suggestion."""

    def __init__(self, suggestion: Optional[Suggestion]):
        self.suggestion = suggestion

    @property
    def name(self) -> str:
        return "fixed"

    def suggest(self, transaction, context):
        return self.suggestion


class BrokenProvider(CategorySuggester):
    @property
    def name(self) -> str:
        return "broken"

    def suggest(self, transaction, context):
        raise ConnectionError("provider offline")


@pytest.fixture
def schedule_c_context() -> ClassificationContext:
    return ClassificationContext(taxonomy_id=TaxonomyId.SCHEDULE_C_2024.value)


@pytest.fixture
def engine() -> ClassificationEngine:
    return ClassificationEngine()


class TestClassificationEngine:
    """Tests for ClassificationEngine.classify."""

    def test_confident_rule(self, engine, schedule_c_context, payroll_transaction):
        decision = engine.classify(payroll_transaction, schedule_c_context)

        assert decision.category_code == "wages"
        assert decision.method == ClassificationMethod.RULE
        assert decision.confidence == 0.9
        assert decision.reason_codes == ("default_rule_match", "taxonomy_ok")
        assert decision.needs_review is False

    def test_no_rule_falls_back_to_other_expense(self, engine, schedule_c_context, mystery_transaction):
        decision = engine.classify(mystery_transaction, schedule_c_context)

        assert decision.category_code == "other_expense"
        assert decision.method == ClassificationMethod.AI
        assert decision.confidence == 0.55
        assert decision.reason_codes == ("rule_no_match", "ai_fallback_other")
        assert decision.needs_review is True

    def test_keyword_prior(self, engine, schedule_c_context):
        decision = engine.classify(make_transaction("SPRING PROMO CAMPAIGN"), schedule_c_context)

        assert decision.category_code == "advertising"
        assert decision.method == ClassificationMethod.AI
        assert decision.confidence == 0.78
        assert decision.reason_codes == ("rule_no_match", "ai_keyword_prior")
        assert decision.needs_review is True

    def test_low_confidence_rule_consults_provider(self, engine, mystery_transaction):
        context = ClassificationContext(
            taxonomy_id=TaxonomyId.SCHEDULE_C_2024.value,
            account_label="misc_expense 4410",
        )

        decision = engine.classify(mystery_transaction, context)

        assert decision.method == ClassificationMethod.AI
        assert decision.reason_codes == ("rule_low_confidence", "ai_fallback_other")

    def test_threshold_is_inclusive(self, engine, schedule_c_context):
        """Rule confidence exactly at the threshold is accepted."""
        decision = engine.classify(make_transaction("COFFEE SHOP"), schedule_c_context)

        assert decision.category_code == "meals"
        assert decision.confidence == 0.85
        assert decision.method == ClassificationMethod.RULE

    def test_rule_category_outside_taxonomy(self, engine):
        rule = ClassificationRule(
            id="r1",
            tenant_id="t1",
            category_code="crypto_losses",
            pattern="coinbase",
            priority=500,
            confidence=0.95,
        )
        context = ClassificationContext(
            taxonomy_id=TaxonomyId.SCHEDULE_C_2024.value,
            tenant_rules=(rule,),
        )

        decision = engine.classify(make_transaction("COINBASE TRANSFER"), context)

        assert decision.category_code == "other_expense"
        assert decision.confidence == 0.5
        assert decision.method == ClassificationMethod.RULE
        assert decision.reason_codes == ("tenant_rule_match", "taxonomy_fallback")
        assert decision.needs_review is True

    def test_corporation_has_no_owner_draw(self, engine):
        context = ClassificationContext(taxonomy_id=TaxonomyId.FORM_1120_2025.value)

        decision = engine.classify(make_transaction("ATM WITHDRAWAL"), context)

        assert decision.category_code == "other_expense"
        assert decision.confidence == 0.5
        assert decision.reason_codes == ("default_rule_match", "taxonomy_fallback")
        assert decision.needs_review is True

    def test_sole_prop_owner_draw(self, engine, schedule_c_context):
        decision = engine.classify(make_transaction("ATM WITHDRAWAL"), schedule_c_context)
        assert decision.category_code == "owner_draw"

    def test_provider_category_outside_taxonomy(self, schedule_c_context, mystery_transaction):
        provider = FixedProvider(Suggestion(category_code="bogus", confidence=0.99, reason_code="model_guess"))
        engine = ClassificationEngine(fallback_provider=provider)

        decision = engine.classify(mystery_transaction, schedule_c_context)

        assert decision.category_code == "other_expense"
        assert decision.confidence == 0.45
        assert decision.method == ClassificationMethod.AI
        assert decision.reason_codes == ("rule_no_match", "model_guess")
        assert decision.needs_review is True

    def test_confident_provider_skips_review(self, schedule_c_context, mystery_transaction):
        provider = FixedProvider(Suggestion(category_code="supplies", confidence=0.9, reason_code="model_guess"))
        decision = ClassificationEngine(fallback_provider=provider).classify(mystery_transaction, schedule_c_context)

        assert decision.category_code == "supplies"
        assert decision.needs_review is False

    def test_provider_without_answer(self, schedule_c_context, mystery_transaction):
        engine = ClassificationEngine(fallback_provider=FixedProvider(None))

        decision = engine.classify(mystery_transaction, schedule_c_context)

        assert decision.category_code == "other_expense"
        assert decision.confidence == 0.5
        assert decision.method == ClassificationMethod.FALLBACK
        assert decision.reason_codes == ("rule_no_match", "fallback_other_expense")
        assert decision.needs_review is True

    def test_provider_failure_never_raises(self, schedule_c_context, mystery_transaction):
        engine = ClassificationEngine(fallback_provider=BrokenProvider())

        decision = engine.classify(mystery_transaction, schedule_c_context)

        assert decision.method == ClassificationMethod.FALLBACK
        assert decision.category_code == "other_expense"

    def test_unknown_taxonomy_coerces_everything(self, engine, payroll_transaction):
        decision = engine.classify(payroll_transaction, ClassificationContext(taxonomy_id="NOPE"))

        assert decision.category_code == "other_expense"
        assert decision.needs_review is True

    def test_custom_threshold(self, schedule_c_context, payroll_transaction):
        engine = ClassificationEngine(confidence_threshold=0.95)

        decision = engine.classify(payroll_transaction, schedule_c_context)

        assert decision.method == ClassificationMethod.AI
        assert decision.reason_codes[0] == "rule_low_confidence"

    def test_manual_decision(self):
        decision = manual_decision("travel")

        assert decision.method == ClassificationMethod.MANUAL
        assert decision.confidence == 1.0
        assert decision.reason_codes == ("manual_override",)
        assert decision.needs_review is False

    def test_decision_to_dict(self, engine, schedule_c_context, payroll_transaction):
        data = engine.classify(payroll_transaction, schedule_c_context).to_dict()

        assert data["method"] == "RULE"
        assert data["reason_codes"] == ["default_rule_match", "taxonomy_ok"]


class TestKeywordPriorProvider:
    """Tests for the heuristic fallback provider."""

    @pytest.mark.parametrize(
        "description,category_code",
        [
            ("CITY PERMIT OFFICE", "taxes_licenses"),
            ("LYFT RIDE 8832", "travel"),
            ("TEAM LUNCH", "meals"),
            ("PHONE BILL", "utilities"),
        ],
    )
    def test_priors(self, description, category_code):
        suggestion = KeywordPriorProvider().suggest(make_transaction(description))

        assert suggestion.category_code == category_code
        assert suggestion.reason_code == "ai_keyword_prior"

    def test_first_prior_wins(self):
        """'cleaning' is listed before 'water'."""
        suggestion = KeywordPriorProvider().suggest(make_transaction("WATER CLEANING CO"))
        assert suggestion.category_code == "supplies"

    def test_always_answers(self, mystery_transaction):
        suggestion = KeywordPriorProvider().suggest(mystery_transaction)

        assert suggestion.category_code == "other_expense"
        assert suggestion.confidence == 0.55
        assert suggestion.reason_code == "ai_fallback_other"


class TestLearnedRuleGuardrail:
    """Tests for ensure_learned_rule_allowed."""

    def test_open_parse_warning_blocks(self):
        items = [ReviewItem(reason=ReviewReason.PARSE_WARNING, detail="low", statement_id="s1")]

        with pytest.raises(LearnedRuleBlockedError):
            ensure_learned_rule_allowed(items, "s1")

    def test_override_allows(self):
        items = [ReviewItem(reason=ReviewReason.PARSE_WARNING, detail="low", statement_id="s1")]
        ensure_learned_rule_allowed(items, "s1", allow_override=True)

    def test_resolved_warning_allows(self):
        items = [ReviewItem(reason=ReviewReason.PARSE_WARNING, detail="low", statement_id="s1").resolve()]
        ensure_learned_rule_allowed(items, "s1")

    def test_other_statement_allows(self):
        items = [ReviewItem(reason=ReviewReason.PARSE_WARNING, detail="low", statement_id="s2")]
        ensure_learned_rule_allowed(items, "s1")

    def test_other_reasons_allow(self):
        items = [
            ReviewItem(reason=ReviewReason.LOW_CONFIDENCE, detail="x", statement_id="s1", transaction_index=0),
            ReviewItem(reason=ReviewReason.YEAR_MISMATCH, detail="y", statement_id="s1"),
        ]
        ensure_learned_rule_allowed(items, "s1")

    def test_without_statement(self):
        items = [ReviewItem(reason=ReviewReason.PARSE_WARNING, detail="low", statement_id="s1")]
        ensure_learned_rule_allowed(items, None)

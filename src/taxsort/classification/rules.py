"""
Rules subsystem.

Precedence (highest first, compared by priority then confidence):
1. Account-label hints (priority 900)
2. Tenant rules (scope filtered, priority as authored)
3. Built-in keyword rules (priority 100)

Returns None only when no rule matched at all.
"""

import functools
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from ..schemas.classification import ClassificationContext, ClassificationRule, RuleScope, Suggestion
from ..schemas.transactions import ParsedTransaction
from .base import CategorySuggester, transaction_text
from .rule_service import select_tenant_rules

logger = logging.getLogger(__name__)

ACCOUNT_HINT_PRIORITY = 900
DEFAULT_RULE_PRIORITY = 100

PATTERN_CACHE_SIZE = 1024

DEFAULT_RULE_REASON = "default_rule_match"
TENANT_RULE_REASON = "tenant_rule_match"


@dataclass(frozen=True)
class KeywordRule:
    """Built-in keyword → category rule."""

    pattern: re.Pattern
    category_code: str
    confidence: float


@dataclass(frozen=True)
class AccountHint:
    """Account label keyword → category hint."""

    keyword: str
    category_code: str
    confidence: float


def _keywords(alternatives: str) -> re.Pattern:
    return re.compile(rf"\b({alternatives})\b", re.IGNORECASE)


DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(_keywords(r"google ads|facebook|meta ads|yelp|canva|mailchimp|marketing"), "advertising", 0.92),
    KeywordRule(_keywords(r"shell|chevron|exxon|wawa|fuel|gas station"), "car_truck", 0.9),
    KeywordRule(_keywords(r"insurance|geico|state farm|progressive"), "insurance", 0.9),
    KeywordRule(_keywords(r"interest charge|finance charge"), "interest", 0.92),
    KeywordRule(_keywords(r"attorney|law office|cpa|accounting|bookkeeping"), "legal_professional", 0.9),
    KeywordRule(_keywords(r"staples|office depot|zoom|microsoft|adobe"), "office_expense", 0.85),
    KeywordRule(_keywords(r"rent|lease"), "rent_lease", 0.88),
    KeywordRule(_keywords(r"repair|maintenance|service call"), "repairs_maintenance", 0.87),
    KeywordRule(_keywords(r"home depot|lowe'?s|amazon|supply|cleaning"), "supplies", 0.86),
    KeywordRule(_keywords(r"irs|department of revenue|tax payment|state tax"), "taxes_licenses", 0.95),
    KeywordRule(_keywords(r"delta|southwest|airlines|marriott|hotel|airbnb|uber"), "travel", 0.88),
    KeywordRule(_keywords(r"restaurant|cafe|coffee|doordash|ubereats|grubhub"), "meals", 0.85),
    KeywordRule(_keywords(r"utility|electric|water bill|internet|comcast|verizon|at&t"), "utilities", 0.9),
    KeywordRule(_keywords(r"payroll|gusto|adp"), "wages", 0.9),
    KeywordRule(_keywords(r"owner draw|atm withdrawal|cash withdrawal"), "owner_draw", 0.88),
)

ACCOUNT_HINTS: tuple[AccountHint, ...] = (
    AccountHint("payroll", "wages", 0.97),
    AccountHint("marketing", "advertising", 0.97),
    AccountHint("tax_savings", "taxes_licenses", 0.97),
    AccountHint("misc_expense", "office_expense", 0.8),
)


@functools.lru_cache(maxsize=PATTERN_CACHE_SIZE)
def compile_rule_pattern(pattern: str) -> Optional[re.Pattern]:
    """Case-insensitive compiled pattern, or None when it does not compile."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def _normalize_label(label: Optional[str]) -> str:
    return (label or "").strip().lower()


def _better(candidate: Suggestion, current: Optional[Suggestion]) -> bool:
    """Higher priority wins; equal priority falls back to confidence."""
    if current is None:
        return True
    if candidate.priority != current.priority:
        return candidate.priority > current.priority
    return candidate.confidence > current.confidence


def rule_applies_to_account(rule: ClassificationRule, account_label: Optional[str]) -> bool:
    """TENANT rules always apply; ACCOUNT rules only to their own account."""
    if rule.scope != RuleScope.ACCOUNT:
        return True
    return bool(rule.account_label) and _normalize_label(rule.account_label) == _normalize_label(account_label)


class RulesEngine(CategorySuggester):
    """
    Deterministic rule matcher.

    Compiled tenant patterns are cached by pattern text in a bounded
    module-level cache; an edited pattern gets a fresh entry.
    """

    def __init__(
        self,
        default_rules: Iterable[KeywordRule] = DEFAULT_RULES,
        account_hints: Iterable[AccountHint] = ACCOUNT_HINTS,
    ):
        self.default_rules = tuple(default_rules)
        self.account_hints = tuple(account_hints)

    @property
    def name(self) -> str:
        return "rules"

    def suggest(
        self,
        transaction: ParsedTransaction,
        context: ClassificationContext,
    ) -> Optional[Suggestion]:
        tenant_rules = context.tenant_rules
        if context.tenant_id is not None:
            tenant_rules = select_tenant_rules(tenant_rules, context.tenant_id)
        return self.classify(transaction, context.account_label, tenant_rules)

    def classify(
        self,
        transaction: ParsedTransaction,
        account_label: Optional[str] = None,
        tenant_rules: Iterable[ClassificationRule] = (),
    ) -> Optional[Suggestion]:
        """
        Best matching rule for a transaction.

        Args:
            transaction: Transaction to classify
            account_label: Account label hint (e.g. "payroll 0378")
            tenant_rules: Tenant rules; inactive and unusable ones are skipped

        Returns:
            Winning Suggestion or None if nothing matched
        """
        text = transaction_text(transaction)
        if not text:
            return None

        best: Optional[Suggestion] = None
        for candidate in self._account_hint_matches(account_label):
            if _better(candidate, best):
                best = candidate
        for candidate in self._tenant_rule_matches(text, account_label, tenant_rules):
            if _better(candidate, best):
                best = candidate
        for candidate in self._default_rule_matches(text):
            if _better(candidate, best):
                best = candidate
        return best

    def _account_hint_matches(self, account_label: Optional[str]) -> Iterable[Suggestion]:
        label = _normalize_label(account_label)
        if not label:
            return
        for hint in self.account_hints:
            if hint.keyword in label:
                yield Suggestion(
                    category_code=hint.category_code,
                    confidence=hint.confidence,
                    reason_code=f"account_hint_{hint.keyword}",
                    priority=ACCOUNT_HINT_PRIORITY,
                )

    def _tenant_rule_matches(
        self,
        text: str,
        account_label: Optional[str],
        tenant_rules: Iterable[ClassificationRule],
    ) -> Iterable[Suggestion]:
        applicable = [
            rule for rule in tenant_rules if rule.active and rule_applies_to_account(rule, account_label)
        ]
        applicable.sort(key=lambda rule: (-rule.priority, -rule.confidence))
        for rule in applicable:
            compiled = self._compile(rule)
            if compiled is None or not compiled.search(text):
                continue
            yield Suggestion(
                category_code=rule.category_code,
                confidence=rule.confidence,
                reason_code=TENANT_RULE_REASON,
                rule_id=rule.id,
                priority=rule.priority,
            )

    def _default_rule_matches(self, text: str) -> Iterable[Suggestion]:
        for rule in self.default_rules:
            if rule.pattern.search(text):
                yield Suggestion(
                    category_code=rule.category_code,
                    confidence=rule.confidence,
                    reason_code=DEFAULT_RULE_REASON,
                    priority=DEFAULT_RULE_PRIORITY,
                )

    def _compile(self, rule: ClassificationRule) -> Optional[re.Pattern]:
        compiled = compile_rule_pattern(rule.pattern)
        if compiled is None:
            logger.warning("Skipping rule %s with unusable pattern %r", rule.id, rule.pattern)
        return compiled


_DEFAULT_ENGINE = RulesEngine()


def classify_by_rules(
    transaction: ParsedTransaction,
    account_label: Optional[str] = None,
    tenant_rules: Iterable[ClassificationRule] = (),
) -> Optional[Suggestion]:
    """Module-level shortcut over a shared RulesEngine."""
    return _DEFAULT_ENGINE.classify(transaction, account_label, tenant_rules)

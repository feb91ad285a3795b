"""
Transaction classification: rules, keyword priors and the decision engine.
"""

from .base import CategorySuggester
from .engine import ClassificationEngine, manual_decision
from .guardrail import LearnedRuleBlockedError, ensure_learned_rule_allowed
from .heuristic import KeywordPriorProvider
from .rule_service import (
    InvalidRulePatternError,
    RuleValidationError,
    build_pattern_from_transaction,
    compile_and_validate_pattern,
    create_rule,
    deactivate_rule,
    derive_rule_from_transaction,
    load_rules_file,
    normalize_rule_record,
    select_tenant_rules,
)
from .rules import RulesEngine, classify_by_rules

__all__ = [
    "CategorySuggester",
    "ClassificationEngine",
    "KeywordPriorProvider",
    "RulesEngine",
    "classify_by_rules",
    "manual_decision",
    # Rule authoring
    "InvalidRulePatternError",
    "RuleValidationError",
    "build_pattern_from_transaction",
    "compile_and_validate_pattern",
    "create_rule",
    "deactivate_rule",
    "derive_rule_from_transaction",
    "load_rules_file",
    "normalize_rule_record",
    "select_tenant_rules",
    # Guardrail
    "LearnedRuleBlockedError",
    "ensure_learned_rule_allowed",
]

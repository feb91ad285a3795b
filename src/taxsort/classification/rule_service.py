"""
Tenant rule authoring.

Patterns are compiled when a rule is created; a bad regular expression
raises InvalidRulePatternError and no rule is produced. Rule records are
immutable; updates produce new ClassificationRule values.
"""

import logging
import math
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from ..schemas.classification import ClassificationRule, RuleScope
from ..schemas.transactions import ParsedTransaction

logger = logging.getLogger(__name__)

DEFAULT_RULE_CONFIDENCE = 0.93
LEARNED_RULE_CONFIDENCE = 0.95

RULE_PRIORITY = {RuleScope.ACCOUNT: 1000, RuleScope.TENANT: 500}
LEARNED_RULE_PRIORITY = {RuleScope.ACCOUNT: 1100, RuleScope.TENANT: 600}

# Record defaults when decoding stored rules
RECORD_CONFIDENCE = 0.9
RECORD_PRIORITY = 100

UNSAFE_PATTERN_CHARS = re.compile(r"[^a-z0-9\s]")
WHITESPACE = re.compile(r"\s+")
NUMERIC = re.compile(r"^\d+$")

MIN_PATTERN_WORD_LENGTH = 3
MAX_PATTERN_WORDS = 4


class InvalidRulePatternError(ValueError):
    """Raised when a rule pattern is not a valid regular expression."""

    pass


class RuleValidationError(ValueError):
    """Raised when a rule cannot be created from the given fields."""

    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex}"


def normalize_scope(value: Any) -> RuleScope:
    """ACCOUNT when spelled so (any case); everything else is TENANT."""
    if isinstance(value, RuleScope):
        return value
    text = str(value if value is not None else RuleScope.TENANT.value).strip().upper()
    return RuleScope.ACCOUNT if text == RuleScope.ACCOUNT.value else RuleScope.TENANT


def compile_and_validate_pattern(pattern: str) -> re.Pattern:
    """
    Compile a rule pattern case-insensitively.

    Raises:
        InvalidRulePatternError: If the pattern is empty or does not compile
    """
    if not pattern or not str(pattern).strip():
        raise InvalidRulePatternError("Rule pattern must not be empty")
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise InvalidRulePatternError(f"Invalid regex pattern: {pattern} ({e})") from e


def create_rule(
    tenant_id: str,
    category_code: str,
    pattern: str,
    *,
    scope: RuleScope | str = RuleScope.TENANT,
    account_label: Optional[str] = None,
    name: Optional[str] = None,
    confidence: Optional[float] = None,
    priority: Optional[int] = None,
    created_by: Optional[str] = None,
) -> ClassificationRule:
    """
    Author a new tenant rule.

    Args:
        tenant_id: Owning tenant
        category_code: Category assigned on match
        pattern: Case-insensitive regular expression
        scope: TENANT (all accounts) or ACCOUNT (one account label)
        account_label: Required for ACCOUNT scope
        confidence: Defaults to 0.93
        priority: Defaults to 1000 for ACCOUNT, 500 for TENANT

    Returns:
        New active ClassificationRule

    Raises:
        RuleValidationError: Missing fields, bad scope/label or confidence
        InvalidRulePatternError: Pattern does not compile
    """
    if not tenant_id or not category_code or not pattern:
        raise RuleValidationError("tenant_id, category_code, and pattern are required")

    compile_and_validate_pattern(pattern)

    rule_scope = normalize_scope(scope)
    if rule_scope == RuleScope.ACCOUNT and not (account_label or "").strip():
        raise RuleValidationError("account_label is required for ACCOUNT scoped rules")

    rule_confidence = DEFAULT_RULE_CONFIDENCE if confidence is None else float(confidence)
    if not 0.0 < rule_confidence <= 1.0:
        raise RuleValidationError(f"confidence must be in (0, 1], got {rule_confidence}")

    rule_priority = RULE_PRIORITY[rule_scope] if priority is None else int(priority)

    return ClassificationRule(
        id=_new_rule_id(),
        tenant_id=tenant_id,
        name=name or f"{category_code} rule",
        scope=rule_scope,
        account_label=account_label.strip() if rule_scope == RuleScope.ACCOUNT else None,
        category_code=category_code,
        pattern=pattern,
        confidence=rule_confidence,
        priority=rule_priority,
        active=True,
        created_by=created_by or "system",
        created_at=_now_iso(),
        updated_at=None,
    )


def build_pattern_from_transaction(transaction: ParsedTransaction) -> Optional[str]:
    """
    Derive a matching pattern from a transaction description.

    Keeps up to four leading words of 3+ characters (pure numbers dropped),
    matched in order with optional whitespace between them.
    """
    source = (transaction.description or "").strip().lower()
    cleaned = WHITESPACE.sub(" ", UNSAFE_PATTERN_CHARS.sub(" ", source)).strip()
    if not cleaned:
        return None

    words = [
        word
        for word in cleaned.split(" ")
        if len(word) >= MIN_PATTERN_WORD_LENGTH and not NUMERIC.match(word)
    ][:MAX_PATTERN_WORDS]
    if not words:
        return None

    return r"\b" + r"\s*".join(re.escape(word) for word in words) + r"\b"


def derive_rule_from_transaction(
    tenant_id: str,
    transaction: ParsedTransaction,
    category_code: str,
    *,
    scope: RuleScope | str = RuleScope.TENANT,
    account_label: Optional[str] = None,
    created_by: Optional[str] = None,
) -> ClassificationRule:
    """
    Learn a rule from a reviewed transaction.

    Learned rules outrank hand-authored ones of the same scope
    (priority 1100 ACCOUNT / 600 TENANT, confidence 0.95).

    Raises:
        RuleValidationError: If no pattern can be derived
    """
    pattern = build_pattern_from_transaction(transaction)
    if not pattern:
        raise RuleValidationError("Could not derive a rule pattern from transaction description")

    rule_scope = normalize_scope(scope)
    return create_rule(
        tenant_id,
        category_code,
        pattern,
        scope=rule_scope,
        account_label=account_label,
        name=f"Learned from {transaction.description[:40]}",
        confidence=LEARNED_RULE_CONFIDENCE,
        priority=LEARNED_RULE_PRIORITY[rule_scope],
        created_by=created_by,
    )


def deactivate_rule(rule: ClassificationRule) -> ClassificationRule:
    """New record of the rule with active=False; the input is untouched."""
    return replace(
        rule,
        active=False,
        updated_at=_now_iso(),
        created_by=rule.created_by or "system",
    )


def _coerce_float(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return fallback


def _pick(payload: Mapping[str, Any], record: Mapping[str, Any], *keys: str) -> Any:
    """First non-None value for any spelling of a key, payload before record."""
    for source in (payload, record):
        for key in keys:
            value = source.get(key)
            if value is not None:
                return value
    return None


def normalize_rule_record(record: Any) -> Optional[ClassificationRule]:
    """
    Tolerantly decode a stored rule record.

    Accepts snake_case or camelCase keys and an optional nested "payload"
    dict. Records missing id, tenant, category or pattern decode to None.
    """
    if not isinstance(record, Mapping):
        return None
    payload = record.get("payload")
    if not isinstance(payload, Mapping):
        payload = record

    rule_id = _pick(payload, record, "id")
    tenant_id = _pick(payload, record, "tenant_id", "tenantId")
    category_code = payload.get("category_code", payload.get("categoryCode"))
    pattern = payload.get("pattern")
    if not rule_id or not tenant_id or not category_code or not pattern:
        return None

    return ClassificationRule(
        id=str(rule_id),
        tenant_id=str(tenant_id),
        name=payload.get("name"),
        scope=normalize_scope(payload.get("scope")),
        account_label=payload.get("account_label", payload.get("accountLabel")),
        category_code=str(category_code),
        pattern=str(pattern),
        confidence=_coerce_float(payload.get("confidence"), RECORD_CONFIDENCE),
        priority=int(_coerce_float(payload.get("priority"), RECORD_PRIORITY)),
        active=_coerce_bool(payload.get("active"), True),
        created_by=payload.get("created_by", payload.get("createdBy")),
        created_at=_pick(payload, record, "created_at", "createdAt"),
        updated_at=payload.get("updated_at", payload.get("updatedAt")),
    )


def select_tenant_rules(
    rules: Iterable[ClassificationRule],
    tenant_id: str,
    include_inactive: bool = False,
) -> list[ClassificationRule]:
    """A tenant's rules, priority descending then oldest first."""
    selected = [
        rule for rule in rules if rule.tenant_id == tenant_id and (include_inactive or rule.active)
    ]
    selected.sort(key=lambda rule: rule.created_at or "")
    selected.sort(key=lambda rule: rule.priority, reverse=True)
    return selected


def load_rules_file(path: Path | str, tenant_id: str) -> list[ClassificationRule]:
    """
    Load a tenant's active rules from a YAML file.

    The file holds a list of rule records, or a mapping with a "rules" list.
    Undecodable records and rules whose pattern does not compile are
    skipped with a warning.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
        ValueError: If the file does not hold a list of rules
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, Mapping):
        data = data.get("rules") or []
    if not isinstance(data, list):
        raise ValueError(f"Rules file must hold a list of rules: {path}")

    rules: list[ClassificationRule] = []
    for index, record in enumerate(data):
        if isinstance(record, Mapping) and "tenant_id" not in record and "tenantId" not in record:
            record = {**record, "tenant_id": tenant_id}
        rule = normalize_rule_record(record)
        if rule is None:
            logger.warning("Skipping rule record %d in %s: missing required fields", index, path)
            continue
        try:
            compile_and_validate_pattern(rule.pattern)
        except InvalidRulePatternError as e:
            logger.warning("Skipping rule %s in %s: %s", rule.id, path, e)
            continue
        rules.append(rule)

    logger.info("Loaded %d rules from %s", len(rules), path)
    return select_tenant_rules(rules, tenant_id)

"""
Classification records: rules, suggestions, context and decisions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ClassificationMethod(str, Enum):
    """
    How a category was assigned.

    RULE: Account hint, tenant rule or built-in keyword rule
    AI: Heuristic provider suggestion
    MANUAL: Human override
    FALLBACK: Provider gave nothing usable; safe default applied
    """

    RULE = "RULE"
    AI = "AI"
    MANUAL = "MANUAL"
    FALLBACK = "FALLBACK"


class RuleScope(str, Enum):
    """Where a tenant rule applies."""

    TENANT = "TENANT"  # Every account of the tenant
    ACCOUNT = "ACCOUNT"  # Only the account with a matching label


@dataclass(frozen=True)
class ClassificationRule:
    """
    Tenant-authored or learned pattern → category mapping.

    Rules are never deleted; deactivation produces a new record
    with active=False.
    """

    id: str
    tenant_id: str
    category_code: str
    pattern: str  # Case-insensitive regular expression
    scope: RuleScope = RuleScope.TENANT
    account_label: Optional[str] = None  # Required iff scope is ACCOUNT
    confidence: float = 0.9
    priority: int = 100  # Higher wins
    active: bool = True
    name: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON/YAML serialization."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "scope": self.scope.value,
            "account_label": self.account_label,
            "category_code": self.category_code,
            "pattern": self.pattern,
            "confidence": self.confidence,
            "priority": self.priority,
            "active": self.active,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Suggestion:
    """A category proposal from one CategorySuggester."""

    category_code: str
    confidence: float
    reason_code: str
    rule_id: Optional[str] = None
    priority: int = 0


@dataclass(frozen=True)
class ClassificationContext:
    """Per-transaction classification inputs besides the transaction itself."""

    taxonomy_id: str
    account_label: Optional[str] = None
    tenant_rules: tuple[ClassificationRule, ...] = field(default_factory=tuple)
    # When set, rules owned by other tenants are ignored
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class ClassificationDecision:
    """Final category assignment for one transaction."""

    category_code: str
    confidence: float
    method: ClassificationMethod
    reason_codes: tuple[str, ...] = field(default_factory=tuple)
    needs_review: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_code": self.category_code,
            "confidence": self.confidence,
            "method": self.method.value,
            "reason_codes": list(self.reason_codes),
            "needs_review": self.needs_review,
        }

"""
Review routing.

Turns parse diagnostics and classification decisions into human-review
work items. Items are plain values; storing and resolving them is up to
the caller.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from ..schemas.classification import ClassificationDecision
from ..schemas.transactions import ParseDiagnostics


class ReviewReason(str, Enum):
    """Why an item needs a human."""

    LOW_CONFIDENCE = "LOW_CONFIDENCE"  # Classification below threshold or coerced
    YEAR_MISMATCH = "YEAR_MISMATCH"  # Filed under a folder of another year
    PARSE_WARNING = "PARSE_WARNING"  # Parser confidence below threshold


class ReviewStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class ReviewItem:
    """One human-review work item for a statement or a transaction."""

    reason: ReviewReason
    detail: str
    statement_id: Optional[str] = None
    transaction_index: Optional[int] = None  # None for statement-level items
    status: ReviewStatus = ReviewStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.status == ReviewStatus.OPEN

    def resolve(self) -> "ReviewItem":
        """Copy of this item marked RESOLVED."""
        return replace(self, status=ReviewStatus.RESOLVED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason.value,
            "detail": self.detail,
            "statement_id": self.statement_id,
            "transaction_index": self.transaction_index,
            "status": self.status.value,
        }


def parse_warning_item(
    diagnostics: ParseDiagnostics,
    threshold: float,
    statement_id: Optional[str] = None,
) -> Optional[ReviewItem]:
    """PARSE_WARNING item when parser confidence is below threshold."""
    if diagnostics.parser_confidence >= threshold:
        return None
    detail = (
        f"method={diagnostics.parse_method} "
        f"adapter={diagnostics.institution_adapter} "
        f"confidence={diagnostics.parser_confidence:.3f} "
        f"candidates={diagnostics.candidate_lines}"
    )
    return ReviewItem(
        reason=ReviewReason.PARSE_WARNING,
        detail=detail,
        statement_id=statement_id,
    )


def year_mismatch_item(
    statement_year: int,
    statement_id: Optional[str] = None,
) -> ReviewItem:
    return ReviewItem(
        reason=ReviewReason.YEAR_MISMATCH,
        detail=f"Statement year {statement_year} does not match its folder year",
        statement_id=statement_id,
    )


def low_confidence_item(
    decision: ClassificationDecision,
    threshold: float,
    transaction_index: int,
    statement_id: Optional[str] = None,
) -> Optional[ReviewItem]:
    """LOW_CONFIDENCE item when a decision needs review or is below threshold."""
    if not decision.needs_review and decision.confidence >= threshold:
        return None
    return ReviewItem(
        reason=ReviewReason.LOW_CONFIDENCE,
        detail=f"confidence={decision.confidence:.2f} method={decision.method.value}",
        statement_id=statement_id,
        transaction_index=transaction_index,
    )


def has_open_item(
    items: list[ReviewItem],
    reason: ReviewReason,
    statement_id: Optional[str] = None,
) -> bool:
    """True if an OPEN item of this reason exists (for this statement, if given)."""
    return any(
        item.is_open
        and item.reason == reason
        and (statement_id is None or item.statement_id == statement_id)
        for item in items
    )

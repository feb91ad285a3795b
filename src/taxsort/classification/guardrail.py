"""
Learned-rule guardrail.

Learning a rule from a transaction is blocked while its statement has an
open PARSE_WARNING, unless the override is explicitly approved.
"""

from collections.abc import Iterable
from typing import Optional

from ..review.routing import ReviewItem, ReviewReason, has_open_item


class LearnedRuleBlockedError(RuntimeError):
    """Raised when a learned rule is requested for a statement under parse review."""

    pass


def ensure_learned_rule_allowed(
    review_items: Iterable[ReviewItem],
    statement_id: Optional[str],
    allow_override: bool = False,
) -> None:
    """
    Check that a rule may be learned from a transaction of this statement.

    Args:
        review_items: Known review items (any statements)
        statement_id: Statement the transaction came from; None skips the check
        allow_override: Explicit approval to learn despite an open warning

    Raises:
        LearnedRuleBlockedError: If the statement has an open PARSE_WARNING
    """
    if allow_override or not statement_id:
        return

    if has_open_item(list(review_items), ReviewReason.PARSE_WARNING, statement_id):
        raise LearnedRuleBlockedError(
            "Cannot create learned rule while statement has an open PARSE_WARNING. "
            "Resolve the parse warning first or explicitly approve this override."
        )

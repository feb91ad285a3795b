"""
Base suggester interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.classification import ClassificationContext, Suggestion
from ..schemas.transactions import ParsedTransaction


class CategorySuggester(ABC):
    """
    Base class for anything that proposes a category for a transaction.

    Implementations:
    - Rules (account hints, tenant rules, built-in keywords)
    - Keyword priors (heuristic fallback)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Suggester name for logging and reason codes."""
        pass

    @abstractmethod
    def suggest(
        self,
        transaction: ParsedTransaction,
        context: ClassificationContext,
    ) -> Optional[Suggestion]:
        """
        Propose a category.

        Args:
            transaction: Parsed statement transaction
            context: Taxonomy, account label and tenant rules

        Returns:
            Suggestion, or None when the suggester has no signal
        """
        pass


def transaction_text(transaction: ParsedTransaction) -> str:
    """Text matched by keyword suggesters: description plus raw line."""
    return f"{transaction.description} {transaction.raw_line}".strip()

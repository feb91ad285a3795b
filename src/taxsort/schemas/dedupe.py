"""
Dedupe key generation.

This module defines THE deterministic transaction identity functions.
Statement text often repeats the same row (page headers, running
summaries, duplicated text layers), so every parse funnels through here.

Transaction dedupe key:
    (posted_date, amount rounded to cents, lowercased description)

The key must be:
- Stable: Same inputs always produce same output
- Order-preserving when applied: first occurrence wins
"""

import hashlib
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from .transactions import ParsedTransaction

# Quantum for cent rounding
CENTS = Decimal("0.01")


def _normalize_amount(amount: Decimal | str | float) -> str:
    """
    Normalize amount to consistent format for keys.

    Args:
        amount: Amount in various formats

    Returns:
        Normalized amount string with 2 decimal places
    """
    if isinstance(amount, str):
        amount = Decimal(amount.replace(",", ""))
    elif isinstance(amount, float):
        amount = Decimal(str(amount))
    elif not isinstance(amount, Decimal):
        raise ValueError(f"amount must be Decimal, str, or float, got: {type(amount)}")

    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def transaction_dedupe_key(transaction: ParsedTransaction) -> tuple[str, str, str]:
    """Identity key of a parsed transaction within one document."""
    return (
        transaction.posted_date,
        _normalize_amount(transaction.amount),
        transaction.description.lower(),
    )


def dedupe_transactions(
    transactions: Iterable[ParsedTransaction],
    limit: int | None = None,
) -> list[ParsedTransaction]:
    """
    Drop repeated transactions, keeping the first occurrence.

    Args:
        transactions: Parsed transactions in acceptance order
        limit: Optional cap on the number of returned transactions

    Returns:
        De-duplicated transactions in original order
    """
    seen: set[tuple[str, str, str]] = set()
    out: list[ParsedTransaction] = []
    for tx in transactions:
        key = transaction_dedupe_key(tx)
        if key in seen:
            continue
        seen.add(key)
        out.append(tx)
        if limit is not None and len(out) >= limit:
            break
    return out


def compute_document_hash(content: bytes) -> str:
    """SHA256 of the raw statement bytes (idempotency key for callers)."""
    return hashlib.sha256(content).hexdigest()

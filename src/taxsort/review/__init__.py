"""
Review routing for parse warnings, year mismatches and low-confidence rows.
"""

from .routing import (
    ReviewItem,
    ReviewReason,
    ReviewStatus,
    has_open_item,
    low_confidence_item,
    parse_warning_item,
    year_mismatch_item,
)

__all__ = [
    "ReviewItem",
    "ReviewReason",
    "ReviewStatus",
    "has_open_item",
    "low_confidence_item",
    "parse_warning_item",
    "year_mismatch_item",
]

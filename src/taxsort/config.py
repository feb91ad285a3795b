"""
Configuration management (SSOT).

This module defines ALL configuration for taxsort. All config keys are
defined here; no other module should invent config keys.

Key invariants:
- Parser caps bound memory/time on pathological documents
- Thresholds are probabilities in [0, 1]
- Environment variables override file values
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class ParserConfig:
    """Statement parsing limits."""

    max_candidates: int = 7000  # Extractor candidate cap per document
    max_transactions: int = 2000  # De-duplicated transaction cap per document
    min_line_length: int = 8
    max_line_length: int = 160  # Longer lines are treated as structural noise


@dataclass
class ClassificationConfig:
    """Classification thresholds."""

    # Rule suggestions at or above this are taken without review
    confidence_threshold: float = 0.85


@dataclass
class ReviewConfig:
    """Review routing thresholds."""

    # Parser confidence below this opens a PARSE_WARNING
    parse_warning_threshold: float = 0.4


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    parser: ParserConfig = field(default_factory=ParserConfig)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    default_entity_type: str = "SOLE_PROP"
    rules_path: Path | None = None  # YAML file of tenant rules

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        # Caps must be positive
        if self.parser.max_candidates <= 0:
            errors.append("parser.max_candidates must be positive")
        if self.parser.max_transactions <= 0:
            errors.append("parser.max_transactions must be positive")
        if self.parser.min_line_length <= 0:
            errors.append("parser.min_line_length must be positive")
        if self.parser.min_line_length >= self.parser.max_line_length:
            errors.append("parser.min_line_length must be < parser.max_line_length")

        # Thresholds are probabilities
        if not 0.0 <= self.classification.confidence_threshold <= 1.0:
            errors.append("classification.confidence_threshold must be in [0, 1]")
        if not 0.0 <= self.review.parse_warning_threshold <= 1.0:
            errors.append("review.parse_warning_threshold must be in [0, 1]")

        if not self.default_entity_type:
            errors.append("default_entity_type is required")

        return errors


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    if value:
        try:
            return int(value)
        except ValueError:
            pass  # Keep default
    return default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "")
    if value:
        try:
            return float(value)
        except ValueError:
            pass  # Keep default
    return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - TAXSORT_MAX_CANDIDATES
    - TAXSORT_MAX_TRANSACTIONS
    - TAXSORT_CONFIDENCE_THRESHOLD
    - TAXSORT_PARSE_WARNING_THRESHOLD
    - TAXSORT_ENTITY_TYPE (SOLE_PROP / C_CORP)
    - TAXSORT_RULES_PATH
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Parser config
    parser_data = data.get("parser", {})
    parser = ParserConfig(
        max_candidates=_env_int("TAXSORT_MAX_CANDIDATES", parser_data.get("max_candidates", 7000)),
        max_transactions=_env_int(
            "TAXSORT_MAX_TRANSACTIONS", parser_data.get("max_transactions", 2000)
        ),
        min_line_length=parser_data.get("min_line_length", 8),
        max_line_length=parser_data.get("max_line_length", 160),
    )

    # Classification config
    classification_data = data.get("classification", {})
    classification = ClassificationConfig(
        confidence_threshold=_env_float(
            "TAXSORT_CONFIDENCE_THRESHOLD",
            classification_data.get("confidence_threshold", 0.85),
        ),
    )

    # Review config
    review_data = data.get("review", {})
    review = ReviewConfig(
        parse_warning_threshold=_env_float(
            "TAXSORT_PARSE_WARNING_THRESHOLD",
            review_data.get("parse_warning_threshold", 0.4),
        ),
    )

    rules_path = os.environ.get("TAXSORT_RULES_PATH", data.get("rules_path"))

    return Config(
        parser=parser,
        classification=classification,
        review=review,
        default_entity_type=os.environ.get(
            "TAXSORT_ENTITY_TYPE", data.get("default_entity_type", "SOLE_PROP")
        ),
        rules_path=Path(rules_path) if rules_path else None,
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# taxsort configuration
#
# Environment variables override these values:
# TAXSORT_MAX_CANDIDATES, TAXSORT_MAX_TRANSACTIONS,
# TAXSORT_CONFIDENCE_THRESHOLD, TAXSORT_PARSE_WARNING_THRESHOLD,
# TAXSORT_ENTITY_TYPE, TAXSORT_RULES_PATH

# Statement parsing limits
parser:
  max_candidates: 7000        # Text candidates extracted per document
  max_transactions: 2000      # Transactions kept per document (after dedupe)
  min_line_length: 8          # Shorter lines are ignored
  max_line_length: 160        # Longer lines are treated as structural noise

# Classification
classification:
  confidence_threshold: 0.85  # Rule matches at/above this skip review

# Review routing
review:
  parse_warning_threshold: 0.4  # Parser confidence below this opens a PARSE_WARNING

# Entity type used to pick the tax taxonomy (SOLE_PROP or C_CORP)
default_entity_type: "SOLE_PROP"

# Tenant rules (YAML list of rule records)
rules_path: null
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)

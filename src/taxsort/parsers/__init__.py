"""
Statement parsing: institution adapters, line parser and document orchestration.
"""

from .adapters import (
    GENERIC_ADAPTER,
    InstitutionAdapter,
    ParseHelpers,
    has_adapter,
    list_supported_institutions,
    normalize_institution,
    resolve_adapter,
)
from .line_parser import (
    DateToken,
    is_metadata_description,
    is_noise_line,
    parse_amount,
    parse_date_token,
    parse_generic_line,
    parse_line,
)
from .path_hints import (
    StatementPeriod,
    detect_folder_year_mismatch,
    infer_account_label,
    infer_institution_from_path,
    infer_statement_period,
)
from .statement import compute_parser_confidence, parse_document, parse_statement_file

__all__ = [
    # Adapters
    "GENERIC_ADAPTER",
    "InstitutionAdapter",
    "ParseHelpers",
    "has_adapter",
    "list_supported_institutions",
    "normalize_institution",
    "resolve_adapter",
    # Lines
    "DateToken",
    "is_metadata_description",
    "is_noise_line",
    "parse_amount",
    "parse_date_token",
    "parse_generic_line",
    "parse_line",
    # Documents
    "compute_parser_confidence",
    "parse_document",
    "parse_statement_file",
    # Path hints
    "StatementPeriod",
    "detect_folder_year_mismatch",
    "infer_account_label",
    "infer_institution_from_path",
    "infer_statement_period",
]

"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from ..classification.rule_service import load_rules_file
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..parsers.adapters import list_supported_institutions
from ..parsers.path_hints import (
    detect_folder_year_mismatch,
    infer_account_label,
    infer_institution_from_path,
    infer_statement_period,
)
from ..parsers.statement import parse_document
from ..processing import process_statement
from ..schemas.dedupe import compute_document_hash
from ..schemas.taxonomy import TaxonomyNotFoundError

logger = logging.getLogger(__name__)

# Tenant id used for rules loaded from a local file
LOCAL_TENANT = "local"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="taxsort",
        description="Parse bank/card statement PDFs and sort transactions into tax categories",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Extract transactions from a statement PDF")
    _add_statement_arguments(parse_parser)

    # classify command
    classify_parser = subparsers.add_parser(
        "classify", help="Parse a statement and assign tax categories"
    )
    _add_statement_arguments(classify_parser)
    classify_parser.add_argument(
        "--account-label",
        type=str,
        help="Account label hint, e.g. 'payroll 0378' (default: from path)",
    )
    classify_parser.add_argument(
        "--entity-type",
        type=str,
        help="SOLE_PROP or C_CORP (default: from config)",
    )
    classify_parser.add_argument(
        "--rules",
        type=Path,
        help="YAML file of tenant rules (default: from config)",
    )

    # institutions command
    subparsers.add_parser("institutions", help="List institutions with dedicated parsers")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument("path", type=Path, help="Where to write the config file")

    return parser


def _add_statement_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument("file", type=Path, help="Statement PDF")
    subparser.add_argument(
        "--year",
        type=int,
        help="Statement year (default: from file name or path)",
    )
    subparser.add_argument(
        "--institution",
        type=str,
        help="Institution id, e.g. AMEX (default: from path)",
    )
    subparser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table",
    )


def _resolve_year(file: Path, year: int | None) -> int | None:
    if year:
        return year
    return infer_statement_period(str(file)).year


def cmd_parse(config: Config, file: Path, year: int | None, institution: str | None, as_json: bool) -> int:
    """Parse one statement and print its transactions."""
    if not file.exists():
        print(f"❌ File not found: {file}")
        return 1

    statement_year = _resolve_year(file, year)
    if not statement_year:
        print("❌ Could not infer the statement year; pass --year")
        return 1
    institution = institution or infer_institution_from_path(str(file))

    result = parse_document(
        file.read_bytes(),
        statement_year,
        institution,
        max_candidates=config.parser.max_candidates,
        max_transactions=config.parser.max_transactions,
        max_line_length=config.parser.max_line_length,
        min_line_length=config.parser.min_line_length,
    )

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    diagnostics = result.diagnostics
    print(f"📄 {file.name} ({diagnostics.parse_method}, {statement_year})")
    for tx in result.transactions:
        print(f"  {tx.posted_date}  {tx.amount:>12}  {tx.description}")
    print(
        f"\n✓ {diagnostics.deduped_parsed_count} transaction(s) from "
        f"{diagnostics.total_text_lines} line(s), "
        f"confidence {diagnostics.parser_confidence:.2f}"
    )
    return 0


def cmd_classify(
    config: Config,
    file: Path,
    year: int | None,
    institution: str | None,
    account_label: str | None,
    entity_type: str | None,
    rules_path: Path | None,
    as_json: bool,
) -> int:
    """Parse and classify one statement, printing review items."""
    if not file.exists():
        print(f"❌ File not found: {file}")
        return 1

    statement_year = _resolve_year(file, year)
    if not statement_year:
        print("❌ Could not infer the statement year; pass --year")
        return 1

    rules = []
    rules_path = rules_path or config.rules_path
    if rules_path:
        try:
            rules = load_rules_file(rules_path, LOCAL_TENANT)
        except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
            print(f"❌ Failed to load rules: {e}")
            return 1

    pdf_bytes = file.read_bytes()
    try:
        processed = process_statement(
            pdf_bytes,
            statement_year=statement_year,
            institution=institution or infer_institution_from_path(str(file)),
            account_label=account_label or infer_account_label(str(file)),
            entity_type=entity_type or config.default_entity_type,
            tenant_rules=rules,
            tenant_id=LOCAL_TENANT,
            statement_id=compute_document_hash(pdf_bytes)[:16],
            folder_year_mismatch=detect_folder_year_mismatch(str(file.parent), str(file), statement_year),
            config=config,
        )
    except TaxonomyNotFoundError as e:
        print(f"❌ {e}")
        return 1

    if as_json:
        print(json.dumps(processed.to_dict(), indent=2))
        return 0

    print(f"📄 {file.name} → {processed.taxonomy.title}")
    for index, row in enumerate(processed.transactions):
        tx, decision = row.transaction, row.decision
        flag = "⚠" if decision.needs_review else " "
        print(
            f"  {flag} [{index}] {tx.posted_date}  {tx.amount:>12}  "
            f"{decision.category_code:<20} {decision.confidence:.2f} {decision.method.value:<8} "
            f"{tx.description}"
        )

    if processed.review_items:
        print(f"\n⚠ {len(processed.review_items)} review item(s):")
        for item in processed.review_items:
            where = f"tx {item.transaction_index}" if item.transaction_index is not None else "statement"
            print(f"  - {item.reason.value} ({where}): {item.detail}")

    print(f"\n✓ {len(processed.transactions)} transaction(s), status {processed.status.value}")
    return 0


def cmd_institutions() -> int:
    """List supported institutions."""
    print("🏦 Institutions with dedicated parsers:")
    for institution in list_supported_institutions():
        print(f"  - {institution}")
    print("\nAnything else is parsed with the generic parser.")
    return 0


def cmd_init_config(path: Path) -> int:
    """Write a default config file."""
    if path.exists():
        print(f"❌ Config file already exists: {path}")
        return 1
    create_default_config(path)
    print(f"✓ Wrote default config to {path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    # Commands that need no config
    if parsed.command == "institutions":
        return cmd_institutions()
    elif parsed.command == "init-config":
        return cmd_init_config(parsed.path)

    # Load config
    try:
        config = load_config(parsed.config)
        errors = config.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "parse":
        return cmd_parse(config, parsed.file, parsed.year, parsed.institution, parsed.json)
    elif parsed.command == "classify":
        return cmd_classify(
            config,
            parsed.file,
            parsed.year,
            parsed.institution,
            parsed.account_label,
            parsed.entity_type,
            parsed.rules,
            parsed.json,
        )
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())

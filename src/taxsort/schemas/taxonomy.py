"""
Tax category taxonomies.

Fixed, process-wide read-only tables. A taxonomy defines the valid set of
category codes for one entity type and tax year; classification treats it
as a pure lookup.
"""

from dataclasses import dataclass
from enum import Enum


class EntityType(str, Enum):
    """Business entity type driving taxonomy selection."""

    SOLE_PROP = "SOLE_PROP"
    C_CORP = "C_CORP"


class TaxonomyId(str, Enum):
    SCHEDULE_C_2024 = "SCHEDULE_C_2024"
    FORM_1120_2025 = "FORM_1120_2025"


# Safe default category used whenever a suggestion is not in the taxonomy
OTHER_EXPENSE = "other_expense"


class TaxonomyNotFoundError(LookupError):
    """Raised when no taxonomy exists for an entity type/year."""

    pass


@dataclass(frozen=True)
class TaxonomyCategory:
    """One category with its IRS form line reference."""

    code: str
    label: str
    irs_form: str
    irs_line_ref: str


@dataclass(frozen=True)
class Taxonomy:
    """Valid category set for an entity type and tax year."""

    id: str
    version: str
    title: str
    entity_type: EntityType
    tax_year: int
    categories: tuple[TaxonomyCategory, ...]

    @property
    def codes(self) -> frozenset[str]:
        return frozenset(category.code for category in self.categories)

    def has_category(self, code: str) -> bool:
        return code in self.codes

    def get_category(self, code: str) -> TaxonomyCategory | None:
        for category in self.categories:
            if category.code == code:
                return category
        return None


# (code, label, Schedule C line, Form 1120 line)
_BASE_CATEGORIES: tuple[tuple[str, str, str, str], ...] = (
    ("advertising", "Advertising", "8", "26"),
    ("car_truck", "Car and Truck Expenses", "9", "26"),
    ("commissions_fees", "Commissions and Fees", "10", "26"),
    ("contract_labor", "Contract Labor", "11", "26"),
    ("insurance", "Insurance", "15", "26"),
    ("interest", "Interest Expense", "16", "18"),
    ("legal_professional", "Legal and Professional Services", "17", "26"),
    ("office_expense", "Office Expense", "18", "26"),
    ("rent_lease", "Rent or Lease", "20", "16"),
    ("repairs_maintenance", "Repairs and Maintenance", "21", "26"),
    ("supplies", "Supplies", "22", "22"),
    ("taxes_licenses", "Taxes and Licenses", "23", "17"),
    ("travel", "Travel", "24a", "26"),
    ("meals", "Meals", "24b", "26"),
    ("utilities", "Utilities", "25", "26"),
    ("wages", "Wages", "26", "13"),
    ("owner_draw", "Owner Draw (Non-deductible)", "Non-deductible", "N/A"),
    (OTHER_EXPENSE, "Other Expense", "27a", "26"),
)

TAXONOMIES: tuple[Taxonomy, ...] = (
    Taxonomy(
        id=TaxonomyId.SCHEDULE_C_2024.value,
        version="2024.1",
        title="IRS Form 1040 Schedule C (2024)",
        entity_type=EntityType.SOLE_PROP,
        tax_year=2024,
        categories=tuple(
            TaxonomyCategory(code=code, label=label, irs_form="Schedule C", irs_line_ref=line_c)
            for code, label, line_c, _ in _BASE_CATEGORIES
        ),
    ),
    Taxonomy(
        id=TaxonomyId.FORM_1120_2025.value,
        version="2025.1",
        title="IRS Form 1120 (2025)",
        entity_type=EntityType.C_CORP,
        tax_year=2025,
        categories=tuple(
            TaxonomyCategory(code=code, label=label, irs_form="Form 1120", irs_line_ref=line_1120)
            for code, label, _, line_1120 in _BASE_CATEGORIES
            # Corporations have no owner draw
            if code != "owner_draw"
        ),
    ),
)

_TAXONOMIES_BY_ID = {taxonomy.id: taxonomy for taxonomy in TAXONOMIES}


def get_taxonomy_by_id(taxonomy_id: str) -> Taxonomy | None:
    """Look up a taxonomy by id (None if unknown)."""
    if not taxonomy_id:
        return None
    if isinstance(taxonomy_id, TaxonomyId):
        taxonomy_id = taxonomy_id.value
    return _TAXONOMIES_BY_ID.get(str(taxonomy_id))


def get_taxonomy_for_entity_year(entity_type: EntityType | str, year: int) -> Taxonomy:
    """
    Select the taxonomy for an entity type and tax year.

    Picks the latest taxonomy of that entity type whose tax year is not after
    `year`; years before the earliest taxonomy use the earliest one.

    Raises:
        TaxonomyNotFoundError: If no taxonomy exists for the entity type
    """
    if isinstance(entity_type, EntityType):
        entity = entity_type
    else:
        try:
            entity = EntityType(str(entity_type).strip().upper())
        except ValueError:
            raise TaxonomyNotFoundError(f"No taxonomy for entity type: {entity_type!r}") from None

    candidates = sorted(
        (taxonomy for taxonomy in TAXONOMIES if taxonomy.entity_type == entity),
        key=lambda t: t.tax_year,
    )
    if not candidates:
        raise TaxonomyNotFoundError(f"No taxonomy for entity type {entity.value} in {year}")

    eligible = [t for t in candidates if t.tax_year <= year]
    return eligible[-1] if eligible else candidates[0]


def category_exists_in_taxonomy(taxonomy_id: str, category_code: str) -> bool:
    """Check a category code against a taxonomy (False for unknown taxonomies)."""
    taxonomy = get_taxonomy_by_id(taxonomy_id)
    if taxonomy is None:
        return False
    return taxonomy.has_category(category_code)

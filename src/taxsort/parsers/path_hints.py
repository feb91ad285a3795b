"""
Hints derived from where a statement file lives.

Statement archives are usually organized as <root>/<year>/<institution>/<account>/<file>,
with file names following each institution's download convention. These
helpers recover institution, account label and statement period from the
path alone. They never touch the filesystem.
"""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from .line_parser import MONTHS

# (path marker, institution id), first match wins
INSTITUTION_MARKERS = (
    ("amex", "AMEX"),
    ("bluevine", "BLUEVINE"),
    ("cap1", "CAPITAL_ONE"),
    ("capital", "CAPITAL_ONE"),
    ("cashapp", "CASH_APP"),
    ("discover", "DISCOVER"),
    ("spacecoast", "SPACE_COAST"),
)

ISO_FILE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})\.pdf$", re.IGNORECASE)
BLUEVINE_FILE = re.compile(r"^statement_(\d{4})_(\d{1,2})\.pdf$", re.IGNORECASE)
CAPITAL_ONE_FILE = re.compile(r"^statement_(\d{2})(\d{4})_\d+\.pdf$", re.IGNORECASE)
DISCOVER_FILE = re.compile(r"^discover-accountactivity-(\d{4})(\d{2})(\d{2})\.pdf$", re.IGNORECASE)
SPACE_COAST_FILE = re.compile(r"^space(\d{2})(\d{2})\.pdf$", re.IGNORECASE)
CASH_APP_FILE = re.compile(
    r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)-statement\.pdf$",
    re.IGNORECASE,
)

YEAR_PART = re.compile(r"^20\d{2}$")
YEAR_ANYWHERE = re.compile(r"20\d{2}")
ROOT_YEAR = re.compile(r"/(20\d{2})(?:/|$)")
ACCOUNT_PART = re.compile(r"\d{4}$")


@dataclass(frozen=True)
class StatementPeriod:
    """Statement period recovered from a file path; unknown parts are None."""

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None


def _posix(path: str) -> str:
    return str(path).replace("\\", "/")


def _parts(path: str) -> list[str]:
    return [part for part in _posix(path).split("/") if part]


def infer_year_from_path(path: str) -> Optional[int]:
    """A bare 20xx folder wins; otherwise the first 20xx anywhere in the path."""
    parts = _parts(path)
    for part in parts:
        if YEAR_PART.match(part):
            return int(part)
    for part in parts:
        match = YEAR_ANYWHERE.search(part)
        if match:
            return int(match.group(0))
    return None


def infer_institution_from_path(path: str) -> str:
    """Institution id from path markers, or "UNKNOWN"."""
    lower = _posix(path).lower()
    for marker, institution in INSTITUTION_MARKERS:
        if marker in lower:
            return institution
    return "UNKNOWN"


def infer_account_label(path: str) -> str:
    """
    Account label for a statement file.

    A folder such as "Operating 0378" (name ending in 4 digits) wins;
    otherwise the parent folder name, or "default".
    """
    parts = _parts(path)
    for part in parts[:-1]:
        if " " in part and ACCOUNT_PART.search(part):
            return part.strip()
    if len(parts) >= 2:
        return parts[-2]
    return "default"


def infer_statement_period(path: str) -> StatementPeriod:
    """Statement period from institution file-name conventions, else the path year."""
    name = PurePosixPath(_posix(path)).name
    path_year = infer_year_from_path(path)

    match = ISO_FILE.match(name)
    if match:
        return StatementPeriod(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = BLUEVINE_FILE.match(name)
    if match:
        return StatementPeriod(int(match.group(1)), int(match.group(2)))

    match = CAPITAL_ONE_FILE.match(name)
    if match:
        return StatementPeriod(int(match.group(2)), int(match.group(1)))

    match = DISCOVER_FILE.match(name)
    if match:
        return StatementPeriod(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = SPACE_COAST_FILE.match(name)
    if match:
        return StatementPeriod(2000 + int(match.group(2)), int(match.group(1)))

    match = CASH_APP_FILE.match(name)
    if match:
        return StatementPeriod(path_year, MONTHS[match.group(1).lower()])

    return StatementPeriod(path_year)


def detect_folder_year_mismatch(root: str, path: str, statement_year: Optional[int]) -> bool:
    """
    True when the archive root names a year other than the statement's.

    Only files under the root are considered.
    """
    root_posix = _posix(root)
    match = ROOT_YEAR.search(root_posix)
    if not match or not statement_year:
        return False
    folder_year = int(match.group(1))
    return folder_year != statement_year and _posix(path).startswith(root_posix)

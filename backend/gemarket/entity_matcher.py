"""
Matching of scraped display names to catalog item ids.

Strategies, first success wins:
1. exact, case-insensitive
2. dose suffix "(4)".."(1)" appended, for consumables only
3. partial (substring), first item by id

Partial matching can bind a row to the wrong item when several names share
a substring. It is kept as a last resort and not strengthened further.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .database import db_placeholder
from .table_extractor import ScrapedRow


DOSE_SUFFIXES = ['(4)', '(3)', '(2)', '(1)']


class MatchStrategy(Enum):
    """How a scraped name was resolved."""
    EXACT = "exact"
    DOSE = "dose"
    PARTIAL = "partial"


@dataclass
class CatalogMatch:
    """Catalog item returned by a lookup."""
    id: int
    name: str


@dataclass
class MatchResult:
    """Outcome of matching one display name."""
    item_id: int
    matched_name: str
    strategy: MatchStrategy
    dose: Optional[int] = None


class CatalogLookup:
    """Name lookups against the item catalog."""

    def find_exact(self, name: str) -> Optional[CatalogMatch]:
        raise NotImplementedError

    def find_partial(self, name: str) -> Optional[CatalogMatch]:
        raise NotImplementedError


class SqlCatalogLookup(CatalogLookup):
    """Catalog lookup over the items table of a DB-API connection."""

    def __init__(self, conn):
        self.conn = conn

    def find_exact(self, name: str) -> Optional[CatalogMatch]:
        cursor = self.conn.cursor()
        ph = db_placeholder(self.conn)
        cursor.execute(
            f'SELECT id, name FROM items WHERE LOWER(name) = LOWER({ph}) ORDER BY id LIMIT 1',
            (name,)
        )
        row = cursor.fetchone()
        return CatalogMatch(id=row[0], name=row[1]) if row else None

    def find_partial(self, name: str) -> Optional[CatalogMatch]:
        cursor = self.conn.cursor()
        ph = db_placeholder(self.conn)
        pattern = '%' + escape_like(name.lower()) + '%'
        cursor.execute(
            f"SELECT id, name FROM items WHERE LOWER(name) LIKE {ph} ESCAPE '\\' ORDER BY id LIMIT 1",
            (pattern,)
        )
        row = cursor.fetchone()
        return CatalogMatch(id=row[0], name=row[1]) if row else None


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so names match literally."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def match_name(name: str, lookup: CatalogLookup, try_doses: bool = False) -> Optional[MatchResult]:
    """Resolve a display name to a catalog item, or None if unmatched."""
    if not name:
        return None

    match = lookup.find_exact(name)
    if match:
        return MatchResult(item_id=match.id, matched_name=match.name, strategy=MatchStrategy.EXACT)

    if try_doses:
        for suffix in DOSE_SUFFIXES:
            match = lookup.find_exact(f"{name}{suffix}")
            if match:
                return MatchResult(
                    item_id=match.id,
                    matched_name=match.name,
                    strategy=MatchStrategy.DOSE,
                    dose=int(suffix.strip('()')),
                )

    match = lookup.find_partial(name)
    if match:
        return MatchResult(item_id=match.id, matched_name=match.name, strategy=MatchStrategy.PARTIAL)

    return None


def apply_match(row: ScrapedRow, result: MatchResult) -> ScrapedRow:
    """Attach a match to a row.

    A dose match renames the row to the catalog name and forces bites to the
    dose number, whatever the healing notation said.
    """
    row.matched_id = result.item_id
    row.matched_name = result.matched_name
    row.match_strategy = result.strategy.value

    if result.strategy == MatchStrategy.DOSE:
        row.display_name = result.matched_name
        if row.healing is not None:
            row.healing.bites = result.dose
        row.fields['bites'] = float(result.dose)

    return row

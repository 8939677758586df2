"""
Extraction of wiki stat tables into ScrapedRow records.

Extraction works against a TableReader, so the same code runs over a
BeautifulSoup document or over rows built in memory. Column positions are
fixed per domain:

Equipment slot tables (data cells only):
    1       item name
    3-17    stab/slash/crush/magic/ranged accuracy, the same five defences,
            melee strength, ranged strength, magic damage, prayer, weight
    18      attack speed (weapon tables only)

Food table (header and data cells):
    1       item name
    2       healing notation, see normalizer.parse_healing
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup

from .normalizer import HealingParse, parse_healing, parse_number


EQUIPMENT_COLUMNS = [
    (3, 'stab_acc'),
    (4, 'slash_acc'),
    (5, 'crush_acc'),
    (6, 'magic_acc'),
    (7, 'ranged_acc'),
    (8, 'stab_def'),
    (9, 'slash_def'),
    (10, 'crush_def'),
    (11, 'magic_def'),
    (12, 'ranged_def'),
    (13, 'melee_strength'),
    (14, 'ranged_strength'),
    (15, 'magic_damage'),
    (16, 'prayer_bonus'),
    (17, 'weight'),
]
SPEED_COLUMN = 18
EQUIPMENT_MIN_CELLS = 18

EQUIPMENT_FIELDS = [name for _, name in EQUIPMENT_COLUMNS] + ['speed']

CONSUMABLE_NAME_COLUMN = 1
CONSUMABLE_HEALING_COLUMN = 2
CONSUMABLE_MIN_CELLS = 3

NAME_COLUMN = 1


# =============================================================================
# Reader abstraction
# =============================================================================

@dataclass
class TableCell:
    """Text content of one table cell plus its first link, if any."""
    text: str = ''
    link_title: Optional[str] = None
    link_text: Optional[str] = None
    is_header: bool = False


class TableReader:
    """Enumerates the rows of every stat table in a document."""

    def iter_rows(self) -> Iterator[List[TableCell]]:
        raise NotImplementedError


class StaticTableReader(TableReader):
    """Reader over rows that are already in memory.

    Args:
        tables: List of tables, each a list of rows, each a list of cells.
    """

    def __init__(self, tables: Sequence[Sequence[Sequence[TableCell]]]):
        self.tables = tables

    def iter_rows(self) -> Iterator[List[TableCell]]:
        for table in self.tables:
            for row in table:
                yield list(row)


class SoupTableReader(TableReader):
    """Reader over an HTML document parsed with BeautifulSoup."""

    def __init__(self, html: str, selector: str = 'table.wikitable'):
        self.soup = BeautifulSoup(html, 'html.parser')
        self.selector = selector

    def table_count(self) -> int:
        return len(self.soup.select(self.selector))

    def iter_rows(self) -> Iterator[List[TableCell]]:
        for table in self.soup.select(self.selector):
            for tr in table.find_all('tr'):
                # Skip rows that belong to a nested table
                if tr.find_parent('table') is not table:
                    continue
                cells = tr.find_all(['td', 'th'], recursive=False)
                yield [self._to_cell(cell) for cell in cells]

    @staticmethod
    def _to_cell(element) -> TableCell:
        # Icon links often come first in a name cell and carry no title
        link = element.find('a', title=True) or element.find('a')
        link_title = None
        link_text = None
        if link is not None:
            title = link.get('title')
            link_title = title.strip() if title else None
            link_text = link.get_text().strip() or None
        return TableCell(
            text=element.get_text().strip(),
            link_title=link_title,
            link_text=link_text,
            is_header=element.name == 'th',
        )


# =============================================================================
# Scraped rows
# =============================================================================

@dataclass
class ScrapedRow:
    """One extracted table row, before and after catalog matching."""
    display_name: str
    raw_fields: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, Optional[float]] = field(default_factory=dict)
    slot: Optional[str] = None
    healing: Optional[HealingParse] = None
    matched_id: Optional[int] = None
    matched_name: Optional[str] = None
    match_strategy: Optional[str] = None

    @property
    def is_matched(self) -> bool:
        return self.matched_id is not None

    def to_dict(self) -> Dict:
        """Flat dict for CSV export and console output."""
        data = {
            'display_name': self.display_name,
            'matched_id': self.matched_id,
            'matched_name': self.matched_name,
            'match_strategy': self.match_strategy,
        }
        if self.slot is not None:
            data['slot'] = self.slot
        data.update(self.fields)
        if self.healing is not None:
            data['healing'] = self.healing.healing
            data['delayed_heal'] = self.healing.delayed_heal
            data['bites'] = self.healing.bites
        return data


def resolve_name(cell: Optional[TableCell]) -> Optional[str]:
    """Pick the item name from a cell: link title, then link text, then cell text.

    Link titles carry the canonical page name, which differs from the
    display text for disambiguated variants.
    """
    if cell is None:
        return None

    for candidate in (cell.link_title, cell.link_text, cell.text):
        if candidate and candidate.strip():
            name = candidate.strip()
            break
    else:
        return None

    if 'File:' in name or len(name) < 2:
        return None
    return name


def _cell_text(cells: Sequence[TableCell], index: int) -> Optional[str]:
    if index >= len(cells):
        return None
    return cells[index].text


# =============================================================================
# Equipment
# =============================================================================

def parse_equipment_row(cells: Sequence[TableCell], slot: str) -> Optional[ScrapedRow]:
    """Parse one equipment row, or None if it is not a stat row."""
    if len(cells) < EQUIPMENT_MIN_CELLS:
        return None

    name = resolve_name(cells[NAME_COLUMN])
    if not name:
        return None

    raw_fields = {}
    fields = {}
    for index, column in EQUIPMENT_COLUMNS:
        raw_fields[column] = cells[index].text
        fields[column] = parse_number(cells[index].text)

    # Only weapon tables carry the trailing speed column
    if len(cells) > SPEED_COLUMN:
        raw_fields['speed'] = cells[SPEED_COLUMN].text
        fields['speed'] = parse_number(cells[SPEED_COLUMN].text)
    else:
        fields['speed'] = None

    return ScrapedRow(display_name=name, raw_fields=raw_fields, fields=fields, slot=slot)


def extract_equipment_rows(reader: TableReader, slot: str, stats=None) -> List[ScrapedRow]:
    """Extract all equipment rows for a slot from the reader's tables."""
    results = []

    for cells in reader.iter_rows():
        data_cells = [cell for cell in cells if not cell.is_header]
        if not data_cells:
            continue

        try:
            row = parse_equipment_row(data_cells, slot)
        except Exception as e:
            if stats:
                name = resolve_name(data_cells[NAME_COLUMN]) if len(data_cells) > NAME_COLUMN else None
                stats.record_parse_failure(name, 'equipment_row', str(e))
            continue

        if row is None:
            if stats:
                stats.record_skipped_row()
            continue
        results.append(row)

    return results


# =============================================================================
# Consumables
# =============================================================================

def parse_consumable_row(cells: Sequence[TableCell]) -> Optional[ScrapedRow]:
    """Parse one food row, or None if it has no name or no healing value."""
    if len(cells) < CONSUMABLE_MIN_CELLS:
        return None

    name = resolve_name(cells[CONSUMABLE_NAME_COLUMN])
    if not name:
        return None

    healing_text = _cell_text(cells, CONSUMABLE_HEALING_COLUMN)
    healing = parse_healing(healing_text)
    if healing is None:
        return None

    return ScrapedRow(
        display_name=name,
        raw_fields={'healing': healing_text},
        fields={
            'healing': float(healing.healing),
            'delayed_heal': float(healing.delayed_heal),
            'bites': float(healing.bites),
        },
        healing=healing,
    )


def extract_consumable_rows(reader: TableReader, stats=None) -> List[ScrapedRow]:
    """Extract all food rows from the reader's tables."""
    results = []

    for cells in reader.iter_rows():
        if not cells:
            continue

        try:
            row = parse_consumable_row(cells)
        except Exception as e:
            if stats:
                stats.record_parse_failure(None, 'consumable_row', str(e))
            continue

        if row is None:
            if stats:
                stats.record_skipped_row()
            continue
        results.append(row)

    return results

"""
Keyed upserts for catalog items, prices, equipment attributes and
consumable effects.

Every function takes a DB-API connection (psycopg2 or sqlite3) and leaves
transaction control to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from .database import db_placeholder
from .table_extractor import EQUIPMENT_FIELDS


@dataclass
class UpsertResult:
    """Result from upserting a keyed record."""
    item_id: int
    is_new: bool
    changed_fields: Dict[str, Tuple] = field(default_factory=dict)  # field → (old, new)

    @property
    def is_changed(self) -> bool:
        return bool(self.changed_fields)


def _diff(old: Dict, new: Dict) -> Dict[str, Tuple]:
    changes = {}
    for key, value in new.items():
        if old.get(key) != value:
            changes[key] = (old.get(key), value)
    return changes


# =============================================================================
# Catalog
# =============================================================================

ITEM_COLUMNS = ['name', 'members', 'max_limit', 'value', 'highalch', 'lowalch', 'icon']
PRICE_COLUMNS = ['current_price', 'current_trend', 'today_price', 'today_trend']


def item_exists(conn, item_id: int) -> bool:
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    cursor.execute(f'SELECT 1 FROM items WHERE id = {ph}', (item_id,))
    return cursor.fetchone() is not None


def upsert_item(conn, item: Dict) -> UpsertResult:
    """Insert or update a catalog item keyed by id."""
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    item_id = item['id']
    values = {col: item.get(col) for col in ITEM_COLUMNS}

    cursor.execute(f'SELECT {", ".join(ITEM_COLUMNS)} FROM items WHERE id = {ph}', (item_id,))
    row = cursor.fetchone()

    if row:
        old = dict(zip(ITEM_COLUMNS, row))
        # SQLite stores booleans as 0/1
        old['members'] = bool(old['members'])
        changes = _diff(old, values)
        if changes:
            assignments = ', '.join(f'{col} = {ph}' for col in ITEM_COLUMNS)
            cursor.execute(
                f'UPDATE items SET {assignments} WHERE id = {ph}',
                tuple(values[col] for col in ITEM_COLUMNS) + (item_id,)
            )
        return UpsertResult(item_id=item_id, is_new=False, changed_fields=changes)

    columns = ['id'] + ITEM_COLUMNS
    cursor.execute(
        f'INSERT INTO items ({", ".join(columns)}) VALUES ({", ".join([ph] * len(columns))})',
        (item_id,) + tuple(values[col] for col in ITEM_COLUMNS)
    )
    return UpsertResult(item_id=item_id, is_new=True)


def upsert_price(conn, price: Dict) -> UpsertResult:
    """Overwrite the price snapshot of one item. Volume is left untouched."""
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    item_id = price['item_id']
    now = datetime.now().isoformat()

    cursor.execute(f'SELECT {", ".join(PRICE_COLUMNS)} FROM item_prices WHERE item_id = {ph}', (item_id,))
    row = cursor.fetchone()
    values = {col: price.get(col) for col in PRICE_COLUMNS}

    if row:
        changes = _diff(dict(zip(PRICE_COLUMNS, row)), values)
        assignments = ', '.join(f'{col} = {ph}' for col in PRICE_COLUMNS)
        cursor.execute(
            f'UPDATE item_prices SET {assignments}, fetched_at = {ph} WHERE item_id = {ph}',
            tuple(values[col] for col in PRICE_COLUMNS) + (now, item_id)
        )
        return UpsertResult(item_id=item_id, is_new=False, changed_fields=changes)

    columns = ['item_id'] + PRICE_COLUMNS + ['fetched_at']
    cursor.execute(
        f'INSERT INTO item_prices ({", ".join(columns)}) VALUES ({", ".join([ph] * len(columns))})',
        (item_id,) + tuple(values[col] for col in PRICE_COLUMNS) + (now,)
    )
    return UpsertResult(item_id=item_id, is_new=True)


def update_volume(conn, item_id: int, volume: Optional[int]) -> bool:
    """Set the traded volume on an existing price row. Returns False if none exists."""
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    cursor.execute(f'UPDATE item_prices SET volume = {ph} WHERE item_id = {ph}', (volume, item_id))
    return cursor.rowcount > 0


# =============================================================================
# Equipment
# =============================================================================

def get_equipment_attributes(conn, item_id: int) -> Optional[Dict]:
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    columns = EQUIPMENT_FIELDS + ['slot']
    cursor.execute(f'SELECT {", ".join(columns)} FROM equipment_attributes WHERE item_id = {ph}', (item_id,))
    row = cursor.fetchone()
    return dict(zip(columns, row)) if row else None


def upsert_equipment_attributes(conn, item_id: int, fields: Dict[str, Optional[float]],
                                slot: str) -> UpsertResult:
    """Insert or replace the stats of one item, keyed by item_id.

    Absent stats are stored as NULL; the last writer wins.
    """
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    now = datetime.now().isoformat()

    old = get_equipment_attributes(conn, item_id)
    values = {col: fields.get(col) for col in EQUIPMENT_FIELDS}
    values['slot'] = slot

    columns = ['item_id'] + list(values) + ['updated_at']
    placeholders = ', '.join([ph] * len(columns))
    assignments = ', '.join(f'{col} = excluded.{col}' for col in columns[1:])
    cursor.execute(
        f'''INSERT INTO equipment_attributes ({", ".join(columns)}) VALUES ({placeholders})
           ON CONFLICT (item_id) DO UPDATE SET {assignments}''',
        (item_id,) + tuple(values.values()) + (now,)
    )

    if old is None:
        return UpsertResult(item_id=item_id, is_new=True)
    return UpsertResult(item_id=item_id, is_new=False, changed_fields=_diff(old, values))


# =============================================================================
# Consumables
# =============================================================================

def get_consumable_effect(conn, item_id: int, effect_type: str, skill: str) -> Optional[Dict]:
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    cursor.execute(
        f'''SELECT consumable_id, amount, bites FROM consumable_attributes
           WHERE item_id = {ph} AND effect_type = {ph} AND skill = {ph}''',
        (item_id, effect_type, skill)
    )
    row = cursor.fetchone()
    if not row:
        return None
    return {'consumable_id': row[0], 'amount': row[1], 'bites': row[2]}


def upsert_consumable_effect(conn, item_id: int, effect_type: str, skill: str,
                             amount: float, bites: int) -> UpsertResult:
    """Update the (item_id, effect_type, skill) effect in place, or insert it."""
    if amount is None or amount < 0:
        raise ValueError(f"Effect amount must be >= 0, got {amount}")
    if bites is None or bites < 1:
        raise ValueError(f"Bites must be >= 1, got {bites}")

    cursor = conn.cursor()
    ph = db_placeholder(conn)
    existing = get_consumable_effect(conn, item_id, effect_type, skill)

    if existing:
        changes = _diff({'amount': existing['amount'], 'bites': existing['bites']},
                        {'amount': amount, 'bites': bites})
        cursor.execute(
            f'UPDATE consumable_attributes SET amount = {ph}, bites = {ph} WHERE consumable_id = {ph}',
            (amount, bites, existing['consumable_id'])
        )
        return UpsertResult(item_id=item_id, is_new=False, changed_fields=changes)

    cursor.execute(
        f'''INSERT INTO consumable_attributes (item_id, effect_type, skill, amount, bites)
           VALUES ({ph}, {ph}, {ph}, {ph}, {ph})''',
        (item_id, effect_type, skill, amount, bites)
    )
    return UpsertResult(item_id=item_id, is_new=True)


def record_upsert(stats, result: UpsertResult, name: str) -> None:
    """Feed an UpsertResult into the run counters."""
    if result.is_new:
        stats.record_new(name, result.item_id)
    elif result.is_changed:
        stats.record_updated()
    else:
        stats.record_unchanged()

"""
Consumable effect queries with healing efficiency computed on read.
"""

from typing import Any, Dict, List

from ...database import db_placeholder, dict_cursor, rows_to_dicts
from ...efficiency import CONSUMABLE_PLACES, amount_per_bite, rank_by_efficiency, value_per_cost

VALID_EFFECT_TYPES = ['heal', 'delayed_heal', 'boost', 'restore']

DEFAULT_HEALING_FOODS = 10
MAX_HEALING_FOODS = 50


def _priced_effects(conn, effect_type: str = None) -> List[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    ph = db_placeholder(conn)
    where = f'AND ca.effect_type = {ph}' if effect_type else ''
    cursor.execute(f'''
        SELECT ca.item_id, i.name AS item_name, p.current_price,
               ca.effect_type, ca.skill, ca.amount, ca.bites
        FROM consumable_attributes ca
        JOIN items i ON ca.item_id = i.id
        LEFT JOIN item_prices p ON ca.item_id = p.item_id
        WHERE p.current_price IS NOT NULL AND p.current_price > 0 {where}
        ORDER BY i.name, ca.item_id, ca.effect_type
    ''', (effect_type,) if effect_type else ())
    return rows_to_dicts(cursor.fetchall())


def get_all_consumables(conn) -> List[Dict[str, Any]]:
    """Priced consumables, one entry per item with its effects keyed by type."""
    consumables: Dict[int, Dict[str, Any]] = {}
    for row in _priced_effects(conn):
        item = consumables.setdefault(row['item_id'], {
            'item_id': row['item_id'],
            'item_name': row['item_name'],
            'current_price': row['current_price'],
            'bites': row['bites'],
            'effects': {},
        })
        amount = row['amount'] or 0
        item['effects'][row['effect_type']] = {
            'skill': row['skill'],
            'amount': amount,
            'efficiency': value_per_cost(amount, row['current_price'], CONSUMABLE_PLACES),
            'amount_per_bite': amount_per_bite(amount, row['bites']),
        }
    return list(consumables.values())


def get_consumables_by_effect_type(conn, effect_type: str) -> List[Dict[str, Any]]:
    if effect_type not in VALID_EFFECT_TYPES:
        raise ValueError(f"Invalid effect type: {effect_type}")

    entries = []
    for row in _priced_effects(conn, effect_type):
        row['efficiency'] = value_per_cost(row['amount'], row['current_price'], CONSUMABLE_PLACES)
        entries.append(row)
    return rank_by_efficiency(entries, 'efficiency')


def get_top_healing_foods(conn, limit: int = DEFAULT_HEALING_FOODS) -> List[Dict[str, Any]]:
    """Foods ranked by healing per coin."""
    limit = max(1, min(limit, MAX_HEALING_FOODS))

    entries = []
    for row in _priced_effects(conn, 'heal'):
        entries.append({
            'item_id': row['item_id'],
            'item_name': row['item_name'],
            'current_price': row['current_price'],
            'healing': row['amount'],
            'bites': row['bites'],
            'healing_per_gp': value_per_cost(row['amount'], row['current_price'], CONSUMABLE_PLACES),
            'healing_per_bite': amount_per_bite(row['amount'], row['bites']),
        })
    return rank_by_efficiency(entries, 'healing_per_gp', limit)

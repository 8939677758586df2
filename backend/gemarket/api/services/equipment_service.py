"""
Equipment queries with efficiency computed on read.
"""

from typing import Any, Dict, List

from ...database import dict_cursor, rows_to_dicts
from ...efficiency import (ALL_ATTRIBUTES, VALUE_ATTRIBUTES, attribute_efficiency,
                           top_per_group, value_per_cost)

DEFAULT_EQUIPMENT_PER_SLOT = 5


def is_valid_attribute(attribute: str) -> bool:
    return attribute in VALUE_ATTRIBUTES


def _priced_equipment(conn) -> List[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    cursor.execute(f'''
        SELECT ea.item_id, i.name AS item_name, p.current_price, ea.slot,
               {", ".join("ea." + a for a in ALL_ATTRIBUTES)}
        FROM equipment_attributes ea
        JOIN items i ON ea.item_id = i.id
        LEFT JOIN item_prices p ON ea.item_id = p.item_id
        WHERE p.current_price IS NOT NULL AND p.current_price > 0
        ORDER BY ea.slot, i.name, ea.item_id
    ''')
    return rows_to_dicts(cursor.fetchall())


def with_efficiency(row: Dict[str, Any], include_cost_attributes: bool = False) -> Dict[str, Any]:
    """Nest each stat as {value, <stat>_efficiency}."""
    price = row.get('current_price')
    result = {
        'item_id': row['item_id'],
        'item_name': row['item_name'],
        'current_price': price,
        'slot': row['slot'],
    }
    attributes = ALL_ATTRIBUTES if include_cost_attributes else VALUE_ATTRIBUTES
    for attribute in attributes:
        value = row.get(attribute)
        result[attribute] = {
            'value': value,
            f'{attribute}_efficiency': attribute_efficiency(attribute, value, price),
        }
    return result


def get_all_equipment(conn, include_cost_attributes: bool = False) -> List[Dict[str, Any]]:
    """Priced equipment with efficiencies; weight and speed scored as price per unit when requested."""
    return [with_efficiency(row, include_cost_attributes) for row in _priced_equipment(conn)]


def get_optimal_equipment_by_attribute(conn, attribute: str,
                                       top_count: int = DEFAULT_EQUIPMENT_PER_SLOT) -> List[Dict[str, Any]]:
    """Top items per slot by attribute-per-coin.

    Only items with a positive value of the attribute are ranked.
    """
    if not is_valid_attribute(attribute):
        raise ValueError(f"Invalid attribute: {attribute}")

    entries = []
    for row in _priced_equipment(conn):
        value = row.get(attribute)
        if value is None or value <= 0:
            continue
        entries.append({
            'item_id': row['item_id'],
            'item_name': row['item_name'],
            'current_price': row['current_price'],
            'slot': row['slot'],
            'attribute_value': value,
            'efficiency': value_per_cost(value, row['current_price']),
        })

    ranked = top_per_group(entries, 'slot', 'efficiency', top_count)
    return [entry for slot in sorted(ranked) for entry in ranked[slot]]


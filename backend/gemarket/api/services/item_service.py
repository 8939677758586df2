"""
Item catalog and price queries.
"""

from typing import Any, Dict, List, Optional

from ...database import db_placeholder, dict_cursor, rows_to_dicts

MAX_SEARCH_RESULTS = 1000

ITEM_WITH_PRICE_COLUMNS = '''
    i.id, i.name, i.members, i.max_limit, i.value, i.highalch, i.lowalch, i.icon,
    p.current_price, p.current_trend, p.volume, p.today_price, p.today_trend, p.fetched_at
'''


def _normalize(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for row in rows:
        if 'members' in row and row['members'] is not None:
            row['members'] = bool(row['members'])
    return rows


def get_all_items(conn) -> List[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    cursor.execute('SELECT id, name, members, max_limit, value, highalch, lowalch, icon FROM items ORDER BY id')
    return _normalize(rows_to_dicts(cursor.fetchall()))


def get_all_items_with_prices(conn) -> List[Dict[str, Any]]:
    """Items that have a price snapshot, sorted by name."""
    cursor = dict_cursor(conn)
    cursor.execute('''
        SELECT i.id, i.name, p.current_price, p.current_trend, p.volume,
               p.today_price, p.today_trend, p.fetched_at
        FROM item_prices p
        JOIN items i ON i.id = p.item_id
        ORDER BY i.name
    ''')
    return rows_to_dicts(cursor.fetchall())


def search_items_by_name(conn, term: str, limit: int = MAX_SEARCH_RESULTS) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over item names."""
    if not term or not isinstance(term, str):
        raise ValueError("Search term is required and must be a string")

    cursor = dict_cursor(conn)
    ph = db_placeholder(conn)
    cursor.execute(f'''
        SELECT {ITEM_WITH_PRICE_COLUMNS}
        FROM items i
        LEFT JOIN item_prices p ON i.id = p.item_id
        WHERE LOWER(i.name) LIKE LOWER({ph})
        ORDER BY i.name ASC
        LIMIT {ph}
    ''', (f'%{term}%', limit))
    return _normalize(rows_to_dicts(cursor.fetchall()))


def get_item_by_id(conn, item_id: int) -> Optional[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    ph = db_placeholder(conn)
    cursor.execute(f'''
        SELECT {ITEM_WITH_PRICE_COLUMNS}
        FROM items i
        LEFT JOIN item_prices p ON i.id = p.item_id
        WHERE i.id = {ph}
    ''', (item_id,))
    row = cursor.fetchone()
    return _normalize([dict(row)])[0] if row else None


def get_most_expensive_items(conn, limit: int = 10) -> List[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    ph = db_placeholder(conn)
    cursor.execute(f'''
        SELECT {ITEM_WITH_PRICE_COLUMNS}
        FROM items i
        JOIN item_prices p ON i.id = p.item_id
        WHERE p.current_price IS NOT NULL
        ORDER BY p.current_price DESC
        LIMIT {ph}
    ''', (limit,))
    return _normalize(rows_to_dicts(cursor.fetchall()))


def get_most_traded_items(conn, limit: int = 10) -> List[Dict[str, Any]]:
    cursor = dict_cursor(conn)
    ph = db_placeholder(conn)
    cursor.execute(f'''
        SELECT {ITEM_WITH_PRICE_COLUMNS}
        FROM items i
        JOIN item_prices p ON i.id = p.item_id
        WHERE p.volume IS NOT NULL AND p.volume > 0
        ORDER BY p.volume DESC
        LIMIT {ph}
    ''', (limit,))
    return _normalize(rows_to_dicts(cursor.fetchall()))

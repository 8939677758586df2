"""
Pytest fixtures and test infrastructure for pipeline, database and API tests.
"""
import pytest
import os
import sys
from contextlib import contextmanager
from unittest.mock import MagicMock

import requests

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gemarket.database import connect_sqlite, dict_cursor, init_sqlite_schema  # noqa: E402
from gemarket.entity_matcher import CatalogLookup, CatalogMatch  # noqa: E402


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite database with the full schema."""
    conn = connect_sqlite(':memory:')
    init_sqlite_schema(conn)
    yield conn
    conn.close()


class SharedConnectionPool:
    """DatabasePool stand-in that hands out one shared connection.

    Same commit/rollback semantics as DatabasePool.connection(), but the
    connection is never closed, so an in-memory database survives.
    """

    is_postgres = False

    def __init__(self, conn):
        self.conn = conn
        self.checkouts = 0

    @contextmanager
    def connection(self):
        self.checkouts += 1
        try:
            yield self.conn
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    @contextmanager
    def cursor(self):
        with self.connection() as conn:
            yield dict_cursor(conn)

    def close(self):
        pass


@pytest.fixture
def pool(sqlite_conn):
    """Pool over the in-memory database."""
    return SharedConnectionPool(sqlite_conn)


class DictCatalogLookup(CatalogLookup):
    """In-memory catalog with the same semantics as SqlCatalogLookup."""

    def __init__(self, items):
        self.items = sorted(items.items())  # (id, name), id ascending
        self.exact_queries = []

    def find_exact(self, name):
        self.exact_queries.append(name)
        for item_id, item_name in self.items:
            if item_name.lower() == name.lower():
                return CatalogMatch(id=item_id, name=item_name)
        return None

    def find_partial(self, name):
        for item_id, item_name in self.items:
            if name.lower() in item_name.lower():
                return CatalogMatch(id=item_id, name=item_name)
        return None


@pytest.fixture
def catalog():
    """Small in-memory catalog."""
    return DictCatalogLookup({
        1277: 'Bronze sword',
        1289: 'Rune sword',
        385: 'Shark',
        2434: 'Prayer potion(4)',
        2436: 'Super attack(4)',
        145: 'Super attack(3)',
    })


# =============================================================================
# Test data helpers
# =============================================================================

def create_test_item(conn, item_id, name, price=None, volume=None, members=False):
    """Insert a catalog item, optionally with a price snapshot."""
    cursor = conn.cursor()
    cursor.execute(
        'INSERT INTO items (id, name, members, value) VALUES (?, ?, ?, ?)',
        (item_id, name, int(members), 0)
    )
    if price is not None:
        cursor.execute(
            '''INSERT INTO item_prices (item_id, current_price, current_trend, volume, fetched_at)
               VALUES (?, ?, 'neutral', ?, '2026-01-01T00:00:00')''',
            (item_id, price, volume)
        )
    conn.commit()
    return item_id


def equipment_row_html(name, stats, speed=None, title=None):
    """One slot-table row: icon, name, members, 15 stats, optional speed."""
    title = title or name
    cells = [
        '<td><img src="icon.png"></td>',
        f'<td><a href="/w/{name}" title="{title}">{name}</a></td>',
        '<td><img src="member.png"></td>',
    ]
    cells += [f'<td>{value}</td>' for value in stats]
    if speed is not None:
        cells.append(f'<td>{speed}</td>')
    return '<tr>' + ''.join(cells) + '</tr>'


def slot_page_html(rows):
    header = '<tr>' + ''.join('<th>h</th>' for _ in range(19)) + '</tr>'
    return (
        '<html><body><table class="wikitable sortable">'
        + header + ''.join(rows) +
        '</table></body></html>'
    )


def food_page_html(rows):
    """Food table page; rows are (name, healing) pairs."""
    body = ''.join(
        f'<tr><td><img src="f.png"></td><td><a href="/w/{name}" title="{name}">{name}</a></td>'
        f'<td>{healing}</td></tr>'
        for name, healing in rows
    )
    return (
        '<html><body><table class="wikitable">'
        '<tr><th>Icon</th><th>Food</th><th>Heals</th></tr>'
        + body +
        '</table></body></html>'
    )


def mock_session(pages):
    """requests.Session mock serving {url: html | dict | Exception}."""
    session = MagicMock()

    def get(url, headers=None, timeout=None):
        page = pages.get(url)
        if isinstance(page, Exception):
            raise page
        response = MagicMock()
        if page is None:
            response.raise_for_status.side_effect = requests.HTTPError(f"404 for {url}")
            return response
        response.raise_for_status.return_value = None
        if isinstance(page, (dict, list)):
            response.json.return_value = page
        else:
            response.text = page
        return response

    session.get.side_effect = get
    return session

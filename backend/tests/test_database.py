"""
Tests for DatabasePool checkout, release and transaction handling.
Uses a file-backed SQLite database so every checkout opens a real connection.
"""
import pytest

from conftest import equipment_row_html, mock_session, slot_page_html


@pytest.fixture
def file_pool(tmp_path, monkeypatch):
    """Single-connection pool over a temp SQLite file."""
    from gemarket import config
    from gemarket.database import DatabasePool

    monkeypatch.setattr(config, 'USE_POSTGRES', False)
    pool = DatabasePool(db_path=str(tmp_path / 'test.db'), maxconn=1, checkout_timeout=0.2)
    pool.initialize()
    yield pool
    pool.close()


def item_names(pool):
    with pool.cursor() as cursor:
        cursor.execute('SELECT name FROM items ORDER BY id')
        return [row['name'] for row in cursor.fetchall()]


class TestConnectionRelease:
    """Connections go back to the pool on every exit path."""

    def test_released_after_exceptions(self, file_pool):
        for _ in range(3):
            with pytest.raises(RuntimeError):
                with file_pool.connection():
                    raise RuntimeError("row failed")

        with file_pool.connection() as conn:
            assert conn.execute('SELECT 1').fetchone()[0] == 1

    def test_released_after_cursor_use(self, file_pool):
        with file_pool.cursor() as cursor:
            cursor.execute('SELECT COUNT(*) AS n FROM items')
        # A leaked checkout would time out here
        assert item_names(file_pool) == []


class TestBoundedCheckout:

    def test_second_checkout_times_out(self, file_pool):
        """With maxconn=1 a second concurrent checkout waits, then fails."""
        with file_pool.connection():
            with pytest.raises(TimeoutError):
                with file_pool.connection():
                    pass

        # The held connection was returned once its block ended
        with file_pool.connection() as conn:
            assert conn is not None


class TestTransactions:

    def test_commit_on_normal_exit(self, file_pool):
        with file_pool.connection() as conn:
            conn.execute("INSERT INTO items (id, name) VALUES (385, 'Shark')")

        assert item_names(file_pool) == ['Shark']

    def test_rollback_on_error(self, file_pool):
        with pytest.raises(ValueError):
            with file_pool.connection() as conn:
                conn.execute("INSERT INTO items (id, name) VALUES (385, 'Shark')")
                raise ValueError("bad row")

        assert item_names(file_pool) == []

    def test_schema_created_on_initialize(self, file_pool):
        with file_pool.cursor() as cursor:
            cursor.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            tables = {row['name'] for row in cursor.fetchall()}

        assert {'items', 'item_prices', 'equipment_attributes', 'consumable_attributes',
                'scraperuns', 'scrapealerts'} <= tables

    def test_pipeline_run_on_real_pool(self, file_pool):
        """An equipment run persists through the real pool and leaves it usable."""
        from gemarket.equipment_scraper import SLOT_CONFIGS, run_equipment_pipeline

        with file_pool.connection() as conn:
            conn.execute("INSERT INTO items (id, name) VALUES (1277, 'Bronze sword')")

        page = slot_page_html([equipment_row_html('Bronze sword', ['4'] * 15)])
        session = mock_session({SLOT_CONFIGS['weapon']['url']: page})

        stats = run_equipment_pipeline(file_pool, slots=['weapon'], session=session, delay=0)

        assert stats.counters()['persisted'] == 1
        with file_pool.cursor() as cursor:
            cursor.execute('SELECT item_id, slot FROM equipment_attributes')
            assert [tuple(row) for row in cursor.fetchall()] == [(1277, 'weapon')]

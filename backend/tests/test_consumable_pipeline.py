"""
Tests for the food pipeline: dose matching, heal/delayed heal effects and
acquisition failure.
"""
import pytest

import requests

from conftest import create_test_item, food_page_html, mock_session


@pytest.fixture
def food_catalog(sqlite_conn):
    create_test_item(sqlite_conn, 385, 'Shark', price=900)
    create_test_item(sqlite_conn, 2434, 'Prayer potion(4)', price=9000)
    create_test_item(sqlite_conn, 13441, 'Anglerfish', price=1500)
    return sqlite_conn


def effects(conn, item_id):
    cursor = conn.cursor()
    cursor.execute(
        'SELECT effect_type, skill, amount, bites FROM consumable_attributes WHERE item_id = ? ORDER BY effect_type',
        (item_id,)
    )
    return [tuple(row) for row in cursor.fetchall()]


def run(pool, rows):
    from gemarket import config
    from gemarket.consumable_scraper import run_consumable_pipeline
    session = mock_session({config.FOOD_URL: food_page_html(rows)})
    return run_consumable_pipeline(pool, session=session, delay=0)


class TestRunConsumablePipeline:

    def test_simple_heal(self, pool, food_catalog):
        stats = run(pool, [('Shark', '20')])
        assert effects(food_catalog, 385) == [('heal', 'hitpoints', 20.0, 1)]
        assert stats.counters() == {'attempted': 1, 'matched': 1, 'persisted': 1, 'failed': 0}

    def test_dose_suffix_forces_bites(self, pool, food_catalog):
        """'Prayer potion' matches 'Prayer potion(4)' and is stored with 4 bites."""
        run(pool, [('Prayer potion', '7')])
        assert effects(food_catalog, 2434) == [('heal', 'hitpoints', 7.0, 4)]

    def test_delayed_heal_stored_separately(self, pool, food_catalog):
        run(pool, [('Anglerfish', '12 + 9')])
        assert effects(food_catalog, 13441) == [
            ('delayed_heal', 'hitpoints', 9.0, 1),
            ('heal', 'hitpoints', 12.0, 1),
        ]

    def test_no_delayed_row_when_zero(self, pool, food_catalog):
        run(pool, [('Shark', '20')])
        assert all(effect[0] != 'delayed_heal' for effect in effects(food_catalog, 385))

    def test_rerun_updates_in_place(self, pool, food_catalog):
        run(pool, [('Shark', '20')])
        stats = run(pool, [('Shark', '22')])

        assert effects(food_catalog, 385) == [('heal', 'hitpoints', 22.0, 1)]
        assert stats.records_updated == 1
        assert stats.records_new == 0

    def test_delayed_only_change_counts_as_update(self, pool, food_catalog):
        """A change to the delayed component alone still counts the food as updated."""
        run(pool, [('Anglerfish', '12 + 9')])
        stats = run(pool, [('Anglerfish', '12 + 10')])

        assert ('delayed_heal', 'hitpoints', 10.0, 1) in effects(food_catalog, 13441)
        assert stats.records_updated == 1
        assert stats.records_unchanged == 0

    def test_new_delayed_component_counts_as_update(self, pool, food_catalog):
        run(pool, [('Anglerfish', '12')])
        stats = run(pool, [('Anglerfish', '12 + 9')])

        assert stats.records_updated == 1

    def test_identical_rerun_unchanged(self, pool, food_catalog):
        run(pool, [('Anglerfish', '12 + 9')])
        stats = run(pool, [('Anglerfish', '12 + 9')])

        assert stats.records_unchanged == 1
        assert stats.records_updated == 0

    def test_unmatched_rows_counted(self, pool, food_catalog):
        stats = run(pool, [('Shark', '20'), ('Dragonfruit pie', '10')])
        assert stats.counters() == {'attempted': 2, 'matched': 1, 'persisted': 1, 'failed': 1}

    def test_fetch_failure_writes_nothing(self, pool, food_catalog):
        from gemarket import config
        from gemarket.consumable_scraper import run_consumable_pipeline
        session = mock_session({config.FOOD_URL: requests.Timeout("timed out")})

        stats = run_consumable_pipeline(pool, session=session, delay=0)

        assert stats.status == 'failed'
        assert stats.sources_failed == 1
        assert effects(food_catalog, 385) == []


class TestUpsertConsumableEffect:

    def test_rejects_negative_amount(self, sqlite_conn):
        from gemarket.repository import upsert_consumable_effect
        create_test_item(sqlite_conn, 385, 'Shark')
        with pytest.raises(ValueError):
            upsert_consumable_effect(sqlite_conn, 385, 'heal', 'hitpoints', -1, 1)

    def test_rejects_zero_bites(self, sqlite_conn):
        from gemarket.repository import upsert_consumable_effect
        create_test_item(sqlite_conn, 385, 'Shark')
        with pytest.raises(ValueError):
            upsert_consumable_effect(sqlite_conn, 385, 'heal', 'hitpoints', 20, 0)

    def test_unknown_item_rejected_by_foreign_key(self, sqlite_conn):
        import sqlite3
        from gemarket.repository import upsert_consumable_effect
        with pytest.raises(sqlite3.IntegrityError):
            upsert_consumable_effect(sqlite_conn, 999, 'heal', 'hitpoints', 20, 1)

"""
Tests for the read API over an in-memory database.
"""
import pytest
from fastapi.testclient import TestClient

from conftest import create_test_item


@pytest.fixture
def client(pool):
    """TestClient with the pool dependency pointed at the test database."""
    from gemarket.api.deps import get_pool
    from gemarket.api.main import app

    app.dependency_overrides[get_pool] = lambda: pool
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def market(sqlite_conn):
    """Items with prices, equipment stats and food effects."""
    from gemarket.repository import upsert_consumable_effect, upsert_equipment_attributes

    create_test_item(sqlite_conn, 1277, 'Bronze sword', price=100, volume=5000)
    create_test_item(sqlite_conn, 1289, 'Rune sword', price=20000, volume=300)
    create_test_item(sqlite_conn, 1163, 'Rune full helm', price=21000)
    create_test_item(sqlite_conn, 1155, 'Bronze full helm', price=50)
    create_test_item(sqlite_conn, 4151, 'Abyssal whip')  # no price
    create_test_item(sqlite_conn, 385, 'Shark', price=900)
    create_test_item(sqlite_conn, 13441, 'Anglerfish', price=1500)
    create_test_item(sqlite_conn, 1891, 'Cake', price=100)

    upsert_equipment_attributes(sqlite_conn, 1277, {'stab_acc': 4, 'slash_acc': 3, 'weight': 1.8, 'speed': 4}, 'weapon')
    upsert_equipment_attributes(sqlite_conn, 1289, {'stab_acc': 38, 'slash_acc': 26, 'speed': 4}, 'weapon')
    upsert_equipment_attributes(sqlite_conn, 1163, {'stab_def': 30, 'stab_acc': 0}, 'head')
    upsert_equipment_attributes(sqlite_conn, 1155, {'stab_def': 4, 'stab_acc': -1}, 'head')
    upsert_equipment_attributes(sqlite_conn, 4151, {'slash_acc': 82}, 'weapon')

    upsert_consumable_effect(sqlite_conn, 385, 'heal', 'hitpoints', 20, 1)
    upsert_consumable_effect(sqlite_conn, 13441, 'heal', 'hitpoints', 12, 1)
    upsert_consumable_effect(sqlite_conn, 13441, 'delayed_heal', 'hitpoints', 9, 1)
    upsert_consumable_effect(sqlite_conn, 1891, 'heal', 'hitpoints', 4, 3)
    sqlite_conn.commit()
    return sqlite_conn


class TestItemRoutes:

    def test_list_items(self, client, market):
        response = client.get('/items/')
        assert response.status_code == 200
        names = {item['name'] for item in response.json()}
        assert {'Shark', 'Abyssal whip'} <= names

    def test_prices_only_priced_items(self, client, market):
        response = client.get('/items/prices')
        names = [item['name'] for item in response.json()]
        assert 'Abyssal whip' not in names
        assert names == sorted(names)

    def test_search(self, client, market):
        response = client.get('/items/search', params={'name': 'SWORD'})
        assert [item['name'] for item in response.json()] == ['Bronze sword', 'Rune sword']

    def test_search_requires_name(self, client, market):
        assert client.get('/items/search').status_code == 422

    def test_get_item(self, client, market):
        response = client.get('/items/385')
        assert response.status_code == 200
        body = response.json()
        assert body['name'] == 'Shark'
        assert body['current_price'] == 900
        assert body['members'] is False

    def test_get_item_not_found(self, client, market):
        assert client.get('/items/1').status_code == 404

    def test_most_expensive(self, client, market):
        response = client.get('/items/analytics/expensive', params={'limit': 2})
        assert [item['name'] for item in response.json()] == ['Rune full helm', 'Rune sword']

    def test_most_traded(self, client, market):
        response = client.get('/items/analytics/traded')
        assert [item['name'] for item in response.json()] == ['Bronze sword', 'Rune sword']


class TestOptimalRoutes:

    def test_top_per_slot_excludes_non_positive(self, client, market):
        """Items with zero, negative or unpriced stats are not ranked."""
        response = client.get('/optimal/equipments/stab_acc')
        assert response.status_code == 200
        body = response.json()

        assert [(e['slot'], e['item_name']) for e in body] == [
            ('weapon', 'Bronze sword'),
            ('weapon', 'Rune sword'),
        ]
        assert body[0]['efficiency'] == 0.04
        assert body[1]['efficiency'] == 0.0019

    def test_limit_per_slot(self, client, market):
        body = client.get('/optimal/equipments/stab_acc', params={'limit': 1}).json()
        assert [e['item_name'] for e in body] == ['Bronze sword']

    def test_invalid_attribute(self, client, market):
        assert client.get('/optimal/equipments/luck').status_code == 400

    def test_all_equipment_with_efficiency(self, client, market):
        body = client.get('/optimal/equipments').json()
        by_name = {e['item_name']: e for e in body}

        assert 'Abyssal whip' not in by_name
        bronze = by_name['Bronze sword']
        assert bronze['stab_acc'] == {'value': 4.0, 'stab_acc_efficiency': 0.04}
        assert bronze['magic_acc'] == {'value': None, 'magic_acc_efficiency': None}
        assert 'weight' not in bronze

    def test_all_equipment_with_cost_attributes(self, client, market):
        """Weight and speed are scored as price per unit, lower is better."""
        body = client.get('/optimal/equipments', params={'include_cost': 'true'}).json()
        bronze = {e['item_name']: e for e in body}['Bronze sword']

        assert bronze['weight'] == {'value': 1.8, 'weight_efficiency': 55.555556}
        assert bronze['speed'] == {'value': 4.0, 'speed_efficiency': 25.0}
        assert bronze['stab_acc']['stab_acc_efficiency'] == 0.04


class TestConsumableRoutes:

    def test_grouped_effects(self, client, market):
        body = client.get('/consumables/').json()
        by_name = {c['item_name']: c for c in body}

        angler = by_name['Anglerfish']
        assert set(angler['effects']) == {'heal', 'delayed_heal'}
        assert angler['effects']['heal']['efficiency'] == 0.008
        cake = by_name['Cake']['effects']['heal']
        assert cake['amount_per_bite'] == 1.33

    def test_by_effect_type(self, client, market):
        body = client.get('/consumables/effect/heal').json()
        assert [c['item_name'] for c in body] == ['Cake', 'Shark', 'Anglerfish']

    def test_invalid_effect_type(self, client, market):
        assert client.get('/consumables/effect/teleport').status_code == 400

    def test_top_healing(self, client, market):
        body = client.get('/consumables/healing/top', params={'limit': 2}).json()
        assert [c['item_name'] for c in body] == ['Cake', 'Shark']
        assert body[0]['healing_per_gp'] == 0.04
        assert body[0]['healing_per_bite'] == 1.33

    def test_top_healing_limit_capped(self, client, market):
        response = client.get('/consumables/healing/top', params={'limit': 500})
        assert response.status_code == 200
        assert len(response.json()) == 3


class TestRunRoutes:

    def test_runs_and_alerts(self, client, sqlite_conn):
        from gemarket.stats import StatsTracker, save_alerts, save_scrape_run

        stats = StatsTracker('equipment')
        stats.record_source_failure('Head', 'timeout')
        stats.record_no_match('Mystery')
        save_scrape_run(sqlite_conn, stats)
        save_alerts(sqlite_conn, stats)
        sqlite_conn.commit()

        runs = client.get('/api/runs/').json()
        assert runs['total'] == 1
        assert runs['runs'][0]['domain'] == 'equipment'

        alerts = client.get(f'/api/runs/{stats.run_id}/alerts').json()
        assert [a['severity'] for a in alerts['alerts']] == ['critical', 'warning']

    def test_alerts_for_missing_run(self, client):
        assert client.get('/api/runs/999/alerts').status_code == 404


def test_health(client):
    body = client.get('/api/health').json()
    assert body['status'] == 'ok'
    assert body['database'] == 'connected'

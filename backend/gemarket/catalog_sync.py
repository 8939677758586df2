#!/usr/bin/env python3
"""
Catalog, price and volume sync from the Grand Exchange JSON API.

Payload shapes accepted for every endpoint:
- a JSON array of records
- an object of records keyed by item id
- {"items": [...]} wrapping an array

Usage:
    python -m gemarket.catalog_sync            # items, prices and volumes
    python -m gemarket.catalog_sync --prices --volumes
"""

import argparse
from typing import Any, Dict, Iterator, Optional

import requests

from . import config
from .database import DatabasePool
from .http_client import AcquisitionError, create_session, fetch_json
from .normalizer import parse_int, parse_number, parse_trend
from .repository import item_exists, update_volume, upsert_item, upsert_price
from .stats import StatsTracker, persist_run


def iter_item_records(payload: Any) -> Iterator[Dict]:
    """Yield records carrying an integer id, whatever the payload shape."""
    if isinstance(payload, dict) and isinstance(payload.get('items'), list):
        payload = payload['items']

    if isinstance(payload, dict):
        records = []
        for key, value in payload.items():
            if not isinstance(value, dict):
                continue
            record = dict(value)
            # Object-of-objects payloads may only carry the id as the key
            record.setdefault('id', key)
            records.append(record)
    elif isinstance(payload, list):
        records = [r for r in payload if isinstance(r, dict)]
    else:
        return

    for record in records:
        item_id = record.get('id')
        if isinstance(item_id, bool):
            continue
        item_id = parse_int(item_id)
        if item_id is None:
            continue
        record['id'] = item_id
        yield record


def normalize_item(record: Dict) -> Optional[Dict]:
    """Map an API item record to an items row, None without a name."""
    name = record.get('name')
    if not isinstance(name, str) or not name.strip():
        return None
    return {
        'id': record['id'],
        'name': name.strip(),
        'members': bool(record.get('members', False)),
        'max_limit': parse_int(record.get('limit')),
        'value': parse_number(record.get('value')) or 0.0,
        'highalch': parse_number(record.get('highalch')),
        'lowalch': parse_number(record.get('lowalch')),
        'icon': record.get('icon') if isinstance(record.get('icon'), str) else None,
    }


def normalize_price(record: Dict) -> Dict:
    """Map an API price record (current/today blocks) to an item_prices row."""
    current = record.get('current') if isinstance(record.get('current'), dict) else {}
    today = record.get('today') if isinstance(record.get('today'), dict) else {}
    return {
        'item_id': record['id'],
        'current_price': parse_number(current.get('price')),
        'current_trend': parse_trend(current.get('trend')),
        'today_price': parse_number(today.get('price')),
        'today_trend': parse_trend(today.get('trend')),
    }


def _fetch_records(pool: DatabasePool, url: str, session: Optional[requests.Session],
                   stats: StatsTracker, label: str) -> list:
    """Fetch and flatten one endpoint. On failure the run is saved as failed, then re-raised."""
    try:
        payload = fetch_json(url, session or create_session())
    except AcquisitionError as e:
        stats.record_source_failure(label, str(e))
        persist_run(pool, stats)
        raise

    records = list(iter_item_records(payload))
    stats.record_extracted(len(records))
    print(f"  Fetched {len(records)} {label} records", flush=True)
    return records


def _persist_records(pool: DatabasePool, records, stats: StatsTracker, write) -> None:
    """Apply write(conn, record) per record, committing or rolling back each."""
    with pool.connection() as conn:
        for record in records:
            try:
                write(conn, record)
                conn.commit()
            except Exception as e:
                conn.rollback()
                stats.record_db_failure(str(record.get('name', record.get('id'))), record.get('id'), str(e))


def sync_items(pool: DatabasePool, session: Optional[requests.Session] = None,
               url: str = None) -> StatsTracker:
    """Upsert the item catalog. Raises AcquisitionError if the fetch fails."""
    stats = StatsTracker("items")
    records = _fetch_records(pool, url or config.ITEMS_API_URL, session, stats, "catalog")

    def write(conn, record):
        item = normalize_item(record)
        if item is None:
            stats.record_skipped_row()
            return
        result = upsert_item(conn, item)
        stats.rows_matched += 1
        if result.is_new:
            stats.records_new += 1
        elif result.is_changed:
            stats.record_updated()
        else:
            stats.record_unchanged()

    _persist_records(pool, records, stats, write)
    persist_run(pool, stats)
    return stats


def sync_prices(pool: DatabasePool, session: Optional[requests.Session] = None,
                url: str = None) -> StatsTracker:
    """Overwrite price snapshots for items already in the catalog."""
    stats = StatsTracker("prices")
    records = _fetch_records(pool, url or config.PRICES_API_URL, session, stats, "price")

    def write(conn, record):
        if not item_exists(conn, record['id']):
            stats.record_no_match(str(record['id']))
            return
        result = upsert_price(conn, normalize_price(record))
        stats.rows_matched += 1
        if result.is_new:
            stats.records_new += 1
        elif result.is_changed:
            stats.record_updated()
        else:
            stats.record_unchanged()

    _persist_records(pool, records, stats, write)
    persist_run(pool, stats)
    return stats


def sync_volumes(pool: DatabasePool, session: Optional[requests.Session] = None,
                 url: str = None) -> StatsTracker:
    """Set traded volumes on existing price rows; others are skipped."""
    stats = StatsTracker("volumes")
    records = _fetch_records(pool, url or config.VOLUMES_API_URL, session, stats, "volume")

    def write(conn, record):
        if update_volume(conn, record['id'], parse_int(record.get('volume'))):
            stats.rows_matched += 1
            stats.record_updated()
        else:
            stats.record_skipped_row()

    _persist_records(pool, records, stats, write)
    persist_run(pool, stats)
    return stats


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Grand Exchange catalog and price sync')
    parser.add_argument('--items', action='store_true', help='Sync the item catalog')
    parser.add_argument('--prices', action='store_true', help='Sync current prices')
    parser.add_argument('--volumes', action='store_true', help='Sync traded volumes')
    args = parser.parse_args()

    run_all = not (args.items or args.prices or args.volumes)
    pool = DatabasePool()
    session = create_session()
    try:
        if run_all or args.items:
            sync_items(pool, session)
        if run_all or args.prices:
            sync_prices(pool, session)
        if run_all or args.volumes:
            sync_volumes(pool, session)
    finally:
        pool.close()


if __name__ == "__main__":
    main()

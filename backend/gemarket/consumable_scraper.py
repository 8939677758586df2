#!/usr/bin/env python3
"""
Food Table Scraper

Reads the wiki "All food" page, parses the healing notation of every row,
matches names to the item catalog (trying potion-style dose suffixes before
falling back to a partial match) and upserts healing effects into
consumable_attributes.

Each matched food yields a ('heal', 'hitpoints') effect, plus a
('delayed_heal', 'hitpoints') effect when the notation carries a delayed
component.

Usage:
    python -m gemarket.consumable_scraper
    python -m gemarket.consumable_scraper --dry-run --csv output
"""

import argparse
import sys
import time
from datetime import datetime
from typing import Iterable, List, Optional

import requests

from . import config
from .database import DatabasePool
from .entity_matcher import SqlCatalogLookup
from .equipment_scraper import match_rows, save_to_csv
from .http_client import AcquisitionError, create_session, fetch_page
from .repository import UpsertResult, record_upsert, upsert_consumable_effect
from .stats import StatsTracker, cleanup_old_alerts, persist_run
from .table_extractor import ScrapedRow, SoupTableReader, extract_consumable_rows


DOMAIN = "consumables"

HEAL_EFFECT = 'heal'
DELAYED_HEAL_EFFECT = 'delayed_heal'
HITPOINTS = 'hitpoints'


def _merge_results(heal: UpsertResult, other: UpsertResult, effect_type: str) -> UpsertResult:
    """Fold a second effect's upsert into the heal result for one food."""
    changes = dict(heal.changed_fields)
    if other.is_new:
        changes[f'{effect_type}.amount'] = (None, 'inserted')
    for key, change in other.changed_fields.items():
        changes[f'{effect_type}.{key}'] = change
    return UpsertResult(item_id=heal.item_id, is_new=heal.is_new, changed_fields=changes)


def save_consumable_rows(conn, rows: Iterable[ScrapedRow], stats: StatsTracker) -> int:
    """Upsert the healing effects of matched rows, one commit per row.

    Returns the number of rows saved.
    """
    saved = 0
    for row in rows:
        healing = row.healing
        try:
            result = upsert_consumable_effect(conn, row.matched_id, HEAL_EFFECT, HITPOINTS,
                                              healing.healing, healing.bites)
            if healing.delayed_heal > 0:
                delayed = upsert_consumable_effect(conn, row.matched_id, DELAYED_HEAL_EFFECT, HITPOINTS,
                                                   healing.delayed_heal, healing.bites)
                result = _merge_results(result, delayed, DELAYED_HEAL_EFFECT)
            conn.commit()
        except Exception as e:
            conn.rollback()
            stats.record_db_failure(row.display_name, row.matched_id, str(e))
            continue

        record_upsert(stats, result, row.display_name)
        saved += 1
    return saved


def scrape_food(session: requests.Session, stats: StatsTracker, url: str = None) -> List[ScrapedRow]:
    """Fetch and extract the food table."""
    html = fetch_page(url or config.FOOD_URL, session)
    rows = extract_consumable_rows(SoupTableReader(html), stats)
    stats.record_extracted(len(rows))
    if not rows:
        stats.record_empty_source("Food")
    return rows


def run_consumable_pipeline(pool: DatabasePool, session: Optional[requests.Session] = None,
                            delay: float = None, dry_run: bool = False,
                            collected: Optional[List[ScrapedRow]] = None) -> StatsTracker:
    """
    Scrape, match and persist the food table.

    A failed fetch ends the run with no rows written; it is recorded on the
    returned tracker rather than raised.
    """
    session = session or create_session()
    delay = config.DELAY_BEFORE_MATCHING if delay is None else delay
    stats = StatsTracker(DOMAIN)

    if not dry_run:
        with pool.connection() as conn:
            cleanup_old_alerts(conn, config.ALERT_RETENTION_DAYS)

    try:
        rows = scrape_food(session, stats)
    except AcquisitionError as e:
        stats.record_source_failure("Food", str(e))
        rows = []

    if rows:
        print(f"  Extracted {len(rows)} food rows", flush=True)
        if delay > 0:
            time.sleep(delay)

        with pool.connection() as conn:
            matched = match_rows(rows, SqlCatalogLookup(conn), stats, try_doses=True)
            if collected is not None:
                collected.extend(matched)
            if not dry_run:
                saved = save_consumable_rows(conn, matched, stats)
                print(f"  Saved {saved}/{len(matched)} matched foods", flush=True)

    if dry_run:
        stats.print_report()
    else:
        persist_run(pool, stats)
    return stats


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Food table scraper')
    parser.add_argument('--dry-run', action='store_true',
                        help='Extract and match without writing to the database')
    parser.add_argument('--csv', metavar='DIR', default=None,
                        help='Also save matched rows as CSV into DIR')
    args = parser.parse_args()

    print("=" * 60, flush=True)
    print("Food Table Scraper", flush=True)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", flush=True)
    print("=" * 60, flush=True)

    pool = DatabasePool()
    collected: List[ScrapedRow] = []
    try:
        stats = run_consumable_pipeline(pool, dry_run=args.dry_run,
                                        collected=collected if args.csv else None)
    finally:
        pool.close()

    if args.csv:
        save_to_csv(collected, "consumables", args.csv)

    if stats.status == 'failed':
        sys.exit(1)


if __name__ == "__main__":
    main()

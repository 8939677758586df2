#!/usr/bin/env python3
"""
Equipment Slot Table Scraper

Reads the wiki slot tables, one page per equipment slot, extracts combat
stats for every item, matches each row to the item catalog and upserts the
stats into equipment_attributes.

Slots are processed one at a time with a politeness delay between pages.
A slot whose page cannot be fetched is reported and skipped; the remaining
slots still run.

Usage:
    python -m gemarket.equipment_scraper
    python -m gemarket.equipment_scraper --slot head --slot weapon --dry-run
    python -m gemarket.equipment_scraper --csv output
"""

import argparse
import os
import sys
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd
import requests

from . import config
from .database import DatabasePool
from .entity_matcher import CatalogLookup, SqlCatalogLookup, apply_match, match_name
from .http_client import AcquisitionError, create_session, fetch_page
from .repository import record_upsert, upsert_equipment_attributes
from .stats import ProgressTracker, StatsTracker, cleanup_old_alerts, persist_run
from .table_extractor import ScrapedRow, SoupTableReader, extract_equipment_rows


# =============================================================================
# Configuration
# =============================================================================

DOMAIN = "equipment"

SLOT_CONFIGS: Dict[str, Dict[str, str]] = {
    'ammunition': {'name': 'Ammunition', 'url': f"{config.WIKI_BASE_URL}/Ammunition_slot_table"},
    'body': {'name': 'Body', 'url': f"{config.WIKI_BASE_URL}/Body_slot_table"},
    'cape': {'name': 'Cape', 'url': f"{config.WIKI_BASE_URL}/Cape_slot_table"},
    'feet': {'name': 'Feet', 'url': f"{config.WIKI_BASE_URL}/Feet_slot_table"},
    'hands': {'name': 'Hands', 'url': f"{config.WIKI_BASE_URL}/Hands_slot_table"},
    'head': {'name': 'Head', 'url': f"{config.WIKI_BASE_URL}/Head_slot_table"},
    'legs': {'name': 'Legs', 'url': f"{config.WIKI_BASE_URL}/Legs_slot_table"},
    'neck': {'name': 'Neck', 'url': f"{config.WIKI_BASE_URL}/Neck_slot_table"},
    'ring': {'name': 'Ring', 'url': f"{config.WIKI_BASE_URL}/Ring_slot_table"},
    'shield': {'name': 'Shield', 'url': f"{config.WIKI_BASE_URL}/Shield_slot_table"},
    'two_handed': {'name': 'Two-handed', 'url': f"{config.WIKI_BASE_URL}/Two-handed_slot_table"},
    'weapon': {'name': 'Weapon', 'url': f"{config.WIKI_BASE_URL}/Weapon_slot_table"},
}


# =============================================================================
# Matching and persistence
# =============================================================================

def match_rows(rows: Iterable[ScrapedRow], lookup: CatalogLookup, stats: StatsTracker,
               try_doses: bool = False) -> List[ScrapedRow]:
    """Match rows to catalog ids. Unmatched rows are recorded and dropped."""
    matched = []
    for row in rows:
        result = match_name(row.display_name, lookup, try_doses=try_doses)
        if result is None:
            stats.record_no_match(row.display_name)
            continue

        name = row.display_name
        apply_match(row, result)
        stats.record_match(name, result.item_id, result.strategy.value, result.matched_name)
        matched.append(row)
    return matched


def save_equipment_rows(conn, rows: Iterable[ScrapedRow], stats: StatsTracker) -> int:
    """Upsert matched rows one at a time, committing each.

    A row the database rejects is rolled back and recorded; the rest still
    go through. Returns the number of rows saved.
    """
    saved = 0
    for row in rows:
        try:
            result = upsert_equipment_attributes(conn, row.matched_id, row.fields, row.slot)
            conn.commit()
        except Exception as e:
            conn.rollback()
            stats.record_db_failure(row.display_name, row.matched_id, str(e))
            continue

        record_upsert(stats, result, row.display_name)
        saved += 1
    return saved


def scrape_slot(slot: str, session: requests.Session, stats: StatsTracker) -> List[ScrapedRow]:
    """Fetch and extract one slot table."""
    html = fetch_page(SLOT_CONFIGS[slot]['url'], session)
    reader = SoupTableReader(html)
    if reader.table_count() == 0:
        print(f"    No stat tables found on {SLOT_CONFIGS[slot]['name']} page", flush=True)

    rows = extract_equipment_rows(reader, slot, stats)
    stats.record_extracted(len(rows))
    if not rows:
        stats.record_empty_source(SLOT_CONFIGS[slot]['name'])
    return rows


def run_equipment_pipeline(pool: DatabasePool, slots: Optional[List[str]] = None,
                           session: Optional[requests.Session] = None,
                           delay: float = None, dry_run: bool = False,
                           collected: Optional[List[ScrapedRow]] = None) -> StatsTracker:
    """
    Scrape, match and persist every requested slot.

    Args:
        pool: Database pool; one connection is checked out per slot
        slots: Slot keys from SLOT_CONFIGS (default: all)
        session: requests session to reuse
        delay: Seconds to wait between slots
        dry_run: Match but do not write
        collected: If given, matched rows are appended to it (CSV export)

    Returns:
        StatsTracker with the run counters
    """
    slots = slots or list(SLOT_CONFIGS)
    unknown = [s for s in slots if s not in SLOT_CONFIGS]
    if unknown:
        raise ValueError(f"Unknown slot(s): {', '.join(unknown)}")

    session = session or create_session()
    delay = config.DELAY_BETWEEN_SLOTS if delay is None else delay
    stats = StatsTracker(DOMAIN)
    progress = ProgressTracker(len(slots))

    if not dry_run:
        with pool.connection() as conn:
            cleanup_old_alerts(conn, config.ALERT_RETENTION_DAYS)

    for i, slot in enumerate(slots):
        if i > 0 and delay > 0:
            time.sleep(delay)

        slot_name = SLOT_CONFIGS[slot]['name']
        try:
            rows = scrape_slot(slot, session, stats)
        except AcquisitionError as e:
            stats.record_source_failure(slot_name, str(e))
            progress.update(success=False, item_name=slot_name, status="FETCH FAILED")
            continue

        with pool.connection() as conn:
            matched = match_rows(rows, SqlCatalogLookup(conn), stats)
            if collected is not None:
                collected.extend(matched)
            saved = 0 if dry_run else save_equipment_rows(conn, matched, stats)

        progress.update(item_name=slot_name, status=f"{len(rows)} rows, {saved} saved")

    progress.summary()
    if dry_run:
        stats.print_report()
    else:
        persist_run(pool, stats)
    return stats


# =============================================================================
# CSV Export
# =============================================================================

def save_to_csv(rows: List[ScrapedRow], prefix: str, output_dir: str = "output") -> str:
    """Save scraped rows to a timestamped CSV file."""
    if not rows:
        print("No data to save")
        return ""

    df = pd.DataFrame([row.to_dict() for row in rows])

    priority_cols = ['matched_id', 'matched_name', 'display_name', 'match_strategy', 'slot']
    other_cols = [c for c in df.columns if c not in priority_cols]
    ordered_cols = [c for c in priority_cols if c in df.columns] + other_cols
    df = df[ordered_cols]

    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    filepath = os.path.join(output_dir, f"{prefix}_{timestamp}.csv")

    df.to_csv(filepath, index=False)
    print(f"\nSaved {len(rows)} rows to: {filepath}")
    return filepath


# =============================================================================
# Main
# =============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Equipment slot table scraper')
    parser.add_argument('--slot', action='append', choices=sorted(SLOT_CONFIGS),
                        help='Slot to scrape (repeatable, default: all)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Extract and match without writing to the database')
    parser.add_argument('--csv', metavar='DIR', default=None,
                        help='Also save matched rows as CSV into DIR')
    args = parser.parse_args()

    print("=" * 60, flush=True)
    print("Equipment Slot Table Scraper", flush=True)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", flush=True)
    print("=" * 60, flush=True)

    pool = DatabasePool()
    collected: List[ScrapedRow] = []
    try:
        stats = run_equipment_pipeline(pool, slots=args.slot, dry_run=args.dry_run,
                                       collected=collected if args.csv else None)
    finally:
        pool.close()

    if args.csv:
        save_to_csv(collected, "equipment", args.csv)

    if stats.status == 'failed':
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Periodic pipeline runs in background threads.

Two jobs:
- weekly: item catalog, then equipment, then consumables
- every three hours: prices, then volumes

Each step is isolated; one failing step is reported and the next still runs.
"""

import threading
import time
from typing import Callable, List, Optional

from . import config
from .catalog_sync import sync_items, sync_prices, sync_volumes
from .consumable_scraper import run_consumable_pipeline
from .database import DatabasePool
from .equipment_scraper import run_equipment_pipeline


def _run_step(name: str, step: Callable[[], object]) -> bool:
    print(f"[scheduler] {name}: starting", flush=True)
    try:
        step()
    except Exception as e:
        print(f"[scheduler] {name} failed: {e}", flush=True)
        return False
    print(f"[scheduler] {name}: done", flush=True)
    return True


def run_weekly_update(pool: DatabasePool, scraping_enabled: Optional[bool] = None) -> List[str]:
    """Sync the catalog and rescrape equipment and food. Returns failed step names."""
    if scraping_enabled is None:
        scraping_enabled = not config.DISABLE_SCRAPING

    steps = [('items', lambda: sync_items(pool))]
    if scraping_enabled:
        steps.append(('equipment', lambda: run_equipment_pipeline(pool)))
        steps.append(('consumables', lambda: run_consumable_pipeline(pool)))
    else:
        print("[scheduler] Scraping disabled (DISABLE_SCRAPING=true)", flush=True)

    return [name for name, step in steps if not _run_step(name, step)]


def run_price_update(pool: DatabasePool) -> List[str]:
    """Refresh prices, then volumes. Returns failed step names."""
    steps = [
        ('prices', lambda: sync_prices(pool)),
        ('volumes', lambda: sync_volumes(pool)),
    ]
    return [name for name, step in steps if not _run_step(name, step)]


def _loop(name: str, job: Callable[[], object], interval: float, stop: threading.Event) -> None:
    print(f"[scheduler] {name} job every {interval:.0f} seconds", flush=True)
    while not stop.wait(interval):
        started = time.time()
        try:
            job()
        except Exception as e:
            print(f"[scheduler] {name} job error: {e}", flush=True)
        print(f"[scheduler] {name} job finished in {time.time() - started:.1f}s", flush=True)


def start_scheduler(pool: DatabasePool, stop: Optional[threading.Event] = None) -> Optional[threading.Event]:
    """Start both jobs on daemon threads.

    Returns the event that stops them, or None if the scheduler is disabled.
    """
    if not config.SCHEDULER_ENABLED:
        print("[scheduler] Scheduler is disabled (SCHEDULER_ENABLED=false)", flush=True)
        return None

    stop = stop or threading.Event()
    jobs = [
        ('weekly', lambda: run_weekly_update(pool), config.WEEKLY_UPDATE_INTERVAL),
        ('price', lambda: run_price_update(pool), config.PRICE_UPDATE_INTERVAL),
    ]
    for name, job, interval in jobs:
        thread = threading.Thread(target=_loop, args=(name, job, interval, stop),
                                  name=f"gemarket-{name}", daemon=True)
        thread.start()
    return stop


def run_initial_sync(pool: DatabasePool) -> threading.Thread:
    """Run the weekly and price jobs once, in the background."""
    def job():
        run_weekly_update(pool)
        run_price_update(pool)

    thread = threading.Thread(target=job, name="gemarket-initial-sync", daemon=True)
    thread.start()
    return thread

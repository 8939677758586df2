"""
Configuration for the GE Market pipeline.

Values come from environment variables, loaded from backend/.env when present.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


# Load .env from backend directory
_backend_dir = Path(__file__).parent.parent
load_dotenv(_backend_dir / ".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# =============================================================================
# Database
# =============================================================================

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_FILE = os.getenv("DATABASE_FILE", "gemarket.db")  # SQLite fallback
USE_POSTGRES = _env_bool("USE_POSTGRES", True)  # Set to False to force SQLite

# Bounded pool shared by API traffic and pipeline runs
DB_POOL_MIN = int(_env_float("DB_POOL_MIN", 1))
DB_POOL_MAX = int(_env_float("DB_POOL_MAX", 10))


# =============================================================================
# Upstream sources
# =============================================================================

ITEMS_API_URL = os.getenv("ITEMS_API_URL", "https://grandexchange.tools/api/items")
PRICES_API_URL = os.getenv("PRICES_API_URL", "https://grandexchange.tools/api/prices")
VOLUMES_API_URL = os.getenv("VOLUMES_API_URL", "https://grandexchange.tools/api/volumes")

WIKI_BASE_URL = "https://oldschool.runescape.wiki/w"
FOOD_URL = f"{WIKI_BASE_URL}/Food/All_food"

# Request headers
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/json,*/*',
    'Accept-Language': 'en-US,en;q=0.9',
    'Connection': 'keep-alive',
}

# Rate limiting
REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 30)  # Seconds per request
DELAY_BETWEEN_SLOTS = _env_float("DELAY_BETWEEN_SLOTS", 2.0)  # Seconds between slot pages
DELAY_BEFORE_MATCHING = _env_float("DELAY_BEFORE_MATCHING", 1.0)


# =============================================================================
# Scheduling
# =============================================================================

DISABLE_SCRAPING = _env_bool("DISABLE_SCRAPING", False)
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", True)
RUN_INITIAL_SYNC = _env_bool("RUN_INITIAL_SYNC", True)

WEEKLY_UPDATE_INTERVAL = _env_float("WEEKLY_UPDATE_INTERVAL", 7 * 24 * 3600)
PRICE_UPDATE_INTERVAL = _env_float("PRICE_UPDATE_INTERVAL", 3 * 3600)

# Alert retention for scrapealerts cleanup
ALERT_RETENTION_DAYS = int(_env_float("ALERT_RETENTION_DAYS", 30))

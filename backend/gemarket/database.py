"""
Database connection management and schema.

PostgreSQL is used when DATABASE_URL is set, SQLite otherwise. Callers get
connections from a DatabasePool that is passed to them explicitly:

    with pool.connection() as conn:
        save_equipment_rows(conn, rows, stats)

Connections are always handed back to the pool, including when the body
raises.
"""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

import psycopg2
import psycopg2.extras
import psycopg2.pool

from . import config


def is_postgres(conn) -> bool:
    """Check if connection is PostgreSQL."""
    return hasattr(conn, 'info')


def db_placeholder(conn) -> str:
    """Return the correct placeholder for the database type."""
    return '%s' if is_postgres(conn) else '?'


def rows_to_dicts(rows) -> List[Dict[str, Any]]:
    """Convert RealDictRow / sqlite3.Row results to plain dicts."""
    return [dict(row) for row in rows]


def dict_cursor(conn):
    """Cursor whose rows convert cleanly with dict(row)."""
    if is_postgres(conn):
        return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
    return conn.cursor()


# =============================================================================
# Pool
# =============================================================================

class DatabasePool:
    """
    Bounded connection pool for PostgreSQL, with a SQLite fallback.

    At most `maxconn` connections are checked out at once; further callers
    wait up to `checkout_timeout` seconds. API requests and pipeline runs
    share the same pool.
    """

    def __init__(self, db_url: Optional[str] = None, db_path: Optional[str] = None,
                 minconn: int = config.DB_POOL_MIN, maxconn: int = config.DB_POOL_MAX,
                 checkout_timeout: float = 30.0):
        self._db_url = db_url
        self._db_path = db_path
        self._minconn = minconn
        self._maxconn = maxconn
        self._checkout_timeout = checkout_timeout
        self._pg_pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(maxconn)
        self._initialized = False

    @property
    def is_postgres(self) -> bool:
        return self._pg_pool is not None

    def initialize(self) -> None:
        """Create the pool and make sure the schema exists."""
        db_url = self._db_url or config.DATABASE_URL
        if config.USE_POSTGRES and db_url:
            self._pg_pool = psycopg2.pool.ThreadedConnectionPool(self._minconn, self._maxconn, db_url)
            print("  Database pool initialized (PostgreSQL)", flush=True)
        else:
            if not db_url:
                print("  (DATABASE_URL not set, using SQLite)", flush=True)
            self._db_path = self._db_path or config.DATABASE_FILE
            print(f"  Database initialized (SQLite: {self._db_path})", flush=True)
        self._initialized = True

        with self.connection() as conn:
            init_schema(conn)

    def _checkout(self):
        if not self._initialized:
            self.initialize()
        if not self._slots.acquire(timeout=self._checkout_timeout):
            raise TimeoutError(f"No database connection available after {self._checkout_timeout}s")
        try:
            if self._pg_pool is not None:
                return self._pg_pool.getconn()
            return connect_sqlite(self._db_path)
        except Exception:
            self._slots.release()
            raise

    def _release(self, conn) -> None:
        try:
            if self._pg_pool is not None:
                self._pg_pool.putconn(conn)
            else:
                conn.close()
        finally:
            self._slots.release()

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        """
        Check out a connection for the duration of the block.

        Commits on normal exit, rolls back on exception, and always returns
        the connection to the pool.
        """
        conn = self._checkout()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    @contextmanager
    def cursor(self) -> Generator[Any, None, None]:
        """
        Get a cursor whose rows support dict-style access.

        Example:
            with pool.cursor() as cursor:
                cursor.execute("SELECT id, name FROM items")
                rows = rows_to_dicts(cursor.fetchall())
        """
        with self.connection() as conn:
            cursor = dict_cursor(conn)
            try:
                yield cursor
            finally:
                cursor.close()

    def close(self) -> None:
        """Close all pooled connections."""
        if self._pg_pool is not None:
            self._pg_pool.closeall()
            self._pg_pool = None
        self._initialized = False


def connect_sqlite(db_path: str):
    """Open a SQLite connection with dict-style rows and foreign keys on."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')
    return conn


# =============================================================================
# Schema
# =============================================================================

EQUIPMENT_STAT_COLUMNS = '''
    stab_acc DOUBLE PRECISION,
    slash_acc DOUBLE PRECISION,
    crush_acc DOUBLE PRECISION,
    magic_acc DOUBLE PRECISION,
    ranged_acc DOUBLE PRECISION,
    stab_def DOUBLE PRECISION,
    slash_def DOUBLE PRECISION,
    crush_def DOUBLE PRECISION,
    magic_def DOUBLE PRECISION,
    ranged_def DOUBLE PRECISION,
    melee_strength DOUBLE PRECISION,
    ranged_strength DOUBLE PRECISION,
    magic_damage DOUBLE PRECISION,
    prayer_bonus DOUBLE PRECISION,
    weight DOUBLE PRECISION,
    speed DOUBLE PRECISION,
'''


def init_schema(conn) -> None:
    """Create all tables if they do not exist."""
    if is_postgres(conn):
        init_postgres_schema(conn)
    else:
        init_sqlite_schema(conn)


def init_postgres_schema(conn) -> None:
    """Initialize PostgreSQL schema."""
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS items (
            id INT PRIMARY KEY,
            name TEXT NOT NULL,
            members BOOLEAN NOT NULL DEFAULT FALSE,
            max_limit INT,
            value DOUBLE PRECISION NOT NULL DEFAULT 0,
            highalch DOUBLE PRECISION,
            lowalch DOUBLE PRECISION,
            icon TEXT
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS item_prices (
            item_id INT PRIMARY KEY REFERENCES items(id),
            current_price DOUBLE PRECISION,
            current_trend TEXT,
            today_price DOUBLE PRECISION,
            today_trend TEXT,
            volume BIGINT,
            fetched_at TIMESTAMP DEFAULT NOW()
        )
    ''')

    cursor.execute(f'''
        CREATE TABLE IF NOT EXISTS equipment_attributes (
            item_id INT PRIMARY KEY REFERENCES items(id),
            {EQUIPMENT_STAT_COLUMNS}
            slot VARCHAR(50) NOT NULL,
            updated_at TIMESTAMP DEFAULT NOW()
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS consumable_attributes (
            consumable_id SERIAL PRIMARY KEY,
            item_id INT NOT NULL REFERENCES items(id),
            effect_type VARCHAR(50) NOT NULL,
            skill VARCHAR(50) NOT NULL,
            amount DOUBLE PRECISION NOT NULL CHECK (amount >= 0),
            bites INT NOT NULL DEFAULT 1 CHECK (bites >= 1),
            UNIQUE (item_id, effect_type, skill)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS scraperuns (
            run_id SERIAL PRIMARY KEY,
            domain TEXT NOT NULL,
            started_at TIMESTAMP,
            completed_at TIMESTAMP,
            status TEXT,
            rows_attempted INT DEFAULT 0,
            rows_matched INT DEFAULT 0,
            rows_persisted INT DEFAULT 0,
            rows_failed INT DEFAULT 0,
            rows_skipped INT DEFAULT 0,
            records_new INT DEFAULT 0,
            records_updated INT DEFAULT 0,
            records_unchanged INT DEFAULT 0,
            partial_matches INT DEFAULT 0,
            sources_failed INT DEFAULT 0
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS scrapealerts (
            alert_id SERIAL PRIMARY KEY,
            run_id INT REFERENCES scraperuns(run_id),
            item_id INT,
            alert_type TEXT NOT NULL,
            severity TEXT NOT NULL,
            item_name TEXT,
            old_value TEXT,
            new_value TEXT,
            message TEXT,
            created_at TIMESTAMP DEFAULT NOW()
        )
    ''')

    conn.commit()


def init_sqlite_schema(conn) -> None:
    """Initialize SQLite schema (fallback and tests)."""
    cursor = conn.cursor()

    cursor.execute('''CREATE TABLE IF NOT EXISTS items (id INTEGER PRIMARY KEY, name TEXT NOT NULL, members INTEGER NOT NULL DEFAULT 0, max_limit INTEGER, value REAL NOT NULL DEFAULT 0, highalch REAL, lowalch REAL, icon TEXT)''')
    cursor.execute('''CREATE TABLE IF NOT EXISTS item_prices (item_id INTEGER PRIMARY KEY REFERENCES items(id), current_price REAL, current_trend TEXT, today_price REAL, today_trend TEXT, volume INTEGER, fetched_at TEXT)''')
    cursor.execute(f'''CREATE TABLE IF NOT EXISTS equipment_attributes (item_id INTEGER PRIMARY KEY REFERENCES items(id), {EQUIPMENT_STAT_COLUMNS.replace('DOUBLE PRECISION', 'REAL')} slot TEXT NOT NULL, updated_at TEXT)''')
    cursor.execute('''CREATE TABLE IF NOT EXISTS consumable_attributes (consumable_id INTEGER PRIMARY KEY AUTOINCREMENT, item_id INTEGER NOT NULL REFERENCES items(id), effect_type TEXT NOT NULL, skill TEXT NOT NULL, amount REAL NOT NULL CHECK (amount >= 0), bites INTEGER NOT NULL DEFAULT 1 CHECK (bites >= 1), UNIQUE(item_id, effect_type, skill))''')
    cursor.execute('''CREATE TABLE IF NOT EXISTS scraperuns (run_id INTEGER PRIMARY KEY AUTOINCREMENT, domain TEXT NOT NULL, started_at TEXT, completed_at TEXT, status TEXT, rows_attempted INTEGER DEFAULT 0, rows_matched INTEGER DEFAULT 0, rows_persisted INTEGER DEFAULT 0, rows_failed INTEGER DEFAULT 0, rows_skipped INTEGER DEFAULT 0, records_new INTEGER DEFAULT 0, records_updated INTEGER DEFAULT 0, records_unchanged INTEGER DEFAULT 0, partial_matches INTEGER DEFAULT 0, sources_failed INTEGER DEFAULT 0)''')
    cursor.execute('''CREATE TABLE IF NOT EXISTS scrapealerts (alert_id INTEGER PRIMARY KEY AUTOINCREMENT, run_id INTEGER REFERENCES scraperuns(run_id), item_id INTEGER, alert_type TEXT NOT NULL, severity TEXT NOT NULL, item_name TEXT, old_value TEXT, new_value TEXT, message TEXT, created_at TEXT DEFAULT CURRENT_TIMESTAMP)''')

    conn.commit()

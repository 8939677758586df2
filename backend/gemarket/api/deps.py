"""
API dependencies
"""

from ..database import DatabasePool

db_pool = DatabasePool()


def get_pool() -> DatabasePool:
    """Pool shared by request handlers and scheduled pipeline runs."""
    return db_pool

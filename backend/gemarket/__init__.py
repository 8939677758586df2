"""
GE Market data pipeline.

Scrapes equipment and consumable tables from the OSRS wiki, syncs the item
catalog and Grand Exchange prices, and serves cost-efficiency views.
"""

__version__ = "1.0.0"

"""
Run statistics, alerts and reporting for pipeline runs.

A StatsTracker collects counters and alerts while a run is in progress;
at the end the run summary and its warning/critical alerts are saved to
scraperuns / scrapealerts and a report is printed.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from .database import db_placeholder, is_postgres


class AlertType(Enum):
    """Types of alerts that can be raised during a pipeline run."""
    NEW_RECORD = "new_record"
    PARTIAL_MATCH = "partial_match"
    DOSE_MATCH = "dose_match"
    NO_MATCH = "no_match"
    PARSE_FAILURE = "parse_failure"
    EMPTY_SOURCE = "empty_source"
    DB_ERROR = "db_error"
    HTTP_ERROR = "http_error"


class AlertSeverity(Enum):
    """Severity levels for alerts."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Map alert types to their severity
ALERT_SEVERITY = {
    AlertType.NEW_RECORD: AlertSeverity.INFO,
    AlertType.PARTIAL_MATCH: AlertSeverity.WARNING,
    AlertType.DOSE_MATCH: AlertSeverity.INFO,
    AlertType.NO_MATCH: AlertSeverity.WARNING,
    AlertType.PARSE_FAILURE: AlertSeverity.WARNING,
    AlertType.EMPTY_SOURCE: AlertSeverity.WARNING,
    AlertType.DB_ERROR: AlertSeverity.CRITICAL,
    AlertType.HTTP_ERROR: AlertSeverity.CRITICAL,
}


@dataclass
class Alert:
    """Individual alert record."""
    alert_type: AlertType
    severity: AlertSeverity
    item_name: Optional[str] = None
    item_id: Optional[int] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    message: str = ""


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """Track and display progress across sources (slots, pages) with ETA."""

    def __init__(self, total: int):
        self.total = total
        self.completed = 0
        self.failed = 0
        self.start_time = time.time()

    def update(self, success: bool = True, item_name: str = "", status: str = None):
        """Update progress and print status."""
        self.completed += 1
        if not success:
            self.failed += 1

        elapsed = time.time() - self.start_time
        rate = self.completed / elapsed if elapsed > 0 else 0
        remaining = self.total - self.completed
        eta_seconds = remaining / rate if rate > 0 else 0
        eta = str(timedelta(seconds=int(eta_seconds)))

        pct = (self.completed / self.total) * 100 if self.total else 100.0
        if status is None:
            status = "OK" if success else "ERROR"
        timestamp = datetime.now().strftime("%H:%M:%S")

        print(f"[{timestamp}] [{self.completed}/{self.total}] ({pct:5.1f}%) "
              f"{item_name[:30]:<30} [{status}] | ETA: {eta}", flush=True)

    def summary(self):
        """Print final summary."""
        elapsed = time.time() - self.start_time
        elapsed_str = str(timedelta(seconds=int(elapsed)))
        successful = self.completed - self.failed
        print(f"\n{'='*60}")
        print(f"Completed: {successful}/{self.total} ({self.failed} errors) in {elapsed_str}")
        print(f"{'='*60}", flush=True)


# =============================================================================
# Statistics Tracker
# =============================================================================

class StatsTracker:
    """
    Track pipeline statistics and alerts for one run of one domain.

    rows_attempted counts extracted rows; a row ends up either persisted
    (new, updated or unchanged) or failed (unmatched or rejected by the
    database).
    """

    def __init__(self, domain: str):
        self.domain = domain
        self.started_at = datetime.now()
        self.completed_at: Optional[datetime] = None

        # Counters
        self.rows_attempted = 0
        self.rows_matched = 0
        self.rows_unmatched = 0
        self.rows_skipped = 0
        self.rows_db_failed = 0
        self.records_new = 0
        self.records_updated = 0
        self.records_unchanged = 0
        self.partial_matches = 0
        self.sources_failed = 0

        # Alerts (in-memory during run)
        self.alerts: List[Alert] = []

        # Run ID (set after persisting to scraperuns)
        self.run_id: Optional[int] = None

    @property
    def rows_persisted(self) -> int:
        return self.records_new + self.records_updated + self.records_unchanged

    @property
    def rows_failed(self) -> int:
        return self.rows_unmatched + self.rows_db_failed

    def counters(self) -> Dict[str, int]:
        """Run-level counters reported to callers."""
        return {
            'attempted': self.rows_attempted,
            'matched': self.rows_matched,
            'persisted': self.rows_persisted,
            'failed': self.rows_failed,
        }

    def _add_alert(self, alert_type: AlertType, message: str, **kwargs):
        self.alerts.append(Alert(
            alert_type=alert_type,
            severity=ALERT_SEVERITY[alert_type],
            message=message,
            **kwargs
        ))

    def record_extracted(self, count: int):
        """Record rows produced by the table extractor."""
        self.rows_attempted += count

    def record_skipped_row(self):
        """Record a table row without the minimum signal (no name, no value)."""
        self.rows_skipped += 1

    def record_match(self, name: str, item_id: int, strategy: str, matched_name: str):
        """Record a successful catalog match."""
        self.rows_matched += 1
        if strategy == 'partial':
            self.partial_matches += 1
            self._add_alert(
                AlertType.PARTIAL_MATCH,
                f"Partial match: \"{name}\" → \"{matched_name}\" (ID: {item_id})",
                item_name=name, item_id=item_id, new_value=matched_name
            )
        elif strategy == 'dose':
            self._add_alert(
                AlertType.DOSE_MATCH,
                f"Dose match: \"{name}\" → \"{matched_name}\" (ID: {item_id})",
                item_name=name, item_id=item_id, new_value=matched_name
            )

    def record_no_match(self, name: str):
        """Record a row whose name is not in the catalog."""
        self.rows_unmatched += 1
        self._add_alert(AlertType.NO_MATCH, f"No match: \"{name}\"", item_name=name)

    def record_new(self, name: str, item_id: int):
        """Record a record inserted for the first time."""
        self.records_new += 1
        self._add_alert(AlertType.NEW_RECORD, f"New record: {name}", item_name=name, item_id=item_id)

    def record_updated(self):
        """Record an existing record whose values changed."""
        self.records_updated += 1

    def record_unchanged(self):
        """Record an existing record rewritten with identical values."""
        self.records_unchanged += 1

    def record_parse_failure(self, name: Optional[str], field: str, raw_value: str):
        """Record a row that raised while being parsed."""
        self.rows_skipped += 1
        self._add_alert(
            AlertType.PARSE_FAILURE,
            f"Parse failure for '{field}': {raw_value[:50]}",
            item_name=name, old_value=raw_value
        )

    def record_db_failure(self, name: str, item_id: Optional[int], error_msg: str):
        """Record a row the database rejected."""
        self.rows_db_failed += 1
        self._add_alert(
            AlertType.DB_ERROR,
            f"[DB] {name} (ID: {item_id}): {error_msg}",
            item_name=name, item_id=item_id
        )

    def record_source_failure(self, source: str, error_msg: str):
        """Record a source page or API call that could not be acquired."""
        self.sources_failed += 1
        self._add_alert(AlertType.HTTP_ERROR, f"[HTTP] {source}: {error_msg}", item_name=source)

    def record_empty_source(self, source: str):
        """Record a source that yielded no rows (page layout may have changed)."""
        self._add_alert(AlertType.EMPTY_SOURCE, f"No rows extracted from {source}", item_name=source)

    def get_alert_counts(self) -> Dict[str, int]:
        """Get counts of each alert type."""
        counts: Dict[str, int] = {}
        for alert in self.alerts:
            key = alert.alert_type.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    def get_alerts_by_type(self, alert_type: AlertType) -> List[Alert]:
        """Get all alerts of a specific type."""
        return [a for a in self.alerts if a.alert_type == alert_type]

    @property
    def status(self) -> str:
        if self.sources_failed and not self.rows_attempted:
            return 'failed'
        if self.sources_failed or self.rows_db_failed:
            return 'completed_with_errors'
        return 'completed'

    def print_report(self):
        """Print the final run statistics report to console."""
        self.completed_at = datetime.now()
        duration = self.completed_at - self.started_at
        duration_str = str(timedelta(seconds=int(duration.total_seconds())))

        print("\n" + "=" * 70)
        print(f"{self.domain.upper()} RUN REPORT")
        print("=" * 70)
        print(f"\nRun Duration: {duration_str}")
        print(f"Status: {self.status}")

        print("\n--- ROWS ---")
        print(f"  Extracted:     {self.rows_attempted:>6}")
        print(f"  Skipped:       {self.rows_skipped:>6}")
        print(f"  Matched:       {self.rows_matched:>6}")
        print(f"  Unmatched:     {self.rows_unmatched:>6}")
        print(f"  DB failures:   {self.rows_db_failed:>6}")

        print("\n--- RECORDS ---")
        print(f"  New:           {self.records_new:>6}")
        print(f"  Updated:       {self.records_updated:>6}")
        print(f"  Unchanged:     {self.records_unchanged:>6}")

        alert_counts = self.get_alert_counts()
        if alert_counts:
            print("\n--- ALERTS ---")
            for alert_type, count in sorted(alert_counts.items()):
                print(f"  {alert_type:<25} {count:>6}")

        partial = self.get_alerts_by_type(AlertType.PARTIAL_MATCH)
        if partial:
            print("\n--- PARTIAL MATCHES (verify) ---")
            for alert in partial[:10]:
                print(f"  {alert.message}")
            if len(partial) > 10:
                print(f"  ... ({len(partial)} total)")

        unmatched = self.get_alerts_by_type(AlertType.NO_MATCH)
        if unmatched:
            print("\n--- UNMATCHED ---")
            for alert in unmatched[:10]:
                print(f"  {alert.item_name}")
            if len(unmatched) > 10:
                print(f"  ... ({len(unmatched)} total)")

        failures = self.get_alerts_by_type(AlertType.HTTP_ERROR) + self.get_alerts_by_type(AlertType.DB_ERROR)
        if failures:
            print("\n--- FAILURES ---")
            for alert in failures[:10]:
                print(f"  {alert.message}")
            if len(failures) > 10:
                print(f"  ... ({len(failures)} total)")

        print("\n" + "=" * 70, flush=True)


# =============================================================================
# Run Persistence
# =============================================================================

def save_scrape_run(conn, stats: StatsTracker) -> Optional[int]:
    """Save run summary to scraperuns. Returns run_id."""
    cursor = conn.cursor()
    ph = db_placeholder(conn)
    completed_at = stats.completed_at or datetime.now()

    columns = '''(domain, started_at, completed_at, status,
                  rows_attempted, rows_matched, rows_persisted, rows_failed, rows_skipped,
                  records_new, records_updated, records_unchanged,
                  partial_matches, sources_failed)'''
    values = ', '.join([ph] * 14)
    params = (stats.domain, stats.started_at.isoformat(), completed_at.isoformat(), stats.status,
              stats.rows_attempted, stats.rows_matched, stats.rows_persisted,
              stats.rows_failed, stats.rows_skipped,
              stats.records_new, stats.records_updated, stats.records_unchanged,
              stats.partial_matches, stats.sources_failed)

    try:
        if is_postgres(conn):
            cursor.execute(f'INSERT INTO scraperuns {columns} VALUES ({values}) RETURNING run_id', params)
            run_id = cursor.fetchone()[0]
        else:
            cursor.execute(f'INSERT INTO scraperuns {columns} VALUES ({values})', params)
            run_id = cursor.lastrowid

        stats.run_id = run_id
        return run_id
    except Exception as e:
        print(f"  Note: Could not save scrape run: {e}", flush=True)
        return None


def save_alerts(conn, stats: StatsTracker) -> int:
    """Save warning and critical alerts to scrapealerts. Returns count saved."""
    if not stats.run_id:
        return 0

    cursor = conn.cursor()
    ph = db_placeholder(conn)
    saved = 0

    try:
        for alert in stats.alerts:
            if alert.severity == AlertSeverity.INFO:
                continue

            cursor.execute(
                f'''INSERT INTO scrapealerts
                   (run_id, item_id, alert_type, severity, item_name, old_value, new_value, message)
                   VALUES ({ph}, {ph}, {ph}, {ph}, {ph}, {ph}, {ph}, {ph})''',
                (stats.run_id, alert.item_id, alert.alert_type.value, alert.severity.value,
                 alert.item_name, alert.old_value, alert.new_value, alert.message)
            )
            saved += 1

        return saved
    except Exception as e:
        print(f"  Note: Could not save alerts: {e}", flush=True)
        return 0


def cleanup_old_alerts(conn, days: int = 30) -> int:
    """Delete alerts older than specified days. Returns count deleted."""
    cursor = conn.cursor()

    try:
        if is_postgres(conn):
            cursor.execute(
                "DELETE FROM scrapealerts WHERE created_at < NOW() - make_interval(days => %s)",
                (days,)
            )
        else:
            cursor.execute(
                "DELETE FROM scrapealerts WHERE created_at < datetime('now', ?)",
                (f'-{days} days',)
            )
        deleted = cursor.rowcount
        if deleted > 0:
            print(f"  Cleaned up {deleted} alerts older than {days} days", flush=True)
        return deleted
    except Exception as e:
        print(f"  Note: Could not clean up alerts: {e}", flush=True)
        return 0


def persist_run(pool, stats: StatsTracker) -> None:
    """Save run summary and alerts, print the report. Never raises."""
    stats.completed_at = datetime.now()
    try:
        with pool.connection() as conn:
            save_scrape_run(conn, stats)
            save_alerts(conn, stats)
    except Exception as e:
        print(f"  Note: Could not persist run data: {e}", flush=True)
    stats.print_report()

"""
Pipeline run history routes.

Endpoints for viewing run history and per-run alerts.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ...database import DatabasePool, db_placeholder, dict_cursor, rows_to_dicts
from ..deps import get_pool

router = APIRouter(prefix="/api/runs", tags=["runs"])

RUN_COLUMNS = '''run_id, domain, started_at, completed_at, status,
                 rows_attempted, rows_matched, rows_persisted, rows_failed, rows_skipped,
                 records_new, records_updated, records_unchanged, partial_matches, sources_failed'''


class ScrapeRun(BaseModel):
    """Pipeline run summary."""
    run_id: int
    domain: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: Optional[str] = None
    rows_attempted: Optional[int] = None
    rows_matched: Optional[int] = None
    rows_persisted: Optional[int] = None
    rows_failed: Optional[int] = None
    rows_skipped: Optional[int] = None
    records_new: Optional[int] = None
    records_updated: Optional[int] = None
    records_unchanged: Optional[int] = None
    partial_matches: Optional[int] = None
    sources_failed: Optional[int] = None


class ScrapeRunListResponse(BaseModel):
    """Response for list of runs."""
    runs: List[ScrapeRun]
    total: int
    limit: int
    offset: int


class RunAlert(BaseModel):
    """Alert associated with a run."""
    alert_id: int
    run_id: int
    item_id: Optional[int] = None
    alert_type: str
    severity: str
    item_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class RunAlertsResponse(BaseModel):
    """Response for alerts of a specific run."""
    alerts: List[RunAlert]
    total: int


@router.get("/", response_model=ScrapeRunListResponse)
def list_runs(
    domain: Optional[str] = Query(None, description="Filter by domain (equipment, consumables, items, ...)"),
    limit: int = Query(20, ge=1, le=100, description="Number of results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    pool: DatabasePool = Depends(get_pool),
):
    """
    List runs, newest first.

    Args:
        domain: Optional domain to filter by
        limit: Maximum number of runs to return (default 20, max 100)
        offset: Number of runs to skip for pagination
    """
    with pool.connection() as conn:
        cursor = dict_cursor(conn)
        ph = db_placeholder(conn)

        where_clause = ""
        params: List[Any] = []
        if domain is not None:
            where_clause = f"WHERE domain = {ph}"
            params.append(domain)

        cursor.execute(f"SELECT COUNT(*) AS total FROM scraperuns {where_clause}", params)
        total = cursor.fetchone()["total"]

        cursor.execute(f"""
            SELECT {RUN_COLUMNS}
            FROM scraperuns
            {where_clause}
            ORDER BY run_id DESC
            LIMIT {ph} OFFSET {ph}
        """, params + [limit, offset])
        runs = [ScrapeRun(**row) for row in rows_to_dicts(cursor.fetchall())]

    return ScrapeRunListResponse(runs=runs, total=total, limit=limit, offset=offset)


@router.get("/{run_id}/alerts", response_model=RunAlertsResponse)
def get_run_alerts(run_id: int, pool: DatabasePool = Depends(get_pool)):
    """
    Get alerts for a run, critical first.

    Raises:
        HTTPException: If run not found
    """
    with pool.connection() as conn:
        cursor = dict_cursor(conn)
        ph = db_placeholder(conn)

        cursor.execute(f"SELECT run_id FROM scraperuns WHERE run_id = {ph}", (run_id,))
        if not cursor.fetchone():
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found")

        cursor.execute(f"""
            SELECT alert_id, run_id, item_id, alert_type, severity, item_name,
                   old_value, new_value, message, created_at
            FROM scrapealerts
            WHERE run_id = {ph}
            ORDER BY
                CASE severity
                    WHEN 'critical' THEN 1
                    WHEN 'warning' THEN 2
                    WHEN 'info' THEN 3
                    ELSE 4
                END,
                alert_id
        """, (run_id,))
        alerts = [RunAlert(**row) for row in rows_to_dicts(cursor.fetchall())]

    return RunAlertsResponse(alerts=alerts, total=len(alerts))

"""
Job run repository - audit trail of scheduled and manual job executions.
"""

import json
from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_job_run
from .models import DBJobRun


class JobRunRepository:
    """Repository for job run records."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def create(self, job_name: str, triggered_by: str, started_at: datetime | None = None) -> int:
        """Insert a RUNNING row. Returns run ID."""
        started_at = started_at or datetime.now()
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO job_runs (job_name, status, triggered_by, started_at)
                   VALUES (?, 'RUNNING', ?, ?)""",
                (job_name, triggered_by, started_at.isoformat())
            )
            return cursor.lastrowid

    def complete(
        self,
        run_id: int,
        status: str,
        duration_ms: int,
        stats: dict | None = None,
        error: str | None = None,
        logs: list[dict] | None = None,
    ) -> bool:
        """
        Finalize a RUNNING row.

        Rows that already reached a terminal status are left untouched, so a
        run can only be finalized once.

        Returns:
            True if the row was finalized by this call
        """
        with self._db.conn() as conn:
            cursor = conn.execute(
                """UPDATE job_runs
                   SET status = ?, completed_at = ?, duration_ms = ?,
                       stats = ?, error = ?, logs = ?
                   WHERE id = ? AND status = 'RUNNING'""",
                (status, datetime.now().isoformat(), duration_ms,
                 json.dumps(stats, default=str) if stats is not None else None,
                 error,
                 json.dumps(logs) if logs else None,
                 run_id)
            )
            return cursor.rowcount > 0

    def get(self, run_id: int) -> DBJobRun | None:
        """Get a run by ID."""
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM job_runs WHERE id = ?", (run_id,)).fetchone()
            return row_to_job_run(row) if row else None

    def get_history(self, job_name: str | None = None, limit: int = 50) -> list[DBJobRun]:
        """Most recent runs first, optionally for one job."""
        with self._db.conn() as conn:
            if job_name:
                rows = conn.execute(
                    """SELECT * FROM job_runs WHERE job_name = ?
                       ORDER BY started_at DESC, id DESC LIMIT ?""",
                    (job_name, limit)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM job_runs ORDER BY started_at DESC, id DESC LIMIT ?",
                    (limit,)
                ).fetchall()
            return [row_to_job_run(row) for row in rows]

    def get_last(self, job_name: str) -> DBJobRun | None:
        """Most recent run of a job."""
        runs = self.get_history(job_name, limit=1)
        return runs[0] if runs else None

    def get_stats(self, job_name: str) -> dict:
        """Aggregate counts and average duration for a job."""
        with self._db.conn() as conn:
            row = conn.execute(
                """SELECT COUNT(*) as total,
                          SUM(CASE WHEN status = 'SUCCESS' THEN 1 ELSE 0 END) as successful,
                          SUM(CASE WHEN status = 'FAILED' THEN 1 ELSE 0 END) as failed,
                          AVG(duration_ms) as avg_duration
                   FROM job_runs WHERE job_name = ?""",
                (job_name,)
            ).fetchone()

        last_run = self.get_last(job_name)
        return {
            "total_runs": row["total"] or 0,
            "successful": row["successful"] or 0,
            "failed": row["failed"] or 0,
            "average_duration_ms": round(row["avg_duration"]) if row["avg_duration"] else 0,
            "last_run_at": last_run.started_at.isoformat() if last_run else None,
            "last_status": last_run.status if last_run else None,
        }

    def fail_stale(
        self,
        started_before: datetime,
        error: str,
        exclude_jobs: list[str] | None = None
    ) -> int:
        """Mark RUNNING rows started before the cutoff as FAILED. Returns count."""
        query = """UPDATE job_runs
                   SET status = 'FAILED', completed_at = ?, error = ?
                   WHERE status = 'RUNNING' AND started_at < ?"""
        params: list = [datetime.now().isoformat(), error, started_before.isoformat()]
        if exclude_jobs:
            query += f" AND job_name NOT IN ({','.join('?' * len(exclude_jobs))})"
            params.extend(exclude_jobs)
        with self._db.conn() as conn:
            return conn.execute(query, params).rowcount

"""Scheduled jobs for the nightly replenishment pipeline.

Jobs:
- rebuild_and_recalc: rebuild recent daily sales rollups, then recalculate
  buffers of every warehouse of every organization

All jobs are idempotent and can be run multiple times safely.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from replenish.core.config import get_settings
from replenish.core.logging import get_logger
from replenish.core.metrics import scheduler_job_duration_seconds, scheduler_jobs_total
from replenish.db.models import Organization, SalesDaily, Warehouse
from replenish.db.session import SessionLocal
from replenish.services.buffer_engine import recalc_buffers
from replenish.services.sales_aggregator import rebuild_daily_sales

log = get_logger("replenish.scheduler")


@contextmanager
def monitor_job(job_name: str) -> Iterator[dict[str, Any]]:
    """Time a job and record its outcome in Prometheus metrics.

    Usage:
        with monitor_job("nightly_replenishment") as stats:
            stats["orgs"] = 3

    """
    start_time = time.time()
    stats: dict[str, Any] = {}
    log.info("job_started", extra={"job_name": job_name})
    try:
        yield stats
    except Exception as e:
        duration = time.time() - start_time
        scheduler_jobs_total.labels(job_name=job_name, status="failed").inc()
        scheduler_job_duration_seconds.labels(job_name=job_name).observe(duration)
        log.error("job_failed", extra={"job_name": job_name, "error": str(e)})
        raise
    duration = time.time() - start_time
    scheduler_jobs_total.labels(job_name=job_name, status="success").inc()
    scheduler_job_duration_seconds.labels(job_name=job_name).observe(duration)
    log.info(
        "job_completed",
        extra={"job_name": job_name, "duration_s": round(duration, 3), "stats": stats},
    )


def warehouses_to_recalc(db: Session, org_id: str) -> list[str]:
    """Registered warehouses of an org plus any warehouse id seen in the rollup.

    The rollup contributes the GLOBAL bucket of sales without a warehouse.
    """
    registered = db.scalars(select(Warehouse.id).where(Warehouse.org_id == org_id)).all()
    from_sales = db.scalars(
        select(SalesDaily.warehouse_id).where(SalesDaily.org_id == org_id).distinct()
    ).all()
    return sorted(set(registered) | set(from_sales))


def rebuild_and_recalc(
    days: int | None = None,
    lookback_days: int | None = None,
    *,
    today: date | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> dict[str, dict[str, int]]:
    """Nightly pipeline: rollup rebuild followed by buffer recalculation.

    This job should run nightly after sales ingestion (e.g., at 03:00 UTC).
    A failing organization or warehouse is logged and skipped; the rest
    still run.

    Args:
        days: Rollup rebuild window (default from settings)
        lookback_days: Buffer demand lookback (default from settings)
        today: Override for the current date (tests)
        session_factory: Session factory (tests inject their own)

    Returns:
        {org_id: {warehouse_id: buffers updated, or -1 on failure}}

    """
    settings = get_settings()
    days = days or settings.rebuild_default_days
    lookback_days = lookback_days or settings.buffer_lookback_days
    today = today or date.today()
    date_from = today - timedelta(days=days)

    results: dict[str, dict[str, int]] = {}
    with monitor_job("nightly_replenishment") as stats, session_factory() as db:
        org_ids = db.scalars(select(Organization.id).order_by(Organization.id)).all()
        for org_id in org_ids:
            per_warehouse: dict[str, int] = {}
            try:
                rebuild_daily_sales(db, org_id, date_from, today, today=today)
            except Exception as e:
                db.rollback()
                log.error(
                    "nightly_rebuild_failed",
                    extra={"org_id": org_id, "error": str(e)},
                    exc_info=True,
                )
                results[org_id] = per_warehouse
                continue

            for warehouse_id in warehouses_to_recalc(db, org_id):
                try:
                    outcome = recalc_buffers(
                        db, org_id, warehouse_id, lookback_days, as_of=today
                    )
                    per_warehouse[warehouse_id] = outcome["updated"]
                except Exception as e:
                    db.rollback()
                    log.error(
                        "nightly_recalc_failed",
                        extra={"org_id": org_id, "warehouse_id": warehouse_id, "error": str(e)},
                        exc_info=True,
                    )
                    per_warehouse[warehouse_id] = -1
            results[org_id] = per_warehouse

        stats["orgs"] = len(results)
        stats["warehouses"] = sum(len(v) for v in results.values())

    return results


def main() -> None:
    """Run the nightly pipeline once (for cron)."""
    from replenish.core.logging import setup_logging

    settings = get_settings()
    setup_logging(level=settings.log_level, file_path=settings.log_file_path)
    rebuild_and_recalc()


if __name__ == "__main__":
    main()

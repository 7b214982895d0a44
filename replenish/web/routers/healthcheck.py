"""Liveness and dependency checks for load balancers and on-call."""

from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import psutil
from fastapi import APIRouter, HTTPException
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from replenish.db.models import Buffer, SalesDaily
from replenish.db.session import SessionLocal

router = APIRouter()

DISK_WARN_PERCENT = 90
MEMORY_WARN_PERCENT = 90
# Nightly job runs once a day; two missed runs means it is broken
PIPELINE_STALE_AFTER = timedelta(hours=50)

OK, WARNING, ERROR = "ok", "warning", "error"


def _age(value: datetime | None, now: datetime) -> timedelta | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return now - value


def check_database(now: datetime) -> dict[str, Any]:
    """Round-trip latency plus the age of the last rollup and buffer writes."""
    try:
        with SessionLocal() as db:
            start = time.perf_counter()
            db.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            last_rollup = db.scalar(select(func.max(SalesDaily.updated_at)))
            last_buffer = db.scalar(select(func.max(Buffer.updated_at)))
    except SQLAlchemyError as exc:
        return {"database": {"status": ERROR, "error": str(exc)}}

    pipeline: dict[str, Any] = {"status": OK}
    if last_rollup is None and last_buffer is None:
        pipeline["status"] = "idle"
    for key, value in (("last_rollup_at", last_rollup), ("last_buffer_at", last_buffer)):
        age = _age(value, now)
        pipeline[key] = value.isoformat() if value else None
        if age is not None and age > PIPELINE_STALE_AFTER:
            pipeline["status"] = WARNING
    return {
        "database": {"status": OK, "latency_ms": round(latency_ms, 2)},
        "pipeline": pipeline,
    }


def check_host() -> dict[str, Any]:
    disk = psutil.disk_usage("/")
    mem = psutil.virtual_memory()
    return {
        "disk": {
            "status": ERROR if disk.percent > DISK_WARN_PERCENT else OK,
            "free_gb": round(disk.free / 1024**3, 2),
            "used_percent": disk.percent,
        },
        "memory": {
            "status": WARNING if mem.percent > MEMORY_WARN_PERCENT else OK,
            "available_mb": round(mem.available / 1024**2, 2),
            "used_percent": mem.percent,
        },
    }


@router.get("/healthz")
def healthz():
    """Database, pipeline freshness, disk and memory.

    An ``error`` check (database down, disk full) makes the service
    unhealthy and answers 503. A ``warning`` (memory pressure, stale
    nightly job) only degrades it.
    """
    now = datetime.now(timezone.utc)
    checks: dict[str, Any] = {**check_database(now), **check_host()}

    uptime = time.time() - psutil.Process(os.getpid()).create_time()
    checks["uptime"] = {
        "status": OK,
        "uptime_seconds": round(uptime, 2),
        "uptime_human": format_uptime(uptime),
    }

    statuses = {check["status"] for check in checks.values()}
    if ERROR in statuses:
        status = "unhealthy"
    elif WARNING in statuses:
        status = "degraded"
    else:
        status = "healthy"

    body = {
        "status": status,
        "healthy": status != "unhealthy",
        "checks": checks,
        "timestamp": now.isoformat(),
    }
    if status == "unhealthy":
        raise HTTPException(status_code=503, detail=body)
    return body


def format_uptime(seconds: float) -> str:
    """Compact uptime, e.g. "1d 2h 3m".

    >>> format_uptime(93784)
    '1d 2h 3m'
    >>> format_uptime(12)
    '0m'
    """
    minutes_total = int(seconds // 60)
    days, rest = divmod(minutes_total, 24 * 60)
    hours, minutes = divmod(rest, 60)
    parts = [f"{n}{unit}" for n, unit in ((days, "d"), (hours, "h")) if n]
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)

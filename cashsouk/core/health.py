from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import text

from cashsouk.core.settings import settings
from cashsouk.db.session import engine
from cashsouk.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"

# Redis only backs the product catalog cache; reads fall back to the database.
OPTIONAL_CHECKS = frozenset({"redis"})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - needs a live database
        return {"status": "error", "error": exc.__class__.__name__}
    return {"status": "ok"}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
    except Exception as exc:
        return {"status": "error", "error": exc.__class__.__name__}
    return {"status": "ok"}


def _check_storage() -> dict[str, str]:
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket:
            return {"status": "error", "error": "GCS_BUCKET not set"}
        return {"status": "ok", "provider": "gcs"}
    upload_dir = Path(settings.local_upload_dir)
    if not upload_dir.is_dir() or not os.access(upload_dir, os.W_OK):
        return {"status": "error", "error": "upload directory not writable", "provider": "local"}
    return {"status": "ok", "provider": "local"}


def summarize(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    failing = {name for name, check in checks.items() if check.get("status") != "ok"}
    ready = not (failing - OPTIONAL_CHECKS)
    if not failing:
        return "ok", True
    return ("degraded" if ready else "unavailable"), ready


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION, "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks = {
        "database": await _check_db(),
        "redis": await _check_redis(),
        "storage": _check_storage(),
    }
    overall, ready = summarize(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "version": APP_VERSION,
        "timestamp": _now(),
        "checks": checks,
    }

# backend/stockbook/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import get_context
from ..services import ledger_service
from ..time_utils import now_ms, to_utc_z

system_bp = Blueprint("system", __name__)


async def check_storage_health() -> dict:
    """
    Check that the ledger directory is listable.

    Returns dict with status and details.
    """
    ctx = get_context()
    start_time = time.time()
    try:
        count = await ledger_service.count_entries(ctx)
        elapsed_ms = (time.time() - start_time) * 1000
        details = ctx.store.describe()
        details["transactions"] = count
        details["lock_timeouts"] = ctx.locks.timeouts
        return {
            "status": "degraded" if ctx.store.corrupt_reads else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Storage health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Storage error",
        }


@system_bp.get("/api/health")
async def health():
    """
    Returns:
    - 200: storage reachable ("degraded" when corrupt documents were read as empty)
    - 503: storage unreachable
    """
    storage = await check_storage_health()
    ok = storage["status"] != "unhealthy"
    response = {
        "ok": ok,
        "status": storage["status"],
        "timestamp": to_utc_z(now_ms()),
        "checks": {"storage": storage},
    }
    return response, 200 if ok else 503


@system_bp.get("/api/version")
def version():
    from .. import __version__

    return {
        "api_version": __version__,
        "environment": "production" if not current_app.debug else "development",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(now_ms()),
    }

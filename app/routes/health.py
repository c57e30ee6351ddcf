"""
ShareBoard Health Check Routes
Liveness, readiness and host resource probes
"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import sys
import psutil
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Dict, Any

from ..config import get_settings
from ..database import get_db
from ..models.comment import Comment
from ..models.post import Post

settings = get_settings()

router = APIRouter(prefix="/api/health", tags=["health"])

START_TIME = datetime.now(timezone.utc)


def get_uptime() -> str:
    """Get service uptime as human-readable string"""
    delta = datetime.now(timezone.utc) - START_TIME
    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if delta.days > 0:
        return f"{delta.days}d {hours}h {minutes}m"
    elif hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    else:
        return f"{minutes}m {seconds}s"


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity and row counts"""
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "row_counts": {
                "posts": db.query(Post).count(),
                "comments": db.query(Comment).count(),
            },
        }
    except Exception as e:
        db.rollback()
        return {
            "status": "unhealthy",
            "error": str(e),
        }


def check_system() -> Dict[str, Any]:
    """Check host resources"""
    try:
        cpu_percent = psutil.cpu_percent(interval=0.1)
        memory = psutil.virtual_memory()

        return {
            "status": "healthy" if memory.percent < 90 else "warning",
            "cpu_percent": cpu_percent,
            "memory_percent": memory.percent,
            "memory_available_gb": round(memory.available / (1024**3), 2),
            "python_version": sys.version.split()[0],
        }
    except Exception as e:
        return {
            "status": "unknown",
            "error": str(e),
        }


# ============================================================
# ROUTES
# ============================================================

@router.get("")
@router.get("/live")
def health_live():
    """
    Liveness probe - is the service running?
    """
    return {
        "ok": True,
        "status": "alive",
        "environment": settings.environment,
        "uptime": get_uptime(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
def health_ready(db: Session = Depends(get_db)):
    """
    Readiness probe - can the service reach its database?
    """
    database = check_database(db)
    ready = database["status"] == "healthy"

    return {
        "ok": ready,
        "status": "ready" if ready else "not_ready",
        "checks": {"database": database},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/system")
def health_system():
    """Host CPU and memory usage."""
    return {
        "ok": True,
        "system": check_system(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

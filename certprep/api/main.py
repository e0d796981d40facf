"""
FastAPI application for the certprep exam session engine.

Provides REST API for:
- Practice exam attempts (start, save answers, submit, restart)
- The grouped practice exam catalog
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from loguru import logger

from certprep import __version__
from certprep.api.routers import exam_router
from certprep.db.database import check_database, init_db
from config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting certprep exam service...")
    init_db()
    logger.info("Service started on {}:{}", settings.api_host, settings.api_port)

    yield

    logger.info("Shutting down certprep exam service...")


app = FastAPI(
    title="certprep",
    description="Exam session engine for certification practice exams.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(exam_router, prefix="/api", tags=["Exams"])


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with a real database round trip."""
    db_status, db_error = check_database()
    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result

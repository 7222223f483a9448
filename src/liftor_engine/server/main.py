"""
Liftor engine FastAPI server entrypoint.
Wires the plan service, error handling and API routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..db import SqlPlanRepository, close_db, init_db
from ..logging_setup import setup_logging
from ..services import CompletionClient, HttpDateClock, PlanService
from .routes.plans import router as r_plans


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    try:
        await init_db()
        logging.info("Database initialized")
        app.state.plan_service = PlanService(
            SqlPlanRepository(), CompletionClient(), HttpDateClock()
        )
        logging.info("FastAPI server startup completed")
    except Exception as e:
        logging.exception("FastAPI startup failed: %s", e)
        raise

    yield

    await close_db()
    logging.info("FastAPI server shutdown completed")


app = FastAPI(
    title="Liftor Engine API",
    description="Base-plan generation, titration and versioning",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exc_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler: log and return a generic error response.
    """
    logging.exception("Unhandled error in %s: %s", request.url, exc)
    return JSONResponse(
        {"success": False, "error": "Internal server error", "error_kind": "internal_error"},
        status_code=500,
    )


@app.get("/healthz")
async def healthz() -> dict:
    return {"ok": True, "timestamp": datetime.now(UTC).isoformat()}


app.include_router(r_plans, prefix="/api/v1", tags=["plans"])

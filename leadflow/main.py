"""
Lead Intake & Enrichment — FastAPI Service

Slack lead alerts in, validated and researched sales briefings out.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadflow.config import settings
from leadflow.db.session import init_db
from leadflow.routes import leads, process, slack
from leadflow.services.tasks import task_runner

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; let queued pipeline runs finish on shutdown."""
    await init_db()
    yield
    if task_runner.pending:
        logger.info("Waiting for %d background pipeline run(s)...", task_runner.pending)
    await task_runner.drain()


app = FastAPI(
    title="Lead Intake & Enrichment API",
    description="Slack lead capture, validation, company research and sales briefing reports.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(slack.router)
app.include_router(process.router)
app.include_router(leads.router)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred."},
    )


@app.get("/health", tags=["health"])
async def health():
    """Health check for load balancers and container orchestration."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("leadflow.main:app", host="0.0.0.0", port=8000, reload=True)

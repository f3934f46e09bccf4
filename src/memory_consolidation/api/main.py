"""
FastAPI application entry point.

Local control plane for the memory consolidation scheduler.

- Optional API key authentication (API_AUTH_ENABLED / API_KEY)
- Scheduler built from CONSOLIDATION_* environment variables at startup,
  unless the host already called init_scheduler()
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI

from memory_consolidation import __version__
from memory_consolidation.infra.logging_config import setup_logging

from .routers import scheduler
from .dependencies.auth import verify_api_key
from ._scheduler_state import (
    init_scheduler_from_env,
    is_initialized,
    shutdown_scheduler,
)


load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: configure logging, build the scheduler from the environment.
    Shutdown: disarm the timer and wait for scheduled runs to finish.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR", "logs") or None
    setup_logging(log_level, log_dir=log_dir)

    if not is_initialized():
        init_scheduler_from_env()

    yield

    await shutdown_scheduler()
    logger.info("Consolidation API shut down")


tags_metadata = [
    {
        "name": "scheduler",
        "description": "Consolidation scheduler control - lifecycle, status, configuration and manual runs",
    },
]

app = FastAPI(
    title="Memory Consolidation Scheduler API",
    lifespan=lifespan,
    description="""
## Memory Consolidation Scheduler API

Runs memory consolidation on a cron schedule or on demand, with
system-load admission, single-flight execution and bounded retries.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require
an `X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
# Start server
CONSOLIDATION_ENGINE=my_engine:Engine uvicorn memory_consolidation.api.main:app --port 8000

# Run consolidation now
curl -X POST http://localhost:8000/scheduler/trigger \\
  -H "Content-Type: application/json" \\
  -d '{"user_id": "user-1"}'
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__, "scheduler_initialized": is_initialized()}


# verify_api_key reads API_AUTH_ENABLED per request
auth_dependency = [Depends(verify_api_key)]

app.include_router(
    scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)

"""
Backend entry point for the training console API.

One Python process, one asyncio event loop: FastAPI serves the console's
read endpoints and the lifespan hook closes the database pool on shutdown.

Run with: python main.py [--port PORT]
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")
load_dotenv()

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from console_core.config import (
    check_required_env_vars,
    get_allowed_origins,
    get_api_port,
    get_sentry_dsn,
    is_production,
)
from console_core.database import close_engine, is_configured
from web_api.routes.events import router as events_router
from web_api.routes.impersonation import router as impersonation_router

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

if get_sentry_dsn():
    sentry_sdk.init(
        dsn=get_sentry_dsn(),
        environment="production" if is_production() else "development",
        traces_sample_rate=0.1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check configuration on startup, release database connections on shutdown."""
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning.strip())
    if not ok:
        raise RuntimeError("Missing required environment variables")

    yield

    await close_engine()


app = FastAPI(
    title="Training Console API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(events_router)
app.include_router(impersonation_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "database_configured": is_configured(),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Training Console API Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )

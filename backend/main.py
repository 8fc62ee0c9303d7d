"""
ContentOS — FastAPI application entrypoint.

Start the server:
    uvicorn main:app --reload --port 8000

API Overview:
    POST   /api/content/generate          — Start a content-generation run
    GET    /api/content/runs/{run_id}     — Poll run status, progress or result
    GET    /api/runs/                     — List run history
    GET    /api/runs/{run_id}             — Get historical run detail
    GET    /api/health                    — Health check
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from api.run_history_routes import run_history_router
from database import init_db, close_db

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    logger.info("ContentOS API starting up...")
    await init_db()
    logger.info("Database initialized.")
    yield
    await close_db()
    logger.info("ContentOS API shutting down...")


app = FastAPI(
    title="ContentOS API",
    description=(
        "Backend for the ContentOS content-generation orchestrator. Runs a "
        "tool-calling LangGraph agent that researches topics and saves blogs, "
        "articles and resources in exactly the requested quantities."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# CORS_ORIGINS is comma-separated; unset allows any origin
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount REST routes under /api prefix
app.include_router(router, prefix="/api")
app.include_router(run_history_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

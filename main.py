"""
Studio Payroll API

Serves the formula builder (evaluation and validation of payment formulas)
and the period payroll run with its CSV export.
"""

from dotenv import load_dotenv

# Environment must be loaded before the rate limiter reads its limits
load_dotenv()

from contextlib import asynccontextmanager
from typing import Dict
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.formulas import router as formulas_router
from api.payroll import router as payroll_router
from middleware.rate_limiter import limit_health, limiter, setup_rate_limiting
from services.config import Config

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

SERVICE_NAME = "Studio Payroll API"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = Config.from_env()
    logger.info(
        f"{SERVICE_NAME} {VERSION} starting: formula step budget {config.formula_max_steps}, "
        f"retention {config.retention_pct}%, penalty cap {config.max_penalty_pct}%"
    )
    yield
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title=SERVICE_NAME,
    description="Payment formula evaluation and instructor payroll for fitness studios",
    version=VERSION,
    lifespan=lifespan,
)

setup_rate_limiting(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(formulas_router)
app.include_router(payroll_router)


@app.get("/", response_model=Dict[str, str])
@limiter.limit("100/minute")
async def root(request: Request) -> Dict[str, str]:
    """Service name, version and where to find the docs."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=Dict[str, str])
@limit_health
async def health_check(request: Request) -> Dict[str, str]:
    return {"status": "healthy", "service": "studio-payroll-backend", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )

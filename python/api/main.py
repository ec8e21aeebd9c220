"""
FastAPI Main Application

Entry point for the UPI reconciliation API.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import (
    statements_router,
    receipts_router,
    matches_router,
    rules_router,
    exports_router,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting UPI Reconciliation API...")
    yield
    logger.info("Shutting down UPI Reconciliation API...")


app = FastAPI(
    title="UPI Reconciliation API",
    description="Bank statement and payment receipt reconciliation with adaptive categorization",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(statements_router, prefix="/api")
app.include_router(receipts_router, prefix="/api")
app.include_router(matches_router, prefix="/api")
app.include_router(rules_router, prefix="/api")
app.include_router(exports_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "UPI Reconciliation API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "endpoints": {
            "statements": "/api/statements/normalize",
            "receipts": "/api/receipts/extract",
            "matches": "/api/matches",
            "approve": "/api/matches/approve",
            "rules": "/api/rules/defaults",
            "exports": "/api/exports/csv",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )

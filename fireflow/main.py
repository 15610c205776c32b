#!/usr/bin/env python
"""
fireflow/main.py

Sets up the FastAPI application for FireFlow, a personal finance tracker
where every event (salary, deposit interest, a stock purchase, a loan) is
recorded through one entry form.

Key Roles:
 - Loads environment variables
 - Adds CORS middleware for frontend integration
 - Creates tables at startup
 - Includes the asset, flow, debt, settings, calculation and submission routers
"""

import os
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fireflow.database import create_tables
from fireflow.routers import asset, flow, debt, settings, calculation, submission

# Load environment variables from a .env file at the project root
load_dotenv()

logger = logging.getLogger(__name__)

# Default CORS origins if none specified (dev environment)
default_origins = (
    "http://127.0.0.1:3000,"
    "http://localhost:3000,"
    "http://127.0.0.1:5173,"
    "http://localhost:5173,"
    "http://127.0.0.1:8000,"
    "http://localhost:8000"
)
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", default_origins)
ALLOWED_ORIGINS = [origin.strip() for origin in raw_origins.split(",")]

# ---------------------------------------------------------
# Initialize the FastAPI application
# ---------------------------------------------------------
app = FastAPI(
    title="FireFlow API",
    description=(
        "API for recording income, expenses, transfers, investments and debts "
        "against tracked assets, with multi-step entries rolled back on failure."
    ),
    version="1.0",
    redirect_slashes=True
)

# ---------------------------------------------------------
# CORS Middleware
# ---------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Database: Create Tables at Startup
# ---------------------------------------------------------
@app.on_event("startup")
def startup_event():
    """
    Ensures tables (and the tax settings row) exist when FastAPI starts.
    Idempotent: existing data is left alone.
    """
    logger.info("Creating tables at startup")
    create_tables()


# ---------------------------------------------------------
# Routers
# ---------------------------------------------------------
app.include_router(asset.router, prefix="/api/assets", tags=["assets"])
app.include_router(flow.router, prefix="/api/flows", tags=["flows"])
app.include_router(debt.router, prefix="/api/debts", tags=["debts"])
app.include_router(settings.router, prefix="/api/settings", tags=["settings"])
app.include_router(calculation.router, prefix="/api/calculations", tags=["calculations"])
app.include_router(submission.router, prefix="/api/submissions", tags=["submissions"])


# ---------------------------------------------------------
# Root Route
# ---------------------------------------------------------
@app.get("/")
def read_root():
    """
    Basic root path to confirm the API is running.
    """
    return {"message": "Welcome to FireFlow"}

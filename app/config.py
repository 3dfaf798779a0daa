# app/config.py

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Get the absolute path to the project root directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load variables from .env file in project root
load_dotenv(BASE_DIR / ".env")

# MongoDB settings
MONGO_URI: str = os.getenv("MONGO_URI") or "mongodb://localhost:27017"
DB_NAME: str = os.getenv("DB_NAME") or "markup_engine"

if not os.getenv("MONGO_URI"):
    logger.warning("MONGO_URI is not set in the .env file, using %s", MONGO_URI)

# Configuration blob cache (seconds a cached read stays fresh)
CONFIG_CACHE_TTL_SECONDS: float = float(os.getenv("CONFIG_CACHE_TTL_SECONDS", "30"))

# Debounce window for recomputing markup figures while a selection is edited
RECOMPUTE_DEBOUNCE_SECONDS: float = float(os.getenv("RECOMPUTE_DEBOUNCE_SECONDS", "0.5"))

# Interval between revenue history refetches in an editor session
REVENUE_POLL_INTERVAL_SECONDS: float = float(os.getenv("REVENUE_POLL_INTERVAL_SECONDS", "60"))

# Monthly hours assumed for hourly payroll entries without their own figure
DEFAULT_MONTHLY_HOURS: float = float(os.getenv("DEFAULT_MONTHLY_HOURS", "173.2"))

# Averaging period used when a scenario has none saved
DEFAULT_PERIOD_MONTHS: int = int(os.getenv("DEFAULT_PERIOD_MONTHS", "12"))

# Expose internal error text in API responses (never in production)
EXPOSE_ERRORS: bool = os.getenv("EXPOSE_ERRORS", "false").lower() == "true"

CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://localhost:8000",
    ).split(",")
    if origin.strip()
]

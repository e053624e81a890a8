# ledger/config.py
# Role: Runtime settings for the commission ledger.
#       Everything is read from the environment (optionally via a .env file).

"""
Configuration for the commission ledger service.

All settings come from environment variables; a local `.env` file is loaded
first so development setups don't need to export anything.
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Project root (the folder holding main.py / db.py / models.py)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# --- Database ---
DEFAULT_DB_DIR = os.path.join(BASE_DIR, "database")
DATABASE_URL = os.getenv(
    "LEDGER_DATABASE_URL",
    f"sqlite:///{os.path.join(DEFAULT_DB_DIR, 'ledger.db')}",
)

# --- Attachment storage ---
STORAGE_ROOT = os.getenv("LEDGER_STORAGE_ROOT", os.path.join(BASE_DIR, "storage"))
STORAGE_BACKEND = os.getenv("LEDGER_STORAGE_BACKEND", "local").strip().lower()

# Public URL prefix under which stored attachments are served
FILES_URL_PREFIX = "/" + os.getenv("LEDGER_FILES_URL_PREFIX", "/files").strip("/")

# --- HTTP ---
APP_NAME = "Commission Ledger"
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv("LEDGER_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# --- Logging ---
LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()

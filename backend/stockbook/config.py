# backend/stockbook/config.py
from __future__ import annotations
import os


class Config:
    # Root directory for JSON documents, transaction files and lock files
    STOCKBOOK_DATA_DIR = os.environ.get("STOCKBOOK_DATA_DIR", os.path.join(os.getcwd(), "data"))

    # "file" for the on-disk store, "memory" for an in-process store (tests, demos)
    STOCKBOOK_STORAGE = os.environ.get("STOCKBOOK_STORAGE", "file")

    # Advisory lock retry budget: sleep MIN_TIMEOUT * FACTOR**attempt between tries
    STOCKBOOK_LOCK_RETRIES = int(os.environ.get("STOCKBOOK_LOCK_RETRIES", "5"))
    STOCKBOOK_LOCK_MIN_TIMEOUT = float(os.environ.get("STOCKBOOK_LOCK_MIN_TIMEOUT", "0.02"))
    STOCKBOOK_LOCK_FACTOR = float(os.environ.get("STOCKBOOK_LOCK_FACTOR", "2"))

    STOCKBOOK_DEFAULT_WAREHOUSE = os.environ.get("STOCKBOOK_DEFAULT_WAREHOUSE", "default")
    STOCKBOOK_DEFAULT_COSTING_METHOD = os.environ.get("STOCKBOOK_DEFAULT_COSTING_METHOD", "FIFO")
    STOCKBOOK_RECENT_TRANSACTIONS_LIMIT = int(os.environ.get("STOCKBOOK_RECENT_TRANSACTIONS_LIMIT", "200"))

    # Browser origins allowed to call the API (comma-separated)
    STOCKBOOK_CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "STOCKBOOK_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]

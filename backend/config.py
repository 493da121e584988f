"""
Application configuration — loaded once at startup.
"""

import os
from pathlib import Path

API_BASE_URL = os.getenv("STORE_API_URL", "https://uhsin-store-api.onrender.com/api")
REQUEST_TIMEOUT = float(os.getenv("STORE_API_TIMEOUT", "30"))

CACHE_DIR = os.getenv("STORE_CACHE_DIR", str(Path(__file__).resolve().parent / ".store_cache"))
SYNC_INTERVAL_SECONDS = float(os.getenv("STORE_SYNC_INTERVAL", "30"))

OLLAMA_BASE = os.getenv("OLLAMA_BASE", "http://localhost:11434")
DESCRIPTION_MODEL = os.getenv("DESCRIPTION_MODEL", "llama3.1:8b")

ADMIN_LOG_LIMIT = 100
LOW_STOCK_THRESHOLD = 10

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = os.getenv("DEBUG", "0") == "1"

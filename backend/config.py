"""
Centralized config for the dispatch triage backend.
Loads API keys, model names and timeouts from environment; no secrets in code.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Gemini (incident extraction + conversation analysis)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))

# Hume EVI (chat events + emotion scores)
HUME_API_KEY = os.getenv("HUME_API_KEY")
HUME_CONFIG_ID = os.getenv("HUME_CONFIG_ID")
HUME_API_BASE = os.getenv("HUME_API_BASE", "https://api.hume.ai/v0/evi")
HUME_TIMEOUT_SECONDS = float(os.getenv("HUME_TIMEOUT_SECONDS", "10"))

# MongoDB
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "dispatch")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "console")

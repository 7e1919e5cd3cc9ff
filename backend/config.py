import os
from dotenv import load_dotenv

# This will load the .env file only if the variables are not already set.
# It's safe to run everywhere.
load_dotenv()


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- UPSTREAM APIS ---
LODESTONE_BASE_URL = os.getenv("LODESTONE_BASE_URL", "https://na.finalfantasyxiv.com/lodestone")
FFXIVCOLLECT_API_URL = os.getenv("FFXIVCOLLECT_API_URL", "https://ffxivcollect.com/api")
LALACHIEVEMENTS_API_URL = os.getenv("LALACHIEVEMENTS_API_URL", "https://lalachievements.com/api")
USER_AGENT = os.getenv("USER_AGENT", "nameplate-ranks/0.1")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# --- CACHING & CONCURRENCY ---
PROVIDER_CACHE_SECONDS = int(os.getenv("PROVIDER_CACHE_SECONDS", "600"))  # 10 minutes
MAX_CONCURRENT_LOOKUPS = int(os.getenv("MAX_CONCURRENT_LOOKUPS", "8"))

# --- DISPLAY DEFAULTS ---
RANK_METRIC = os.getenv("RANK_METRIC", "Achievements")
RANK_SCOPE = os.getenv("RANK_SCOPE", "Global")
RANKING_SOURCE = os.getenv("RANKING_SOURCE", "FFXIVCollect")
RANK_SEPARATOR = os.getenv("RANK_SEPARATOR", "♯")
USE_PERCENTILE_COLOURS = _get_bool("USE_PERCENTILE_COLOURS", True)
SHOW_LOADING_PLACEHOLDER = _get_bool("SHOW_LOADING_PLACEHOLDER", True)

# --- LOGGING ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- API SERVER ---
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

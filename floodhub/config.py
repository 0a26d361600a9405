# =============================
# FILE: floodhub/config.py
# =============================
import os, logging
from pathlib import Path
from dotenv import load_dotenv

log = logging.getLogger("uvicorn.error").getChild("config")

# Load .env from repo root (helpful locally); real env vars win
root_env = Path(__file__).resolve().parent.parent / ".env"
if root_env.exists():
    load_dotenv(dotenv_path=root_env, override=False)

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./floodhub.db")

# --- JWT/Auth ---
SECRET_KEY    = os.getenv("SECRET_KEY", "changeme")
ALGORITHM     = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- Geolocation ---
# San Juan, Batangas; used whenever the device cannot report a position
DEFAULT_LAT = float(os.getenv("DEFAULT_LAT", "13.8263"))
DEFAULT_LNG = float(os.getenv("DEFAULT_LNG", "121.3960"))
DEFAULT_LOCATION_NAME = os.getenv("DEFAULT_LOCATION_NAME", "San Juan, Batangas")

GEO_TIMEOUT_SECS       = float(os.getenv("GEO_TIMEOUT_SECS", "10"))
LOCATION_MAX_AGE_SECS  = float(os.getenv("LOCATION_MAX_AGE_SECS", "30"))
LOCATION_THROTTLE_SECS = float(os.getenv("LOCATION_THROTTLE_SECS", "30"))

# --- Routing (OSRM, no auth) ---
ROUTING_BASE_URL     = os.getenv("ROUTING_BASE_URL", "https://router.project-osrm.org")
ROUTING_TIMEOUT_SECS = float(os.getenv("ROUTING_TIMEOUT_SECS", "10"))

# --- Docs ---
SHOW_DOCS = os.getenv("SHOW_DOCS", "1") == "1"

# --- Map tiles ---
TILE_PROVIDERS: dict[str, dict[str, str]] = {
    "street": {
        "name": "Street",
        "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>',
    },
    "satellite": {
        "name": "Satellite",
        "url": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
        "attribution": '&copy; <a href="https://www.esri.com">Esri</a>',
    },
    "terrain": {
        "name": "Terrain",
        "url": "https://{s}.tile.opentopomap.org/{z}/{x}/{y}.png",
        "attribution": '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>',
    },
}


def get_tile_provider(key: str) -> dict[str, str] | None:
    """Case-insensitive lookup; None for unknown providers."""
    if not key:
        return None
    provider = TILE_PROVIDERS.get(key.lower().strip())
    if provider is None:
        log.info("[tiles] unknown provider %r", key)
    return provider

# bootsee/config.py
#
# ==============================================================================
# DEPLOYMENT-AWARE CONFIGURATION
# ==============================================================================
# Every setting is read from the environment with a local-development default.
# On Vercel (VERCEL=1) the database and uploads live under /tmp, the only
# writable location in the serverless runtime.
# ==============================================================================
import os
import json
import secrets
import logging

# bootsee/ sits one level below the project root.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

IS_VERCEL = os.environ.get("VERCEL") == "1"

if IS_VERCEL:
    DB_PATH = os.path.join("/tmp", "bootsee_prod.db")
    UPLOADS_DIR = os.path.join("/tmp", "uploads")
else:
    DB_PATH = os.path.join(PROJECT_ROOT, "bootsee_local.db")
    UPLOADS_DIR = os.path.join(PROJECT_ROOT, "uploads")


def _env_float(name, default):
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _tariffs():
    raw = os.environ.get("FARE_TARIFFS")
    if raw:
        return json.loads(raw)
    return {
        "bike": {"base": 20.0, "per_km": 8.0},
        "auto": {"base": 30.0, "per_km": 12.0},
        "car": {"base": 50.0, "per_km": 15.0},
    }


CONFIG = {
    "PROJECT_NAME": "BOOTS Ride",
    "SECRET_KEY": os.environ.get("SECRET_KEY", secrets.token_urlsafe(32)),
    "ALGORITHM": "HS256",
    "ACCESS_TOKEN_EXPIRE_MINUTES": 60 * 24 * 7,
    "DATABASE_URL": os.environ.get("DATABASE_URL", f"sqlite:///{DB_PATH}"),
    "UPLOADS_DIR": os.environ.get("UPLOADS_DIR", UPLOADS_DIR),
    "MAX_UPLOAD_BYTES": 5 * 1024 * 1024,

    "FIREBASE_SERVICE_ACCOUNT_KEY_PATH": os.path.join(PROJECT_ROOT, "firebase-service-account.json"),

    # Pricing (INR)
    "CURRENCY": "INR",
    "COMMISSION_PERCENTAGE": _env_float("COMMISSION_PERCENTAGE", 10.0),
    "FARE_TARIFFS": _tariffs(),
    "ROAD_DISTANCE_FACTOR": 1.2,
    "MINUTES_PER_KM": 3,
    "NEARBY_RADIUS_KM": _env_float("NEARBY_RADIUS_KM", 10.0),

    # UPI
    "PLATFORM_UPI_ID": os.environ.get("PLATFORM_UPI_ID", "bootsride@axl"),
    "PLATFORM_PAYEE_NAME": os.environ.get("PLATFORM_PAYEE_NAME", "BOOTS Ride"),

    # Maps
    "OSRM_BASE_URL": os.environ.get("OSRM_BASE_URL", "https://router.project-osrm.org"),
    "NOMINATIM_BASE_URL": os.environ.get("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org"),
    "HTTP_TIMEOUT_SECONDS": _env_float("HTTP_TIMEOUT_SECONDS", 5.0),
    "HTTP_USER_AGENT": os.environ.get("HTTP_USER_AGENT", "bootsee/1.0 (ride-hailing backend)"),

    # Safety thresholds
    "SPEED_THRESHOLD_KMH": 80.0,
    "ROUTE_DEVIATION_THRESHOLD_M": 500.0,
    "INACTIVITY_THRESHOLD_SECONDS": 300,
    "BATTERY_THRESHOLD_PERCENT": 15.0,
    "MAX_TRUSTED_CONTACTS": 5,

    "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
}


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, str(CONFIG["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

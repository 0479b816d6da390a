"""Runtime settings read from the environment (and a local .env file)."""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_point(name: str, default: str) -> tuple[float, float]:
    raw = os.getenv(name, default)
    lat, lng = (float(part) for part in raw.split(","))
    return lat, lng


ORACLE_BASE_URL = os.getenv("ORACLE_BASE_URL", "http://localhost:8090")
OTP_BASE_URL = os.getenv("OTP_BASE_URL", "http://localhost:8080")

# Scheduler tick; each interpolation is sized to bridge exactly one tick.
UPDATE_PERIOD_MS = int(os.getenv("UPDATE_PERIOD_MS", "2000"))
# ~60 Hz, the browser's display refresh.
FRAME_INTERVAL_MS = float(os.getenv("FRAME_INTERVAL_MS", "16"))

NEARBY_RADIUS_M = float(os.getenv("NEARBY_RADIUS_M", "1500"))
NEARBY_TRIP_LIMIT = int(os.getenv("NEARBY_TRIP_LIMIT", "50"))

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10.0"))

SIMULATION_CENTER = _env_point("SIMULATION_CENTER", "45.46394,12.22458")
MAP_CENTER = _env_point("MAP_CENTER", "45.440847,12.315515")
MAP_ZOOM = float(os.getenv("MAP_ZOOM", "12"))

# Central configuration

import os
import logging
from dotenv import load_dotenv

load_dotenv()

# API keys
WAQI_TOKEN = os.getenv("WAQI_TOKEN", "")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")

# target region
CITY_NAME = os.getenv("CITY_NAME", "Delhi NCT")
# south,west,north,east in WAQI map/bounds order
CITY_BOUNDS = os.getenv("CITY_BOUNDS", "28.3,76.8,29.0,77.5")

# persistence
CACHE_PATH = os.getenv(
    "PUREAIR_CACHE_PATH",
    os.path.join(os.path.dirname(__file__), ".cache", "pureair_cache.json"),
)
LIVE_CACHE_KEY = "pureair_live_aqi"
LAST_VALID_AQI_KEY = "pureair_last_valid_aqi"
WARDS_PATH = os.getenv("WARDS_PATH", "")

# network
REQUEST_TIMEOUT = 8
REQUEST_RETRIES = 2
USER_AGENT = "PureAir-Pipeline/1.0"

# lifetimes (seconds)
LIVE_CACHE_TTL = 10 * 60
FORECAST_CACHE_TTL = 15 * 60
REFRESH_INTERVAL = 10 * 60

# failsafe: typical severe winter day for Delhi
DEFAULT_CITY_AQI = 345
DEFAULT_POLLUTANT = "PM2.5"
OFFLINE_LABEL = "(Offline Mode)"

# ward interpolation
DEFAULT_WARD_AQI = 150
DEFAULT_WARD_SOURCE = "Historical Node"
IDW_EPSILON = 0.00001

# trend / diurnal heuristic
TREND_DELTA = 5
NIGHT_HOURS = {22, 23, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9}
AFTERNOON_HOURS = {12, 13, 14, 15, 16, 17}

# risk level, exclusive lower bound
RISK_BANDS = [
    (450, "Hazardous"),
    (400, "Severe"),
    (300, "Very Poor"),
    (200, "Poor"),
    (100, "Moderate"),
]
RISK_FLOOR = "Good"

# GRAP stages (CAQM), inclusive lower bound
GRAP_STAGES = [
    (450, 4, "GRAP Stage IV",  "Severe+: Truck Entry Ban, Odd-Even Scheme"),
    (401, 3, "GRAP Stage III", "Severe: Construction & Demolition Ban"),
    (301, 2, "GRAP Stage II",  "Very Poor: Diesel Gen Set Ban, Parking Fee Hike"),
    (201, 1, "GRAP Stage I",   "Poor: Dust Control, Mechanized Sweeping"),
]
GRAP_NONE = (0, "No GRAP Active", "Standard Pollution Control Measures")

# exposure tiers, exclusive lower bound
# (threshold, minutes, sensitive warning, mask, activity, school)
EXPOSURE_TIERS = [
    (300, 0,  "CRITICAL: Immediate Indoor Confinement",
     "N95/N99 Mandatory", "Avoid all outdoor exertion", "Remote Learning Recommended"),
    (200, 15, "High Risk: Asthma/Elderly/Kids stay indoors",
     "N95 Recommended", "No outdoor exercise", "Suspend Outdoor Sports"),
    (150, 30, "Moderate Risk for sensitive lungs",
     "Mask recommended for prolonged exposure", "Reduce intensity", "Limit Recess"),
    (100, 60, "Sensitive groups reduce prolonged exertion",
     "Optional for sensitive groups", "Take breaks", "Open"),
]
EXPOSURE_FLOOR = ("Unlimited", "None", "None required", "Normal outdoor activity", "Open")

# forecast fallback
FORECAST_HORIZONS = [24, 48, 72]
FALLBACK_FORECAST_CONFIDENCE = 65
HISTORY_HOURS = 72

# logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logger = logging.getLogger("PUREAIR")


def setup_logging(level=None):
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return logger

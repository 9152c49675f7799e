# aqi_stream.py: WAQI ingestion for the city bounding box
# Two read-only endpoints: map/bounds (all stations) and feed/here (aggregate).
# Every failure mode (HTTP, network, non-ok status, bad JSON) returns empty/None.

import asyncio
import math

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import (
    WAQI_TOKEN, CITY_BOUNDS, REQUEST_TIMEOUT, REQUEST_RETRIES,
    USER_AGENT, DEFAULT_POLLUTANT, logger,
)
from models import Station

BOUNDS_URL = "https://api.waqi.info/map/bounds/"
FEED_URL = "https://api.waqi.info/feed/here/"


def build_session(retries=REQUEST_RETRIES):
    session = requests.Session()
    retry_strategy = Retry(
        total=retries, backoff_factor=0.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return session


def parse_aqi(value):
    """
    Leading-integer parse of a WAQI aqi field ("152", 152, "87.4").
    Returns None for "-", blanks, NaN and anything <= 0.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        aqi = int(value)
    else:
        text = str(value).strip()
        try:
            aqi = int(text)
        except ValueError:
            try:
                f = float(text)
            except ValueError:
                return None
            if not math.isfinite(f):
                return None
            aqi = int(f)
    return aqi if aqi > 0 else None


def parse_station(raw):
    if not isinstance(raw, dict):
        return None
    aqi = parse_aqi(raw.get("aqi"))
    if aqi is None:
        return None
    try:
        lat = float(raw["lat"])
        lon = float(raw["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None

    uid = raw.get("uid")
    stn = raw.get("station") if isinstance(raw.get("station"), dict) else {}
    name = stn.get("name") or f"Station {uid}"
    return Station(id=str(uid), latitude=lat, longitude=lon, aqi=aqi, station_name=str(name))


class WaqiClient:
    def __init__(self, token=WAQI_TOKEN, bounds=CITY_BOUNDS, session=None, timeout=REQUEST_TIMEOUT):
        self.token = token
        self.bounds = bounds
        self.session = session or build_session()
        self.timeout = timeout

    def _get_json(self, url, params):
        """Blocking GET; returns the `data` member of an ok payload or None."""
        if not self.token:
            logger.warning("[AQI] WAQI_TOKEN not configured")
            return None
        try:
            response = self.session.get(url, params={**params, "token": self.token}, timeout=self.timeout)
            if response.status_code != 200:
                logger.warning("[AQI] %s HTTP %s", url, response.status_code)
                return None
            payload = response.json()
        except requests.RequestException as e:
            logger.warning("[AQI] %s request failed: %s", url, e)
            return None
        except ValueError as e:
            logger.warning("[AQI] %s malformed JSON: %s", url, e)
            return None

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            status = payload.get("status") if isinstance(payload, dict) else type(payload).__name__
            logger.warning("[AQI] %s API status: %s", url, status)
            return None
        return payload.get("data")

    def fetch_stations_sync(self):
        data = self._get_json(BOUNDS_URL, {"latlng": self.bounds})
        if not isinstance(data, list):
            return []
        stations = [s for s in (parse_station(item) for item in data) if s is not None]
        logger.info("[AQI] %d/%d valid stations in bounds", len(stations), len(data))
        return stations

    def fetch_city_feed_sync(self):
        data = self._get_json(FEED_URL, {})
        if not isinstance(data, dict):
            return None
        aqi = parse_aqi(data.get("aqi"))
        if aqi is None:
            logger.warning("[AQI] feed/here returned no usable AQI")
            return None
        city = data.get("city") if isinstance(data.get("city"), dict) else {}
        return {
            "aqi": aqi,
            "dominant_pollutant": data.get("dominentpol") or DEFAULT_POLLUTANT,
            "city_name": city.get("name") or "",
        }

    async def fetch_stations(self):
        return await asyncio.to_thread(self.fetch_stations_sync)

    async def fetch_city_feed(self):
        return await asyncio.to_thread(self.fetch_city_feed_sync)

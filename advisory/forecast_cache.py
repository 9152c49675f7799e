# TTL memoisation for forecasts
# Key quantises the inputs (aqi to 5s, slope to 0.1) so jitter reuses a result.

import math
import time

from config import (
    FORECAST_CACHE_TTL, FORECAST_HORIZONS, FALLBACK_FORECAST_CONFIDENCE,
    DEFAULT_CITY_AQI, logger,
)
from advisory.llm_engine import linear_forecast


def forecast_cache_key(current_aqi, slope):
    aqi_bucket = int(math.floor(current_aqi / 5 + 0.5)) * 5
    slope_bucket = math.floor(slope * 10 + 0.5) / 10
    return f"{aqi_bucket}_{slope_bucket}"


class ForecastCache:
    def __init__(self, forecaster, ttl=FORECAST_CACHE_TTL, clock=time.time):
        self.forecaster = forecaster
        self.ttl = ttl
        self.clock = clock
        self._entries = {}

    async def get_forecast(self, current_aqi, slope):
        try:
            key = forecast_cache_key(current_aqi, slope)
        except (ValueError, OverflowError, TypeError) as e:
            logger.warning("[FORECAST] unusable inputs aqi=%r slope=%r: %s", current_aqi, slope, e)
            return self._linear(current_aqi, slope)
        now = self.clock()

        entry = self._entries.get(key)
        if entry and now - entry["written_at"] < self.ttl:
            return list(entry["predictions"])

        try:
            predictions = await self.forecaster.forecast(current_aqi, slope)
        except Exception as e:
            logger.warning("[FORECAST] collaborator failed, linear fallback: %s", str(e)[:100])
            # not cached: the next call retries the collaborator
            return self._linear(current_aqi, slope)

        self._evict_expired(now)
        self._entries[key] = {"predictions": list(predictions), "written_at": now}
        return list(predictions)

    def _linear(self, current_aqi, slope):
        if not _finite(current_aqi):
            current_aqi = DEFAULT_CITY_AQI
        if not _finite(slope):
            slope = 0.0
        return [
            linear_forecast(current_aqi, slope, h, FALLBACK_FORECAST_CONFIDENCE)
            for h in FORECAST_HORIZONS
        ]

    def _evict_expired(self, now):
        expired = [k for k, e in self._entries.items() if now - e["written_at"] >= self.ttl]
        for k in expired:
            del self._entries[k]

    def __len__(self):
        return len(self._entries)

    def clear(self):
        self._entries.clear()


def _finite(value):
    try:
        return math.isfinite(value)
    except TypeError:
        return False

# City AQI resolution chain
# cache -> bounds max -> feed/here -> last valid -> constant default
# Steps run strictly in order; the first usable value wins.
# City index = max over valid stations (worst monitored point), no outlier rejection.

import time
from datetime import datetime

from config import (
    CITY_NAME, DEFAULT_CITY_AQI, DEFAULT_POLLUTANT, OFFLINE_LABEL, logger,
)
from models import LiveAqiData
from analysis.intelligence import derive_intelligence, risk_level
from ingestion.aqi_stream import parse_aqi


def local_hour():
    return datetime.now().hour


class StationAggregator:
    def __init__(self, client, cache, city_name=CITY_NAME, clock=time.time, hour_fn=local_hour):
        self.client = client
        self.cache = cache
        self.city_name = city_name
        self.clock = clock
        self.hour_fn = hour_fn
        # bounds snapshot from the current cycle (possibly empty);
        # None when the bounds step did not run (cache hit or failure)
        self.last_stations = None

    async def fetch_city_aqi(self):
        """Always resolves to a LiveAqiData with a positive AQI."""
        try:
            return await self._resolve()
        except Exception:
            logger.exception("[AQI] pipeline failure, serving last known data")
            return await self._offline_fallback()

    async def _resolve(self):
        self.last_stations = None
        cached = await self.cache.get_live()
        if cached is not None and cached.aqi > 0:
            return cached

        aqi, dominant, city, source = await self._from_bounds()
        if aqi is None:
            aqi, dominant, city, source = await self._from_feed()

        previous = await self.cache.get_last_valid()
        if aqi is None:
            if previous is not None:
                aqi, source = previous, "last_valid"
            else:
                aqi, source = DEFAULT_CITY_AQI, "default"
            dominant, city = DEFAULT_POLLUTANT, self.city_name
            logger.warning("[AQI] upstream unavailable, failsafe AQI %d (%s)", aqi, source)

        await self.cache.put_last_valid(aqi)
        result = self._build(aqi, dominant, city, source, previous)
        await self.cache.put_live(result)
        logger.info("[AQI] resolved %s AQI %d via %s", city, aqi, source)
        return result

    async def _from_bounds(self):
        stations = [s for s in await self.client.fetch_stations() if parse_aqi(s.aqi)]
        self.last_stations = stations
        if not stations:
            return None, None, None, None
        aqi = max(parse_aqi(s.aqi) for s in stations)
        return aqi, DEFAULT_POLLUTANT, self.city_name, "bounds"

    async def _from_feed(self):
        feed = await self.client.fetch_city_feed()
        aqi = parse_aqi(feed.get("aqi")) if feed else None
        if aqi is None:
            return None, None, None, None
        return (
            aqi,
            feed.get("dominant_pollutant") or DEFAULT_POLLUTANT,
            feed.get("city_name") or self.city_name,
            "feed",
        )

    def _build(self, aqi, dominant, city, source, previous, offline=False):
        return LiveAqiData(
            aqi=aqi,
            status=risk_level(aqi),
            dominant_pollutant=dominant,
            city_name=city,
            observed_at=datetime.fromtimestamp(self.clock()),
            intelligence=derive_intelligence(aqi, previous, self.hour_fn()),
            source=source,
            offline=offline,
        )

    async def _offline_fallback(self):
        try:
            latest = await self.cache.latest_live()
            if latest is not None:
                return latest
        except Exception:
            logger.exception("[AQI] cache unavailable during fallback")
        return self._build(
            DEFAULT_CITY_AQI, DEFAULT_POLLUTANT,
            f"{self.city_name} {OFFLINE_LABEL}", "offline", None, offline=True,
        )

# Live AQI pipeline
# One long-lived object owns both cache slots, the forecast cache, the ward set
# and the background refresh task. Nothing public raises to the UI layer.
#
# Concurrent fetch_city_aqi() calls (manual refresh racing the timer) may
# interleave cache writes; last writer wins.

import asyncio
import contextlib
import json
import time

from config import (
    CACHE_PATH, REFRESH_INTERVAL, DEFAULT_CITY_AQI, DEFAULT_POLLUTANT,
    setup_logging, logger,
)
from ingestion.aqi_stream import WaqiClient
from ingestion.cache import ResilientCache, JsonFileStore
from ingestion.aggregator import StationAggregator, local_hour
from analysis.spatial import interpolate_ward_aqi, interpolate_wards
from analysis.trend import calculate_trend_slope, get_historical_context
from advisory.forecast_cache import ForecastCache
from advisory.llm_engine import GeminiForecaster, get_mitigation_insight, INSIGHT_FALLBACK
from ward_loader import load_wards


class AqiPipeline:
    def __init__(
        self, client=None, store=None, forecaster=None,
        insight_fn=get_mitigation_insight, wards=None,
        refresh_interval=REFRESH_INTERVAL, clock=time.time, hour_fn=local_hour,
        on_update=None,
    ):
        self.client = client or WaqiClient()
        self.cache = ResilientCache(store if store is not None else JsonFileStore(CACHE_PATH), clock=clock)
        self.aggregator = StationAggregator(self.client, self.cache, clock=clock, hour_fn=hour_fn)
        self.forecasts = ForecastCache(forecaster or GeminiForecaster(), clock=clock)
        self.insight_fn = insight_fn
        self.wards = wards if wards is not None else load_wards()
        self.refresh_interval = refresh_interval
        self.on_update = on_update
        self.latest = None
        self._task = None

    # --- outward surface ---

    async def fetch_city_aqi(self):
        live = await self.aggregator.fetch_city_aqi()
        self.latest = live
        if self.on_update:
            try:
                self.on_update(live)
            except Exception:
                logger.exception("[PIPELINE] on_update callback failed")
        return live

    async def fetch_stations(self):
        try:
            return await self.client.fetch_stations()
        except Exception:
            logger.exception("[PIPELINE] station listing failed")
            return []

    @staticmethod
    def interpolate_ward_aqi(centroid, stations):
        return interpolate_ward_aqi(centroid, stations)

    @staticmethod
    def calculate_trend_slope(history):
        return calculate_trend_slope(history)

    @staticmethod
    def get_historical_context(current_aqi):
        return get_historical_context(current_aqi)

    async def refresh_wards(self, stations=None):
        if stations is None:
            stations = await self.fetch_stations()
        if stations:
            self.wards = interpolate_wards(self.wards, stations)
        else:
            # no live stations: keep earlier estimates, default the rest
            logger.info("[WARDS] no station snapshot, keeping previous estimates")
            self.wards = [
                w if w.status is not None else interpolate_wards([w], [])[0]
                for w in self.wards
            ]
        return self.wards

    async def get_forecast(self, current_aqi=None, history=None):
        if current_aqi is None:
            current_aqi = self.latest.aqi if self.latest else DEFAULT_CITY_AQI
        if history is None:
            history = get_historical_context(current_aqi)
        slope = calculate_trend_slope(history)
        return await self.forecasts.get_forecast(current_aqi, slope)

    async def refresh(self):
        live = await self.fetch_city_aqi()
        # reuse the snapshot when the bounds path ran this cycle
        stations = self.aggregator.last_stations
        await self.refresh_wards(stations)
        return live

    async def bootstrap(self):
        """
        First aggregation and the one-shot advisory insight run concurrently.
        The insight is seeded from the durable last-valid AQI so the two tasks
        stay independent.
        """
        live, insight = await asyncio.gather(self.fetch_city_aqi(), self._initial_insight())
        stations = self.aggregator.last_stations
        await self.refresh_wards(stations)
        return {"live": live, "insight": insight, "wards": self.wards}

    async def _initial_insight(self):
        baseline = await self.cache.get_last_valid() or DEFAULT_CITY_AQI
        try:
            return await self.insight_fn(baseline, DEFAULT_POLLUTANT)
        except Exception:
            logger.exception("[PIPELINE] insight collaborator failed")
            return dict(INSIGHT_FALLBACK)

    # --- lifecycle ---

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def start(self):
        """Schedule the refresh timer on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._refresh_loop())
        logger.info("[PIPELINE] refresh every %ss", self.refresh_interval)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("[PIPELINE] stopped")

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception:
                logger.exception("[PIPELINE] refresh cycle failed")

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()


def snapshot(result, forecast):
    live = result["live"]
    return {
        "live": live.to_dict(),
        "insight": result["insight"],
        "wards": [
            {"id": w.id, "name": w.name, "region": w.region, "aqi": w.aqi,
             "status": w.status.value if w.status else None, "nearest": w.nearest_station}
            for w in result["wards"]
        ],
        "forecast": [p.to_dict() for p in forecast],
    }


async def _run_once():
    pipeline = AqiPipeline()
    result = await pipeline.bootstrap()
    forecast = await pipeline.get_forecast(result["live"].aqi)
    return snapshot(result, forecast)


def main():
    setup_logging()
    print(json.dumps(asyncio.run(_run_once()), indent=2))


if __name__ == "__main__":
    main()

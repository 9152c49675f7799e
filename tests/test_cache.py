import json
import os
import tempfile
import unittest
from datetime import datetime

from analysis.intelligence import derive_intelligence, risk_level
from config import LIVE_CACHE_KEY, LAST_VALID_AQI_KEY, LIVE_CACHE_TTL
from ingestion.cache import MemoryStore, JsonFileStore, ResilientCache
from models import LiveAqiData


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class BrokenStore:
    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("disk gone")


def make_live(aqi=312, city="Delhi NCT"):
    return LiveAqiData(
        aqi=aqi, status=risk_level(aqi), dominant_pollutant="PM2.5", city_name=city,
        observed_at=datetime(2025, 11, 3, 8, 30), intelligence=derive_intelligence(aqi, 300, 8),
    )


class TestLiveSlot(unittest.IsolatedAsyncioTestCase):

    async def test_round_trip_within_ttl(self):
        clock = FakeClock()
        cache = ResilientCache(MemoryStore(), clock=clock)
        live = make_live()
        await cache.put_live(live)
        clock.now += LIVE_CACHE_TTL - 1
        self.assertEqual(await cache.get_live(), live)

    async def test_stale_entry_ignored_but_kept_for_fallback(self):
        clock = FakeClock()
        cache = ResilientCache(MemoryStore(), clock=clock)
        live = make_live()
        await cache.put_live(live)
        clock.now += LIVE_CACHE_TTL
        self.assertIsNone(await cache.get_live())
        self.assertEqual(await cache.latest_live(), live)

    async def test_missing_and_corrupt_are_misses(self):
        store = MemoryStore()
        cache = ResilientCache(store, clock=FakeClock())
        self.assertIsNone(await cache.get_live())

        for bad in ("not json", {"data": {"aqi": 0}, "timestamp": 1}, {"timestamp": 1}, 42,
                    {"data": {"aqi": "abc"}, "timestamp": "x"}):
            store.set(LIVE_CACHE_KEY, bad)
            self.assertIsNone(await cache.get_live())
            self.assertIsNone(await cache.latest_live())

    async def test_non_finite_timestamp_never_fresh(self):
        store = MemoryStore()
        clock = FakeClock()
        cache = ResilientCache(store, clock=clock)
        for stamp in ("nan", "inf", float("nan")):
            store.set(LIVE_CACHE_KEY, {"data": make_live(300).to_dict(), "timestamp": stamp})
            clock.now += 1000 * LIVE_CACHE_TTL
            self.assertIsNone(await cache.get_live())

    async def test_future_timestamp_is_a_miss(self):
        store = MemoryStore()
        clock = FakeClock()
        cache = ResilientCache(store, clock=clock)
        store.set(LIVE_CACHE_KEY, {"data": make_live(300).to_dict(), "timestamp": clock.now + 60})
        self.assertIsNone(await cache.get_live())
        self.assertEqual((await cache.latest_live()).aqi, 300)

    async def test_zero_aqi_payload_rejected(self):
        store = MemoryStore()
        cache = ResilientCache(store, clock=FakeClock())
        payload = make_live().to_dict()
        payload["aqi"] = 0
        store.set(LIVE_CACHE_KEY, {"data": payload, "timestamp": FakeClock()()})
        self.assertIsNone(await cache.get_live())


class TestLastValidSlot(unittest.IsolatedAsyncioTestCase):

    async def test_overwrite(self):
        cache = ResilientCache(MemoryStore())
        self.assertIsNone(await cache.get_last_valid())
        await cache.put_last_valid(280)
        await cache.put_last_valid(301)
        self.assertEqual(await cache.get_last_valid(), 301)

    async def test_corrupt_values(self):
        store = MemoryStore()
        cache = ResilientCache(store)
        for bad in ("abc", -5, 0, None, True, {"aqi": 3}):
            store.set(LAST_VALID_AQI_KEY, bad)
            self.assertIsNone(await cache.get_last_valid(), bad)
        store.set(LAST_VALID_AQI_KEY, "245")
        self.assertEqual(await cache.get_last_valid(), 245)

    async def test_store_exceptions_swallowed(self):
        cache = ResilientCache(BrokenStore())
        self.assertIsNone(await cache.get_last_valid())
        self.assertIsNone(await cache.get_live())
        self.assertFalse(await cache.put_last_valid(200))
        self.assertFalse(await cache.put_live(make_live()))


class TestJsonFileStore(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "sub", "cache.json")

    def tearDown(self):
        self.tmp.cleanup()

    async def test_survives_new_instance(self):
        clock = FakeClock()
        live = make_live(401)
        await ResilientCache(JsonFileStore(self.path), clock=clock).put_live(live)
        await ResilientCache(JsonFileStore(self.path), clock=clock).put_last_valid(401)

        reopened = ResilientCache(JsonFileStore(self.path), clock=clock)
        self.assertEqual(await reopened.get_live(), live)
        self.assertEqual(await reopened.get_last_valid(), 401)

    async def test_corrupt_file_is_miss_then_rewritten(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w") as fp:
            fp.write("{broken")
        cache = ResilientCache(JsonFileStore(self.path))
        self.assertIsNone(await cache.get_last_valid())
        self.assertTrue(await cache.put_last_valid(222))
        self.assertEqual(await cache.get_last_valid(), 222)
        with open(self.path) as fp:
            self.assertEqual(json.load(fp)[LAST_VALID_AQI_KEY], 222)


if __name__ == "__main__":
    unittest.main()

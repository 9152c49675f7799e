# Two-slot resilient cache
#   live       -> {data, timestamp}, short TTL, skips redundant fetches
#   last_valid -> int, no TTL, deepest failsafe before the constant default
# Absent, corrupt or unreadable slots are misses. Nothing here raises.

import asyncio
import json
import math
import os
import tempfile
import threading
import time

from config import LIVE_CACHE_KEY, LAST_VALID_AQI_KEY, LIVE_CACHE_TTL, logger
from models import LiveAqiData, positive_int


class MemoryStore:
    """Process-local key/value store (tests, ephemeral runs)."""

    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        self._data[key] = value


class JsonFileStore:
    """
    Key/value store backed by a single JSON file; survives restarts.
    Writes go to a temp file and are swapped in with os.replace.
    """

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def _load(self):
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
        return data if isinstance(data, dict) else {}

    def get(self, key):
        with self._lock:
            return self._load().get(key)

    def set(self, key, value):
        with self._lock:
            try:
                data = self._load()
            except ValueError:
                logger.warning("[CACHE] %s corrupt, rewriting", self.path)
                data = {}
            data[key] = value

            directory = os.path.dirname(self.path) or "."
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    json.dump(data, fp)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise


class ResilientCache:
    def __init__(self, store, ttl=LIVE_CACHE_TTL, clock=time.time):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    async def _read(self, key):
        try:
            return await asyncio.to_thread(self.store.get, key)
        except Exception as e:
            logger.warning("[CACHE] read %s failed: %s", key, e)
            return None

    async def _write(self, key, value):
        try:
            await asyncio.to_thread(self.store.set, key, value)
            return True
        except Exception as e:
            logger.warning("[CACHE] write %s failed: %s", key, e)
            return False

    async def _live_entry(self):
        raw = await self._read(LIVE_CACHE_KEY)
        if raw is None:
            return None, None
        try:
            if isinstance(raw, str):
                raw = json.loads(raw)
            data = LiveAqiData.from_dict(raw["data"])
            written_at = float(raw["timestamp"])
            if not math.isfinite(written_at):
                raise ValueError(f"non-finite timestamp {raw['timestamp']!r}")
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("[CACHE] live entry corrupt: %s", e)
            return None, None
        return data, written_at

    async def get_live(self):
        """Fresh live entry only; stale entries are ignored."""
        data, written_at = await self._live_entry()
        if data is None:
            return None
        # entries from the future (clock stepped back) are misses too
        age = self.clock() - written_at
        if not 0 <= age < self.ttl:
            return None
        return data

    async def latest_live(self):
        """Most recent live entry regardless of age."""
        data, _ = await self._live_entry()
        return data

    async def put_live(self, data):
        return await self._write(LIVE_CACHE_KEY, {"data": data.to_dict(), "timestamp": self.clock()})

    async def get_last_valid(self):
        raw = await self._read(LAST_VALID_AQI_KEY)
        if raw is None:
            return None
        try:
            return positive_int(raw)
        except ValueError as e:
            logger.warning("[CACHE] last valid AQI corrupt: %s", e)
            return None

    async def put_last_valid(self, aqi):
        return await self._write(LAST_VALID_AQI_KEY, int(aqi))

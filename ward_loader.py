# Static ward geometry + seed attributes
# Loaded once at startup. Ward AQI is never stored here; it always comes from
# interpolation over the current station snapshot.

import json

from config import WARDS_PATH, DEFAULT_WARD_AQI, logger
from models import Ward

# id, name, region, centroid (lat, lon), primary source, seed pollutants (ug/m3), wind km/h, humidity %
WARD_GEOMETRY = [
    ("W001", "Anand Vihar",    "East",       (28.6468, 77.3162), "Vehicular",    {"pm25": 210, "pm10": 380, "no2": 68, "co": 1.8}, 6.0, 62),
    ("W002", "Dwarka",         "South West", (28.5921, 77.0460), "Construction", {"pm25": 150, "pm10": 290, "no2": 41, "co": 1.1}, 8.5, 58),
    ("W003", "Rohini",         "North West", (28.7325, 77.1190), "Industrial",   {"pm25": 185, "pm10": 330, "no2": 52, "co": 1.4}, 7.0, 60),
    ("W004", "Punjabi Bagh",   "West",       (28.6740, 77.1310), "Vehicular",    {"pm25": 170, "pm10": 300, "no2": 59, "co": 1.3}, 7.5, 61),
    ("W005", "ITO",            "Central",    (28.6286, 77.2410), "Vehicular",    {"pm25": 195, "pm10": 320, "no2": 74, "co": 2.0}, 5.5, 64),
    ("W006", "RK Puram",       "South",      (28.5660, 77.1770), "Regional",     {"pm25": 160, "pm10": 270, "no2": 45, "co": 1.0}, 9.0, 55),
    ("W007", "Okhla Phase 2",  "South East", (28.5308, 77.2713), "Industrial",   {"pm25": 200, "pm10": 350, "no2": 63, "co": 1.6}, 6.5, 63),
    ("W008", "Bawana",         "North West", (28.7762, 77.0511), "Industrial",   {"pm25": 225, "pm10": 410, "no2": 57, "co": 1.7}, 7.0, 59),
    ("W009", "Jahangirpuri",   "North",      (28.7328, 77.1706), "Biomass",      {"pm25": 230, "pm10": 395, "no2": 55, "co": 1.9}, 5.0, 66),
    ("W010", "Mundka",         "West",       (28.6823, 77.0300), "Industrial",   {"pm25": 215, "pm10": 400, "no2": 50, "co": 1.5}, 7.5, 60),
    ("W011", "Lodhi Road",     "Central",    (28.5918, 77.2273), "Regional",     {"pm25": 140, "pm10": 240, "no2": 38, "co": 0.9}, 8.0, 57),
    ("W012", "Shahdara",       "East",       (28.6730, 77.2890), "Vehicular",    {"pm25": 190, "pm10": 340, "no2": 61, "co": 1.6}, 6.0, 65),
]


def _ward_from_tuple(row):
    wid, name, region, centroid, source, pollutants, wind, humidity = row
    return Ward(
        id=wid, name=name, region=region, centroid=centroid,
        aqi=DEFAULT_WARD_AQI, pollutants=dict(pollutants),
        primary_source=source, wind_speed=wind, humidity=humidity,
    )


def _ward_from_json(item):
    lat, lon = item["centroid"]
    return Ward(
        id=str(item["id"]), name=item["name"], region=item.get("region", ""),
        centroid=(float(lat), float(lon)), aqi=DEFAULT_WARD_AQI,
        pollutants=dict(item.get("pollutants", {})),
        primary_source=item.get("primary_source", ""),
        wind_speed=float(item.get("wind_speed", 0.0)),
        humidity=float(item.get("humidity", 0.0)),
    )


def load_wards(path=WARDS_PATH):
    """
    Wards from a JSON list of {id, name, region, centroid, ...} when a path is
    configured, otherwise the built-in Delhi table.
    """
    if not path:
        return [_ward_from_tuple(row) for row in WARD_GEOMETRY]

    try:
        with open(path, "r", encoding="utf-8") as fp:
            items = json.load(fp)
        wards = [_ward_from_json(item) for item in items]
        logger.info("[WARDS] loaded %d from %s", len(wards), path)
        return wards
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("[WARDS] %s unusable (%s), using built-in table", path, e)
        return [_ward_from_tuple(row) for row in WARD_GEOMETRY]

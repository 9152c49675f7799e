# Ward-level AQI via inverse-distance weighting
# Planar distance in degrees; fine at city scale.

import dataclasses
import numpy as np

from config import DEFAULT_WARD_AQI, DEFAULT_WARD_SOURCE, IDW_EPSILON
from models import InterpolationResult
from analysis.intelligence import risk_level
from analysis.trend import round_half_up


def interpolate_ward_aqi(centroid, stations):
    """
    Weighted mean of station AQI with weight 1 / (d^2 + eps).
    Nearest station is reported separately for provenance.
    """
    if not stations:
        return InterpolationResult(DEFAULT_WARD_AQI, DEFAULT_WARD_SOURCE)

    lat, lon = centroid
    coords = np.array([[s.latitude, s.longitude] for s in stations], dtype=float)
    values = np.array([s.aqi for s in stations], dtype=float)

    dist = np.hypot(coords[:, 0] - lat, coords[:, 1] - lon)
    weights = 1.0 / (dist ** 2 + IDW_EPSILON)
    estimate = float(np.sum(weights * values) / np.sum(weights))

    nearest = stations[int(np.argmin(dist))].station_name
    return InterpolationResult(round_half_up(estimate), nearest)


def interpolate_wards(wards, stations):
    refreshed = []
    for ward in wards:
        result = interpolate_ward_aqi(ward.centroid, stations)
        refreshed.append(dataclasses.replace(
            ward,
            aqi=result.aqi,
            status=risk_level(result.aqi),
            nearest_station=result.nearest,
        ))
    return refreshed

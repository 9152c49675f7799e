# Trend slope + synthetic history
# OLS on index vs AQI; slope units are AQI per series step (hourly here).

import math
from datetime import datetime, timedelta

import numpy as np

from config import HISTORY_HOURS


def round_half_up(x):
    return int(math.floor(x + 0.5))


def _series_values(history):
    values = []
    for point in history:
        v = point.get("aqi") if isinstance(point, dict) else getattr(point, "aqi", None)
        try:
            values.append(float(v))
        except (TypeError, ValueError):
            values.append(math.nan)
    return np.array(values, dtype=float)


def calculate_trend_slope(history):
    """
    slope = (n*Sxy - Sx*Sy) / (n*Sxx - Sx^2) over x = 0..n-1.
    0 for fewer than two points or a degenerate denominator.
    Non-finite readings are dropped; surviving points keep their hour index.
    """
    y = _series_values(history)
    x = np.arange(len(y), dtype=float)
    finite = np.isfinite(y)
    x, y = x[finite], y[finite]
    n = len(y)
    if n < 2:
        return 0.0

    sum_x, sum_y = x.sum(), y.sum()
    sum_xy, sum_x2 = (x * y).sum(), (x * x).sum()

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    slope = float((n * sum_xy - sum_x * sum_y) / denominator)
    return slope if math.isfinite(slope) else 0.0


def linear_projection(current_aqi, slope, hours):
    return max(0, round_half_up(current_aqi + slope * hours))


def get_historical_context(current_aqi, now=None, rng=None):
    """
    Synthesise an hourly series for the last HISTORY_HOURS hours ending now.
    Overnight (23..9) is pushed up, afternoon (12..17) pulled down, with a slow
    sinusoidal drift on top. Pass a seeded numpy Generator for reproducibility.
    """
    now = now or datetime.now()
    rng = rng or np.random.default_rng()

    history = []
    for i in range(HISTORY_HOURS, -1, -1):
        ts = now - timedelta(hours=i)
        hour = ts.hour

        diurnal = 0.0
        if hour >= 23 or hour <= 9:
            diurnal = 30 + rng.random() * 20
        elif 12 <= hour <= 17:
            diurnal = -20 - rng.random() * 10

        drift = math.sin(i * 0.2) * 15
        history.append({
            "timestamp": ts.isoformat(),
            "hour": hour,
            "aqi": max(10, round_half_up(current_aqi + diurnal + drift)),
        })
    return history

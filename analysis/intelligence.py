# Deterministic intelligence engine
# Pure rule tables from config. Same (aqi, previous, hour) -> same output.
# The diurnal prediction is a coarse proxy (night inversion traps pollutants,
# midday convection disperses them), not an atmospheric model.

from config import (
    RISK_BANDS, RISK_FLOOR, GRAP_STAGES, GRAP_NONE,
    EXPOSURE_TIERS, EXPOSURE_FLOOR, TREND_DELTA,
    NIGHT_HOURS, AFTERNOON_HOURS,
)
from models import IntelligentAnalysis, Recommendation, GrapStage, RiskLevel


def risk_level(aqi):
    for lower, label in RISK_BANDS:
        if aqi > lower:
            return RiskLevel(label)
    return RiskLevel(RISK_FLOOR)


def grap_stage(aqi):
    for lower, stage, label, desc in GRAP_STAGES:
        if aqi >= lower:
            return GrapStage(stage, label, desc)
    return GrapStage(*GRAP_NONE)


def classify_trend(aqi, previous_valid):
    if previous_valid is None:
        return "stable"
    delta = aqi - previous_valid
    if delta > TREND_DELTA:
        return "worsening"
    if delta < -TREND_DELTA:
        return "improving"
    return "stable"


def predict_diurnal(hour_of_day, trend):
    hour = int(hour_of_day) % 24
    if hour in NIGHT_HOURS and trend != "improving":
        return "increasing"
    if hour in AFTERNOON_HOURS:
        return "decreasing"
    return "stable"


def exposure_guidance(aqi):
    """
    Returns (minutes, sensitive_warning, Recommendation).
    First tier whose threshold aqi exceeds wins; tiers are ordered high to low.
    """
    for lower, minutes, warning, mask, activity, school in EXPOSURE_TIERS:
        if aqi > lower:
            return minutes, warning, Recommendation(mask, activity, school)
    minutes, warning, mask, activity, school = EXPOSURE_FLOOR
    return minutes, warning, Recommendation(mask, activity, school)


def derive_intelligence(aqi, previous_valid, hour_of_day):
    trend = classify_trend(aqi, previous_valid)
    minutes, warning, recommendation = exposure_guidance(aqi)
    return IntelligentAnalysis(
        risk_level=risk_level(aqi),
        trend=trend,
        exposure_minutes=minutes,
        sensitive_group_warning=warning,
        recommendation=recommendation,
        prediction=predict_diurnal(hour_of_day, trend),
        grap=grap_stage(aqi),
    )

# Strict pipeline types
# Upstream JSON is coerced into these at the ingestion boundary.
# from_dict() raises ValueError on anything malformed; callers treat that as a miss.

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union


class RiskLevel(str, Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    POOR = "Poor"
    VERY_POOR = "Very Poor"
    SEVERE = "Severe"
    HAZARDOUS = "Hazardous"


TRENDS = ("improving", "worsening", "stable")
PREDICTIONS = ("increasing", "stable", "decreasing")


def positive_int(value):
    """Coerce to a positive int or raise ValueError. Rejects bools and NaN."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not an AQI: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"not an AQI: {value!r}")
    try:
        aqi = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"not an AQI: {value!r}")
    if aqi <= 0:
        raise ValueError(f"non-positive AQI: {aqi}")
    return aqi


@dataclass(frozen=True)
class Station:
    id: str
    latitude: float
    longitude: float
    aqi: int
    station_name: str


@dataclass(frozen=True)
class Recommendation:
    mask: str
    activity: str
    school: str


@dataclass(frozen=True)
class GrapStage:
    stage: int
    label: str
    description: str


@dataclass(frozen=True)
class IntelligentAnalysis:
    risk_level: RiskLevel
    trend: str
    exposure_minutes: Union[int, str]
    sensitive_group_warning: str
    recommendation: Recommendation
    prediction: str
    grap: GrapStage

    def to_dict(self):
        d = asdict(self)
        d["risk_level"] = self.risk_level.value
        return d

    @classmethod
    def from_dict(cls, d):
        try:
            trend = d["trend"]
            prediction = d["prediction"]
            if trend not in TRENDS or prediction not in PREDICTIONS:
                raise ValueError(f"bad trend/prediction: {trend}/{prediction}")
            exposure = d["exposure_minutes"]
            if exposure != "Unlimited":
                exposure = int(exposure)
            grap = d["grap"]
            return cls(
                risk_level=RiskLevel(d["risk_level"]),
                trend=trend,
                exposure_minutes=exposure,
                sensitive_group_warning=str(d["sensitive_group_warning"]),
                recommendation=Recommendation(**d["recommendation"]),
                prediction=prediction,
                grap=GrapStage(int(grap["stage"]), str(grap["label"]), str(grap["description"])),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed analysis: {e}")


@dataclass(frozen=True)
class LiveAqiData:
    aqi: int
    status: RiskLevel
    dominant_pollutant: str
    city_name: str
    observed_at: datetime
    intelligence: IntelligentAnalysis
    source: str = "bounds"
    offline: bool = False

    def __post_init__(self):
        positive_int(self.aqi)

    def to_dict(self):
        return {
            "aqi": self.aqi,
            "status": self.status.value,
            "dominant_pollutant": self.dominant_pollutant,
            "city_name": self.city_name,
            "observed_at": self.observed_at.isoformat(),
            "intelligence": self.intelligence.to_dict(),
            "source": self.source,
            "offline": self.offline,
        }

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ValueError(f"expected dict, got {type(d).__name__}")
        try:
            return cls(
                aqi=positive_int(d["aqi"]),
                status=RiskLevel(d["status"]),
                dominant_pollutant=str(d["dominant_pollutant"]),
                city_name=str(d["city_name"]),
                observed_at=datetime.fromisoformat(d["observed_at"]),
                intelligence=IntelligentAnalysis.from_dict(d["intelligence"]),
                source=str(d.get("source", "cache")),
                offline=bool(d.get("offline", False)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed live AQI payload: {e}")


@dataclass(frozen=True)
class InterpolationResult:
    aqi: int
    nearest: str


@dataclass(frozen=True)
class Ward:
    id: str
    name: str
    region: str
    centroid: Tuple[float, float]
    aqi: int = 0
    status: Optional[RiskLevel] = None
    pollutants: dict = field(default_factory=dict)
    primary_source: str = ""
    wind_speed: float = 0.0
    humidity: float = 0.0
    nearest_station: str = ""


@dataclass(frozen=True)
class Prediction:
    hours: int
    aqi: int
    primary_pollutant: str
    risk_level: str
    confidence: int
    explanation: str

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ValueError(f"expected dict, got {type(d).__name__}")
        try:
            aqi = int(d["aqi"])
            if aqi < 0:
                raise ValueError(f"negative forecast AQI: {aqi}")
            return cls(
                hours=int(d["hours"]),
                aqi=aqi,
                primary_pollutant=str(d.get("primaryPollutant", d.get("primary_pollutant", "PM2.5"))),
                risk_level=str(d.get("riskLevel", d.get("risk_level", ""))),
                confidence=int(d.get("confidence", 0)),
                explanation=str(d.get("explanation", "")),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed prediction: {e}")

# Gemini collaborators: 72h forecast + one-shot mitigation insight
# Returns JSON only. Treated as unreliable; callers always have a local fallback.

import json
import time

import google.generativeai as genai

from config import GEMINI_API_KEY, GEMINI_MODEL, CITY_NAME, FORECAST_HORIZONS, logger
from models import Prediction
from analysis.intelligence import risk_level
from analysis.trend import linear_projection

MAX_TOKENS = 800
TEMP = 0.1

INSIGHT_FALLBACK = {
    "text": "Decision support node is recalibrating.",
    "confidence": "Low",
}


class LlmUnavailable(RuntimeError):
    pass


def extract_json(raw):
    """Parse a JSON body, tolerating ```json fenced blocks."""
    text = raw.strip()
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return json.loads(text)


def parse_predictions(payload):
    """Validate a model payload into exactly one Prediction per horizon."""
    if not isinstance(payload, list) or len(payload) != len(FORECAST_HORIZONS):
        raise ValueError(f"expected {len(FORECAST_HORIZONS)} predictions, got {payload!r:.100}")
    predictions = sorted((Prediction.from_dict(p) for p in payload), key=lambda p: p.hours)
    if [p.hours for p in predictions] != FORECAST_HORIZONS:
        raise ValueError(f"unexpected horizons: {[p.hours for p in predictions]}")
    return predictions


class GeminiModel:
    """Thin async wrapper; the model is built lazily so imports stay side-effect free."""

    def __init__(self, api_key=GEMINI_API_KEY, model_name=GEMINI_MODEL):
        self.api_key = api_key
        self.model_name = model_name
        self._model = None

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise LlmUnavailable("Gemini API key not configured")
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
            logger.info("[LLM] %s ready", self.model_name)
        return self._model

    async def generate_json(self, prompt):
        model = self._get_model()
        response = await model.generate_content_async(
            prompt,
            generation_config=genai.types.GenerationConfig(
                temperature=TEMP,
                max_output_tokens=MAX_TOKENS,
                response_mime_type="application/json",
            ),
        )
        raw = (response.text or "").strip()
        if not raw:
            raise ValueError("empty model response")
        return extract_json(raw)


class GeminiForecaster:
    def __init__(self, model=None, city=CITY_NAME):
        self.model = model or GeminiModel()
        self.city = city

    def build_prompt(self, current_aqi, slope):
        return f"""You are an atmospheric projection analyst for {self.city}.
Return ONLY valid JSON. Do not add fields not in the schema.

Current integrated AQI: {current_aqi} (exact)
Trend slope: {slope:.2f} AQI units/hour

Start from the linear projection predictedAQI = currentAQI + slope * hours and
adjust only for known weather or regulatory effects.

Return a JSON array of exactly 3 objects for hours 24, 48 and 72:
[{{
  "hours": 24,
  "aqi": 0,
  "primaryPollutant": "PM2.5",
  "riskLevel": "Extreme|High|Medium|Low",
  "confidence": 0,
  "explanation": "one sentence"
}}]"""

    async def forecast(self, current_aqi, slope):
        payload = await self.model.generate_json(self.build_prompt(current_aqi, slope))
        return parse_predictions(payload)


class LinearForecaster:
    """Local projector: current + slope * hours, no network."""

    def __init__(self, confidence=75):
        self.confidence = confidence

    async def forecast(self, current_aqi, slope):
        return [
            linear_forecast(current_aqi, slope, h, self.confidence)
            for h in FORECAST_HORIZONS
        ]


def linear_forecast(current_aqi, slope, hours, confidence):
    predicted = linear_projection(current_aqi, slope, hours)
    return Prediction(
        hours=hours,
        aqi=predicted,
        primary_pollutant="PM2.5",
        risk_level=risk_level(predicted).value,
        confidence=confidence,
        explanation=f"Linear projection based on current slope ({slope:.2f} units/hr).",
    )


def build_insight_prompt(city_aqi, dominant, city=CITY_NAME):
    return f"""Perform environmental decision-support analysis for {city}.
Current integrated AQI: {city_aqi}
Dominant pollutant: {dominant}

Return ONLY valid JSON: {{"text": "...", "confidence": "High|Medium|Experimental"}}
- Include estimated emission reduction potential (e.g. "15-20%").
- Reference GRAP escalation if necessary.
- Focus on area-based or industry-based interventions.
- Neutral, institutional tone. Max 2 short paragraphs."""


async def get_mitigation_insight(city_aqi, dominant, model=None):
    started = time.time()
    try:
        model = model or GeminiModel()
        parsed = await model.generate_json(build_insight_prompt(city_aqi, dominant))
        if not isinstance(parsed, dict) or not parsed.get("text"):
            raise ValueError("insight payload missing text")
        result = {
            "text": str(parsed["text"]),
            "confidence": str(parsed.get("confidence") or "Medium"),
        }
        logger.info("[LLM] insight in %.1fs", time.time() - started)
        return result
    except Exception as e:
        logger.warning("[LLM] insight unavailable: %s", str(e)[:100])
        return dict(INSIGHT_FALLBACK)

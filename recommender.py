# recommender.py
import json
import logging
import re
from typing import List, Optional, Sequence

import requests

from cache import LRUCache
from errors import UpstreamError, upstream_error_from

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
RECOMMENDATION_COUNT = 10

SYSTEM_PROMPT = (
    "You are a music recommendation system that suggests songs based on keywords, "
    "colors, and emotions. Return ONLY a valid JSON object with no additional text."
)

EMOTION_PHRASES = {
    "joy": "happy and uplifting",
    "sorrow": "sad and melancholic",
    "anger": "intense and powerful",
    "surprise": "energetic and exciting",
}

DEFAULTS = {
    "title": "Unknown Title",
    "artist": "Unknown Artist",
    "mood": "Unknown Mood",
    "reason": "Based on image analysis",
}


def build_prompt(keywords: Sequence[str], colors: Sequence[str] = (), emotion: Optional[str] = None) -> str:
    prompt = f"Convert these keywords [{', '.join(keywords)}]"
    if colors:
        prompt += f" and colors [{', '.join(colors)}]"
    mood = EMOTION_PHRASES.get(emotion or "")
    if mood:
        prompt += f" with a {mood} mood"
    prompt += (
        f" into {RECOMMENDATION_COUNT} song recommendations. Return only a JSON object with a "
        '"recommendations" field containing an array of objects with these fields: '
        '"title", "artist", "mood", and "reason".'
    )
    return prompt


def parse_recommendations(text: Optional[str]) -> List[dict]:
    """Parse the model's JSON. Anything unusable degrades to an empty list."""
    txt = (text or "").strip()
    if txt.startswith("```"):
        txt = re.sub(r"^```(?:json)?\s*|\s*```$", "", txt, flags=re.DOTALL)
    try:
        data = json.loads(txt) if txt else {}
    except ValueError:
        logger.warning("LLM response is not valid JSON; returning no recommendations")
        return []

    items = data.get("recommendations") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return []

    out = []
    for rec in items:
        if not isinstance(rec, dict):
            continue
        out.append({k: (str(rec.get(k)).strip() if rec.get(k) else "") or v for k, v in DEFAULTS.items()})
    return out


class Recommender:
    def __init__(self, api_key: Optional[str], model: str = "gpt-3.5-turbo",
                 cache: Optional[LRUCache] = None, timeout: float = 40):
        self.api_key = api_key
        self.model = model
        self.cache = cache if cache is not None else LRUCache(256)
        self.timeout = timeout

    def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 600,
            "response_format": {"type": "json_object"},
        }
        try:
            r = requests.post(OPENAI_CHAT_URL,
                              headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                              json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error("OpenAI request failed: %s", e)
            raise upstream_error_from(e, "Error generating recommendations") from e
        try:
            return r.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("unexpected OpenAI response shape")
            return ""

    def recommend(self, keywords: Sequence[str], colors: Sequence[str] = (),
                  emotion: Optional[str] = None) -> List[dict]:
        key = json.dumps({"keywords": list(keywords), "colors": list(colors), "emotion": emotion})
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("returning cached recommendations")
            return cached

        if not self.api_key:
            raise UpstreamError("OpenAI is not configured", status_code=503)

        recs = parse_recommendations(self._complete(build_prompt(keywords, colors, emotion)))
        self.cache.put(key, recs)
        return recs

"""
Google Cloud Vision client and the post-processing that turns its raw
annotations into an AnalysisResult (labels, colors, color names, per-face
emotions, dominant emotion, keywords).
"""
import base64
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from colors import classify_color, rgb_to_hex, round_channel
from config import ROOT, Settings
from errors import UpstreamError
from mood_map import aggregate_emotion, synthesize_keywords

logger = logging.getLogger(__name__)

MAX_LABELS = 5
MAX_COLORS = 5
LABEL_RESULTS = 15
FACE_RESULTS = 5

LIKELIHOOD_SCORES = {
    "VERY_UNLIKELY": 0.0,
    "UNLIKELY": 0.25,
    "POSSIBLE": 0.5,
    "LIKELY": 0.75,
    "VERY_LIKELY": 1.0,
}

VERCEL_CREDENTIALS = ROOT / ".vercel" / "credentials.json"


def likelihood_score(likelihood) -> float:
    return LIKELIHOOD_SCORES.get(str(likelihood or "").upper(), 0.0)


@dataclass(frozen=True)
class Color:
    red: int
    green: int
    blue: int
    score: float
    pixel_fraction: float
    hex: str

    def to_dict(self) -> dict:
        return {"red": self.red, "green": self.green, "blue": self.blue,
                "score": self.score, "pixelFraction": self.pixel_fraction, "hex": self.hex}


@dataclass(frozen=True)
class AnalysisResult:
    labels: Tuple[Tuple[str, float], ...] = ()
    colors: Tuple[Color, ...] = ()
    color_names: Tuple[str, ...] = ()
    emotions: Tuple[Dict[str, float], ...] = ()
    dominant_emotion: Optional[str] = None
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "labels": [{"description": d, "score": s} for d, s in self.labels],
            "colors": [c.to_dict() for c in self.colors],
            "colorNames": list(self.color_names),
            "emotions": [dict(e) for e in self.emotions],
            "dominantEmotion": self.dominant_emotion,
            "keywords": list(self.keywords),
        }


def _color(entry: dict) -> Color:
    rgb = entry.get("color") or {}
    red, green, blue = (float(rgb.get(k) or 0) for k in ("red", "green", "blue"))
    return Color(
        red=round_channel(red), green=round_channel(green), blue=round_channel(blue),
        score=float(entry.get("score") or 0.0),
        pixel_fraction=float(entry.get("pixelFraction") or 0.0),
        hex=rgb_to_hex(red, green, blue),
    )

def _emotion_vector(face: dict) -> Dict[str, float]:
    return {
        "joy": likelihood_score(face.get("joyLikelihood")),
        "sorrow": likelihood_score(face.get("sorrowLikelihood")),
        "anger": likelihood_score(face.get("angerLikelihood")),
        "surprise": likelihood_score(face.get("surpriseLikelihood")),
    }

def build_analysis(payload: dict) -> AnalysisResult:
    """Turn a raw annotation payload (see GoogleVisionClient.annotate) into an AnalysisResult."""
    payload = payload or {}
    labels = tuple(
        (l.get("description") or "", float(l.get("score") or 0.0))
        for l in (payload.get("labelAnnotations") or [])[:MAX_LABELS]
        if l.get("description")
    )

    props = payload.get("imagePropertiesAnnotation") or {}
    raw_colors = ((props.get("dominantColors") or {}).get("colors") or [])[:MAX_COLORS]
    colors = tuple(_color(c) for c in raw_colors)
    # name from the unrounded channels, same as the hex
    color_names = tuple(
        classify_color(*(float((c.get("color") or {}).get(k) or 0) for k in ("red", "green", "blue")))
        for c in raw_colors
    )

    emotions = tuple(_emotion_vector(f) for f in (payload.get("faceAnnotations") or []))
    dominant = aggregate_emotion(emotions)
    keywords = tuple(synthesize_keywords([d for d, _ in labels], color_names, dominant))

    return AnalysisResult(
        labels=labels,
        colors=colors,
        color_names=color_names,
        emotions=emotions,
        dominant_emotion=dominant,
        keywords=keywords,
    )


class GoogleVisionClient:
    """
    Lazily built ImageAnnotatorClient. Credentials are looked up in order:
    .vercel/credentials.json, GOOGLE_CREDENTIALS (JSON), GOOGLE_CREDENTIALS_BASE64,
    then Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS).
    """

    def __init__(self, settings: Settings, credentials_file: Path = VERCEL_CREDENTIALS):
        self.settings = settings
        self.credentials_file = credentials_file
        self._client = None
        self._init_error: Optional[str] = None

    def _build(self):
        from google.cloud import vision

        if self.credentials_file.exists():
            logger.info("using Google credentials from %s", self.credentials_file)
            return vision.ImageAnnotatorClient.from_service_account_file(str(self.credentials_file))
        if self.settings.google_credentials_json:
            logger.info("using Google credentials from GOOGLE_CREDENTIALS")
            return vision.ImageAnnotatorClient.from_service_account_info(
                json.loads(self.settings.google_credentials_json))
        if self.settings.google_credentials_base64:
            logger.info("using Google credentials from GOOGLE_CREDENTIALS_BASE64")
            info = json.loads(base64.b64decode(self.settings.google_credentials_base64))
            return vision.ImageAnnotatorClient.from_service_account_info(info)
        logger.info("using Application Default Credentials")
        return vision.ImageAnnotatorClient()

    @property
    def client(self):
        if self._client is None and self._init_error is None:
            try:
                self._client = self._build()
            except Exception as e:
                self._init_error = str(e)
                logger.error("failed to initialize Vision client: %s", e)
        return self._client

    def is_initialized(self) -> bool:
        return self.client is not None

    def annotate(self, image_bytes: bytes) -> dict:
        from google.api_core import exceptions as gexc
        from google.cloud import vision

        client = self.client
        if client is None:
            raise UpstreamError("Vision API is not configured", status_code=503, details=self._init_error)

        request = {
            "image": {"content": image_bytes},
            "features": [
                {"type_": vision.Feature.Type.LABEL_DETECTION, "max_results": LABEL_RESULTS},
                {"type_": vision.Feature.Type.IMAGE_PROPERTIES},
                {"type_": vision.Feature.Type.FACE_DETECTION, "max_results": FACE_RESULTS},
            ],
        }
        try:
            resp = client.annotate_image(request)
        except gexc.GoogleAPIError as e:
            # RetryError and friends carry no HTTP status
            raise UpstreamError("Vision API analysis failed",
                                status_code=getattr(e, "code", None) or 502, details=str(e)) from e
        if resp.error.message:
            raise UpstreamError("Vision API analysis failed", details=resp.error.message)
        return _response_to_payload(resp)


def _response_to_payload(resp) -> dict:
    colors: List[dict] = []
    for c in resp.image_properties_annotation.dominant_colors.colors:
        colors.append({
            "color": {"red": c.color.red, "green": c.color.green, "blue": c.color.blue},
            "score": c.score,
            "pixelFraction": c.pixel_fraction,
        })
    return {
        "labelAnnotations": [
            {"description": l.description, "score": l.score} for l in resp.label_annotations
        ],
        "imagePropertiesAnnotation": {"dominantColors": {"colors": colors}},
        "faceAnnotations": [
            {
                "joyLikelihood": f.joy_likelihood.name,
                "sorrowLikelihood": f.sorrow_likelihood.name,
                "angerLikelihood": f.anger_likelihood.name,
                "surpriseLikelihood": f.surprise_likelihood.name,
            }
            for f in resp.face_annotations
        ],
    }

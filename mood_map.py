# mood_map.py
from typing import Iterable, List, Mapping, Optional

EMOTIONS = ("joy", "sorrow", "anger", "surprise")

# a dominant emotion has to beat this aggregate score across all faces
SIGNIFICANCE_THRESHOLD = 0.5

MAX_COLOR_KEYWORDS = 2

# Simple dictionary you can tune anytime:
EMOTION_TO_MOODS = {
  "joy":      ["happy", "upbeat", "cheerful"],
  "sorrow":   ["sad", "melancholic", "emotional"],
  "anger":    ["intense", "powerful", "angry"],
  "surprise": ["exciting", "energetic", "surprising"],
}

def aggregate_emotion(vectors: Iterable[Mapping[str, float]]) -> Optional[str]:
    """
    Sum the per-face likelihood vectors and return the strongest emotion, or
    None when no face gets past SIGNIFICANCE_THRESHOLD. Ties go to the first
    emotion in EMOTIONS order (then any extra keys, in the order they show up).
    """
    totals = {k: 0.0 for k in EMOTIONS}
    for vec in vectors or []:
        for k, v in (vec or {}).items():
            totals[k] = totals.get(k, 0.0) + float(v or 0.0)

    dominant, best = None, 0.0
    for k, v in totals.items():
        if v > best:
            dominant, best = k, v
    return dominant if best > SIGNIFICANCE_THRESHOLD else None

def _description(label) -> Optional[str]:
    if isinstance(label, str):
        return label
    if isinstance(label, Mapping):
        return label.get("description")
    return getattr(label, "description", None)

def synthesize_keywords(labels, color_names: Iterable[str], dominant_emotion: Optional[str]) -> List[str]:
    label_words = [d for d in (_description(l) for l in labels or []) if d]
    color_words = list(color_names or [])[:MAX_COLOR_KEYWORDS]
    mood_words = EMOTION_TO_MOODS.get(dominant_emotion or "", [])

    seen, out = set(), []
    for w in label_words + color_words + mood_words:
        if w not in seen:
            seen.add(w); out.append(w)
    return out

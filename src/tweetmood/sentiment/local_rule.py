from __future__ import annotations

import re
from typing import Any

from tweetmood.core.models import SentimentResult
from tweetmood.sentiment.base import ClassifierBackend
from tweetmood.sentiment.labels import (
    DEFAULT_THRESHOLDS,
    LabelThresholds,
    map_label,
    parse_label_response,
)

POS = {"love", "great", "good", "amazing", "awesome", "happy", "best", "win", "excellent", "thanks"}
NEG = {"hate", "bad", "awful", "terrible", "worst", "sad", "angry", "fail", "broken", "scam"}

_WORD = re.compile(r"[a-z']+")


class LocalRuleBackend(ClassifierBackend):
    """A tiny offline keyword scorer. Replace with a hosted model for real usage."""

    name = "LOCAL"

    def request(self, text: str) -> Any:
        words = _WORD.findall((text or "").lower())
        pos = sum(1 for w in words if w in POS)
        neg = sum(1 for w in words if w in NEG)
        score = 0.0
        if pos or neg:
            score = (pos - neg) / max(pos + neg, 1)
        if score > 0.15:
            return {"label": "positive", "score": score}
        if score < -0.15:
            return {"label": "negative", "score": -score}
        return {"label": "neutral", "score": 0.5}

    def parse(
        self,
        payload: Any,
        thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
    ) -> SentimentResult:
        label, score = parse_label_response(payload)
        return map_label(label, score, thresholds)

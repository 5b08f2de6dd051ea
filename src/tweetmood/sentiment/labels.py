"""Normalization of classifier responses onto the canonical 5-level scale.

Inference endpoints answer with a single ``{label, score}`` object, a list of
them, or a list wrapping that list. Some backends name the fields ``intent``
and ``confidence`` instead. ``parse_label_response`` reduces all of these to
one ``(label, score)`` pair and ``map_label`` turns that pair into a
``SentimentResult``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tweetmood.core.errors import RemoteServiceError
from tweetmood.core.models import Sentiment, SentimentResult

NEGATIVE_CODES = {"label_0"}
NEUTRAL_CODES = {"label_1"}
POSITIVE_CODES = {"label_2"}


@dataclass(frozen=True)
class LabelThresholds:
    strong: float = 0.8  # score at/above which pos/neg become very_*
    neutral_positive: float = 0.72  # neutral above this counts as positive


DEFAULT_THRESHOLDS = LabelThresholds()


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def _read_candidate(candidate: Any) -> tuple[str, float]:
    if not isinstance(candidate, dict):
        raise RemoteServiceError(f"Unexpected response element: {type(candidate).__name__}")

    label = candidate.get("label", candidate.get("intent"))
    if label is None:
        raise RemoteServiceError(f"Response element has no label: {candidate}")

    raw_score = candidate.get("score", candidate.get("confidence", 0.0))
    try:
        score = float(raw_score)
    except (TypeError, ValueError) as e:
        raise RemoteServiceError(f"Invalid score in response: {raw_score!r}") from e
    return str(label), score


def parse_label_response(payload: Any) -> tuple[str, float]:
    """Pick the ``(label, score)`` pair a classifier response stands for.

    For lists the highest score wins; on ties the first element is kept.

    Raises:
        RemoteServiceError: the payload matches no known shape.
    """
    if isinstance(payload, dict):
        return _read_candidate(payload)

    if isinstance(payload, list) and payload:
        candidates = payload
        if isinstance(payload[0], list):
            candidates = payload[0]
        if not candidates:
            raise RemoteServiceError("Empty candidate list in response")

        best = _read_candidate(candidates[0])
        for candidate in candidates[1:]:
            current = _read_candidate(candidate)
            if current[1] > best[1]:
                best = current
        return best

    raise RemoteServiceError(f"Unexpected response shape: {type(payload).__name__}")


def map_label(
    label: str,
    score: float,
    thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
) -> SentimentResult:
    """Map a backend label and score onto the canonical scale.

    Labels outside the three known families become neutral; the original
    label is kept for auditing.
    """
    score = _clamp(score)
    lowered = label.lower()

    if lowered in POSITIVE_CODES or "pos" in lowered:
        sentiment = Sentiment.VERY_POSITIVE if score >= thresholds.strong else Sentiment.POSITIVE
    elif lowered in NEGATIVE_CODES or "neg" in lowered:
        sentiment = Sentiment.VERY_NEGATIVE if score >= thresholds.strong else Sentiment.NEGATIVE
    elif lowered in NEUTRAL_CODES or "neu" in lowered:
        # High-confidence neutral counts as mildly positive
        if score > thresholds.neutral_positive:
            sentiment = Sentiment.POSITIVE
        else:
            sentiment = Sentiment.NEUTRAL
    else:
        sentiment = Sentiment.NEUTRAL

    return SentimentResult(
        sentiment=sentiment,
        confidence=round(score, 2),
        label=label,
        score=score,
    )


def map_canonical(sentiment: Any, confidence: Any, label_prefix: str) -> SentimentResult:
    """Build a result from a backend that already answers on the canonical scale."""
    try:
        canonical = Sentiment(str(sentiment).strip().lower())
    except ValueError:
        canonical = Sentiment.NEUTRAL

    try:
        score = _clamp(float(confidence))
    except (TypeError, ValueError):
        score = 0.5

    return SentimentResult(
        sentiment=canonical,
        confidence=round(score, 2),
        label=f"{label_prefix}_{canonical.value.upper()}",
        score=score,
    )

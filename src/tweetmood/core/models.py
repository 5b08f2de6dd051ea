from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

_NON_DIGITS = re.compile(r"[^\d]")


class Sentiment(str, Enum):
    VERY_NEGATIVE = "very_negative"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    VERY_POSITIVE = "very_positive"


SENTIMENT_VALUES: dict[Sentiment, int] = {
    Sentiment.VERY_NEGATIVE: -2,
    Sentiment.NEGATIVE: -1,
    Sentiment.NEUTRAL: 0,
    Sentiment.POSITIVE: 1,
    Sentiment.VERY_POSITIVE: 2,
}

_VALUE_SENTIMENTS = {v: k for k, v in SENTIMENT_VALUES.items()}


def sentiment_value(sentiment: Sentiment | str) -> int:
    return SENTIMENT_VALUES[Sentiment(sentiment)]


def sentiment_from_value(value: int) -> Sentiment:
    return _VALUE_SENTIMENTS[value]


class Stage(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    ANALYZING = "analyzing"
    STORING = "storing"
    COMPLETED = "completed"
    ERROR = "error"


def parse_count(raw: Optional[str]) -> int:
    """Parse a free-form counter such as "1,204" or "3.5K" into its digits.

    Missing or digit-free values count as 0.
    """
    if raw is None:
        return 0
    digits = _NON_DIGITS.sub("", str(raw))
    return int(digits) if digits else 0


@dataclass(frozen=True)
class RawRecord:
    """One un-analyzed post as written by the ingestion workflow."""

    id: int
    text: Optional[str] = None
    created_at_text: Optional[str] = None
    url: Optional[str] = None
    likes: Optional[str] = None
    reposts: Optional[str] = None
    replies: Optional[str] = None
    quotes: Optional[str] = None
    views: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RawRecord":
        def _opt(key: str) -> Optional[str]:
            value = row.get(key)
            return None if value is None else str(value)

        return cls(
            id=int(row["tweet_id"]),
            text=_opt("Content"),
            created_at_text=_opt("Date"),
            url=_opt("URL"),
            likes=_opt("Likes"),
            reposts=_opt("Retweets"),
            replies=_opt("Replies"),
            quotes=_opt("Quotes"),
            views=_opt("Views"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "tweet_id": self.id,
            "Content": self.text,
            "Date": self.created_at_text,
            "URL": self.url,
            "Likes": self.likes,
            "Retweets": self.reposts,
            "Replies": self.replies,
            "Quotes": self.quotes,
            "Views": self.views,
        }


@dataclass(frozen=True)
class CleanedRecord:
    raw: RawRecord
    cleaned_text: str
    parsed_date: Optional[str] = None  # ISO-8601 UTC


@dataclass(frozen=True)
class SentimentResult:
    """Canonical classification of one text.

    ``sentiment_value`` is always derived from ``sentiment``.
    """

    sentiment: Sentiment
    confidence: float  # 0..1, rounded to 2 dp
    label: str  # backend specific, audit only
    score: float  # raw backend score 0..1

    @property
    def sentiment_value(self) -> int:
        return SENTIMENT_VALUES[self.sentiment]

    @property
    def is_fallback(self) -> bool:
        return self.label.endswith("_FALLBACK")

    @classmethod
    def fallback(cls, backend: str) -> "SentimentResult":
        return cls(
            sentiment=Sentiment.NEUTRAL,
            confidence=0.5,
            label=f"{backend.upper()}_NEU_FALLBACK",
            score=0.5,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sentiment": self.sentiment.value,
            "confidence": self.confidence,
            "sentimentValue": self.sentiment_value,
            "label": self.label,
            "score": self.score,
        }


@dataclass(frozen=True)
class ProcessedRecord:
    original_id: int
    content: str
    processed_content: str
    sentiment: Sentiment
    confidence: float
    record_date: str
    processed_at: str
    likes_count: int = 0
    reposts_count: int = 0
    replies_count: int = 0
    views_count: int = 0
    id: Optional[int] = None

    @property
    def sentiment_value(self) -> int:
        return SENTIMENT_VALUES[self.sentiment]

    def to_row(self) -> dict[str, Any]:
        row = {
            "original_tweet_id": self.original_id,
            "content": self.content,
            "processed_content": self.processed_content,
            "sentiment": self.sentiment.value,
            "confidence": self.confidence,
            "likes_count": self.likes_count,
            "retweets_count": self.reposts_count,
            "replies_count": self.replies_count,
            "views_count": self.views_count,
            "tweet_date": self.record_date,
            "processed_at": self.processed_at,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ProcessedRecord":
        return cls(
            id=row.get("id"),
            original_id=int(row["original_tweet_id"]),
            content=row.get("content") or "",
            processed_content=row.get("processed_content") or "",
            sentiment=Sentiment(row["sentiment"]),
            confidence=float(row.get("confidence") or 0.0),
            record_date=str(row.get("tweet_date") or ""),
            processed_at=str(row.get("processed_at") or ""),
            likes_count=int(row.get("likes_count") or 0),
            reposts_count=int(row.get("retweets_count") or 0),
            replies_count=int(row.get("replies_count") or 0),
            views_count=int(row.get("views_count") or 0),
        )


@dataclass(frozen=True)
class ProcessingProgress:
    stage: Stage
    percent_complete: int
    message: str
    error: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessingStats:
    total: int
    processed: int
    remaining: int
    last_processed_at: Optional[str] = None


@dataclass
class PipelineRun:
    """Outcome of one pipeline run, including data-quality telemetry."""

    stage: Stage = Stage.IDLE
    records: list[ProcessedRecord] = field(default_factory=list)
    fetched: int = 0
    eligible: int = 0
    dropped_undated: int = 0
    dropped_old: int = 0
    dropped_empty: int = 0
    fallback_count: int = 0

    @property
    def fallback_ratio(self) -> float:
        if not self.records:
            return 0.0
        return self.fallback_count / len(self.records)

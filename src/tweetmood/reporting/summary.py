from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Optional

import pandas as pd

from tweetmood.core.logger import get_logger
from tweetmood.core.models import ProcessedRecord, Sentiment

log = get_logger("report")

ENGAGEMENT_WEIGHTS = {
    "likes_count": 1.0,
    "reposts_count": 2.0,
    "replies_count": 3.0,
    "views_count": 0.1,
}

COLUMNS = [
    "id",
    "original_id",
    "record_date",
    "sentiment",
    "sentiment_value",
    "confidence",
    "likes_count",
    "reposts_count",
    "replies_count",
    "views_count",
    "content",
    "processed_content",
    "processed_at",
]


@dataclass
class ReportSummary:
    total: int = 0
    sentiment_counts: dict[str, int] = field(default_factory=dict)
    mean_sentiment: float = 0.0
    mean_confidence: float = 0.0
    hourly_mean_sentiment: dict[int, float] = field(default_factory=dict)
    top_engaged: list[int] = field(default_factory=list)  # original ids
    first_date: Optional[str] = None
    last_date: Optional[str] = None


def records_frame(records: Iterable[ProcessedRecord]) -> pd.DataFrame:
    """One row per processed record, with parsed dates and engagement."""
    rows = [
        {
            "id": r.id,
            "original_id": r.original_id,
            "record_date": r.record_date,
            "sentiment": r.sentiment.value,
            "sentiment_value": r.sentiment_value,
            "confidence": r.confidence,
            "likes_count": r.likes_count,
            "reposts_count": r.reposts_count,
            "replies_count": r.replies_count,
            "views_count": r.views_count,
            "content": r.content,
            "processed_content": r.processed_content,
            "processed_at": r.processed_at,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=COLUMNS)
    df["record_date"] = pd.to_datetime(df["record_date"], utc=True, errors="coerce", format="ISO8601")
    df["engagement"] = sum(df[col] * weight for col, weight in ENGAGEMENT_WEIGHTS.items())
    return df


def build_summary(records: Iterable[ProcessedRecord], top_n: int = 3) -> ReportSummary:
    """Aggregate processed records into the figures the report shows."""
    df = records_frame(records)
    if df.empty:
        return ReportSummary(sentiment_counts={s.value: 0 for s in Sentiment})

    counts = df["sentiment"].value_counts()
    dated = df.dropna(subset=["record_date"])
    hourly = dated.groupby(dated["record_date"].dt.hour)["sentiment_value"].mean()
    top = df.sort_values("engagement", ascending=False, kind="stable").head(top_n)

    summary = ReportSummary(
        total=len(df),
        sentiment_counts={s.value: int(counts.get(s.value, 0)) for s in Sentiment},
        mean_sentiment=round(float(df["sentiment_value"].mean()), 3),
        mean_confidence=round(float(df["confidence"].mean()), 3),
        hourly_mean_sentiment={int(h): round(float(v), 3) for h, v in hourly.items()},
        top_engaged=[int(i) for i in top["original_id"]],
        first_date=dated["record_date"].min().isoformat() if not dated.empty else None,
        last_date=dated["record_date"].max().isoformat() if not dated.empty else None,
    )
    log.info(f"Report summary built for {summary.total} records")
    return summary


def export_records(
    records: Iterable[ProcessedRecord],
    path: Path,
    fmt: Literal["csv", "json"] = "csv",
) -> Path:
    """Write processed records to ``path`` as CSV or JSON."""
    df = records_frame(records)
    path = Path(path)
    if fmt == "csv":
        df.to_csv(path, index=False)
    elif fmt == "json":
        df.to_json(path, orient="records", date_format="iso", indent=2)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")
    log.info(f"Exported {len(df)} records to {path}")
    return path

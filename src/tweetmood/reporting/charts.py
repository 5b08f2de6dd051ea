from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from tweetmood.core.logger import get_logger
from tweetmood.core.models import ProcessedRecord
from tweetmood.core.timeutils import parse_iso
from tweetmood.processing.filters import parse_record_date

log = get_logger("charts")


@dataclass(frozen=True)
class ChartPoint:
    x: int  # sentiment value, -2..2
    y: int  # minute of day in UTC, 0..1439
    sentiment: str
    confidence: float
    record_id: int


def _minute_of_day(value: str) -> Optional[int]:
    try:
        dt = parse_iso(value)
    except ValueError:
        dt = parse_record_date(value)
    if dt is None:
        return None
    return dt.hour * 60 + dt.minute


def chart_points(records: Iterable[ProcessedRecord]) -> list[ChartPoint]:
    """Sentiment vs time-of-day points for the dashboard scatter chart.

    Records whose date cannot be read are skipped.
    """
    points: list[ChartPoint] = []
    skipped = 0
    for record in records:
        minutes = _minute_of_day(record.record_date) if record.record_date else None
        if minutes is None:
            skipped += 1
            continue
        points.append(
            ChartPoint(
                x=record.sentiment_value,
                y=minutes,
                sentiment=record.sentiment.value,
                confidence=record.confidence,
                record_id=record.id if record.id is not None else record.original_id,
            )
        )
    if skipped:
        log.warning(f"Skipped {skipped} records without a readable date")
    return points

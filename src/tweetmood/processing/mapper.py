from __future__ import annotations

from tweetmood.core.models import (
    CleanedRecord,
    ProcessedRecord,
    SentimentResult,
    parse_count,
)


def to_processed_record(
    cleaned: CleanedRecord,
    result: SentimentResult,
    processed_at: str,
) -> ProcessedRecord:
    """Combine a cleaned record and its classification into a storable row.

    Undated records take ``processed_at`` as their date, which makes them
    indistinguishable from posts written at processing time.
    """
    raw = cleaned.raw
    return ProcessedRecord(
        original_id=raw.id,
        content=raw.text or "",
        processed_content=cleaned.cleaned_text,
        sentiment=result.sentiment,
        confidence=result.confidence,
        record_date=cleaned.parsed_date or processed_at,
        processed_at=processed_at,
        likes_count=parse_count(raw.likes),
        reposts_count=parse_count(raw.reposts),
        replies_count=parse_count(raw.replies),
        views_count=parse_count(raw.views),
    )

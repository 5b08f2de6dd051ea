from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from tweetmood.core.errors import StorageError
from tweetmood.core.logger import get_logger
from tweetmood.core.models import ProcessedRecord, ProcessingStats, RawRecord
from tweetmood.storage.base import Storage

log = get_logger("gateway")


@dataclass(frozen=True)
class InsertResult:
    inserted_count: int


class PersistenceGateway:
    """Reads raw posts and writes processed ones through a ``Storage``.

    Usage:
        gateway = PersistenceGateway(storage, "Extracted Uncleaned", "processed_tweets")
        stats = gateway.fetch_stats()
        gateway.insert_all(records)
    """

    def __init__(
        self,
        storage: Storage,
        raw_table: str = "Extracted Uncleaned",
        processed_table: str = "processed_tweets",
        page_size: int = 1000,
    ):
        self.storage = storage
        self.raw_table = raw_table
        self.processed_table = processed_table
        self.page_size = page_size

    def fetch_raw(self, limit: int = 1000, offset: int = 0) -> list[RawRecord]:
        rows = self.storage.query(self.raw_table, limit=limit, offset=offset, order_by="tweet_id")
        log.info(f"Fetched {len(rows)} raw records")
        return [RawRecord.from_row(row) for row in rows]

    def processed_ids(self) -> set[int]:
        """Every stored ``original_tweet_id``, read page by page.

        Remote stores cap rows per response, so a single unpaged read can
        silently miss ids.
        """
        ids: set[int] = set()
        offset = 0
        while True:
            rows = self.storage.query(
                self.processed_table,
                limit=self.page_size,
                offset=offset,
                order_by="original_tweet_id",
                columns=["original_tweet_id"],
            )
            ids.update(int(row["original_tweet_id"]) for row in rows)
            offset += len(rows)
            if len(rows) < self.page_size:
                return ids

    def fetch_unprocessed(self, limit: int = 1000) -> list[RawRecord]:
        """Page through raw records, skipping those already processed.

        Stops after ``limit`` records or when the raw table is exhausted.
        """
        seen = self.processed_ids()
        pending: list[RawRecord] = []
        offset = 0
        while len(pending) < limit:
            page = self.fetch_raw(limit=self.page_size, offset=offset)
            pending.extend(r for r in page if r.id not in seen)
            offset += len(page)
            if len(page) < self.page_size:
                break
        if seen:
            log.info(f"{len(pending[:limit])} unprocessed records ({len(seen)} already processed)")
        return pending[:limit]

    def insert_all(self, records: Sequence[ProcessedRecord]) -> InsertResult:
        """Store every record in one bulk insert.

        Raises:
            StorageError: the bulk insert failed; nothing counts as committed.
        """
        if not records:
            return InsertResult(inserted_count=0)
        try:
            inserted = self.storage.insert_many(
                self.processed_table, [r.to_row() for r in records]
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to store processed records: {e}") from e
        log.info(f"Stored {inserted} processed records")
        return InsertResult(inserted_count=inserted)

    def last_processed_at(self) -> Optional[str]:
        rows = self.storage.query(
            self.processed_table,
            limit=1,
            order_by="processed_at",
            descending=True,
            columns=["processed_at"],
        )
        return rows[0]["processed_at"] if rows else None

    def fetch_stats(self) -> ProcessingStats:
        """Two independent counts; ``remaining`` is not clamped.

        A negative ``remaining`` means processed rows exist without raw rows,
        which is an upstream problem and is reported as-is.
        """
        total = self.storage.count(self.raw_table)
        processed = self.storage.count(self.processed_table)
        stats = ProcessingStats(
            total=total,
            processed=processed,
            remaining=total - processed,
            last_processed_at=self.last_processed_at(),
        )
        if stats.remaining < 0:
            log.warning(f"More processed ({processed}) than raw ({total}) records")
        log.info(f"Processing stats: total={total} processed={processed} remaining={stats.remaining}")
        return stats

    def fetch_processed(self, limit: int = 1000) -> list[ProcessedRecord]:
        rows = self.storage.query(
            self.processed_table, limit=limit, order_by="tweet_date", descending=True
        )
        return [ProcessedRecord.from_row(row) for row in rows]

    def clear_all(self) -> tuple[int, int]:
        """Delete processed rows, then raw rows. Returns both counts."""
        processed = self.storage.delete_many(self.processed_table)
        raw = self.storage.delete_many(self.raw_table)
        log.info(f"Cleared {processed} processed and {raw} raw records")
        return processed, raw

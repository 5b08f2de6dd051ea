from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from tweetmood.core.errors import StorageError
from tweetmood.core.logger import get_logger
from tweetmood.storage.base import Filters, Row, Storage

log = get_logger("store")


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _where(filters: Filters) -> tuple[str, list[Any]]:
    if not filters:
        return "", []
    clauses = [f"{_quote(col)} = ?" for col in filters]
    return " WHERE " + " AND ".join(clauses), list(filters.values())


@dataclass
class SQLiteStorage(Storage):
    """SQLite storage for raw and processed posts.

    Features:
    - Raw table laid out like the crawler's export (tweet_id, Content, Date, ...)
    - Processed table with one row per raw post (UNIQUE original_tweet_id)
    - All-or-nothing bulk inserts

    Usage:
        store = SQLiteStorage(path=Path("tweetmood.sqlite3"))
        store.init()
        store.insert_many("processed_tweets", rows)
    """

    path: Path = Path("tweetmood.sqlite3")
    raw_table: str = "Extracted Uncleaned"
    processed_table: str = "processed_tweets"

    def connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    def init(self) -> None:
        """Initialize database schema."""
        try:
            with self.connect() as conn:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {_quote(self.raw_table)} (
                        tweet_id INTEGER PRIMARY KEY,
                        URL TEXT,
                        Content TEXT,
                        Likes TEXT,
                        Retweets TEXT,
                        Replies TEXT,
                        Quotes TEXT,
                        Views TEXT,
                        Date TEXT,
                        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {_quote(self.processed_table)} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        original_tweet_id INTEGER NOT NULL UNIQUE,
                        content TEXT NOT NULL,
                        processed_content TEXT,
                        sentiment TEXT NOT NULL,
                        confidence REAL NOT NULL,
                        likes_count INTEGER NOT NULL DEFAULT 0,
                        retweets_count INTEGER NOT NULL DEFAULT 0,
                        replies_count INTEGER NOT NULL DEFAULT 0,
                        views_count INTEGER NOT NULL DEFAULT 0,
                        tweet_date TEXT NOT NULL,
                        processed_at TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    f"""
                    CREATE INDEX IF NOT EXISTS idx_processed_tweet_date
                    ON {_quote(self.processed_table)}(tweet_date);
                    """
                )
            log.debug("Database schema initialized")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize schema: {e}") from e

    def query(
        self,
        table: str,
        filters: Filters = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        select = ", ".join(_quote(c) for c in columns) if columns else "*"
        where, params = _where(filters)
        sql = f"SELECT {select} FROM {_quote(table)}{where}"
        if order_by:
            sql += f" ORDER BY {_quote(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params += [-1 if limit is None else limit, offset]

        try:
            with self.connect() as conn:
                cur = conn.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Query on {table} failed: {e}") from e

    def count(self, table: str, filters: Filters = None) -> int:
        where, params = _where(filters)
        try:
            with self.connect() as conn:
                cur = conn.execute(f"SELECT COUNT(*) FROM {_quote(table)}{where}", params)
                return int(cur.fetchone()[0])
        except sqlite3.Error as e:
            raise StorageError(f"Count on {table} failed: {e}") from e

    def insert_many(self, table: str, rows: Sequence[Row]) -> int:
        if not rows:
            return 0
        columns = list(rows[0].keys())
        sql = (
            f"INSERT INTO {_quote(table)}({', '.join(_quote(c) for c in columns)}) "
            f"VALUES({', '.join('?' for _ in columns)})"
        )
        try:
            # One transaction: the connection context manager rolls back on error
            with self.connect() as conn:
                conn.executemany(sql, [[row.get(c) for c in columns] for row in rows])
        except sqlite3.Error as e:
            raise StorageError(f"Insert into {table} failed: {e}") from e
        log.debug(f"Inserted {len(rows)} rows into {table}")
        return len(rows)

    def delete_many(self, table: str, filters: Filters = None) -> int:
        where, params = _where(filters)
        try:
            with self.connect() as conn:
                cur = conn.execute(f"DELETE FROM {_quote(table)}{where}", params)
                deleted = cur.rowcount
        except sqlite3.Error as e:
            raise StorageError(f"Delete from {table} failed: {e}") from e
        if deleted > 0:
            log.info(f"Deleted {deleted} rows from {table}")
        return deleted

"""Pytest configuration and fixtures for tweetmood tests."""
from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import pytest

# Keep tests away from real credentials before importing modules
os.environ["HUGGINGFACE_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ.setdefault("STORAGE_BACKEND", "sqlite")

from tweetmood.config import Settings, reload_settings
from tweetmood.core.models import RawRecord, SentimentResult
from tweetmood.sentiment.base import ClassifierBackend
from tweetmood.sentiment.batch import BatchOrchestrator
from tweetmood.sentiment.client import SentimentClassifierClient
from tweetmood.sentiment.labels import DEFAULT_THRESHOLDS, LabelThresholds, map_label, parse_label_response
from tweetmood.storage.gateway import PersistenceGateway
from tweetmood.storage.sqlite import SQLiteStorage

RAW_TABLE = "Extracted Uncleaned"
PROCESSED_TABLE = "processed_tweets"


class ScriptedBackend(ClassifierBackend):
    """Backend double that replays a script of payloads or exceptions.

    Once the script is exhausted, ``default`` is answered (or raised).
    Every received text is recorded in ``calls``.
    """

    def __init__(
        self,
        script: Optional[list[Any]] = None,
        default: Any = None,
        name: str = "STUB",
        respond: Optional[Callable[[str], Any]] = None,
    ):
        self.name = name
        self.script = list(script or [])
        self.default = default if default is not None else {"label": "LABEL_1", "score": 0.5}
        self.respond = respond
        self.calls: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def request(self, text: str) -> Any:
        with self._lock:
            self.calls.append(text)
            outcome = self.script.pop(0) if self.script else self.default
        if self.respond is not None:
            outcome = self.respond(text)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def parse(self, payload: Any, thresholds: LabelThresholds = DEFAULT_THRESHOLDS) -> SentimentResult:
        label, score = parse_label_response(payload)
        return map_label(label, score, thresholds)

    def close(self) -> None:
        self.closed = True


def no_sleep(seconds: float) -> None:
    pass


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".sqlite3", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    for suffix in ("", "-wal", "-shm"):
        p = Path(str(db_path) + suffix)
        if p.exists():
            p.unlink()


@pytest.fixture
def storage(temp_db: Path) -> SQLiteStorage:
    """Create a SQLiteStorage with a temporary database."""
    s = SQLiteStorage(path=temp_db, raw_table=RAW_TABLE, processed_table=PROCESSED_TABLE)
    s.init()
    return s


@pytest.fixture
def gateway(storage: SQLiteStorage) -> PersistenceGateway:
    return PersistenceGateway(storage, raw_table=RAW_TABLE, processed_table=PROCESSED_TABLE, page_size=2)


@pytest.fixture
def make_client() -> Callable[..., SentimentClassifierClient]:
    """Build a classifier client that never sleeps between retries."""

    def _make(primary: ClassifierBackend, secondary: Optional[ClassifierBackend] = None, **kwargs):
        kwargs.setdefault("max_retries", 2)
        kwargs.setdefault("backoff_base", 0)
        return SentimentClassifierClient(primary, secondary=secondary, sleep=no_sleep, **kwargs)

    return _make


@pytest.fixture
def make_orchestrator() -> Callable[..., BatchOrchestrator]:
    def _make(client: SentimentClassifierClient, **kwargs) -> BatchOrchestrator:
        kwargs.setdefault("chunk_delay", 0)
        kwargs.setdefault("batch_delay", 0)
        return BatchOrchestrator(client, sleep=no_sleep, **kwargs)

    return _make


@pytest.fixture
def sample_raw_records() -> list[RawRecord]:
    """Raw records covering recent, old, undated and URL-only posts."""
    return [
        RawRecord(
            id=1,
            text="I love this team! https://t.co/abc @coach",
            created_at_text="March 3, 2024 at 07:15 PM",
            url="https://x.com/a/status/1",
            likes="1,204",
            reposts="35",
            replies="4",
            views="12K",
        ),
        RawRecord(
            id=2,
            text="Worst referee decision ever!!!",
            created_at_text="January 1, 2024 at 12:00 AM",
            likes="7",
        ),
        RawRecord(
            id=3,
            text="Throwback to the old stadium",
            created_at_text="October 29, 2015 at 05:59 AM",
        ),
        RawRecord(id=4, text="No date on this one", created_at_text=None),
        RawRecord(
            id=5,
            text="https://t.co/only-a-link",
            created_at_text="2024-06-01T10:00:00Z",
        ),
    ]


@pytest.fixture
def seeded_storage(storage: SQLiteStorage, sample_raw_records: list[RawRecord]) -> SQLiteStorage:
    storage.insert_many(RAW_TABLE, [r.to_row() for r in sample_raw_records])
    return storage


@pytest.fixture
def test_settings(temp_db: Path) -> Settings:
    """Create test settings backed by the temporary database."""
    os.environ["SQLITE_PATH"] = str(temp_db)
    try:
        return reload_settings()
    finally:
        del os.environ["SQLITE_PATH"]

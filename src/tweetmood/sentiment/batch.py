from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from tweetmood.core.errors import OperationCancelled
from tweetmood.core.logger import get_logger
from tweetmood.core.models import SentimentResult
from tweetmood.sentiment.client import SentimentClassifierClient

log = get_logger("batch")

ProgressFn = Callable[[int, int], None]


class BatchOrchestrator:
    """Fans texts out to a classifier with bounded concurrency.

    Texts are walked in windows of ``batch_size``; each window is split into
    chunks of ``concurrency`` texts classified in parallel. A chunk's
    results are read back in submission order, so ``result[i]`` always
    belongs to ``texts[i]``. Pacing delays run between chunks and between
    batches, never after the last one.
    """

    def __init__(
        self,
        client: SentimentClassifierClient,
        batch_size: int = 10,
        concurrency: int = 3,
        chunk_delay: float = 0.5,
        batch_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1 or concurrency < 1:
            raise ValueError("batch_size and concurrency must be >= 1")
        self.client = client
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.chunk_delay = chunk_delay
        self.batch_delay = batch_delay
        self._sleep = sleep

    def _classify_one(self, text: str) -> SentimentResult:
        try:
            return self.client.classify(text)
        except Exception as e:
            log.error(f"Unexpected error classifying {text[:50]!r}: {e}")
            return self.client.fallback_result()

    @staticmethod
    def _check_cancelled(cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled("Classification cancelled")

    def classify_all(
        self,
        texts: Sequence[str],
        on_progress: Optional[ProgressFn] = None,
        cancel: Optional[threading.Event] = None,
    ) -> list[SentimentResult]:
        """Classify every text, preserving input order.

        Args:
            texts: Texts to classify
            on_progress: Optional ``(done, total)`` callback after each chunk
            cancel: Optional event checked at every chunk boundary

        Raises:
            OperationCancelled: ``cancel`` was set before all chunks ran.
        """
        total = len(texts)
        results: list[SentimentResult] = []
        if total == 0:
            return results

        batch_count = (total + self.batch_size - 1) // self.batch_size

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="classify") as pool:
            for batch_start in range(0, total, self.batch_size):
                batch = texts[batch_start:batch_start + self.batch_size]
                log.info(
                    f"Processing batch {batch_start // self.batch_size + 1}/{batch_count} "
                    f"({len(batch)} texts)"
                )

                for chunk_start in range(0, len(batch), self.concurrency):
                    self._check_cancelled(cancel)
                    chunk = batch[chunk_start:chunk_start + self.concurrency]
                    futures = [pool.submit(self._classify_one, text) for text in chunk]

                    for text, future in zip(chunk, futures):
                        try:
                            results.append(future.result())
                        except Exception as e:
                            log.error(f"Worker failed for {text[:50]!r}: {e}")
                            results.append(self.client.fallback_result())

                    if on_progress is not None:
                        on_progress(len(results), total)

                    if chunk_start + self.concurrency < len(batch):
                        self._sleep(self.chunk_delay)

                if batch_start + self.batch_size < total:
                    self._sleep(self.batch_delay)

        fallbacks = sum(1 for r in results if r.is_fallback)
        log.info(f"Batch classification complete: {len(results)} results, {fallbacks} fallbacks")
        return results

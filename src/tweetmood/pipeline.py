"""End-to-end processing: fetch → filter → analyze → store.

Progress is pushed to an optional observer at every stage boundary. The
percentages are advisory telemetry on a fixed schedule. Classification
failures never fail a run (they degrade to neutral fallbacks); storage
failures and cancellation move the run to the ``error`` stage and are
re-raised to the caller.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from tweetmood.core.logger import (
    LogContext,
    get_logger,
    log_error_with_context,
    log_stage_event,
    set_correlation_id,
)
from tweetmood.core.models import (
    PipelineRun,
    ProcessingProgress,
    RawRecord,
    Stage,
)
from tweetmood.core.timeutils import iso, utcnow
from tweetmood.processing.filters import filter_recent
from tweetmood.processing.mapper import to_processed_record
from tweetmood.sentiment.batch import BatchOrchestrator
from tweetmood.storage.gateway import PersistenceGateway

log = get_logger("pipeline")

ProgressObserver = Callable[[ProcessingProgress], None]

ANALYZE_START = 40
ANALYZE_END = 80


class ProcessingPipeline:
    def __init__(
        self,
        gateway: PersistenceGateway,
        orchestrator: BatchOrchestrator,
        cutoff_year: int = 2024,
        page_size: int = 1000,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.cutoff_year = cutoff_year
        self.page_size = page_size
        self.clock = clock
        self.stage = Stage.IDLE
        self.last_progress: Optional[ProcessingProgress] = None

    def _emit(
        self,
        observer: Optional[ProgressObserver],
        stage: Stage,
        percent: int,
        message: str,
        error: Optional[str] = None,
        **details: Any,
    ) -> None:
        self.stage = stage
        progress = ProcessingProgress(
            stage=stage,
            percent_complete=percent,
            message=message,
            error=error,
            details=details,
        )
        self.last_progress = progress
        log_stage_event(log, stage.value, percent, message, **details)
        if observer is None:
            return
        try:
            observer(progress)
        except Exception as e:
            log.warning(f"Progress observer raised, ignoring: {e}")

    def run(
        self,
        on_progress: Optional[ProgressObserver] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PipelineRun:
        """Fetch unprocessed records from storage and process them."""
        set_correlation_id()
        run = PipelineRun()
        try:
            self._emit(on_progress, Stage.FETCHING, 10, "Fetching raw records from storage...")
            raw = self.gateway.fetch_unprocessed(limit=self.page_size)
            run.fetched = len(raw)
            if not raw:
                return self._complete(on_progress, run, "No raw records found to process")
            return self._process(raw, on_progress, cancel, run)
        except Exception as e:
            self._fail(on_progress, run, e)
            raise

    def process_records(
        self,
        raw: Sequence[RawRecord],
        on_progress: Optional[ProgressObserver] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PipelineRun:
        """Process records the caller already holds (skips fetching)."""
        set_correlation_id()
        run = PipelineRun(fetched=len(raw))
        try:
            return self._process(raw, on_progress, cancel, run)
        except Exception as e:
            self._fail(on_progress, run, e)
            raise

    def _process(
        self,
        raw: Sequence[RawRecord],
        on_progress: Optional[ProgressObserver],
        cancel: Optional[threading.Event],
        run: PipelineRun,
    ) -> PipelineRun:
        self._emit(
            on_progress,
            Stage.FILTERING,
            20,
            f"Filtering records from {self.cutoff_year} onwards...",
        )
        filtered = filter_recent(raw, self.cutoff_year)
        run.eligible = filtered.eligible
        run.dropped_undated = filtered.dropped_undated
        run.dropped_old = filtered.dropped_out_of_range
        run.dropped_empty = filtered.dropped_empty

        self._emit(
            on_progress,
            Stage.FILTERING,
            30,
            f"Cleaned {filtered.eligible} of {filtered.total} records",
            eligible=filtered.eligible,
            dropped_undated=filtered.dropped_undated,
            dropped_old=filtered.dropped_out_of_range,
            dropped_empty=filtered.dropped_empty,
        )
        if not filtered.records:
            return self._complete(
                on_progress,
                run,
                f"No records from {self.cutoff_year} onwards found to process",
            )

        self._emit(
            on_progress,
            Stage.ANALYZING,
            ANALYZE_START,
            f"Analyzing sentiment of {filtered.eligible} records...",
        )

        def _on_chunk(done: int, total: int) -> None:
            percent = ANALYZE_START + int((ANALYZE_END - ANALYZE_START) * done / total)
            self._emit(on_progress, Stage.ANALYZING, percent, f"Analyzed {done}/{total} records")

        texts = [record.cleaned_text for record in filtered.records]
        with LogContext(stage=Stage.ANALYZING.value):
            results = self.orchestrator.classify_all(texts, on_progress=_on_chunk, cancel=cancel)
        run.fallback_count = sum(1 for r in results if r.is_fallback)

        self._emit(
            on_progress,
            Stage.STORING,
            90,
            "Storing processed data...",
            fallback_count=run.fallback_count,
        )
        processed_at = iso(self.clock())
        records = [
            to_processed_record(cleaned, result, processed_at)
            for cleaned, result in zip(filtered.records, results)
        ]
        self.gateway.insert_all(records)
        run.records = records

        return self._complete(
            on_progress,
            run,
            f"Successfully processed {len(records)} records ({run.fallback_count} fallbacks)",
        )

    def _complete(
        self,
        on_progress: Optional[ProgressObserver],
        run: PipelineRun,
        message: str,
    ) -> PipelineRun:
        run.stage = Stage.COMPLETED
        self._emit(
            on_progress,
            Stage.COMPLETED,
            100,
            message,
            processed=len(run.records),
            fallback_ratio=round(run.fallback_ratio, 3),
            dropped_undated=run.dropped_undated,
        )
        return run

    def _fail(
        self,
        on_progress: Optional[ProgressObserver],
        run: PipelineRun,
        error: Exception,
    ) -> None:
        run.stage = Stage.ERROR
        run.records = []
        failed_stage = self.stage.value
        log_error_with_context(log, f"Pipeline failed during {failed_stage}", error, stage=failed_stage)
        self._emit(
            on_progress,
            Stage.ERROR,
            0,
            f"Processing failed during {failed_stage}",
            error=str(error),
        )

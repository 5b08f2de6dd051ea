"""Wiring from settings to a ready-to-use service, plus the dashboard seams."""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Optional

from tweetmood.config import Settings, get_settings
from tweetmood.core.logger import get_logger
from tweetmood.core.models import PipelineRun, ProcessedRecord, ProcessingStats
from tweetmood.ingestion.trigger import IngestionTrigger, TriggerResult
from tweetmood.pipeline import ProcessingPipeline, ProgressObserver
from tweetmood.reporting.charts import ChartPoint, chart_points
from tweetmood.reporting.summary import ReportSummary, build_summary
from tweetmood.sentiment.anthropic import AnthropicBackend
from tweetmood.sentiment.batch import BatchOrchestrator
from tweetmood.sentiment.client import SentimentClassifierClient
from tweetmood.sentiment.huggingface import HuggingFaceBackend
from tweetmood.sentiment.labels import LabelThresholds
from tweetmood.sentiment.local_rule import LocalRuleBackend
from tweetmood.storage.base import Storage
from tweetmood.storage.gateway import PersistenceGateway
from tweetmood.storage.sqlite import SQLiteStorage
from tweetmood.storage.supabase import SupabaseStorage

log = get_logger("service")


def make_storage(settings: Settings) -> Storage:
    """Create the storage backend based on configuration."""
    if settings.storage_backend == "supabase":
        settings.validate_supabase_credentials()
        log.info("Using SupabaseStorage.")
        return SupabaseStorage(
            url=settings.supabase_url,
            key=settings.supabase_key,
            key_columns={settings.raw_table: "tweet_id", settings.processed_table: "id"},
            timeout=settings.request_timeout,
        )
    log.info(f"Using SQLiteStorage at {settings.sqlite_path}.")
    store = SQLiteStorage(
        path=Path(settings.sqlite_path),
        raw_table=settings.raw_table,
        processed_table=settings.processed_table,
    )
    store.init()
    return store


def make_classifier(settings: Settings) -> SentimentClassifierClient:
    """Create the classifier client based on configuration.

    Without the configured backend's API key, the local keyword scorer is used.
    """
    primary = None
    secondary = None

    if settings.classifier_backend == "huggingface" and settings.huggingface_api_key:
        log.info("Using HuggingFace inference backend.")
        primary = HuggingFaceBackend(
            api_key=settings.huggingface_api_key,
            endpoints=settings.huggingface_endpoints_list,
            timeout=settings.request_timeout,
        )
        secondary = HuggingFaceBackend(
            api_key=settings.huggingface_api_key,
            endpoints=settings.huggingface_fallback_endpoints_list,
            name="HUGGINGFACE_FALLBACK",
            timeout=settings.request_timeout,
        )
    elif settings.classifier_backend == "anthropic" and settings.anthropic_api_key:
        log.info("Using Claude backend.")
        primary = AnthropicBackend(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            model=settings.anthropic_model,
            timeout=settings.request_timeout,
        )

    if primary is None:
        if settings.classifier_backend != "local":
            log.warning(f"No API key for {settings.classifier_backend}; using LocalRuleBackend.")
        primary = LocalRuleBackend()

    return SentimentClassifierClient(
        primary=primary,
        secondary=secondary,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base,
        thresholds=LabelThresholds(
            strong=settings.strong_sentiment_threshold,
            neutral_positive=settings.neutral_positive_threshold,
        ),
    )


class SentimentService:
    """Entry point for host applications (dashboard, report renderer, CLI).

    Usage:
        service = SentimentService.from_settings()
        run = service.process_all(on_progress=print)
        points = service.chart_points()
        service.close()
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        classifier: SentimentClassifierClient,
        pipeline: ProcessingPipeline,
        trigger: Optional[IngestionTrigger] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.classifier = classifier
        self.pipeline = pipeline
        self.trigger = trigger
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SentimentService":
        settings = settings or get_settings()
        storage = make_storage(settings)
        gateway = PersistenceGateway(
            storage,
            raw_table=settings.raw_table,
            processed_table=settings.processed_table,
            page_size=settings.page_size,
        )
        classifier = make_classifier(settings)
        orchestrator = BatchOrchestrator(
            classifier,
            batch_size=settings.batch_size,
            concurrency=settings.concurrency,
            chunk_delay=settings.chunk_delay,
            batch_delay=settings.batch_delay,
        )
        pipeline = ProcessingPipeline(
            gateway,
            orchestrator,
            cutoff_year=settings.cutoff_year,
            page_size=settings.page_size,
        )
        trigger = None
        if settings.ingestion_webhook_url:
            trigger = IngestionTrigger(settings.ingestion_webhook_url)
        return cls(gateway, classifier, pipeline, trigger=trigger, settings=settings)

    def close(self) -> None:
        self.classifier.close()
        self.gateway.storage.close()
        if self.trigger is not None:
            self.trigger.close()

    def get_processing_stats(self) -> ProcessingStats:
        return self.gateway.fetch_stats()

    def get_processed_records(self, limit: int = 1000) -> list[ProcessedRecord]:
        return self.gateway.fetch_processed(limit)

    def warm_up(self) -> bool:
        return self.classifier.warm_up()

    def process_all(
        self,
        on_progress: Optional[ProgressObserver] = None,
        cancel: Optional[threading.Event] = None,
    ) -> PipelineRun:
        """Warm up the classifier, then run the pipeline once."""
        self.warm_up()
        return self.pipeline.run(on_progress=on_progress, cancel=cancel)

    def chart_points(self, limit: int = 1000) -> list[ChartPoint]:
        return chart_points(self.get_processed_records(limit))

    def build_report(self, limit: int = 1000) -> ReportSummary:
        return build_summary(self.get_processed_records(limit))

    def trigger_ingestion(self) -> TriggerResult:
        if self.trigger is None:
            raise ValueError("INGESTION_WEBHOOK_URL must be set to trigger ingestion")
        return self.trigger.trigger()

    def wait_for_ingestion(
        self,
        on_stats: Optional[Callable[[ProcessingStats], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> list[ProcessingStats]:
        """Poll stats after a trigger until the configured timeout."""
        if self.trigger is None:
            raise ValueError("INGESTION_WEBHOOK_URL must be set to poll ingestion")
        return self.trigger.poll(
            self.get_processing_stats,
            interval=self.settings.poll_interval,
            timeout=self.settings.poll_timeout,
            on_stats=on_stats,
            stop_event=stop_event,
        )

    def clear_all(self) -> tuple[int, int]:
        return self.gateway.clear_all()

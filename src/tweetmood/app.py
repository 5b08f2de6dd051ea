from __future__ import annotations

import signal
import threading
from dataclasses import asdict
from pathlib import Path

import typer

from tweetmood.config import get_settings, Settings
from tweetmood.core.errors import OperationCancelled, TweetmoodError
from tweetmood.core.logger import setup_logging, get_logger
from tweetmood.core.models import ProcessingProgress, ProcessingStats
from tweetmood.reporting.summary import export_records
from tweetmood.service import SentimentService

log = get_logger("tweetmood")
cli_app = typer.Typer(help="Batch sentiment scoring for collected social media posts.")

# Set by SIGINT/SIGTERM; long-running commands pass it down as their cancel token
_shutdown = threading.Event()


def _signal_handler(signum: int, frame) -> None:
    """Handle shutdown signals."""
    sig_name = signal.Signals(signum).name
    log.info(f"Received {sig_name}, initiating graceful shutdown...")
    _shutdown.set()


def _load_settings() -> Settings:
    try:
        settings = get_settings()
    except Exception as e:
        setup_logging("INFO")
        log.error(f"Configuration error: {e}")
        raise typer.Exit(code=1)
    setup_logging(settings.log_level, json_output=settings.log_json)
    return settings


def _make_service(settings: Settings) -> SentimentService:
    try:
        return SentimentService.from_settings(settings)
    except (ValueError, TweetmoodError) as e:
        log.error(f"Failed to initialise service: {e}")
        raise typer.Exit(code=1)


def _print_progress(progress: ProcessingProgress) -> None:
    typer.echo(f"[{progress.percent_complete:3d}%] {progress.stage.value}: {progress.message}")


def _print_stats(stats: ProcessingStats) -> None:
    typer.echo(f"total={stats.total} processed={stats.processed} remaining={stats.remaining}")


@cli_app.command()
def process():
    """Classify every unprocessed record and store the results."""
    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    settings = _load_settings()
    service = _make_service(settings)
    try:
        run = service.process_all(on_progress=_print_progress, cancel=_shutdown)
    except OperationCancelled:
        log.warning("Processing cancelled")
        raise typer.Exit(code=130)
    except TweetmoodError as e:
        log.error(f"Processing failed: {e}")
        raise typer.Exit(code=1)
    finally:
        service.close()

    log.info(
        f"Processed {len(run.records)} records "
        f"({run.fallback_count} fallbacks, {run.dropped_undated} undated dropped)"
    )
    if run.records and run.fallback_ratio >= 0.5:
        log.warning(f"High fallback ratio {run.fallback_ratio:.0%}; check the classifier backend")


@cli_app.command()
def stats():
    """Show raw, processed and remaining record counts."""
    settings = _load_settings()
    service = _make_service(settings)
    try:
        result = service.get_processing_stats()
    except TweetmoodError as e:
        log.error(f"Failed to fetch stats: {e}")
        raise typer.Exit(code=1)
    finally:
        service.close()
    _print_stats(result)
    if result.last_processed_at:
        typer.echo(f"last processed at {result.last_processed_at}")


@cli_app.command()
def report(limit: int = typer.Option(1000, help="Number of most recent records to summarise")):
    """Summarise the most recent processed records."""
    settings = _load_settings()
    service = _make_service(settings)
    try:
        summary = service.build_report(limit)
    except TweetmoodError as e:
        log.error(f"Failed to build report: {e}")
        raise typer.Exit(code=1)
    finally:
        service.close()
    for key, value in asdict(summary).items():
        typer.echo(f"{key}: {value}")


@cli_app.command()
def export(
    path: Path = typer.Argument(..., help="Output file"),
    fmt: str = typer.Option("csv", "--format", help="csv or json"),
    limit: int = typer.Option(1000, help="Number of most recent records to export"),
):
    """Export processed records to CSV or JSON."""
    if fmt not in ("csv", "json"):
        typer.echo(f"Unsupported format: {fmt}", err=True)
        raise typer.Exit(code=2)

    settings = _load_settings()
    service = _make_service(settings)
    try:
        records = service.get_processed_records(limit)
    except TweetmoodError as e:
        log.error(f"Failed to fetch processed records: {e}")
        raise typer.Exit(code=1)
    finally:
        service.close()
    export_records(records, path, fmt=fmt)


@cli_app.command()
def trigger(poll: bool = typer.Option(True, "--poll/--no-poll", help="Watch stats after triggering")):
    """Ask the ingestion workflow to collect new records."""
    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    settings = _load_settings()
    if not settings.ingestion_webhook_url:
        log.error("INGESTION_WEBHOOK_URL is not configured")
        raise typer.Exit(code=1)

    service = _make_service(settings)
    try:
        result = service.trigger_ingestion()
        typer.echo(result.message)
        if not result.success:
            raise typer.Exit(code=1)
        if poll:
            service.wait_for_ingestion(on_stats=_print_stats, stop_event=_shutdown)
    finally:
        service.close()


@cli_app.command("warm-up")
def warm_up():
    """Wake the remote classifier model before a run."""
    settings = _load_settings()
    service = _make_service(settings)
    try:
        ok = service.warm_up()
    finally:
        service.close()
    if not ok:
        log.warning("Classifier did not respond to warm-up")
        raise typer.Exit(code=1)
    log.info("Classifier is ready")


@cli_app.command()
def clear(yes: bool = typer.Option(False, "--yes", help="Skip confirmation")):
    """Delete every processed and raw record."""
    if not yes:
        typer.confirm("Delete all processed and raw records?", abort=True)

    settings = _load_settings()
    service = _make_service(settings)
    try:
        processed, raw = service.clear_all()
    except TweetmoodError as e:
        log.error(f"Failed to clear data: {e}")
        raise typer.Exit(code=1)
    finally:
        service.close()
    log.info(f"Deleted {processed} processed and {raw} raw records")


@cli_app.command()
def validate():
    """Validate configuration without touching storage."""
    settings = _load_settings()
    log.info("Configuration validation passed!")
    log.info(f"  Storage: {settings.storage_backend}")
    log.info(f"  Classifier: {settings.classifier_backend}")
    log.info(f"  Batching: size={settings.batch_size}, concurrency={settings.concurrency}")
    log.info(f"  Cutoff year: {settings.cutoff_year}")

    if settings.classifier_backend == "huggingface" and not settings.huggingface_api_key:
        log.warning("  HuggingFace: API key NOT configured, local scoring will be used")
    if settings.classifier_backend == "anthropic" and not settings.anthropic_api_key:
        log.warning("  Anthropic: API key NOT configured, local scoring will be used")
    if settings.ingestion_webhook_url:
        log.info("  Ingestion webhook: configured")
    else:
        log.info("  Ingestion webhook: not configured")


if __name__ == "__main__":
    cli_app()

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from tweetmood.core.logger import get_logger
from tweetmood.core.models import ProcessingStats
from tweetmood.core.timeutils import iso, utcnow

log = get_logger("ingestion")


@dataclass(frozen=True)
class TriggerResult:
    success: bool
    message: str


class IngestionTrigger:
    """Kicks the external crawler workflow and watches storage afterwards.

    The workflow exposes no completion signal. ``poll`` only samples stats
    on a fixed interval until a fixed timeout; a finished poll does not mean
    the crawl finished.

    Usage:
        trigger = IngestionTrigger(webhook_url="https://n8n.example/webhook/abc")
        if trigger.trigger().success:
            trigger.poll(gateway.fetch_stats)
        trigger.close()
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not webhook_url:
            raise ValueError("Ingestion webhook URL is required")
        self.webhook_url = webhook_url
        self.client = client or httpx.Client(timeout=timeout)
        self._clock = clock

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def trigger(self) -> TriggerResult:
        """Fire the webhook. Transport errors are reported, not raised."""
        params = {
            "trigger": "tweetmood",
            "timestamp": iso(utcnow()),
            "action": "fetch_new_records",
        }
        try:
            response = self.client.get(self.webhook_url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            log.error(f"Error triggering ingestion workflow: {e}")
            return TriggerResult(success=False, message=str(e))

        log.info("Ingestion workflow triggered")
        return TriggerResult(success=True, message="Record fetching workflow triggered successfully")

    def poll(
        self,
        stats_fn: Callable[[], ProcessingStats],
        interval: float = 10.0,
        timeout: float = 180.0,
        on_stats: Optional[Callable[[ProcessingStats], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> list[ProcessingStats]:
        """Sample ``stats_fn`` every ``interval`` seconds until ``timeout``.

        Stops early only when ``stop_event`` is set. Returns the samples.
        """
        stop_event = stop_event or threading.Event()
        samples: list[ProcessingStats] = []
        deadline = self._clock() + timeout

        while not stop_event.is_set():
            stats = stats_fn()
            samples.append(stats)
            log.info(f"Polled stats: total={stats.total} remaining={stats.remaining}")
            if on_stats is not None:
                on_stats(stats)

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            stop_event.wait(min(interval, remaining))

        log.info(f"Stopped polling after {len(samples)} samples")
        return samples

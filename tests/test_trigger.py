"""Tests for the ingestion webhook trigger and stats polling."""
import threading

import httpx
import pytest

from tweetmood.core.models import ProcessingStats
from tweetmood.ingestion.trigger import IngestionTrigger

WEBHOOK = "https://workflows.test/webhook/fetch"


class FakeClock:
    """Monotonic clock that advances only when the poll waits."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class AdvancingEvent(threading.Event):
    """Event whose wait() moves a fake clock instead of blocking."""

    def __init__(self, clock: FakeClock):
        super().__init__()
        self.clock = clock
        self.waits: list[float] = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        self.clock.now += timeout
        return self.is_set()


def _trigger(handler, clock=None) -> IngestionTrigger:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return IngestionTrigger(WEBHOOK, client=client, clock=clock or FakeClock())


class TestTrigger:
    def test_successful_trigger(self):
        """Test the webhook is called with the fetch action."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        result = _trigger(handler).trigger()

        assert result.success
        assert seen[0].method == "GET"
        assert seen[0].url.params["action"] == "fetch_new_records"
        assert seen[0].url.params["timestamp"].endswith("Z")

    def test_http_error_is_reported(self):
        """Test that a failing webhook gives success=False instead of raising."""
        result = _trigger(lambda request: httpx.Response(500)).trigger()
        assert not result.success
        assert "500" in result.message

    def test_transport_error_is_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert not _trigger(handler).trigger().success

    def test_requires_url(self):
        with pytest.raises(ValueError):
            IngestionTrigger("")


class TestPoll:
    """Tests for the fixed-interval stats polling."""

    def test_polls_until_timeout(self):
        """Test that polling samples every interval and stops at the timeout."""
        clock = FakeClock()
        trigger = _trigger(lambda request: httpx.Response(200), clock=clock)
        stop = AdvancingEvent(clock)
        calls = []

        def stats():
            calls.append(clock.now)
            return ProcessingStats(total=len(calls), processed=0, remaining=len(calls))

        seen = []
        samples = trigger.poll(stats, interval=10, timeout=30, on_stats=seen.append, stop_event=stop)

        assert calls == [0.0, 10.0, 20.0, 30.0]
        assert len(samples) == 4
        assert seen == samples
        assert stop.waits == [10, 10, 10]

    def test_stop_event_ends_polling(self):
        """Test that setting the stop event ends polling early."""
        clock = FakeClock()
        trigger = _trigger(lambda request: httpx.Response(200), clock=clock)
        stop = AdvancingEvent(clock)

        def stats():
            stop.set()
            return ProcessingStats(total=1, processed=1, remaining=0)

        samples = trigger.poll(stats, interval=10, timeout=180, stop_event=stop)
        assert len(samples) == 1

    def test_last_wait_is_shortened(self):
        """Test that the final wait never overshoots the timeout."""
        clock = FakeClock()
        trigger = _trigger(lambda request: httpx.Response(200), clock=clock)
        stop = AdvancingEvent(clock)

        trigger.poll(lambda: ProcessingStats(0, 0, 0), interval=10, timeout=25, stop_event=stop)
        assert stop.waits == [10, 10, 5]

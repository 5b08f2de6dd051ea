"""Tests for concurrent batch classification."""
import random
import threading
import time

import pytest

from tweetmood.core.errors import NetworkError, OperationCancelled
from tweetmood.sentiment.batch import BatchOrchestrator

from conftest import ScriptedBackend


def _echo_label(text: str) -> dict:
    # The label carries the input index so results can be matched back
    index = int(text.split("-")[1])
    time.sleep(random.uniform(0, 0.01))
    return {"label": f"ECHO_{index}", "score": 0.5}


class TestBatchOrchestrator:
    """Tests for ordering, coverage, pacing and cancellation."""

    @pytest.mark.parametrize("count", [1, 3, 10, 11, 25])
    def test_results_follow_input_order(self, make_client, make_orchestrator, count):
        """Test that result i belongs to text i despite random latency."""
        backend = ScriptedBackend(respond=_echo_label)
        orchestrator = make_orchestrator(make_client(backend), batch_size=10, concurrency=3)
        texts = [f"text-{i}" for i in range(count)]

        results = orchestrator.classify_all(texts)

        assert [r.label for r in results] == [f"ECHO_{i}" for i in range(count)]

    def test_every_text_gets_a_result_when_all_fail(self, make_client, make_orchestrator):
        """Test that the output length matches the input even if every call fails."""
        backend = ScriptedBackend(default=NetworkError("down"))
        orchestrator = make_orchestrator(make_client(backend, max_retries=0))
        texts = [f"t{i}" for i in range(17)]

        results = orchestrator.classify_all(texts)

        assert len(results) == 17
        assert all(r.is_fallback for r in results)

    def test_empty_input(self, make_client, make_orchestrator):
        orchestrator = make_orchestrator(make_client(ScriptedBackend()))
        assert orchestrator.classify_all([]) == []

    def test_client_exception_becomes_fallback(self, make_client, make_orchestrator):
        """Test that an exception escaping the client is absorbed per item."""
        client = make_client(ScriptedBackend())

        def explode(text):
            if text == "bad":
                raise RuntimeError("boom")
            return client.fallback_result()

        client.classify = explode
        results = make_orchestrator(client).classify_all(["ok", "bad", "ok"])
        assert len(results) == 3
        assert all(r.is_fallback for r in results)

    def test_pacing_skips_trailing_delays(self, make_client):
        """Test chunk and batch delays run only between groups."""
        sleeps = []
        orchestrator = BatchOrchestrator(
            make_client(ScriptedBackend()),
            batch_size=10,
            concurrency=3,
            chunk_delay=0.5,
            batch_delay=1.0,
            sleep=sleeps.append,
        )
        orchestrator.classify_all([f"t{i}" for i in range(12)])

        # Batch 1: chunks of 3,3,3,1 -> three chunk delays, then one batch delay.
        # Batch 2: chunk of 2 -> nothing after it.
        assert sleeps == [0.5, 0.5, 0.5, 1.0]

    def test_progress_reported_per_chunk(self, make_client, make_orchestrator):
        progress = []
        orchestrator = make_orchestrator(make_client(ScriptedBackend()), batch_size=4, concurrency=2)
        orchestrator.classify_all([f"t{i}" for i in range(5)], on_progress=lambda d, t: progress.append((d, t)))
        assert progress == [(2, 5), (4, 5), (5, 5)]

    def test_concurrency_is_bounded(self, make_client, make_orchestrator):
        """Test that no more than `concurrency` calls run at once."""
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def slow(text):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.01)
            with lock:
                state["active"] -= 1
            return {"label": "LABEL_1", "score": 0.5}

        orchestrator = make_orchestrator(make_client(ScriptedBackend(respond=slow)), batch_size=10, concurrency=3)
        orchestrator.classify_all([f"t{i}" for i in range(20)])
        assert state["peak"] <= 3

    def test_cancel_stops_at_chunk_boundary(self, make_client, make_orchestrator):
        """Test that setting the cancel event stops before the next chunk."""
        cancel = threading.Event()
        backend = ScriptedBackend()
        orchestrator = make_orchestrator(make_client(backend), batch_size=10, concurrency=2)

        def on_progress(done, total):
            if done >= 2:
                cancel.set()

        with pytest.raises(OperationCancelled):
            orchestrator.classify_all([f"t{i}" for i in range(6)], on_progress=on_progress, cancel=cancel)
        assert len(backend.calls) == 2

    def test_invalid_sizes_rejected(self, make_client):
        with pytest.raises(ValueError):
            BatchOrchestrator(make_client(ScriptedBackend()), batch_size=0)

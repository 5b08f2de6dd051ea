"""Tests for the classifier client and its HTTP backends."""
import json

import httpx
import pytest

from tweetmood.core.errors import NetworkError, RemoteServiceError
from tweetmood.core.models import Sentiment
from tweetmood.sentiment.anthropic import AnthropicBackend
from tweetmood.sentiment.huggingface import HuggingFaceBackend
from tweetmood.sentiment.local_rule import LocalRuleBackend

from conftest import ScriptedBackend

HF_URL = "https://hf.test/models/primary"
HF_SPARE = "https://hf.test/models/spare"


def _hf_backend(handler, endpoints=(HF_URL,)):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HuggingFaceBackend(api_key="hf_test", endpoints=list(endpoints), client=client)


class TestSentimentClassifierClient:
    """Tests for retry, secondary switch and fallback behavior."""

    def test_recovers_on_third_attempt(self, make_client):
        """Test that two timeouts followed by a success yield the success."""
        backend = ScriptedBackend(
            script=[
                NetworkError("timeout"),
                NetworkError("timeout"),
                {"label": "LABEL_2", "score": 0.9},
            ]
        )
        result = make_client(backend).classify("great comeback")

        assert result.sentiment == Sentiment.VERY_POSITIVE
        assert not result.is_fallback
        assert len(backend.calls) == 3

    def test_retry_budget_exhausted_gives_fallback(self, make_client):
        """Test that a transport that always fails yields the neutral fallback."""
        backend = ScriptedBackend(default=NetworkError("down"), name="HUGGINGFACE")
        result = make_client(backend).classify("anything")

        assert result.sentiment == Sentiment.NEUTRAL
        assert result.confidence == 0.5
        assert result.label == "HUGGINGFACE_NEU_FALLBACK"
        assert result.is_fallback
        assert len(backend.calls) == 3

    def test_backoff_waits_grow(self):
        """Test that waits between attempts double."""
        from tweetmood.sentiment.client import SentimentClassifierClient

        sleeps = []
        backend = ScriptedBackend(default=NetworkError("down"))
        client = SentimentClassifierClient(backend, max_retries=2, backoff_base=1.0, sleep=sleeps.append)
        client.classify("text")
        assert sleeps == [1.0, 2.0]

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_text_skips_network(self, make_client, text):
        """Test that blank input is rejected before any request."""
        backend = ScriptedBackend()
        result = make_client(backend).classify(text)

        assert result.is_fallback
        assert backend.calls == []

    def test_long_text_is_classified(self, make_client):
        """Test that oversized text still resolves."""
        backend = ScriptedBackend(default={"label": "LABEL_0", "score": 0.6})
        result = make_client(backend).classify("bad " * 1000)
        assert result.sentiment == Sentiment.NEGATIVE

    def test_remote_error_is_not_retried(self, make_client):
        """Test that a non-transport error goes straight to the fallback."""
        backend = ScriptedBackend(default=RemoteServiceError("500 boom", status_code=500))
        result = make_client(backend).classify("text")

        assert result.is_fallback
        assert len(backend.calls) == 1

    def test_model_unavailable_switches_to_secondary(self, make_client):
        """Test that a missing model is retried on the secondary for this call."""
        primary = ScriptedBackend(
            default=RemoteServiceError("404", status_code=404, model_unavailable=True),
            name="PRIMARY",
        )
        secondary = ScriptedBackend(default={"label": "negative", "score": 0.85}, name="SECONDARY")
        client = make_client(primary, secondary)

        first = client.classify("one")
        second = client.classify("two")

        assert first.sentiment == Sentiment.VERY_NEGATIVE
        assert second.sentiment == Sentiment.VERY_NEGATIVE
        # The switch is per call: the primary is tried again every time
        assert primary.calls == ["one", "two"]
        assert secondary.calls == ["one", "two"]

    def test_both_backends_failing_gives_primary_fallback(self, make_client):
        """Test that the fallback label names the primary backend."""
        primary = ScriptedBackend(
            default=RemoteServiceError("gone", status_code=404, model_unavailable=True), name="X"
        )
        secondary = ScriptedBackend(default=NetworkError("down"), name="Y")
        result = make_client(primary, secondary).classify("text")

        assert result.label == "X_NEU_FALLBACK"
        assert len(secondary.calls) == 3

    def test_model_unavailable_without_secondary(self, make_client):
        """Test the fallback when no secondary is configured."""
        primary = ScriptedBackend(default=RemoteServiceError("gone", model_unavailable=True))
        assert make_client(primary).classify("text").is_fallback

    def test_unparseable_payload_gives_fallback(self, make_client):
        """Test that an unknown response shape never escapes."""
        backend = ScriptedBackend(default="not a payload")
        assert make_client(backend).classify("text").is_fallback

    def test_unexpected_exception_gives_fallback(self, make_client):
        """Test that arbitrary backend exceptions are absorbed."""
        backend = ScriptedBackend(default=KeyError("weird"))
        assert make_client(backend).classify("text").is_fallback

    def test_warm_up_failure_is_swallowed(self, make_client):
        """Test that warm-up failures are reported as False."""

        class Exploding(ScriptedBackend):
            def warm_up(self):
                raise RuntimeError("no")

        assert make_client(Exploding()).warm_up() is False

    def test_close_closes_both_backends(self, make_client):
        primary, secondary = ScriptedBackend(), ScriptedBackend()
        make_client(primary, secondary).close()
        assert primary.closed and secondary.closed


class TestHuggingFaceBackend:
    """Tests for the hosted inference backend over a mock transport."""

    def test_request_payload_and_parse(self):
        """Test the request body, auth header and response mapping."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[[{"label": "LABEL_2", "score": 0.91}, {"label": "LABEL_1", "score": 0.09}]])

        backend = _hf_backend(handler)
        result = backend.parse(backend.request("what a goal"))

        assert seen["auth"] == "Bearer hf_test"
        assert seen["body"] == {"inputs": "what a goal", "options": {"wait_for_model": True, "use_cache": True}}
        assert result.sentiment == Sentiment.VERY_POSITIVE

    def test_not_found_marks_model_unavailable(self):
        """Test that a 404 is reported as an unavailable model."""
        backend = _hf_backend(lambda request: httpx.Response(404, text="Not Found"))
        with pytest.raises(RemoteServiceError) as exc_info:
            backend.request("text")
        assert exc_info.value.status_code == 404
        assert exc_info.value.model_unavailable

    def test_model_error_body_marks_model_unavailable(self):
        """Test that a 503 mentioning the model is reported as unavailable."""
        backend = _hf_backend(lambda request: httpx.Response(503, json={"error": "Model is currently loading"}))
        with pytest.raises(RemoteServiceError) as exc_info:
            backend.request("text")
        assert exc_info.value.model_unavailable

    @pytest.mark.parametrize(
        "status,body",
        [
            (429, {"error": "Rate limit reached for model distilbert"}),
            (401, {"error": "Invalid token for model access"}),
        ],
    )
    def test_auth_and_rate_limit_errors_do_not_switch_models(self, status, body):
        """Test that errors shared by every model on the same key are not treated as an unavailable model."""
        backend = _hf_backend(lambda request: httpx.Response(status, json=body))
        with pytest.raises(RemoteServiceError) as exc_info:
            backend.request("text")
        assert exc_info.value.status_code == status
        assert not exc_info.value.model_unavailable

    def test_server_error_is_not_model_unavailable(self):
        backend = _hf_backend(lambda request: httpx.Response(500, text="internal"))
        with pytest.raises(RemoteServiceError) as exc_info:
            backend.request("text")
        assert not exc_info.value.model_unavailable

    def test_timeout_maps_to_network_error(self):
        """Test that transport timeouts become NetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(NetworkError):
            _hf_backend(handler).request("text")

    def test_invalid_json_is_remote_error(self):
        backend = _hf_backend(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(RemoteServiceError):
            backend.request("text")

    def test_warm_up_picks_first_working_endpoint(self):
        """Test that warm-up probes candidates in order and keeps the working one."""
        bad = "https://hf.test/models/bad"

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == bad:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, json=[{"label": "LABEL_1", "score": 0.5}])

        backend = _hf_backend(handler, endpoints=(bad, HF_SPARE))
        assert backend.url == bad
        assert backend.warm_up() is True
        assert backend.url == HF_SPARE

    def test_warm_up_without_working_endpoint(self):
        """Test that warm-up keeps the original endpoint when none answers."""
        backend = _hf_backend(lambda request: httpx.Response(404, text="Not Found"))
        assert backend.warm_up() is False
        assert backend.url == HF_URL

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="HUGGINGFACE_API_KEY"):
            HuggingFaceBackend(api_key="", endpoints=[HF_URL])


class TestAnthropicBackend:
    """Tests for the Claude backend."""

    def _backend(self, text: str) -> AnthropicBackend:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["x-api-key"] == "sk-test"
            assert request.headers["anthropic-version"] == "2023-06-01"
            assert str(request.url) == "https://claude.test/v1/messages"
            return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        return AnthropicBackend(api_key="sk-test", base_url="https://claude.test/v1/", client=client)

    def test_parses_json_answer(self):
        """Test that the JSON object in the answer is read."""
        backend = self._backend('Sure: {"sentiment": "negative", "confidence": 0.77}')
        result = backend.parse(backend.request("meh"))

        assert result.sentiment == Sentiment.NEGATIVE
        assert result.confidence == 0.77
        assert result.label == "CLAUDE_NEGATIVE"

    def test_invalid_sentiment_becomes_neutral(self):
        backend = self._backend('{"sentiment": "ecstatic", "confidence": 0.9}')
        assert backend.parse(backend.request("wow")).sentiment == Sentiment.NEUTRAL

    def test_answer_without_json_raises(self):
        """Test that prose answers are rejected."""
        backend = self._backend("I think it is positive.")
        with pytest.raises(RemoteServiceError):
            backend.parse(backend.request("text"))

    def test_missing_content_raises(self):
        backend = self._backend("{}")
        with pytest.raises(RemoteServiceError):
            backend.parse({"content": []})


class TestLocalRuleBackend:
    """Tests for the offline keyword scorer."""

    def test_positive_and_negative_words(self):
        backend = LocalRuleBackend()
        assert backend.parse(backend.request("I love this, great game")).sentiment == Sentiment.VERY_POSITIVE
        assert backend.parse(backend.request("terrible and awful")).sentiment == Sentiment.VERY_NEGATIVE

    def test_no_keywords_is_neutral(self):
        backend = LocalRuleBackend()
        assert backend.parse(backend.request("the bus leaves at noon")).sentiment == Sentiment.NEUTRAL

    def test_mixed_words(self):
        """Test that a mostly positive text is moderately positive."""
        backend = LocalRuleBackend()
        result = backend.parse(backend.request("good good good bad"))
        assert result.sentiment == Sentiment.POSITIVE
        assert result.score == 0.5

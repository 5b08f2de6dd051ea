from __future__ import annotations

import json
import re
from typing import Any, Optional

import httpx

from tweetmood.core.errors import RemoteServiceError
from tweetmood.core.logger import get_logger
from tweetmood.core.models import SentimentResult
from tweetmood.sentiment.base import HttpBackend
from tweetmood.sentiment.labels import DEFAULT_THRESHOLDS, LabelThresholds, map_canonical

log = get_logger("anthropic")

ANTHROPIC_VERSION = "2023-06-01"

SENTIMENT_PROMPT = """Analyze the sentiment of this text and respond with ONLY a JSON object containing "sentiment" and "confidence" fields. The sentiment should be one of: "very_negative", "negative", "neutral", "positive", "very_positive". The confidence should be a number between 0 and 1.

Text: "{text}"

Respond with only the JSON object, no other text."""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class AnthropicBackend(HttpBackend):
    """Claude sentiment backend using the Messages API.

    Claude answers directly on the canonical scale, so no label
    thresholds apply.

    Configuration:
        ANTHROPIC_API_KEY: Your Anthropic API key
        ANTHROPIC_BASE_URL: API base URL (default: https://api.anthropic.com/v1)
        ANTHROPIC_MODEL: Model to use
    """

    name = "CLAUDE"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com/v1",
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 30.0,
        max_tokens: int = 1000,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is required")

        super().__init__(
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            client=client,
        )
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens

    def request(self, text: str) -> Any:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "user", "content": SENTIMENT_PROMPT.format(text=text)},
            ],
        }
        return self._post_json(f"{self.base_url}/messages", payload)

    def parse(
        self,
        payload: Any,
        thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
    ) -> SentimentResult:
        try:
            content = payload["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise RemoteServiceError("No content in Claude response") from e

        match = _JSON_OBJECT.search(content or "")
        if not match:
            raise RemoteServiceError(f"No JSON found in Claude response: {content[:100]!r}")

        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise RemoteServiceError(f"Invalid JSON in Claude response: {content[:100]!r}") from e

        if not isinstance(data, dict):
            raise RemoteServiceError(f"Unexpected Claude payload: {data!r}")

        result = map_canonical(data.get("sentiment"), data.get("confidence", 0.5), self.name)
        if result.sentiment.value != str(data.get("sentiment", "")).strip().lower():
            log.warning(f"Invalid sentiment from Claude: {data.get('sentiment')!r}, using neutral")
        return result

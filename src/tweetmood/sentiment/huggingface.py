from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from tweetmood.core.errors import NetworkError, RemoteServiceError
from tweetmood.core.logger import get_logger
from tweetmood.core.models import SentimentResult
from tweetmood.sentiment.base import HttpBackend
from tweetmood.sentiment.labels import (
    DEFAULT_THRESHOLDS,
    LabelThresholds,
    map_label,
    parse_label_response,
)

log = get_logger("huggingface")


class HuggingFaceBackend(HttpBackend):
    """Hosted inference endpoint for a text-classification model.

    Cardiff's twitter models answer ``LABEL_0`` / ``LABEL_1`` / ``LABEL_2``
    (negative / neutral / positive); newer checkpoints answer the words
    themselves. Both are handled by the label mapping.

    Configuration:
        HUGGINGFACE_API_KEY: Inference API token
        HUGGINGFACE_MODEL: Primary model id
        HUGGINGFACE_ENDPOINTS: Optional comma-separated endpoint candidates

    Usage:
        backend = HuggingFaceBackend(api_key="hf_...", endpoints=[url])
        backend.warm_up()
        result = backend.parse(backend.request("great game tonight"))
        backend.close()
    """

    def __init__(
        self,
        api_key: str,
        endpoints: Sequence[str],
        name: str = "HUGGINGFACE",
        timeout: float = 30.0,
        probe_timeout: float = 10.0,
        warm_up_timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY is required")
        if not endpoints:
            raise ValueError("At least one inference endpoint is required")

        super().__init__(
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            client=client,
        )
        self.name = name
        self.endpoints = list(endpoints)
        self.url = self.endpoints[0]
        self.probe_timeout = probe_timeout
        self.warm_up_timeout = warm_up_timeout

    def request(self, text: str) -> Any:
        payload = {
            "inputs": text,
            "options": {"wait_for_model": True, "use_cache": True},
        }
        return self._post_json(self.url, payload)

    def parse(
        self,
        payload: Any,
        thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
    ) -> SentimentResult:
        label, score = parse_label_response(payload)
        return map_label(label, score, thresholds)

    def find_working_endpoint(self) -> Optional[str]:
        """Return the first endpoint candidate that answers a probe."""
        probe = {"inputs": "test", "options": {"wait_for_model": False}}
        for endpoint in self.endpoints:
            try:
                self._post_json(endpoint, probe, timeout=self.probe_timeout)
                log.debug(f"Working endpoint found: {endpoint}")
                return endpoint
            except (NetworkError, RemoteServiceError) as e:
                log.debug(f"Endpoint failed: {endpoint} - {e}")
        return None

    def warm_up(self) -> bool:
        """Pick a working endpoint and load the model on it.

        The chosen URL is an advisory preference for this instance only.
        """
        endpoint = self.find_working_endpoint()
        if endpoint is None:
            log.warning(f"{self.name}: no working endpoint found, skipping warm-up")
            return False

        warm_up = {"inputs": "test", "options": {"wait_for_model": True, "use_cache": False}}
        try:
            self._post_json(endpoint, warm_up, timeout=self.warm_up_timeout)
        except (NetworkError, RemoteServiceError) as e:
            log.warning(f"{self.name}: model warm-up failed: {e}")
            return False

        self.url = endpoint
        log.info(f"{self.name}: model warmed up on {endpoint}")
        return True

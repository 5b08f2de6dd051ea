from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from tweetmood.core.errors import NetworkError, RemoteServiceError
from tweetmood.core.logger import get_logger
from tweetmood.core.models import SentimentResult
from tweetmood.sentiment.labels import DEFAULT_THRESHOLDS, LabelThresholds

log = get_logger("backend")


class ClassifierBackend(ABC):
    """One external (or local) text classification service.

    ``request`` performs a single round trip and raises ``NetworkError`` or
    ``RemoteServiceError``; retries and fallbacks belong to the caller.
    """

    name: str = "BACKEND"

    @abstractmethod
    def request(self, text: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def parse(
        self,
        payload: Any,
        thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
    ) -> SentimentResult:
        raise NotImplementedError

    def warm_up(self) -> bool:
        """Best-effort readiness probe. Returns True if the backend answered."""
        return True

    def close(self) -> None:
        pass


class HttpBackend(ClassifierBackend):
    """Shared httpx plumbing: one client per backend, errors mapped to the taxonomy."""

    def __init__(
        self,
        headers: dict[str, str],
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout, headers=headers)
        if client is not None:
            self.client.headers.update(headers)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
        log.debug(f"{self.name} client closed")

    def _post_json(self, url: str, payload: dict[str, Any], timeout: Optional[float] = None) -> Any:
        try:
            response = self.client.post(url, json=payload, timeout=timeout or self.timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.name} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{self.name} request error: {e}") from e

        if response.status_code >= 400:
            body = response.text[:300]
            # Auth and rate-limit errors mention the model too; a secondary shares the key
            model_unavailable = response.status_code == 404 or (
                response.status_code == 503 and "model" in body.lower()
            )
            raise RemoteServiceError(
                f"{self.name} API error: {response.status_code} {body}",
                status_code=response.status_code,
                model_unavailable=model_unavailable,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(f"{self.name} returned invalid JSON") from e

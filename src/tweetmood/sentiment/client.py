from __future__ import annotations

import time
from typing import Callable, Optional

from tweetmood.core.errors import NetworkError, RemoteServiceError, ValidationError
from tweetmood.core.logger import get_logger, log_error_with_context
from tweetmood.core.models import SentimentResult
from tweetmood.core.retry import exponential_retrying
from tweetmood.sentiment.base import ClassifierBackend
from tweetmood.sentiment.labels import DEFAULT_THRESHOLDS, LabelThresholds

log = get_logger("classifier")


class SentimentClassifierClient:
    """Classifies one text at a time and always returns a result.

    Flow for a single call:
        1. Blank text is rejected locally (no network) and yields the fallback.
        2. The primary backend is tried; transport failures and timeouts are
           retried ``max_retries`` times with exponential backoff.
        3. If the primary reports its model unavailable, the secondary backend
           (when configured) is tried the same way, for this call only.
        4. Anything left over becomes ``SentimentResult.fallback``.

    Usage:
        client = SentimentClassifierClient(primary, secondary=fallback_model)
        client.warm_up()
        result = client.classify("what a match")
    """

    def __init__(
        self,
        primary: ClassifierBackend,
        secondary: Optional[ClassifierBackend] = None,
        max_retries: int = 2,
        backoff_base: float = 1.0,
        thresholds: LabelThresholds = DEFAULT_THRESHOLDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.primary = primary
        self.secondary = secondary
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.thresholds = thresholds
        self._sleep = sleep

    @property
    def fallback_name(self) -> str:
        return self.primary.name

    def fallback_result(self) -> SentimentResult:
        return SentimentResult.fallback(self.fallback_name)

    def warm_up(self) -> bool:
        """Probe the primary backend. Failure is logged, never raised."""
        try:
            return self.primary.warm_up()
        except Exception as e:
            log.warning(f"{self.primary.name} warm-up failed: {e}")
            return False

    def close(self) -> None:
        self.primary.close()
        if self.secondary is not None:
            self.secondary.close()

    def _classify_with(self, backend: ClassifierBackend, text: str) -> SentimentResult:
        retrying = exponential_retrying(
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            exceptions=(NetworkError,),
            sleep=self._sleep,
        )
        for attempt in retrying:
            with attempt:
                payload = backend.request(text)
        return backend.parse(payload, self.thresholds)

    def _validate(self, text: str) -> str:
        if text is None or not str(text).strip():
            raise ValidationError("Text to classify is empty")
        return str(text)

    def classify(self, text: str) -> SentimentResult:
        """Classify ``text``; never raises."""
        try:
            text = self._validate(text)
        except ValidationError as e:
            log.warning(f"Skipping classification: {e}")
            return self.fallback_result()

        try:
            result = self._classify_with(self.primary, text)
            log.debug(f"{self.primary.name}: {result.sentiment.value} ({result.confidence}) for: {text[:50]}")
            return result
        except RemoteServiceError as e:
            if e.model_unavailable and self.secondary is not None:
                log.info(f"{self.primary.name} unavailable ({e}); trying {self.secondary.name}")
                return self._classify_secondary(text)
            log_error_with_context(log, "Classification failed", e, backend=self.primary.name)
        except NetworkError as e:
            log_error_with_context(
                log,
                f"Classification failed after {self.max_retries + 1} attempts",
                e,
                backend=self.primary.name,
            )
        except Exception as e:
            log_error_with_context(log, "Unexpected classification error", e, backend=self.primary.name)

        return self.fallback_result()

    def _classify_secondary(self, text: str) -> SentimentResult:
        try:
            return self._classify_with(self.secondary, text)
        except Exception as e:
            log_error_with_context(log, "Secondary classification failed", e, backend=self.secondary.name)
            return self.fallback_result()

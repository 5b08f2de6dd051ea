from __future__ import annotations

from typing import Optional


class TweetmoodError(Exception):
    """Base exception for tweetmood errors."""
    pass


class ValidationError(TweetmoodError):
    """Input rejected before any network or storage call."""
    pass


class NetworkError(TweetmoodError):
    """Transport failure or timeout. Retryable."""
    pass


class RemoteServiceError(TweetmoodError):
    """Non-2xx answer or unreadable payload from a classification service.

    ``model_unavailable`` marks errors that mean the backend's model cannot
    serve this request (not found, model error, still loading). Those switch
    the call to the secondary backend instead of giving up.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        model_unavailable: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.model_unavailable = model_unavailable


class StorageError(TweetmoodError):
    """Datastore read or write failed. Aborts a pipeline run."""
    pass


class OperationCancelled(TweetmoodError):
    """Raised at a chunk boundary once a run's cancel event is set."""
    pass

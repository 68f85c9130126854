"""Exception types raised by the refinement engine and its transports."""

from typing import Optional


class RefinementError(Exception):
    """Base class for refinement failures."""


class TransportError(RefinementError):
    """Raised when a model service call fails after the transport's retries."""


class RateLimitError(TransportError):
    """Raised when rate limit is exceeded and cannot be retried."""
    def __init__(self, message: str, reset_time: Optional[int] = None):
        super().__init__(message)
        self.reset_time = reset_time


class PreAnalysisError(RefinementError):
    """Raised when the source artifact could not be analysed for an edit run."""


class RunCancelled(RefinementError):
    """Raised when the caller cancels a run between service calls."""

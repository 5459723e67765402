"""Failure categories surfaced by the review pipeline.

Every category aborts the whole invocation. Events already yielded before the
failure stay valid; the caller decides whether to keep them.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for every failure the pipeline reports to its caller."""


class InputError(ReviewError):
    """The artifact itself cannot be reviewed (e.g. blank content)."""


class ConfigurationError(ReviewError):
    """Missing credential, base URL or endpoint. Raised before any network call."""


class TransportError(ReviewError):
    """Non-success status or network failure from a provider call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyResponseError(ReviewError):
    """The provider answered successfully but without usable text."""


class ReviewCancelledError(ReviewError):
    """A streaming review was aborted by the caller."""


class ReviewTimeoutError(ReviewCancelledError):
    """A streaming review exceeded its deadline and was aborted."""

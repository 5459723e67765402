"""Base adapters implementing the Template Method pattern.

Every provider family turns a prompt into the same provider-agnostic event
sequence. Two shapes exist:

    SingleShotAdapter.stream_events() → _complete()          ← one full answer
                                      → split_complete()

    StreamingAdapter.stream_events()  → _stream_fragments()  ← token stream
                                      → SentinelSplitter.feed() per fragment
                                      → finish() + structured payload

Subclasses implement only the provider call (``_complete`` or
``_stream_fragments``) and ``ping``. Splitting, deadlines, cancellation and
empty-answer handling are defined once here.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from complens_core.errors import EmptyResponseError, ReviewCancelledError, ReviewTimeoutError
from complens_core.models import StructuredEvent
from complens_core.splitter import SentinelSplitter, split_complete
from complens_core.structurer import parse_review_markdown
from complens_core.transport import HttpTransport

if TYPE_CHECKING:
    from complens_core.models import ProviderConfig, ReviewRequest, StreamEvent

logger = logging.getLogger(__name__)

# Measured from the moment the stream is opened, not per fragment.
_STREAM_TIMEOUT_SECONDS = 60.0
_MAX_TOKENS = 2048


class BaseAdapter(ABC):
    LABEL: str = "Provider"
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, config: ProviderConfig, transport: HttpTransport | None = None):
        self.config = config
        self.transport = transport if transport is not None else HttpTransport()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def stream_events(
        self,
        prompt: str,
        request: ReviewRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield review, revision and (optionally) structured events in order."""

    def validate(self) -> None:
        """Raise ConfigurationError if the adapter cannot be called at all.

        Called by the orchestrator before any network traffic. The default
        accepts every configuration; adapters with endpoint rules override it.
        """

    @abstractmethod
    async def ping(self) -> str:
        """Send a minimal request and return a success message.

        Raises the usual ReviewError subclasses on failure.
        """


class SingleShotAdapter(BaseAdapter):
    """Adapters whose provider answers with one complete JSON body.

    Not cancellable mid-flight: the request is awaited as a unit.
    """

    EMPTY_MESSAGE = "Provider returned an empty response."

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        """Make one request and return the answer text (possibly empty)."""

    async def stream_events(self, prompt, request, *, cancel=None):
        self.validate()
        text = await self._complete(prompt)
        if not text or not text.strip():
            raise EmptyResponseError(self.EMPTY_MESSAGE)
        events, _ = split_complete(text)
        for event in events:
            yield event


class StreamingAdapter(BaseAdapter):
    """Adapters that receive the answer as a sequence of text fragments."""

    TIMEOUT_SECONDS: float = _STREAM_TIMEOUT_SECONDS

    @abstractmethod
    def _stream_fragments(self, prompt: str) -> AsyncIterator[str]:
        """Open the provider stream and yield raw text fragments.

        Must be an async generator so it can be closed on cancellation,
        releasing the underlying network handle.
        """

    async def stream_events(self, prompt, request, *, cancel=None):
        self.validate()
        splitter = SentinelSplitter()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.TIMEOUT_SECONDS
        fragments = self._stream_fragments(prompt)

        try:
            while True:
                fragment = await self._next_fragment(fragments, deadline, cancel)
                if fragment is None:
                    break
                for event in splitter.feed(fragment):
                    yield event
        finally:
            await fragments.aclose()

        for event in splitter.finish():
            yield event

        structured = parse_review_markdown(splitter.review_text, request)
        if structured:
            yield StructuredEvent.from_review(structured)

    async def _next_fragment(
        self,
        fragments: AsyncIterator[str],
        deadline: float,
        cancel: asyncio.Event | None,
    ) -> str | None:
        """Wait for the next fragment, the cancel signal or the deadline.

        Returns None when the provider stream is exhausted.
        """
        if cancel is not None and cancel.is_set():
            raise ReviewCancelledError(f"{self.LABEL} review was cancelled.")

        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise self._timeout_error()

        next_item = asyncio.ensure_future(fragments.__anext__())
        waiters: set[asyncio.Future] = {next_item}
        cancel_waiter = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if next_item in done:
            try:
                return next_item.result()
            except StopAsyncIteration:
                return None

        next_item.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await next_item

        if cancel is not None and cancel.is_set():
            logger.info("%s stream cancelled by caller", self.LABEL)
            raise ReviewCancelledError(f"{self.LABEL} review was cancelled.")
        raise self._timeout_error()

    def _timeout_error(self) -> ReviewTimeoutError:
        logger.warning("%s stream exceeded %.0fs deadline", self.LABEL, self.TIMEOUT_SECONDS)
        return ReviewTimeoutError(f"{self.LABEL} did not finish within {self.TIMEOUT_SECONDS:.0f} seconds.")

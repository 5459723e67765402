"""Core artifact review orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from complens_core.errors import ConfigurationError, InputError, ReviewError
from complens_core.models import (
    ConnectionCheck,
    ReviewEvent,
    ReviewOutcome,
    RevisionEvent,
    StructuredEvent,
    StructuredReview,
)
from complens_core.prompt import build_prompt
from complens_core.providers.anthropic import AnthropicAdapter
from complens_core.providers.gemini import GeminiAdapter
from complens_core.providers.ollama import OllamaAdapter, normalize_base_url
from complens_core.providers.openai_compat import OpenAICompatibleAdapter
from complens_core.structurer import parse_review_markdown
from complens_core.transport import HttpTransport

if TYPE_CHECKING:
    from complens_core.models import ProviderConfig, ReviewRequest, StreamEvent
    from complens_core.providers.base import BaseAdapter

logger = logging.getLogger(__name__)

_ADAPTERS: dict[str, type[BaseAdapter]] = {
    "openai": OpenAICompatibleAdapter,
    "azure": OpenAICompatibleAdapter,
    "groq": OpenAICompatibleAdapter,
    "gemini": GeminiAdapter,
    "anthropic": AnthropicAdapter,
    "ollama": OllamaAdapter,
}

_LOCAL_HINT = "Ollama request failed. Ensure the host allows CORS from this origin. Details: {}"


def _get_adapter(config: ProviderConfig, transport: HttpTransport) -> BaseAdapter:
    try:
        adapter_cls = _ADAPTERS[config.provider]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider: {config.provider!r}. Choose one of: {', '.join(_ADAPTERS)}."
        ) from None
    try:
        return adapter_cls(config, transport)
    except ImportError as e:
        # Optional provider SDK not installed.
        raise ConfigurationError(str(e)) from e


def _check_inputs(request: ReviewRequest, config: ProviderConfig) -> None:
    if not request.content.strip():
        raise InputError("Artifact content is empty.")
    if config.requires_api_key and not config.has_api_key:
        raise ConfigurationError(f"API key missing for {config.provider.upper()}.")


def _structure(
    review_text: str,
    revision_text: str | None,
    request: ReviewRequest,
    provided: StructuredReview | None,
    parse_revision_fallback: bool,
) -> StructuredReview:
    """Pick the structured payload to publish once the stream has ended.

    A payload supplied by the adapter wins; otherwise the review markdown is
    parsed here. With ``parse_revision_fallback`` the revised text is parsed
    too when no recommendations were found, which can pull headings and
    numbered lines of the revised artifact into the recommendation list.
    """
    structured = provided
    if structured is None:
        structured = parse_review_markdown(review_text, request) if review_text.strip() else StructuredReview()

    if parse_revision_fallback and not structured.recommendations and revision_text and revision_text.strip():
        from_revision = parse_review_markdown(revision_text, request)
        if from_revision:
            logger.debug(
                "Revision fallback produced %d comment(s), %d recommendation(s)",
                len(from_revision.comments),
                len(from_revision.recommendations),
            )
            structured = StructuredReview(
                comments=structured.comments or from_revision.comments,
                recommendations=from_revision.recommendations,
            )
    return structured


async def review_artifact(
    request: ReviewRequest,
    config: ProviderConfig,
    *,
    cancel: asyncio.Event | None = None,
    transport: HttpTransport | None = None,
    parse_revision_fallback: bool = False,
) -> AsyncIterator[StreamEvent]:
    """Run one review and yield its events in arrival order.

    Input and credential problems raise before any network traffic. Any
    later failure aborts the stream; events already yielded stay valid.
    A single StructuredEvent, if any, is always the last event.
    """
    _check_inputs(request, config)

    owns_transport = transport is None
    transport = transport if transport is not None else HttpTransport()
    review_parts: list[str] = []
    revision_text: str | None = None
    provided: StructuredReview | None = None

    try:
        adapter = _get_adapter(config, transport)
        adapter.validate()
        prompt = build_prompt(request)
        logger.debug("Reviewing %s artifact with %s/%s", request.artifact_kind, config.provider, config.model)

        events = adapter.stream_events(prompt, request, cancel=cancel)
        try:
            async for event in events:
                if isinstance(event, StructuredEvent):
                    # Held back so that at most one structured payload is published.
                    provided = StructuredReview(comments=event.comments, recommendations=event.recommendations)
                    continue
                if isinstance(event, ReviewEvent):
                    review_parts.append(event.chunk)
                elif isinstance(event, RevisionEvent):
                    revision_text = event.text
                yield event
        finally:
            await events.aclose()

        structured = _structure("".join(review_parts), revision_text, request, provided, parse_revision_fallback)
        if structured:
            yield StructuredEvent.from_review(structured)
    except ReviewError as e:
        logger.error("%s review invocation failed: %s", config.provider, e)
        if config.provider == "ollama":
            e.args = (_LOCAL_HINT.format(e),)
        raise
    finally:
        if owns_transport:
            await transport.aclose()


async def collect_review(events: AsyncIterator[StreamEvent]) -> ReviewOutcome:
    """Consume a review stream and keep what a caller needs afterwards."""
    outcome = ReviewOutcome()
    review_parts: list[str] = []
    start = time.monotonic()

    async for event in events:
        if isinstance(event, ReviewEvent):
            review_parts.append(event.chunk)
        elif isinstance(event, RevisionEvent):
            outcome.revised_text = event.text
        elif isinstance(event, StructuredEvent):
            outcome.comments = event.comments
            outcome.recommendations = event.recommendations

    outcome.review_markdown = "".join(review_parts)
    outcome.elapsed_seconds = time.monotonic() - start
    return outcome


async def check_connection(config: ProviderConfig, transport: HttpTransport | None = None) -> ConnectionCheck:
    """Probe the configured provider. Never raises; failures come back as messages."""
    if config.requires_api_key and not config.has_api_key:
        return ConnectionCheck(False, "Provide an API key before testing the connection.")
    if config.provider == "ollama" and not normalize_base_url(config.base_url):
        return ConnectionCheck(False, "Provide an Ollama host URL to test connectivity.")

    owns_transport = transport is None
    transport = transport if transport is not None else HttpTransport()
    try:
        adapter = _get_adapter(config, transport)
        try:
            adapter.validate()
        except ConfigurationError:
            return ConnectionCheck(False, "Configure a valid endpoint URL before testing.")
        message = await adapter.ping()
    except ReviewError as e:
        logger.error("%s connection check failed: %s", config.provider, e)
        return ConnectionCheck(False, str(e))
    finally:
        if owns_transport:
            await transport.aclose()
    return ConnectionCheck(True, message)

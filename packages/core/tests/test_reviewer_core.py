"""Tests for the core review pipeline: review_artifact, collect_review and check_connection."""

import json

import httpx
import pytest

from complens_core.errors import ConfigurationError, EmptyResponseError, InputError, TransportError
from complens_core.models import (
    ProviderConfig,
    ReviewEvent,
    ReviewRequest,
    RevisionEvent,
    StructuredEvent,
)
from complens_core.prompt import SEPARATOR
from complens_core.reviewer import _get_adapter, check_connection, collect_review, review_artifact
from complens_core.transport import HttpTransport

SCENARIO_RESPONSE = (
    "# Missing Requirements or Traceability Gaps\n- No verification evidence"
    "|||---REVISED_TEXT_SEPARATOR---|||REQ-1 shall X, verified by TC-9"
)


def _request(content="REQ-1 shall X", standards=("ISO 13485",)) -> ReviewRequest:
    return ReviewRequest(content=content, artifact_kind="requirements", standards=standards)


def _openai_config(api_key="sk-test") -> ProviderConfig:
    return ProviderConfig(provider="openai", model="gpt-4o-mini", api_key=api_key)


class _Recorder:
    """MockTransport handler that records requests and replays one answer."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def transport(self) -> HttpTransport:
        return HttpTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(self)))


def _chat(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


async def _drain(events) -> list:
    return [event async for event in events]


# ---------------------------------------------------------------------------
# review_artifact
# ---------------------------------------------------------------------------


class TestReviewArtifactScenario:
    @pytest.mark.asyncio
    async def test_end_to_end_single_shot(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        events = await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))

        assert events[0] == ReviewEvent("# Missing Requirements or Traceability Gaps\n- No verification evidence")
        assert events[1] == RevisionEvent("REQ-1 shall X, verified by TC-9")
        structured = events[2]
        assert isinstance(structured, StructuredEvent)
        assert len(events) == 3

        assert structured.recommendations == ()
        assert len(structured.comments) == 1
        comment = structured.comments[0]
        assert comment.severity == "critical"
        assert comment.section == "Missing Requirements or Traceability Gaps"
        assert comment.summary == "No verification evidence"
        assert comment.standard == "ISO 13485"

    @pytest.mark.asyncio
    async def test_prompt_carries_content_and_standards(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))

        body = json.loads(recorder.requests[0].content)
        prompt = body["messages"][1]["content"]
        assert "REQ-1 shall X" in prompt
        assert "ISO 13485" in prompt
        assert SEPARATOR in prompt

    @pytest.mark.asyncio
    async def test_no_structured_event_when_nothing_extracted(self):
        recorder = _Recorder(_chat(f"   {SEPARATOR}revised"))
        events = await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))
        assert events == [ReviewEvent("   "), RevisionEvent("revised")]

    @pytest.mark.asyncio
    async def test_streaming_provider_publishes_one_structured_event(self):
        body = (
            'data: {"candidates": [{"content": {"parts": [{"text": "# Recommended Actions\\n- Add trace matrix"}]}}]}\n\n'
            f'data: {{"candidates": [{{"content": {{"parts": [{{"text": "{SEPARATOR}new"}}]}}}}]}}\n\n'
        )
        recorder = _Recorder(httpx.Response(200, text=body, headers={"content-type": "text/event-stream"}))
        config = ProviderConfig(provider="gemini", model="gemini-pro", api_key="k")

        events = await _drain(review_artifact(_request(), config, transport=recorder.transport))

        structured = [e for e in events if isinstance(e, StructuredEvent)]
        assert len(structured) == 1
        assert events[-1] is structured[0]
        assert structured[0].recommendations[0].description == "Add trace matrix"


class TestReviewArtifactFailures:
    @pytest.mark.asyncio
    async def test_missing_credential_fails_before_network(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        with pytest.raises(ConfigurationError, match="API key missing for OPENAI"):
            await _drain(review_artifact(_request(), _openai_config(api_key="  "), transport=recorder.transport))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_configuration_error_is_not_a_transport_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            await _drain(review_artifact(_request(), _openai_config(api_key="")))
        assert not isinstance(exc_info.value, TransportError)

    @pytest.mark.asyncio
    async def test_blank_content_is_rejected(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        with pytest.raises(InputError, match="Artifact content is empty."):
            await _drain(review_artifact(_request(content=" \n\t"), _openai_config(), transport=recorder.transport))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_custom_endpoint_fails_before_network(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        config = ProviderConfig(provider="azure", model="gpt-4o", api_key="az")
        with pytest.raises(ConfigurationError, match="No endpoint configured"):
            await _drain(review_artifact(_request(), config, transport=recorder.transport))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_malformed_endpoint_is_a_configuration_error(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        config = ProviderConfig(provider="azure", model="gpt-4o", api_key="az", base_url="http://[::1")
        with pytest.raises(ConfigurationError, match="Invalid endpoint URL"):
            await _drain(review_artifact(_request(), config, transport=recorder.transport))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        recorder = _Recorder(httpx.Response(500, text="boom"))
        with pytest.raises(TransportError, match="Provider responded with status 500"):
            await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_ollama_needs_no_credential(self):
        recorder = _Recorder(httpx.Response(200, json={"response": f"review{SEPARATOR}revised"}))
        config = ProviderConfig(provider="ollama", model="llama3", mode="local", base_url="http://localhost:11434")
        events = await _drain(review_artifact(_request(), config, transport=recorder.transport))
        assert RevisionEvent("revised") in events

    @pytest.mark.asyncio
    async def test_ollama_failures_mention_cross_origin_access(self):
        recorder = _Recorder(httpx.Response(200, json={"response": ""}))
        config = ProviderConfig(provider="ollama", model="llama3", mode="local", base_url="http://localhost:11434")
        with pytest.raises(EmptyResponseError) as exc_info:
            await _drain(review_artifact(_request(), config, transport=recorder.transport))
        message = str(exc_info.value)
        assert message.startswith("Ollama request failed. Ensure the host allows CORS")
        assert "Ollama returned an empty response." in message

    @pytest.mark.asyncio
    async def test_ollama_missing_base_url(self):
        config = ProviderConfig(provider="ollama", model="llama3", mode="local")
        with pytest.raises(ConfigurationError, match="Ollama base URL missing."):
            await _drain(review_artifact(_request(), config))

    @pytest.mark.asyncio
    async def test_cloud_failures_keep_plain_message(self):
        recorder = _Recorder(_chat(""))
        with pytest.raises(EmptyResponseError) as exc_info:
            await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))
        assert str(exc_info.value) == "Provider returned an empty response."


class TestRevisionFallback:
    RESPONSE = f"The document reads well overall.{SEPARATOR}# Plan\n1. Update test plan\nREQ-1 shall X"

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        recorder = _Recorder(_chat(self.RESPONSE))
        events = await _drain(review_artifact(_request(), _openai_config(), transport=recorder.transport))
        structured = events[-1]
        assert structured.recommendations == ()
        assert [c.summary for c in structured.comments] == ["The document reads well overall."]

    @pytest.mark.asyncio
    async def test_mines_revision_for_recommendations_when_enabled(self):
        recorder = _Recorder(_chat(self.RESPONSE))
        events = await _drain(
            review_artifact(_request(), _openai_config(), transport=recorder.transport, parse_revision_fallback=True)
        )
        structured = events[-1]
        assert [r.description for r in structured.recommendations] == ["Update test plan"]
        # Review comments win over comments mined from the revision.
        assert [c.summary for c in structured.comments] == ["The document reads well overall."]

    @pytest.mark.asyncio
    async def test_revision_comments_used_when_review_had_none(self):
        recorder = _Recorder(_chat(f"{SEPARATOR}# Plan\n1. Update test plan\nREQ-1 shall X"))
        events = await _drain(
            review_artifact(_request(), _openai_config(), transport=recorder.transport, parse_revision_fallback=True)
        )
        structured = events[-1]
        assert [c.summary for c in structured.comments] == ["REQ-1 shall X"]


class TestGetAdapter:
    def test_rest_providers_share_one_adapter(self):
        transport = HttpTransport()
        for provider in ("openai", "azure", "groq"):
            adapter = _get_adapter(ProviderConfig(provider=provider, model="m", api_key="k"), transport)
            assert type(adapter).__name__ == "OpenAICompatibleAdapter"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            _get_adapter(ProviderConfig(provider="watson", model="m", api_key="k"), HttpTransport())


# ---------------------------------------------------------------------------
# collect_review
# ---------------------------------------------------------------------------


class TestCollectReview:
    @pytest.mark.asyncio
    async def test_aggregates_events(self):
        recorder = _Recorder(_chat(SCENARIO_RESPONSE))
        outcome = await collect_review(review_artifact(_request(), _openai_config(), transport=recorder.transport))

        assert outcome.review_markdown.endswith("- No verification evidence")
        assert outcome.revised_text == "REQ-1 shall X, verified by TC-9"
        assert len(outcome.comments) == 1
        assert outcome.recommendations == ()
        assert outcome.elapsed_seconds >= 0

    @pytest.mark.asyncio
    async def test_revised_text_is_none_without_separator(self):
        async def events():
            yield ReviewEvent("a")
            yield ReviewEvent("b")

        outcome = await collect_review(events())
        assert outcome.review_markdown == "ab"
        assert outcome.revised_text is None

    @pytest.mark.asyncio
    async def test_last_revision_wins(self):
        async def events():
            yield RevisionEvent("draft")
            yield RevisionEvent("draft, final")

        outcome = await collect_review(events())
        assert outcome.revised_text == "draft, final"


# ---------------------------------------------------------------------------
# check_connection
# ---------------------------------------------------------------------------


class TestCheckConnection:
    @pytest.mark.asyncio
    async def test_missing_key(self):
        result = await check_connection(_openai_config(api_key=""))
        assert not result.ok
        assert result.message == "Provide an API key before testing the connection."

    @pytest.mark.asyncio
    async def test_missing_ollama_host(self):
        result = await check_connection(ProviderConfig(provider="ollama", model="llama3"))
        assert not result.ok
        assert result.message == "Provide an Ollama host URL to test connectivity."

    @pytest.mark.asyncio
    async def test_missing_custom_endpoint(self):
        recorder = _Recorder(_chat("pong"))
        result = await check_connection(
            ProviderConfig(provider="azure", model="gpt-4o", api_key="az"), transport=recorder.transport
        )
        assert not result.ok
        assert result.message == "Configure a valid endpoint URL before testing."
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_success(self):
        recorder = _Recorder(_chat("pong"))
        result = await check_connection(_openai_config(), transport=recorder.transport)
        assert result.ok
        assert result.message == "Provider responded successfully."

    @pytest.mark.asyncio
    async def test_failure_status_is_reported_not_raised(self):
        recorder = _Recorder(httpx.Response(401, json={"error": "bad key"}))
        result = await check_connection(_openai_config(), transport=recorder.transport)
        assert not result.ok
        assert result.message == "Provider responded with status 401"

    @pytest.mark.asyncio
    async def test_ollama_host(self):
        recorder = _Recorder(httpx.Response(200, json={"models": []}))
        config = ProviderConfig(provider="ollama", model="llama3", base_url="http://localhost:11434/")
        result = await check_connection(config, transport=recorder.transport)
        assert result.ok
        assert str(recorder.requests[0].url) == "http://localhost:11434/api/tags"

    @pytest.mark.asyncio
    async def test_missing_optional_sdk_is_reported(self, mocker):
        mocker.patch.dict("sys.modules", {"anthropic": None})
        config = ProviderConfig(provider="anthropic", model="claude-sonnet-4-20250514", api_key="k")
        result = await check_connection(config)
        assert not result.ok
        assert "complens[anthropic]" in result.message


class TestOptionalSdk:
    @pytest.mark.asyncio
    async def test_review_without_sdk_is_a_configuration_error(self, mocker):
        mocker.patch.dict("sys.modules", {"anthropic": None})
        config = ProviderConfig(provider="anthropic", model="claude-sonnet-4-20250514", api_key="k")
        with pytest.raises(ConfigurationError, match="complens\\[anthropic\\]"):
            await _drain(review_artifact(_request(), config))

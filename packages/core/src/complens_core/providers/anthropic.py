from __future__ import annotations

from complens_core.errors import TransportError
from complens_core.providers.base import StreamingAdapter


class AnthropicAdapter(StreamingAdapter):
    LABEL = "Anthropic"
    TEMPERATURE = 0.2

    def __init__(self, config, transport=None, client=None):
        super().__init__(config, transport)
        if client is not None:
            self.client = client
            return
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'complens[anthropic]'"
            )
        self.client = AsyncAnthropic(api_key=config.api_key.strip(), base_url=config.base_url or None)

    async def _stream_fragments(self, prompt: str):
        # Optional dependency; __init__ has already checked it is importable.
        import anthropic

        try:
            async with self.client.messages.stream(
                model=self.config.model,
                max_tokens=self.MAX_TOKENS,
                temperature=self.TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIStatusError as e:
            raise TransportError(f"{self.LABEL} responded with status {e.status_code}", status_code=e.status_code) from e
        except anthropic.APIError as e:
            raise TransportError(f"{self.LABEL} request failed: {e}") from e

    async def ping(self) -> str:
        import anthropic

        try:
            await self.client.messages.create(
                model=self.config.model,
                max_tokens=16,
                messages=[{"role": "user", "content": "Ping for connectivity check."}],
            )
        except anthropic.APIStatusError as e:
            raise TransportError(f"{self.LABEL} responded with status {e.status_code}", status_code=e.status_code) from e
        except anthropic.APIError as e:
            raise TransportError(f"{self.LABEL} request failed: {e}") from e
        return "Anthropic endpoint is reachable."

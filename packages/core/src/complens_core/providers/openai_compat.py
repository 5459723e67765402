"""Single-shot adapter for OpenAI-compatible chat completion endpoints.

OpenAI, Azure OpenAI and Groq speak the same request/response shape and
differ only in where the endpoint comes from and how the key is sent.
"""

from __future__ import annotations

from complens_core.errors import ConfigurationError
from complens_core.providers.base import SingleShotAdapter

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
GROQ_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"

SYSTEM_PROMPT = "You are a medical-device compliance co-pilot."


def resolve_endpoint(provider: str, base_url: str | None) -> str:
    """Return the chat completions URL for a provider, or "" if none is configured."""
    if provider == "openai":
        return OPENAI_ENDPOINT
    override = (base_url or "").strip()
    if provider == "groq":
        return override or GROQ_ENDPOINT
    # azure and any other customizable endpoint: taken verbatim from configuration
    return override


def auth_headers(provider: str, api_key: str) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if provider == "azure":
        headers["api-key"] = api_key.strip()
    else:
        headers["Authorization"] = f"Bearer {api_key.strip()}"
    return headers


def extract_message_text(data: dict) -> str:
    """Pull the answer text out of a chat completion body.

    ``message.content`` is usually a string but some deployments return an
    array of parts; part texts are concatenated in order.
    """
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part if isinstance(part, str) else str(part.get("text") or "") for part in content)
    return ""


class OpenAICompatibleAdapter(SingleShotAdapter):
    def validate(self) -> None:
        if not self.endpoint:
            raise ConfigurationError("No endpoint configured for the selected provider.")

    @property
    def endpoint(self) -> str:
        return resolve_endpoint(self.config.provider, self.config.base_url)

    async def _complete(self, prompt: str) -> str:
        data = await self.transport.post_json(
            self.endpoint,
            headers=auth_headers(self.config.provider, self.config.api_key),
            payload={
                "model": self.config.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": self.MAX_TOKENS,
            },
            label=self.LABEL,
        )
        return extract_message_text(data)

    async def ping(self) -> str:
        self.validate()
        await self.transport.post_json(
            self.endpoint,
            headers=auth_headers(self.config.provider, self.config.api_key),
            payload={
                "model": self.config.model,
                "messages": [{"role": "user", "content": "Ping response"}],
                "max_tokens": 32,
            },
            label=self.LABEL,
        )
        return "Provider responded successfully."

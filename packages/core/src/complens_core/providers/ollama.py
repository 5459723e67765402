from __future__ import annotations

from complens_core.errors import ConfigurationError
from complens_core.providers.base import SingleShotAdapter


def normalize_base_url(url: str | None) -> str:
    """Strip surrounding whitespace and a single trailing slash."""
    url = (url or "").strip()
    return url[:-1] if url.endswith("/") else url


class OllamaAdapter(SingleShotAdapter):
    """Local daemon adapter. No credential, one JSON answer per request."""

    LABEL = "Ollama"
    EMPTY_MESSAGE = "Ollama returned an empty response."

    @property
    def base_url(self) -> str:
        return normalize_base_url(self.config.base_url)

    def validate(self) -> None:
        if not self.base_url:
            raise ConfigurationError("Ollama base URL missing.")

    async def _complete(self, prompt: str) -> str:
        data = await self.transport.post_json(
            f"{self.base_url}/api/generate",
            headers={"Content-Type": "application/json"},
            payload={"model": self.config.model, "prompt": prompt, "stream": False},
            label=self.LABEL,
        )
        answer = data.get("response") if isinstance(data, dict) else None
        return answer if isinstance(answer, str) else ""

    async def ping(self) -> str:
        self.validate()
        await self.transport.get(f"{self.base_url}/api/tags", label=self.LABEL)
        return "Ollama host responded successfully."

from __future__ import annotations

from complens_core.errors import TransportError
from complens_core.providers.base import StreamingAdapter

GEMINI_API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


def extract_candidate_text(payload) -> str:
    """Concatenate the text parts of the first candidate in a Gemini payload.

    Raises TransportError for payloads that are not objects and for in-stream
    ``error`` objects, which Gemini can send after a 200 status.
    """
    if not isinstance(payload, dict):
        raise TransportError(f"Gemini sent an unexpected stream payload: {type(payload).__name__}")
    error = payload.get("error")
    if error:
        detail = error.get("message") if isinstance(error, dict) else error
        code = error.get("code") if isinstance(error, dict) else None
        raise TransportError(
            f"Gemini stream reported an error: {detail}",
            status_code=code if isinstance(code, int) else None,
        )

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str))


class GeminiAdapter(StreamingAdapter):
    LABEL = "Gemini"
    # Same sampling temperature the review prompt was tuned against.
    TEMPERATURE = 0.2

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.config.api_key.strip()}

    def _url(self, method: str) -> str:
        return f"{GEMINI_API_ROOT}/{self.config.model}:{method}"

    async def _stream_fragments(self, prompt: str):
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.TEMPERATURE},
        }
        async for chunk in self.transport.stream_sse(
            self._url("streamGenerateContent") + "?alt=sse",
            headers=self._headers(),
            payload=payload,
            label=self.LABEL,
        ):
            text = extract_candidate_text(chunk)
            if text:
                yield text

    async def ping(self) -> str:
        await self.transport.post_json(
            self._url("generateContent"),
            headers=self._headers(),
            payload={
                "contents": [{"role": "user", "parts": [{"text": "Ping for connectivity check."}]}],
                "generationConfig": {"temperature": 0},
            },
            label=self.LABEL,
        )
        return "Gemini endpoint is reachable."

"""
Groq LLM Service for briefing text generation.
Talks to Groq's OpenAI-compatible chat completions API over httpx.
"""

from dataclasses import dataclass

import httpx
import structlog

from warm_transfer.config import GroqSettings, get_settings

logger = structlog.get_logger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM."""

    text: str
    tokens_used: int
    model: str


class GroqLLMService:
    """
    Thin async client for Groq chat completions.
    Errors are logged and re-raised; callers decide how to surface them.
    """

    def __init__(
        self,
        settings: GroqSettings | None = None,
        client: httpx.AsyncClient | None = None
    ) -> None:
        self.settings = settings or get_settings().groq
        self.model = self.settings.model_id
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={
                    "Authorization": f"Bearer {self.settings.api_key}",
                    "Content-Type": "application/json"
                },
                timeout=self.settings.timeout_seconds
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 300
    ) -> LLMResponse:
        """Run a single-turn chat completion."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        client = await self._get_client()

        try:
            response = await client.post(
                "/chat/completions",
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens
                }
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("groq_api_error", status=e.response.status_code, detail=str(e))
            raise
        except httpx.HTTPError as e:
            logger.error("groq_request_failed", error=str(e))
            raise

        text = result["choices"][0]["message"]["content"] or ""
        tokens = result.get("usage", {}).get("total_tokens", 0)

        logger.info(
            "groq_completion_generated",
            response_length=len(text),
            tokens=tokens
        )

        return LLMResponse(text=text.strip(), tokens_used=tokens, model=self.model)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()

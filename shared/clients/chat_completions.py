"""Chat completions client for OpenAI-compatible APIs."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

logger = structlog.get_logger()

OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class ChatMessage:
    """Single chat message."""

    role: str
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatCompletion:
    """Result of a chat completion call."""

    content: str
    model: str
    total_tokens: int


class ChatCompletionsClient:
    """Minimal async client for ``POST /chat/completions``.

    Works against OpenAI and any provider exposing the same endpoint
    (OpenRouter, local gateways).
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = OPENAI_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    async def complete(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletion:
        """Run one completion and return the first choice.

        Raises:
            ValueError: If no API key is configured or the response has no content.
            httpx.HTTPError: On transport or HTTP status errors.
        """
        if not self.api_key:
            raise ValueError("Chat completions API key is not configured")

        model = model or self.model
        payload: dict = {
            "model": model,
            "messages": [message.to_payload() for message in messages],
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()

        data = response.json()

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            logger.error(
                "chat_completion_parse_failed",
                response_keys=list(data.keys()) if isinstance(data, dict) else None,
            )
            raise ValueError("Invalid chat completion response format") from exc

        if not isinstance(content, str) or not content.strip():
            raise ValueError("Empty chat completion response")

        usage = data.get("usage") or {}
        return ChatCompletion(
            content=content,
            model=data.get("model", model),
            total_tokens=usage.get("total_tokens", 0),
        )

"""OpenAI API client wrapper for hazelpilot."""

import json
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.monitoring.logger import get_logger


class OpenAIClient:
    """Wrapper for OpenAI chat completion calls."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        request_timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize OpenAI client.

        Args:
            model: Model to use for completions
            api_key: Optional API key (defaults to env/config)
            request_timeout: Per-request timeout in seconds
            settings: Settings (defaults to the cached settings)
        """
        settings = settings or get_settings()
        self.model = model or settings.tie_breaker_model
        self.api_key = api_key or settings.openai_api_key
        self.request_timeout = request_timeout or float(
            settings.openai_request_timeout_seconds
        )
        self.logger = get_logger("models.openai_client")

        if not self.api_key:
            raise ValueError(
                "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
            )

        # Retries are driven by with_backoff so they share one policy
        self.client = AsyncOpenAI(api_key=self.api_key, max_retries=0)

    async def call(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a chat completion call."""
        final_messages: List[Dict[str, str]] = []
        if system_prompt:
            final_messages.append({"role": "system", "content": system_prompt})
        final_messages.extend(messages)

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": final_messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_completion_tokens"] = max_tokens
        if response_format:
            kwargs["response_format"] = response_format

        self.logger.debug(
            f"OpenAI API call: model={self.model}, "
            f"messages={len(final_messages)}, temperature={temperature}"
        )

        try:
            response = await self.client.chat.completions.create(
                timeout=self.request_timeout,
                **kwargs,
            )
        except openai.APIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise

        content = response.choices[0].message.content
        if response_format and response_format.get("type") == "json_object":
            try:
                content = json.loads(content or "")
            except json.JSONDecodeError as exc:
                self.logger.error(f"Failed to parse JSON response: {exc}")
                content = {"error": "Invalid JSON response", "raw": content}

        usage = response.usage
        return {
            "content": content,
            "usage": {
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            "model": response.model,
            "finish_reason": response.choices[0].finish_reason,
        }

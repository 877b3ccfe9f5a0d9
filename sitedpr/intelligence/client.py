"""JSON-mode chat completions with retry."""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sitedpr.config import LLMConfig, get_config

logger = logging.getLogger(__name__)

# 429, 5xx (503 overloaded), timeouts and dropped connections
RETRYABLE_ERRORS = (RateLimitError, InternalServerError, APITimeoutError, APIConnectionError)


class LLMClient:
    """Thin wrapper returning parsed JSON objects from the model."""

    def __init__(self, config: LLMConfig | None = None, client: AsyncOpenAI | None = None):
        self.config = config or get_config().llm
        if client is None:
            if not self.config.api_key:
                raise ValueError("OPENAI_API_KEY is required for AI parsing")
            client = AsyncOpenAI(
                api_key=self.config.api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        self.client = client

    async def complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        """Run one completion and decode the JSON object it returns.

        Raises:
            ValueError: If the model returns no content or invalid JSON
            openai.OpenAIError: If the call still fails after retries
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        f"LLM attempt {attempt.retry_state.attempt_number} "
                        f"of {self.config.retry_attempts}"
                    )
                response = await self.client.chat.completions.create(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    response_format={"type": "json_object"},
                )

        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty response from model")
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Model returned invalid JSON: {e}") from e

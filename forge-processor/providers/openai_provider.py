"""
OpenAI Vision Provider - Primary Vision Provider

Uses the OpenAI chat completions API (or any OpenAI-compatible gateway via
`base_url`) with images sent inline as data URLs and JSON response format.
"""

import base64
import logging
from typing import List, Optional

from openai import APIConnectionError, APIError, AsyncOpenAI, RateLimitError

from .base import GenerationConfig, LLMResponse, TaskType, VisionProvider, detect_media_type

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"


class OpenAIVisionProvider(VisionProvider):
    """
    Primary vision provider.

    Features:
    - OpenAI-compatible API (custom base_url supported)
    - Multi-image prompts
    - JSON object response format
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or ""
        self.model = model
        self.base_url = base_url
        self._client: Optional[AsyncOpenAI] = None

        logger.info(f"OpenAIVisionProvider initialized with model={self.model}")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_model_for_task(self, task_type: TaskType) -> str:
        return self.model

    async def complete_json(
        self,
        system: str,
        prompt: str,
        images: List[bytes],
        model: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
    ) -> LLMResponse:
        if config is None:
            config = GenerationConfig()

        model_name = model or self.model
        content = [
            {
                "type": "image_url",
                "image_url": {
                    "url": f"data:{detect_media_type(image)};base64,{base64.b64encode(image).decode('utf-8')}"
                },
            }
            for image in images
        ]
        content.append({"type": "text", "text": prompt})

        try:
            logger.info(f"OpenAI complete_json: model={model_name}, images={len(images)}")

            response = await self.client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": content},
                ],
                response_format={"type": "json_object"},
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )

            text = response.choices[0].message.content or ""
            tokens = response.usage.total_tokens if response.usage else None

            logger.info(f"OpenAI success: {len(text)} chars, {tokens} tokens")

            if not text:
                return LLMResponse(text="", model_used=model_name, provider=self.name, error="empty_response")

            return LLMResponse(text=text, model_used=model_name, provider=self.name, tokens_used=tokens)

        except RateLimitError as e:
            logger.warning(f"OpenAI rate limit: {e}")
            return LLMResponse(text="", model_used=model_name, provider=self.name, error=f"rate_limit: {e}")

        except APIConnectionError as e:
            logger.error(f"OpenAI connection error: {e}")
            return LLMResponse(text="", model_used=model_name, provider=self.name, error=f"connection_error: {e}")

        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            return LLMResponse(text="", model_used=model_name, provider=self.name, error=f"api_error: {e}")

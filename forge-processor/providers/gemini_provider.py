"""
Gemini Vision Provider - Fallback Vision Provider

Direct Gemini SDK implementation with multi-key rotation, used when the
OpenAI-compatible provider is unavailable or keeps failing.
"""

import io
import logging
from typing import List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from PIL import Image, UnidentifiedImageError

from .base import GenerationConfig, LLMResponse, TaskType, VisionProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


def _is_quota_error(error: Exception) -> bool:
    text = str(error)
    return "429" in text or "quota" in text.lower()


class GeminiVisionProvider(VisionProvider):
    """
    Fallback vision provider using the Gemini SDK.

    Implements multi-key rotation for quota management.
    """

    def __init__(self, api_keys: Optional[List[str]] = None, model: str = DEFAULT_MODEL):
        self.api_keys = [k for k in (api_keys or []) if k]
        self.model = model
        self._current_key_idx = 0
        self._failed_keys: set = set()

        logger.info(f"GeminiVisionProvider initialized with {len(self.api_keys)} API keys")

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return len(self.api_keys) > 0

    def get_model_for_task(self, task_type: TaskType) -> str:
        return self.model

    def _get_current_key(self) -> Optional[str]:
        """Get current API key, skipping rate-limited ones until all have failed."""
        available_keys = [k for k in self.api_keys if k not in self._failed_keys]
        if not available_keys:
            self._failed_keys.clear()
            available_keys = self.api_keys

        if not available_keys:
            return None

        self._current_key_idx = self._current_key_idx % len(available_keys)
        return available_keys[self._current_key_idx]

    def _rotate_key(self):
        self._current_key_idx += 1
        logger.info(f"Rotated to key index {self._current_key_idx}")

    def _mark_key_failed(self, key: str):
        self._failed_keys.add(key)
        logger.warning(f"Marked key ...{key[-6:]} as failed")

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
        pil_images = []
        try:
            for data in images:
                pil_images.append(Image.open(io.BytesIO(data)))
        except (OSError, UnidentifiedImageError) as e:
            for img in pil_images:
                img.close()
            logger.error(f"Gemini could not decode input image: {e}")
            return LLMResponse(text="", model_used=model_name, provider=self.name, error=f"invalid_image: {e}")

        try:
            # Try each key until one works
            for _ in range(max(1, len(self.api_keys))):
                api_key = self._get_current_key()
                if not api_key:
                    return LLMResponse(text="", model_used=model_name, provider=self.name, error="no_api_keys_available")

                try:
                    logger.info(f"Gemini complete_json: model={model_name}, images={len(images)}, key=...{api_key[-6:]}")

                    genai.configure(api_key=api_key)
                    gmodel = genai.GenerativeModel(model_name, system_instruction=system)
                    response = await gmodel.generate_content_async(
                        [*pil_images, prompt],
                        generation_config={
                            "temperature": config.temperature,
                            "max_output_tokens": config.max_tokens,
                            "response_mime_type": "application/json",
                        },
                    )

                    text = (response.text or "").strip()
                    if not text:
                        logger.warning("Empty response from Gemini")
                        self._rotate_key()
                        continue

                    logger.info(f"Gemini success: {len(text)} chars")
                    return LLMResponse(text=text, model_used=model_name, provider=self.name)

                except google_exceptions.ResourceExhausted as e:
                    logger.warning(f"Gemini rate limited: {e}")
                    self._mark_key_failed(api_key)
                    self._rotate_key()
                    continue

                except Exception as e:
                    logger.error(f"Gemini error: {e}")
                    if _is_quota_error(e):
                        self._mark_key_failed(api_key)
                        self._rotate_key()
                        continue
                    return LLMResponse(text="", model_used=model_name, provider=self.name, error=f"gemini_error: {e}")
        finally:
            for img in pil_images:
                img.close()

        return LLMResponse(text="", model_used=model_name, provider=self.name, error="all_keys_exhausted")

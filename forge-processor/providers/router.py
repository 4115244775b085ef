"""
Provider Router - Automatic Failover Between Vision Providers

Routes requests to the primary provider with automatic fallback to the backup.
"""

import logging
from typing import List, Optional

from .base import GenerationConfig, LLMResponse, TaskType, VisionProvider

logger = logging.getLogger(__name__)


class ProviderRouter(VisionProvider):
    """
    Routes vision requests with automatic failover.

    The primary is skipped once it has failed `failure_threshold` times in a
    row; a success resets the count.

    Usage:
        router = ProviderRouter(OpenAIVisionProvider(...), GeminiVisionProvider(...))
        response = await router.complete_json(system, prompt, images)
    """

    def __init__(
        self,
        primary: VisionProvider,
        fallback: Optional[VisionProvider] = None,
        failure_threshold: int = 3,
    ):
        self.primary = primary
        self.fallback = fallback

        # Circuit breaker state
        self._primary_failures = 0
        self._primary_failure_threshold = failure_threshold
        self._primary_disabled = False

        logger.info(
            f"ProviderRouter initialized: primary={self.primary.name}, "
            f"fallback={self.fallback.name if self.fallback else None}"
        )

    @property
    def name(self) -> str:
        return "router"

    @property
    def primary_disabled(self) -> bool:
        return self._primary_disabled

    def is_available(self) -> bool:
        return self.primary.is_available() or bool(self.fallback and self.fallback.is_available())

    def reset_primary(self):
        """Re-enable the primary provider."""
        self._primary_failures = 0
        self._primary_disabled = False
        logger.info("Primary provider reset")

    def _record_primary_failure(self):
        self._primary_failures += 1
        if self._primary_failures >= self._primary_failure_threshold:
            self._primary_disabled = True
            logger.warning(f"Primary provider disabled after {self._primary_failures} failures")

    def get_active_provider(self) -> Optional[VisionProvider]:
        """Get the provider the next request would go to first."""
        if not self._primary_disabled and self.primary.is_available():
            return self.primary
        if self.fallback and self.fallback.is_available():
            return self.fallback
        return None

    def get_model_for_task(self, task_type: TaskType) -> str:
        active = self.get_active_provider()
        return active.get_model_for_task(task_type) if active else "none"

    async def complete_json(
        self,
        system: str,
        prompt: str,
        images: List[bytes],
        model: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
    ) -> LLMResponse:
        """
        Run a JSON completion with automatic failover.

        Returns:
            LLMResponse from whichever provider succeeds
        """
        response = None

        if not self._primary_disabled and self.primary.is_available():
            logger.info(f"Trying primary ({self.primary.name})")
            response = await self.primary.complete_json(system, prompt, images, model, config)

            if not response.error:
                self._primary_failures = 0
                return response

            logger.warning(f"Primary failed: {response.error}")
            self._record_primary_failure()

        if self.fallback and self.fallback.is_available():
            logger.info(f"Falling back to {self.fallback.name}")
            # Model names are provider specific; the fallback uses its own
            return await self.fallback.complete_json(system, prompt, images, None, config)

        if response is not None:
            return response

        return LLMResponse(text="", model_used="none", provider="none", error="all_providers_unavailable")

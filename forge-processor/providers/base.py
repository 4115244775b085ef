"""
Base Vision Provider Interface

Abstract base class for the multimodal models that read brand assets and
source photos (OpenAI-compatible endpoints, Gemini).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class TaskType(Enum):
    """Types of tasks for model selection."""
    BRAND_ANALYSIS = "brand_analysis"  # Several reference assets -> brand DNA
    IMAGE_ANALYSIS = "image_analysis"  # One source photo -> composition zones


@dataclass
class GenerationConfig:
    """Configuration for a JSON completion."""
    temperature: float = 0.2
    max_tokens: int = 2000


@dataclass
class LLMResponse:
    """Unified response from vision providers."""
    text: str
    model_used: str
    provider: str
    tokens_used: Optional[int] = None
    error: Optional[str] = None


def detect_media_type(image_data: bytes) -> str:
    if image_data[:4] == b"\x89PNG":
        return "image/png"
    if image_data[:4] == b"RIFF" and image_data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class VisionProvider(ABC):
    """
    Abstract base class for vision providers.

    Providers never raise for upstream failures; they return an
    LLMResponse with `error` set so callers can retry or fail over.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured."""
        pass

    @abstractmethod
    async def complete_json(
        self,
        system: str,
        prompt: str,
        images: List[bytes],
        model: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
    ) -> LLMResponse:
        """
        Ask the model for a JSON answer about one or more images.

        Args:
            system: System instructions (schema and rules)
            prompt: User prompt
            images: Image bytes (JPEG/PNG/WebP), in order
            model: Optional model override
            config: Generation configuration

        Returns:
            LLMResponse whose text should contain a JSON object
        """
        pass

    def get_model_for_task(self, task_type: TaskType) -> str:
        """
        Get the best model for a given task type.
        Override in subclasses for provider-specific model selection.
        """
        return "default"

# Vision Providers Module
# OpenAI-compatible primary with Gemini fallback

from .base import GenerationConfig, LLMResponse, TaskType, VisionProvider
from .openai_provider import OpenAIVisionProvider
from .gemini_provider import GeminiVisionProvider
from .router import ProviderRouter

__all__ = [
    "GenerationConfig",
    "LLMResponse",
    "TaskType",
    "VisionProvider",
    "OpenAIVisionProvider",
    "GeminiVisionProvider",
    "ProviderRouter",
]

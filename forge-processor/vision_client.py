"""
VisionAnalyzer - AI-powered analysis of brand assets and source images.

Two calls:
1. Brand assets -> BrandAnalysis (palette, typography, composition rules)
2. Source image -> ImageAnalysis (subject, clean zones, contrast)

The provider (usually a ProviderRouter) handles failover; this module owns
prompts, JSON extraction and retries.
"""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from composer.schemas import BrandAnalysis, BrandProfile, CopyInput, ImageAnalysis
from providers.base import GenerationConfig, VisionProvider

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

MAX_RETRIES = 3
RETRY_DELAY = 1.0

_FENCE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")


class VisionAnalysisError(Exception):
    """Analysis failed after all retries."""


class ProviderNotConfiguredError(Exception):
    """No vision provider has credentials."""


def extract_json(raw: str) -> Dict[str, Any]:
    """
    Pull a JSON object out of a model response.

    Accepts bare JSON, JSON inside markdown fences, or JSON surrounded by
    other text (first "{" to last "}").

    Raises:
        ValueError: If no JSON object can be parsed
    """
    match = _FENCE.search(raw)
    text = match.group(1).strip() if match else raw.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                pass
        raise ValueError("Failed to parse JSON from model response")


BRAND_DNA_JSON_SCHEMA = """{
  "palette": {
    "background": "#hex",
    "text_primary": "#hex",
    "text_secondary": "#hex",
    "accent": "#hex or null",
    "pill_background": "rgba(...) or #hex",
    "pill_text": "#hex",
    "overlay_color": "#hex or null",
    "overlay_opacity": 0.0-0.6
  },
  "typography": {
    "heading_weight": "heavy|bold|medium|light",
    "heading_case": "uppercase|mixed|lowercase",
    "mix_weights_in_heading": true|false,
    "secondary_weight": "bold|medium|regular|light",
    "secondary_style": "normal|italic",
    "uses_uppercase_headlines": true|false,
    "uses_italic": true|false,
    "headline_to_sub_ratio": 1.5-4.0,
    "preferred_font_style": "editorial-sans|editorial-serif|geometric-sans|display|neutral"
  },
  "composition": {
    "text_zone": "on_subject|clean_zone|edge",
    "preferred_text_positions": ["top-left","top-center","top-right","center-left","center","center-right","bottom-left","bottom-center","bottom-right"],
    "alignment": "left|center|right",
    "density": "dense|balanced|editorial-sparse",
    "logo_positions": ["top-left","top-center","top-right","center-left","center","center-right","bottom-left","bottom-center","bottom-right"],
    "logo_with_tagline": true|false,
    "breathing_room": "tight|normal|generous"
  },
  "signature_elements": ["recurring visual patterns"],
  "image_treatment": {
    "preferred_treatment": "none|overlay_subtle|overlay_medium|grain|duotone",
    "overlay_intensity": 0.0-0.6,
    "uses_grain": true|false,
    "uses_blur": true|false,
    "color_grading_preset": "warm_lifestyle|cold_editorial|high_contrast_urban|faded_vintage|clean_neutral" or null
  },
  "copy_tone": {
    "formality": "formal|casual",
    "urgency_level": "low|medium|high",
    "emotional_weight": "cold|neutral|warm",
    "grammatical_person": "2nd_person|imperative|descriptive",
    "avg_headline_words": number,
    "uses_punctuation_for_style": true|false
  },
  "confidence_score": 0.0-1.0
}"""

BRAND_SYSTEM_PROMPT = f"""You are an expert visual brand analyst. You analyze brand reference assets to extract a complete Brand DNA profile: the visual rules and preferences that make something look like this brand.

Analyze every asset independently, then synthesize a unified profile.

For each asset analyze:
1. Color palette with intent: functional colors (background, primary text, accent, pill/badge, overlay), not averages.
2. Typographic system: heading weight, case, mixed weights, italics, headline-to-sub ratio.
3. Compositional logic: text zone, alignment, density, logo position, breathing room.
4. Signature elements: recurring visual patterns unique to the brand.
5. Image treatment: overlays, grain, duotone, color grading.
6. Copy tone, inferred from text visible in the assets.

confidence_score reflects consistency across assets: very coherent = 0.85+, variable = below 0.7.

Respond ONLY with valid JSON matching this schema, no explanatory text:
{BRAND_DNA_JSON_SCHEMA}"""

IMAGE_ANALYSIS_SCHEMA = """{
  "subject_position": { "x": 0.0-1.0, "y": 0.0-1.0 },
  "subject_bbox": { "x1": 0.0-1.0, "y1": 0.0-1.0, "x2": 0.0-1.0, "y2": 0.0-1.0 },
  "clean_zones": ["top-left","top-center","top-right","center-left","center","center-right","bottom-left","bottom-center","bottom-right"],
  "dominant_colors": ["#hex", "#hex", "#hex"],
  "image_type": "lifestyle_portrait|product|flat_lay|landscape|abstract",
  "background_complexity": "low|medium|high",
  "text_contrast_zones": {
    "top": "low|medium|high",
    "center": "low|medium|high",
    "bottom": "low|medium|high"
  },
  "recommended_treatment": "none|overlay_subtle|overlay_medium|grain",
  "subject_facing": "left|right|center"
}"""

IMAGE_SYSTEM_PROMPT = """You are an expert visual composition engine. You analyze images to find the best placement for brand elements (text, logo, badges) in advertising and social media assets.

Positions are relative coordinates (0-1) where (0,0) is top-left and (1,1) is bottom-right.

Rules:
- subject_position and subject_bbox in relative coordinates 0-1
- clean_zones: areas without complex visual elements where text stays legible
- text_contrast_zones: contrast available for white text in each zone
- recommended_treatment: only if the image needs it for legibility; respect the Brand DNA
- Do NOT include explanatory text, ONLY the JSON"""


def _copy_lines(copy: CopyInput) -> str:
    labels = [
        ("Heading", copy.heading),
        ("Subheading", copy.subheading),
        ("CTA", copy.cta),
        ("Tagline", copy.tagline),
        ("Disclaimer", copy.disclaimer),
    ]
    lines = [f'- {label}: "{value}"' for label, value in labels if value]
    return "\n".join(lines) or "(no copy provided)"


class VisionAnalyzer:
    """
    Runs brand and image analysis against a vision provider.

    Transient failures (provider errors, unparseable or invalid JSON) are
    retried up to `max_retries` times with a linear backoff of
    `retry_delay * attempt` seconds.
    """

    def __init__(
        self,
        provider: VisionProvider,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def _complete(
        self,
        model_cls: Type[T],
        system: str,
        prompt: str,
        images: List[bytes],
        max_tokens: int,
        prepare: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
    ) -> T:
        if not self.provider.is_available():
            raise ProviderNotConfiguredError("No vision provider is configured")

        config = GenerationConfig(max_tokens=max_tokens)
        last_error = "unknown error"

        for attempt in range(1, self.max_retries + 1):
            response = await self.provider.complete_json(system, prompt, images, config=config)

            if response.error:
                last_error = response.error
            else:
                try:
                    data = extract_json(response.text)
                    if prepare:
                        data = prepare(data)
                    result = model_cls.model_validate(data)
                    logger.info(f"Vision analysis succeeded via {response.provider}/{response.model_used}")
                    return result
                except (ValueError, ValidationError) as e:
                    last_error = str(e)

            logger.warning(f"Vision attempt {attempt}/{self.max_retries} failed: {last_error}")
            if attempt < self.max_retries:
                await self._sleep(self.retry_delay * attempt)

        raise VisionAnalysisError(f"Vision analysis failed after {self.max_retries} attempts: {last_error}")

    async def analyze_brand_assets(self, images: List[bytes], brand_name: str) -> BrandAnalysis:
        """
        Extract a brand profile from reference assets.

        Args:
            images: Reference asset bytes
            brand_name: Brand name, passed to the model as context

        Returns:
            BrandAnalysis (no id or timestamps)
        """
        prompt = (
            f'Brand name: "{brand_name}"\n'
            f"Number of reference assets: {len(images)}\n\n"
            f"Analyze these {len(images)} brand reference assets and extract the complete Brand DNA profile as JSON."
        )
        logger.info(f"Analyzing {len(images)} brand assets for '{brand_name}'")
        return await self._complete(BrandAnalysis, BRAND_SYSTEM_PROMPT, prompt, images, 4096, _clamp_confidence)

    async def analyze_image(
        self,
        image: bytes,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
    ) -> ImageAnalysis:
        """Composition analysis of one source image for the given brand, intention and copy."""
        intention = getattr(intention, "value", intention)
        brand_json = brand.model_dump_json(indent=2, exclude={"logo_url"})
        prompt = f"""Analyze this image for brand asset composition.

BRAND DNA:
{brand_json}

COMMUNICATION INTENTION: {intention}

COPY TO COMPOSE:
{_copy_lines(copy)}

Respond ONLY with valid JSON matching this schema:
{IMAGE_ANALYSIS_SCHEMA}"""
        return await self._complete(ImageAnalysis, IMAGE_SYSTEM_PROMPT, prompt, [image], 2048)


def _clamp_confidence(data: Dict[str, Any]) -> Dict[str, Any]:
    score = data.get("confidence_score")
    if isinstance(score, (int, float)):
        data["confidence_score"] = min(max(float(score), 0.0), 1.0)
    return data

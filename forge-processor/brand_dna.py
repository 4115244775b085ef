"""
Brand DNA service - create, refine and preview brand profiles.

Uses VisionAnalyzer for the actual asset analysis; this module assigns
identity and timestamps and merges re-analysis into an existing profile.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from composer.pixelmath import round_half_up
from composer.schemas import (
    BrandCopyTone,
    BrandImageTreatment,
    BrandPalette,
    BrandProfile,
    BrandTypography,
)
from vision_client import VisionAnalyzer

logger = logging.getLogger(__name__)

RECOMMENDED_MIN_ASSETS = 3

PREVIEW_HEADINGS = {
    "2nd_person": "Your Best Look Yet",
    "imperative": "Shop Best Sellers",
    "descriptive": "The New Collection",
}
PREVIEW_SUBHEADINGS = {
    "2nd_person": "Discover what suits you",
    "imperative": "Explore now",
    "descriptive": "Arriving this season",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _weighted(old: float, new: float, old_weight: int, new_weight: int) -> float:
    return (old * old_weight + new * new_weight) / (old_weight + new_weight)


def _round_to(value: float, digits: int) -> float:
    scale = 10 ** digits
    return round_half_up(value * scale) / scale


async def extract_brand_dna(
    analyzer: VisionAnalyzer,
    images: List[bytes],
    brand_name: str,
    tagline: Optional[str] = None,
    logo: Optional[str] = None,
) -> BrandProfile:
    """
    Build a new brand profile from reference assets.

    Args:
        analyzer: Vision analyzer
        images: Reference assets (3-6 recommended)
        brand_name: Brand name
        tagline: Optional tagline
        logo: Optional logo as a data URL

    Returns:
        BrandProfile with a fresh id and timestamps

    Raises:
        ValueError: If no images were given
    """
    if not images:
        raise ValueError("At least 1 asset is required. 3-6 recommended for accurate extraction.")
    if len(images) < RECOMMENDED_MIN_ASSETS:
        logger.warning(f"Only {len(images)} reference assets for '{brand_name}'; 3-6 recommended")

    analysis = await analyzer.analyze_brand_assets(images, brand_name)
    now = utc_now()

    profile = BrandProfile(
        **analysis.model_dump(),
        brand_id=str(uuid.uuid4()),
        brand_name=brand_name,
        tagline=tagline,
        logo_url=logo,
        created_at=now,
        updated_at=now,
        reference_assets_count=len(images),
    )
    logger.info(f"Extracted brand DNA for '{brand_name}' (confidence {profile.confidence_score})")
    return profile


async def recalculate_brand_dna(
    analyzer: VisionAnalyzer,
    existing: BrandProfile,
    new_images: List[bytes],
) -> BrandProfile:
    """
    Refine a profile with additional assets.

    The new assets are analyzed alone, then merged: numeric fields are
    averaged by asset count, categorical fields follow the new analysis when
    it covers at least as many assets, flags are OR-ed, and signature
    elements are unioned.
    """
    if not new_images:
        raise ValueError("At least 1 new asset is required for recalculation.")

    new = await analyzer.analyze_brand_assets(new_images, existing.brand_name)

    old_w = existing.reference_assets_count
    new_w = len(new_images)
    prefer_new = new_w >= old_w

    def pick(old_value, new_value):
        return new_value if prefer_new else old_value

    old_p, new_p = existing.palette, new.palette
    palette = BrandPalette(
        background=pick(old_p.background, new_p.background),
        text_primary=pick(old_p.text_primary, new_p.text_primary),
        text_secondary=pick(old_p.text_secondary, new_p.text_secondary),
        accent=new_p.accent if new_p.accent is not None else old_p.accent,
        pill_background=pick(old_p.pill_background, new_p.pill_background),
        pill_text=pick(old_p.pill_text, new_p.pill_text),
        overlay_color=new_p.overlay_color if new_p.overlay_color is not None else old_p.overlay_color,
        overlay_opacity=_round_to(_weighted(old_p.overlay_opacity, new_p.overlay_opacity, old_w, new_w), 2),
    )

    old_t, new_t = existing.typography, new.typography
    typography = BrandTypography(
        heading_weight=pick(old_t.heading_weight, new_t.heading_weight),
        heading_case=pick(old_t.heading_case, new_t.heading_case),
        mix_weights_in_heading=new_t.mix_weights_in_heading or old_t.mix_weights_in_heading,
        secondary_weight=pick(old_t.secondary_weight, new_t.secondary_weight),
        secondary_style=pick(old_t.secondary_style, new_t.secondary_style),
        uses_uppercase_headlines=new_t.uses_uppercase_headlines or old_t.uses_uppercase_headlines,
        uses_italic=new_t.uses_italic or old_t.uses_italic,
        headline_to_sub_ratio=_round_to(
            _weighted(old_t.headline_to_sub_ratio, new_t.headline_to_sub_ratio, old_w, new_w), 1
        ),
        preferred_font_style=pick(old_t.preferred_font_style, new_t.preferred_font_style),
    )

    old_i, new_i = existing.image_treatment, new.image_treatment
    image_treatment = BrandImageTreatment(
        preferred_treatment=pick(old_i.preferred_treatment, new_i.preferred_treatment),
        overlay_intensity=_round_to(_weighted(old_i.overlay_intensity, new_i.overlay_intensity, old_w, new_w), 2),
        uses_grain=new_i.uses_grain or old_i.uses_grain,
        uses_blur=new_i.uses_blur or old_i.uses_blur,
        color_grading_preset=(
            new_i.color_grading_preset if new_i.color_grading_preset is not None else old_i.color_grading_preset
        ),
    )

    old_c, new_c = existing.copy_tone, new.copy_tone
    copy_tone = BrandCopyTone(
        formality=pick(old_c.formality, new_c.formality),
        urgency_level=pick(old_c.urgency_level, new_c.urgency_level),
        emotional_weight=pick(old_c.emotional_weight, new_c.emotional_weight),
        grammatical_person=pick(old_c.grammatical_person, new_c.grammatical_person),
        avg_headline_words=round_half_up(_weighted(old_c.avg_headline_words, new_c.avg_headline_words, old_w, new_w)),
        uses_punctuation_for_style=new_c.uses_punctuation_for_style or old_c.uses_punctuation_for_style,
    )

    # Ordered union
    signature_elements = list(dict.fromkeys(existing.signature_elements + new.signature_elements))

    merged = existing.model_copy(update={
        "palette": palette,
        "typography": typography,
        "composition": pick(existing.composition, new.composition).model_copy(deep=True),
        "signature_elements": signature_elements,
        "image_treatment": image_treatment,
        "copy_tone": copy_tone,
        "reference_assets_count": old_w + new_w,
        "confidence_score": _round_to(_weighted(existing.confidence_score, new.confidence_score, old_w, new_w), 2),
        "updated_at": utc_now(),
    })
    logger.info(f"Recalculated brand DNA for '{existing.brand_name}': {old_w} + {new_w} assets")
    return merged


def generate_preview_piece(brand: BrandProfile) -> dict:
    """Example copy and a style summary for showing a profile at a glance."""
    person = brand.copy_tone.grammatical_person
    heading = PREVIEW_HEADINGS.get(person, "Best Sellers")
    if brand.typography.uses_uppercase_headlines:
        heading = heading.upper()

    return {
        "heading": heading,
        "subheading": PREVIEW_SUBHEADINGS.get(person, "Shop the collection"),
        "palette": {
            "background": brand.palette.background,
            "text_primary": brand.palette.text_primary,
            "text_secondary": brand.palette.text_secondary,
            "accent": brand.palette.accent,
        },
        "typography": {
            "heading_weight": brand.typography.heading_weight,
            "heading_case": brand.typography.heading_case,
            "secondary_style": brand.typography.secondary_style,
            "font_style": brand.typography.preferred_font_style,
        },
        "treatment": brand.image_treatment.preferred_treatment,
        "signature_elements": list(brand.signature_elements),
    }

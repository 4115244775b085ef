"""
LayoutEngine - Rule-based composition for brand assets.

Maps (format, image analysis, brand profile, intention, copy, variation)
to a CompositionInstruction. Pure and deterministic: the same inputs always
produce the same instruction, which is what makes the three variations
reproducible.

Each intention has its own strategy that builds the element list; the
engine picks the strategy from INTENTION_STRATEGIES.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .formats import FormatSpec
from .intentions import DEFAULT_HEADING_SIZE_RANGE, Intention, get_intention
from .pixelmath import clamp, round_half_up
from .schemas import (
    BrandProfile,
    Canvas,
    CompositionElement,
    CompositionInstruction,
    CopyInput,
    CropRect,
    ImageAnalysis,
    ImageDirective,
    Point,
)
from .treatments import advance_treatment

logger = logging.getLogger(__name__)

# Font sizes in the rule tables are expressed at this canvas width
REFERENCE_WIDTH = 1080

VARIATIONS = (1, 2, 3)

FONT_MAP: Dict[str, str] = {
    "editorial-sans": "Inter",
    "editorial-serif": "Playfair Display",
    "geometric-sans": "DM Sans",
    "display": "Space Grotesk",
    "neutral": "Inter",
}
DEFAULT_FONT_FAMILY = "Inter"

HEADING_WEIGHT_MAP: Dict[str, int] = {"heavy": 900, "bold": 700, "medium": 500, "light": 300}
SECONDARY_WEIGHT_MAP: Dict[str, int] = {"bold": 700, "medium": 500, "regular": 400, "light": 300}

# 9-cell anchor grid
POSITION_MAP: Dict[str, Tuple[float, float]] = {
    "top-left": (0.08, 0.08),
    "top-center": (0.5, 0.08),
    "top-right": (0.92, 0.08),
    "center-left": (0.08, 0.45),
    "center": (0.5, 0.45),
    "center-right": (0.92, 0.45),
    "bottom-left": (0.08, 0.78),
    "bottom-center": (0.5, 0.78),
    "bottom-right": (0.92, 0.78),
}

LANDSCAPE_ANCHOR = (0.05, 0.35)


def scale_font_size(base_px: float, canvas_width: int) -> int:
    """Scale a size given at 1080px wide to the target canvas width."""
    return round_half_up(base_px * (canvas_width / REFERENCE_WIDTH))


def pick_clean_position(
    clean_zones: List[str],
    subject: Point,
    preferred_positions: List[str],
) -> Tuple[float, float]:
    """
    Choose a text anchor that avoids the subject.

    Brand-preferred positions that are also clean win; otherwise the first
    known clean zone; with no clean zones the anchor goes to the side
    diagonally opposite the subject.
    """
    for pref in preferred_positions:
        if pref in clean_zones and pref in POSITION_MAP:
            return POSITION_MAP[pref]

    for zone in clean_zones:
        if zone in POSITION_MAP:
            return POSITION_MAP[zone]

    return (
        0.08 if subject.x > 0.5 else 0.92,
        0.15 if subject.y > 0.5 else 0.78,
    )


def mirror_position(position: Tuple[float, float]) -> Tuple[float, float]:
    """Flip both axes through the canvas centre."""
    x, y = position
    return (1 - x, 1 - y)


def alignment_for(x: float) -> str:
    if x > 0.6:
        return "right"
    if x > 0.35:
        return "center"
    return "left"


def apply_safe_zones(
    elements: List[CompositionElement],
    format: FormatSpec,
) -> List[CompositionElement]:
    """Keep every element's y outside the format's top/bottom safe zones."""
    if not format.safe_zones:
        return elements

    top_safe = format.safe_zones.top / format.height
    bottom_safe = 1 - format.safe_zones.bottom / format.height

    return [
        el.model_copy(update={
            "position": Point(
                x=el.position.x,
                y=clamp(el.position.y, top_safe + 0.02, bottom_safe - 0.05),
            )
        })
        for el in elements
    ]


@dataclass
class LayoutContext:
    """Everything a strategy needs to place elements for one piece."""
    format: FormatSpec
    analysis: ImageAnalysis
    brand: BrandProfile
    copy: CopyInput
    variation: int
    font_family: str
    heading_weight: int
    secondary_weight: int
    base_heading_size: int
    heading_size: int
    subheading_size: int
    cta_size: int
    anchor: Tuple[float, float]
    alignment: str
    line_spacing: float

    @property
    def is_landscape(self) -> bool:
        return self.format.is_landscape

    @property
    def is_portrait(self) -> bool:
        return self.format.is_portrait

    @property
    def palette(self):
        return self.brand.palette

    @property
    def typography(self):
        return self.brand.typography

    def scale(self, base_px: float) -> int:
        return scale_font_size(base_px, self.format.width)

    def headline(self, text: str) -> str:
        """Heading text, upper-cased when the brand writes headlines in caps."""
        return text.upper() if self.typography.uses_uppercase_headlines else text

    def text(self, role: str, content: str, x: float, y: float, **style) -> CompositionElement:
        style.setdefault("font_family", self.font_family)
        style.setdefault("color", self.palette.text_primary)
        return CompositionElement(
            type="text", role=role, content=content, position=Point(x=x, y=y), **style
        )

    def logo(self, x: float, y: float, scale: float) -> CompositionElement:
        return CompositionElement(
            type="logo", position=Point(x=x, y=y), scale=scale, color=self.palette.text_primary
        )


# ============== Intention strategies ==============

class IntentionStrategy(ABC):
    """Builds the element list for one intention."""

    # Editorial text sits on the subject instead of a clean zone
    anchors_on_subject = False

    @abstractmethod
    def build(self, ctx: LayoutContext) -> List[CompositionElement]:
        """Ordered elements for the piece, before safe-zone clamping."""
        pass

    def override_treatment(self, ctx: LayoutContext, treatment: str) -> str:
        return treatment


class GenericStrategy(IntentionStrategy):
    """Fallback for intentions without rules: heading only."""

    def build(self, ctx):
        x, y = ctx.anchor
        if not ctx.copy.heading:
            return []
        return [
            ctx.text(
                "heading", ctx.copy.heading, x, y,
                font_weight=ctx.heading_weight,
                font_size_px=ctx.heading_size,
                alignment=ctx.alignment,
                max_width_ratio=0.75,
            )
        ]


class ConvertStrategy(IntentionStrategy):
    """Dense: heading, subheading pill, prominent CTA, small logo."""

    def build(self, ctx):
        x, cursor = ctx.anchor
        copy, palette = ctx.copy, ctx.palette
        elements = []

        if copy.heading:
            elements.append(ctx.text(
                "heading", ctx.headline(copy.heading), x, cursor,
                font_weight=ctx.heading_weight,
                font_size_px=ctx.heading_size,
                alignment=ctx.alignment,
                max_width_ratio=0.45 if ctx.is_landscape else 0.75,
                text_transform="uppercase" if ctx.typography.uses_uppercase_headlines else "none",
            ))
            cursor += ctx.line_spacing

        if copy.subheading:
            elements.append(CompositionElement(
                type="pill",
                role="subheading",
                content=copy.subheading,
                position=Point(x=x, y=cursor),
                font_family=ctx.font_family,
                font_weight=ctx.secondary_weight,
                font_size_px=round_half_up(ctx.subheading_size * 0.85),
                color=palette.pill_text,
                background_color=palette.pill_background,
                background_opacity=0.85,
                border_radius=20,
                padding=12,
                alignment=ctx.alignment,
            ))
            cursor += ctx.line_spacing * 0.8

        if copy.cta:
            elements.append(ctx.text(
                "cta", copy.cta, x, cursor,
                font_weight=700,
                font_size_px=ctx.cta_size,
                alignment=ctx.alignment,
                max_width_ratio=0.5,
                text_transform="uppercase",
            ))
            cursor += ctx.line_spacing

        elements.append(ctx.logo(0.08, 0.06, 0.10))
        return elements

    def override_treatment(self, ctx, treatment):
        if ctx.analysis.background_complexity == "high":
            return "overlay_subtle"
        return treatment


class AwarenessStrategy(IntentionStrategy):
    """Large logo first, light heading, never a CTA."""

    def build(self, ctx):
        x, y = ctx.anchor
        elements = [ctx.logo(x, 0.06, 0.16)]
        if ctx.copy.heading:
            elements.append(ctx.text(
                "heading", ctx.copy.heading, x, y,
                font_weight=int(clamp(ctx.heading_weight, 400, 500)),
                font_size_px=ctx.heading_size,
                alignment=ctx.alignment,
                max_width_ratio=0.45 if ctx.is_landscape else 0.7,
                text_transform="uppercase" if ctx.typography.heading_case == "uppercase" else "none",
            ))
        return elements


class EditorialStrategy(IntentionStrategy):
    """Text on the subject, left aligned, no logo and no pills."""

    anchors_on_subject = True

    def build(self, ctx):
        x, y = ctx.anchor
        copy, typography = ctx.copy, ctx.typography
        elements = []

        if copy.heading:
            elements.append(ctx.text(
                "heading", ctx.headline(copy.heading), x, y,
                font_weight=700 if typography.mix_weights_in_heading else ctx.heading_weight,
                font_size_px=ctx.scale(clamp(ctx.base_heading_size, 40, 56)),
                alignment="left",
                max_width_ratio=0.4 if ctx.is_landscape else 0.65,
                text_transform="uppercase" if typography.heading_case == "uppercase" else "none",
            ))

        if copy.subheading:
            elements.append(ctx.text(
                "subheading", copy.subheading, x, y + ctx.line_spacing,
                font_weight=400,
                font_size_px=ctx.scale(round_half_up(ctx.base_heading_size * 0.6)),
                color=ctx.palette.text_secondary,
                alignment="left",
                max_width_ratio=0.35 if ctx.is_landscape else 0.6,
                text_transform="none",
            ))
        return elements


class CampaignStrategy(IntentionStrategy):
    """Hero heading on top, logo and tagline mid-canvas, subheading below."""

    def build(self, ctx):
        copy, palette = ctx.copy, ctx.palette
        elements = []

        hero_y = 0.15 if ctx.is_portrait else 0.08
        if copy.heading:
            elements.append(ctx.text(
                "heading", ctx.headline(copy.heading), 0.08, hero_y,
                font_weight=700,
                font_size_px=ctx.scale(clamp(ctx.base_heading_size, 64, 96)),
                alignment="left",
                max_width_ratio=0.5 if ctx.is_landscape else 0.85,
                text_transform="uppercase" if ctx.typography.uses_uppercase_headlines else "none",
            ))

        logo_y = 0.55 if ctx.is_portrait else 0.5
        elements.append(ctx.logo(0.08, logo_y, 0.12))

        tagline = copy.tagline or getattr(ctx.brand, "tagline", None)
        if tagline:
            elements.append(ctx.text(
                "tagline", tagline, 0.25, logo_y + 0.01,
                font_weight=ctx.secondary_weight,
                font_size_px=ctx.scale(16),
                color=palette.text_secondary,
                alignment="left",
                max_width_ratio=0.5,
            ))

        if copy.subheading:
            elements.append(ctx.text(
                "subheading", copy.subheading, 0.08, logo_y + ctx.line_spacing,
                font_weight=ctx.secondary_weight,
                font_size_px=ctx.subheading_size,
                color=palette.text_secondary,
                alignment="left",
                max_width_ratio=0.65,
            ))
        return elements

    def override_treatment(self, ctx, treatment):
        return "overlay_medium"


class BrandingStrategy(IntentionStrategy):
    """Logo as signature opposite the subject; at most one line of text."""

    def build(self, ctx):
        subject_x = ctx.analysis.subject_position.x
        elements = [ctx.logo(0.75 if subject_x < 0.5 else 0.15, 0.85, 0.10)]

        if ctx.copy.heading and ctx.brand.composition.density != "editorial-sparse":
            elements.append(ctx.text(
                "heading", ctx.copy.heading, 0.5, 0.92,
                font_weight=int(clamp(ctx.heading_weight, 300, 500)),
                font_size_px=ctx.scale(24),
                alignment="center",
                max_width_ratio=0.6,
            ))
        return elements


class UrgencyStrategy(IntentionStrategy):
    """Heavy uppercase heading, italic subheading, no logo."""

    def build(self, ctx):
        x, cursor = ctx.anchor
        copy = ctx.copy
        elements = []

        if copy.heading:
            elements.append(ctx.text(
                "heading", copy.heading.upper(), x, cursor,
                font_weight=int(clamp(ctx.heading_weight, 700, 900)),
                font_size_px=ctx.scale(clamp(ctx.base_heading_size, 56, 88)),
                alignment=ctx.alignment,
                max_width_ratio=0.45 if ctx.is_landscape else 0.8,
                text_transform="uppercase",
            ))
            cursor += ctx.line_spacing

        if copy.subheading:
            elements.append(ctx.text(
                "subheading", copy.subheading, x, cursor,
                font_weight=ctx.secondary_weight,
                font_size_px=round_half_up(ctx.heading_size * 0.5),
                font_style="italic",
                color=ctx.palette.text_secondary,
                alignment=ctx.alignment,
                max_width_ratio=0.4 if ctx.is_landscape else 0.7,
                text_transform="none",
            ))
        return elements


class SocialProofStrategy(IntentionStrategy):
    """Rating badge on top, quoted review in the centre, CTA at the bottom."""

    def build(self, ctx):
        copy, palette = ctx.copy, ctx.palette
        portrait = ctx.is_portrait

        elements = [CompositionElement(
            type="rating_badge",
            content=copy.heading or "4.9",
            position=Point(x=0.5, y=0.18 if portrait else 0.12),
            font_family=ctx.font_family,
            font_weight=700,
            font_size_px=ctx.scale(28),
            color=palette.pill_text,
            background_color=palette.pill_background,
            background_opacity=0.9,
            border_radius=12,
            padding=16,
            alignment="center",
        )]

        if copy.subheading:
            elements.append(ctx.text(
                "subheading", f"“{copy.subheading}”", 0.5, 0.45 if portrait else 0.4,
                font_weight=ctx.secondary_weight,
                font_size_px=ctx.subheading_size,
                font_style="italic",
                alignment="center",
                max_width_ratio=0.75,
                text_transform="none",
            ))

        if copy.cta:
            elements.append(ctx.text(
                "cta", copy.cta, 0.5, 0.78 if portrait else 0.75,
                font_weight=700,
                font_size_px=ctx.cta_size,
                alignment="center",
                max_width_ratio=0.5,
                text_transform="uppercase",
            ))

        elements.append(ctx.logo(0.08, 0.06, 0.08))
        return elements

    def override_treatment(self, ctx, treatment):
        return "overlay_subtle"


INTENTION_STRATEGIES: Dict[str, IntentionStrategy] = {
    Intention.CONVERT.value: ConvertStrategy(),
    Intention.AWARENESS.value: AwarenessStrategy(),
    Intention.EDITORIAL.value: EditorialStrategy(),
    Intention.CAMPAIGN.value: CampaignStrategy(),
    Intention.BRANDING.value: BrandingStrategy(),
    Intention.URGENCY.value: UrgencyStrategy(),
    Intention.SOCIAL_PROOF.value: SocialProofStrategy(),
}

GENERIC_STRATEGY = GenericStrategy()


def get_strategy(intention: str) -> IntentionStrategy:
    return INTENTION_STRATEGIES.get(intention, GENERIC_STRATEGY)


class LayoutEngine:
    """
    Resolves composition instructions.

    Stateless: one engine can be shared by any number of callers.
    """

    def resolve(
        self,
        format: FormatSpec,
        analysis: ImageAnalysis,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
        variation: int,
    ) -> CompositionInstruction:
        """
        Build the instruction for one format and variation.

        Args:
            format: Target format
            analysis: Composition analysis of the source image
            brand: Active brand profile
            intention: Intention id (unknown ids use the generic layout)
            copy: Text to place; empty fields are simply omitted
            variation: 1, 2 or 3

        Returns:
            CompositionInstruction for the format
        """
        if variation not in VARIATIONS:
            raise ValueError(f"Variation must be 1, 2 or 3, got {variation}")

        intention = getattr(intention, "value", intention)
        config = get_intention(intention)
        strategy = get_strategy(intention)
        typography = brand.typography

        # Typography
        font_family = FONT_MAP.get(typography.preferred_font_style, DEFAULT_FONT_FAMILY)
        heading_weight = HEADING_WEIGHT_MAP.get(typography.heading_weight, 700)
        secondary_weight = SECONDARY_WEIGHT_MAP.get(typography.secondary_weight, 400)

        min_size, max_size = config.rules.heading_size_range if config else DEFAULT_HEADING_SIZE_RANGE
        base_heading_size = round_half_up((min_size + max_size) / 2)
        heading_size = scale_font_size(base_heading_size, format.width)
        subheading_size = round_half_up(heading_size / (typography.headline_to_sub_ratio or 2))
        cta_size = round_half_up(heading_size * 0.6)

        # Text anchor
        if strategy.anchors_on_subject:
            subject = analysis.subject_position
            anchor = (subject.x, clamp(subject.y - 0.05, 0.2, 0.7))
        elif format.is_landscape:
            anchor = LANDSCAPE_ANCHOR
        else:
            anchor = pick_clean_position(
                analysis.clean_zones,
                analysis.subject_position,
                brand.composition.preferred_text_positions,
            )

        if variation == 2:
            anchor = mirror_position(anchor)

        ctx = LayoutContext(
            format=format,
            analysis=analysis,
            brand=brand,
            copy=copy,
            variation=variation,
            font_family=font_family,
            heading_weight=heading_weight,
            secondary_weight=secondary_weight,
            base_heading_size=base_heading_size,
            heading_size=heading_size,
            subheading_size=subheading_size,
            cta_size=cta_size,
            anchor=anchor,
            alignment=alignment_for(anchor[0]),
            line_spacing=0.15 if format.is_landscape else 0.06,
        )

        # Treatment: brand preference, cycled on variation 3, then intention overrides
        treatment = brand.image_treatment.preferred_treatment
        if variation == 3:
            treatment = advance_treatment(treatment)
        treatment = strategy.override_treatment(ctx, treatment)

        elements = apply_safe_zones(strategy.build(ctx), format)

        return CompositionInstruction(
            format=format.id,
            canvas=Canvas(width=format.width, height=format.height),
            image=ImageDirective(crop=self._crop_for(format, analysis), scale="cover", treatment=treatment),
            elements=elements,
            variation_seed=variation,
        )

    def resolve_all(
        self,
        formats: Iterable[FormatSpec],
        analysis: ImageAnalysis,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
    ) -> List[CompositionInstruction]:
        """All formats x 3 variations, formats in caller order, variations ascending."""
        return [
            self.resolve(format, analysis, brand, intention, copy, variation)
            for format in formats
            for variation in VARIATIONS
        ]

    def _crop_for(self, format: FormatSpec, analysis: ImageAnalysis) -> CropRect:
        """Full image, or the subject's vertical band on landscape formats."""
        if not format.is_landscape:
            return CropRect()

        bbox = analysis.subject_bbox
        y = clamp(bbox.y1, 0, 0.5)
        height = clamp(bbox.y2 - bbox.y1 + 0.1, 0.3, 0.7)
        return CropRect(x=0.0, y=y, width=1.0, height=min(height, 1 - y))

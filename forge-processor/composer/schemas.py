"""
Domain models shared by the composer, the vision client and the API.

Brand profile ("Brand DNA"), image analysis, copy, and the composition
instructions produced by the layout engine.
"""

from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


# ============== Brand DNA ==============

class BrandPalette(BaseModel):
    """Functional brand colors"""
    background: str = "#000000"
    text_primary: str = "#FFFFFF"
    text_secondary: str = "#E0E0E0"
    accent: Optional[str] = None
    pill_background: str = "rgba(255,255,255,0.18)"
    pill_text: str = "#FFFFFF"
    overlay_color: Optional[str] = None
    overlay_opacity: float = 0.0


class BrandTypography(BaseModel):
    heading_weight: str = "bold"            # heavy | bold | medium | light
    heading_case: str = "mixed"             # uppercase | mixed | lowercase
    mix_weights_in_heading: bool = False
    secondary_weight: str = "regular"       # bold | medium | regular | light
    secondary_style: str = "normal"         # normal | italic
    uses_uppercase_headlines: bool = False
    uses_italic: bool = False
    headline_to_sub_ratio: float = 2.0
    preferred_font_style: str = "neutral"   # editorial-sans | editorial-serif | geometric-sans | display | neutral


class BrandComposition(BaseModel):
    text_zone: str = "clean_zone"           # on_subject | clean_zone | edge
    preferred_text_positions: List[str] = Field(default_factory=list)
    alignment: str = "left"
    density: str = "balanced"               # dense | balanced | editorial-sparse
    logo_positions: List[str] = Field(default_factory=list)
    logo_with_tagline: bool = False
    breathing_room: str = "normal"          # tight | normal | generous


class BrandImageTreatment(BaseModel):
    preferred_treatment: str = "none"       # none | overlay_subtle | overlay_medium | grain | duotone
    overlay_intensity: float = 0.0
    uses_grain: bool = False
    uses_blur: bool = False
    color_grading_preset: Optional[str] = None


class BrandCopyTone(BaseModel):
    formality: str = "casual"               # formal | casual
    urgency_level: str = "medium"           # low | medium | high
    emotional_weight: str = "neutral"       # cold | neutral | warm
    grammatical_person: str = "imperative"  # 2nd_person | imperative | descriptive
    avg_headline_words: int = 5
    uses_punctuation_for_style: bool = False


class BrandAnalysis(BaseModel):
    """Visual identity as returned by the brand-asset analysis"""
    palette: BrandPalette = Field(default_factory=BrandPalette)
    typography: BrandTypography = Field(default_factory=BrandTypography)
    composition: BrandComposition = Field(default_factory=BrandComposition)
    signature_elements: List[str] = Field(default_factory=list)
    image_treatment: BrandImageTreatment = Field(default_factory=BrandImageTreatment)
    copy_tone: BrandCopyTone = Field(default_factory=BrandCopyTone)
    confidence_score: float = Field(0.0, ge=0.0, le=1.0)


class BrandProfile(BrandAnalysis):
    """A persisted brand: analysis plus identity and bookkeeping"""
    brand_id: str
    brand_name: str
    tagline: Optional[str] = None
    logo_url: Optional[str] = None          # data URL of the uploaded logo
    created_at: str
    updated_at: str
    reference_assets_count: int = 0


# ============== Image analysis ==============

class Point(BaseModel):
    x: float = 0.5
    y: float = 0.5


class BoundingBox(BaseModel):
    x1: float = 0.25
    y1: float = 0.25
    x2: float = 0.75
    y2: float = 0.75


class ImageAnalysis(BaseModel):
    """Composition analysis of one source image (relative coordinates)"""
    subject_position: Point = Field(default_factory=Point)
    subject_bbox: BoundingBox = Field(default_factory=BoundingBox)
    clean_zones: List[str] = Field(default_factory=list)
    dominant_colors: List[str] = Field(default_factory=list)
    image_type: str = "lifestyle_portrait"
    background_complexity: str = "medium"   # low | medium | high
    text_contrast_zones: Dict[str, str] = Field(default_factory=dict)
    recommended_treatment: str = "none"
    subject_facing: str = "center"


class CopyInput(BaseModel):
    heading: Optional[str] = None
    subheading: Optional[str] = None
    cta: Optional[str] = None
    tagline: Optional[str] = None
    disclaimer: Optional[str] = None


# ============== Composition ==============

ElementType = Literal["text", "logo", "pill", "rating_badge"]


class CompositionElement(BaseModel):
    """One renderable unit placed on the canvas"""
    type: ElementType
    role: Optional[str] = None              # heading | subheading | cta | tagline | disclaimer
    content: Optional[str] = None
    position: Point
    font_family: Optional[str] = None
    font_weight: Optional[int] = None
    font_size_px: Optional[int] = None
    font_style: Optional[str] = None        # normal | italic
    color: Optional[str] = None
    alignment: Optional[str] = None         # left | center | right
    max_width_ratio: Optional[float] = None
    text_transform: Optional[str] = None    # none | uppercase | lowercase
    scale: Optional[float] = None
    background_color: Optional[str] = None
    background_opacity: Optional[float] = None
    border_radius: Optional[int] = None
    padding: Optional[int] = None


class Canvas(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class CropRect(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 1.0
    height: float = 1.0


class ImageDirective(BaseModel):
    crop: CropRect = Field(default_factory=CropRect)
    scale: Literal["cover", "contain", "fill"] = "cover"
    treatment: str = "none"


class CompositionInstruction(BaseModel):
    """Resolved layout for one (format, variation) pair"""
    format: str
    canvas: Canvas
    image: ImageDirective
    elements: List[CompositionElement] = Field(default_factory=list)
    variation_seed: Literal[1, 2, 3]

    @model_validator(mode="after")
    def _crop_inside_unit_square(self):
        crop = self.image.crop
        eps = 1e-9
        if crop.width <= 0 or crop.height <= 0:
            raise ValueError("Crop rectangle must have positive width and height")
        if (
            crop.x < -eps or crop.y < -eps
            or crop.x + crop.width > 1 + eps
            or crop.y + crop.height > 1 + eps
        ):
            raise ValueError("Crop rectangle must stay within the source image")
        return self


class GeneratedPiece(BaseModel):
    """One produced artifact"""
    id: str
    format_id: str
    variation: Literal[1, 2, 3]
    generation_mode: str = "compositor"
    composition: Optional[CompositionInstruction] = None
    canvas_state: Optional[str] = None      # serialized scene after hand edits
    preview_data_url: Optional[str] = None
    edited: bool = False


class CampaignInfo(BaseModel):
    """Metadata written into an export archive"""
    campaign_name: str
    brand_name: str
    intention: str
    exported_at: date = Field(default_factory=date.today)

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from composer.schemas import (
    BrandComposition,
    BrandCopyTone,
    BrandImageTreatment,
    BrandPalette,
    BrandTypography,
    CompositionInstruction,
    CopyInput,
    GeneratedPiece,
    ImageAnalysis,
)


class CopyModel(BaseModel):
    """Base for requests carrying copy; accepts "copy" on the wire."""
    model_config = ConfigDict(populate_by_name=True)

    copy_input: CopyInput = Field(default_factory=CopyInput, alias="copy")


# ============== Composition Models ==============

class ComposeRequest(CopyModel):
    """Request to compose pieces for a source image"""
    image: str  # data URL or bare base64
    brand_id: Optional[str] = None  # defaults to the active brand
    intention: str
    format_ids: List[str]


class GenerateRequest(ComposeRequest):
    """Compose and render previews; optionally records a campaign"""
    campaign_name: Optional[str] = None
    image_file_name: Optional[str] = None


class ComposeResponse(BaseModel):
    analysis: ImageAnalysis
    instructions: List[CompositionInstruction]


class GenerateResponse(BaseModel):
    campaign_id: Optional[str] = None
    analysis: ImageAnalysis
    pieces: List[GeneratedPiece]
    cancelled: bool = False


class RenderRequest(BaseModel):
    """Render one instruction, or a saved (possibly edited) scene"""
    image: Optional[str] = None
    logo: Optional[str] = None
    brand_id: Optional[str] = None
    instruction: Optional[CompositionInstruction] = None
    canvas_state: Optional[str] = None
    file_format: Literal["jpg", "png"] = "png"
    quality: int = Field(92, ge=1, le=100)


# ============== Export Models ==============

class ExportRequest(BaseModel):
    image: str
    pieces: List[GeneratedPiece]
    campaign_name: str
    intention: str
    brand_id: Optional[str] = None
    campaign_id: Optional[str] = None  # history entry to mark as exported


class ExportSingleRequest(BaseModel):
    image: str
    piece: GeneratedPiece
    brand_id: Optional[str] = None


# ============== Treatment Models ==============

class TreatmentApplyRequest(BaseModel):
    """Apply one library treatment to an image"""
    image: str
    treatment_id: str
    intensity: Optional[float] = Field(None, ge=0.0, le=1.0)
    color: Optional[str] = None
    secondary_color: Optional[str] = None
    blend_mode: Optional[str] = None
    preset: Optional[str] = None
    grain_size: Optional[Literal["fine", "medium", "coarse"]] = None
    size: Optional[float] = Field(None, ge=0.0, le=1.0)
    file_format: Literal["jpg", "png"] = "png"

    def overrides(self) -> Dict[str, object]:
        fields = ("intensity", "color", "secondary_color", "blend_mode", "preset", "grain_size", "size")
        return {name: getattr(self, name) for name in fields if getattr(self, name) is not None}


# ============== Brand Models ==============

class BrandUpdateRequest(BaseModel):
    """Partial brand update; each section given replaces the stored one"""
    brand_name: Optional[str] = None
    tagline: Optional[str] = None
    logo_url: Optional[str] = None
    palette: Optional[BrandPalette] = None
    typography: Optional[BrandTypography] = None
    composition: Optional[BrandComposition] = None
    signature_elements: Optional[List[str]] = None
    image_treatment: Optional[BrandImageTreatment] = None
    copy_tone: Optional[BrandCopyTone] = None


class SessionUpdateRequest(CopyModel):
    brand_dna_id: Optional[str] = None
    image_file_name: Optional[str] = None
    intention: Optional[str] = None
    selected_formats: Optional[List[str]] = None

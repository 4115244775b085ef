"""
AssetGenerator - Main orchestrator for piece generation.

Combines:
- An image analyzer (vision model, called once per batch)
- LayoutEngine: per-format composition instructions
- PieceRenderer: previews

This is the main entry point for the compositor feature.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from .formats import resolve_format_ids
from .layout import LayoutEngine
from .renderer import (
    PREVIEW_QUALITY,
    ImageSource,
    PieceRenderer,
    to_data_url,
)
from .schemas import (
    BrandProfile,
    CompositionInstruction,
    CopyInput,
    GeneratedPiece,
    ImageAnalysis,
)
from .treatments import directive_treatment

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ImageAnalyzer(Protocol):
    async def analyze_image(
        self,
        image: bytes,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
    ) -> ImageAnalysis:
        ...


@dataclass
class CompositionResult:
    analysis: ImageAnalysis
    instructions: List[CompositionInstruction] = field(default_factory=list)


@dataclass
class GenerationResult:
    analysis: ImageAnalysis
    pieces: List[GeneratedPiece] = field(default_factory=list)
    cancelled: bool = False


def piece_id(format_id: str, variation: int, n: int) -> str:
    return f"{format_id}-v{variation}-{n}"


def mark_edited(piece: GeneratedPiece, canvas_state: str) -> GeneratedPiece:
    """Copy of the piece carrying hand-edited scene state. Edits are never undone."""
    return piece.model_copy(update={"canvas_state": canvas_state, "edited": True})


class AssetGenerator:
    """
    Main orchestrator for asset generation.

    Workflow:
    1. Validate the selected formats
    2. Analyze the source image (one vision call)
    3. Resolve every format x 3 variations (code-based layout)
    4. Render previews (code)
    """

    def __init__(
        self,
        analyzer: ImageAnalyzer,
        renderer: PieceRenderer,
        layout_engine: Optional[LayoutEngine] = None,
        preview_quality: int = PREVIEW_QUALITY,
        preview_max_dimension: Optional[int] = None,
    ):
        self.analyzer = analyzer
        self.renderer = renderer
        self.layout_engine = layout_engine or LayoutEngine()
        self.preview_quality = preview_quality
        self.preview_max_dimension = preview_max_dimension

    async def compose(
        self,
        image: bytes,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
        format_ids: List[str],
    ) -> CompositionResult:
        """
        Analyze the image and resolve instructions for every selected format.

        Args:
            image: Source image bytes
            brand: Active brand profile
            intention: Intention id
            copy: Text to place
            format_ids: Selected formats, in output order

        Returns:
            CompositionResult with the analysis and formats x 3 instructions

        Raises:
            ValueError: If the format selection is empty or entirely unknown
        """
        # Validation happens before the network call
        formats = resolve_format_ids(format_ids)

        logger.info(f"Analyzing source image for {len(formats)} formats, intention '{intention}'")
        analysis = await self.analyzer.analyze_image(image, brand, intention, copy)

        instructions = self.layout_engine.resolve_all(formats, analysis, brand, intention, copy)
        logger.info(f"Resolved {len(instructions)} compositions")
        return CompositionResult(analysis=analysis, instructions=instructions)

    async def generate(
        self,
        image: bytes,
        brand: BrandProfile,
        intention: str,
        copy: CopyInput,
        format_ids: List[str],
        logo: ImageSource = None,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """
        Compose and render every piece with a preview.

        Pieces come out grouped per format, variations 1, 2, 3. Setting
        `cancel` stops the batch between pieces; pieces already produced are
        returned. A piece whose render fails is kept without a preview.
        """
        composed = await self.compose(image, brand, intention, copy, format_ids)
        result = GenerationResult(analysis=composed.analysis)
        total = len(composed.instructions)

        for n, instruction in enumerate(composed.instructions, start=1):
            if cancel is not None and cancel.is_set():
                logger.info(f"Generation cancelled after {len(result.pieces)}/{total} pieces")
                result.cancelled = True
                break

            result.pieces.append(self.render_piece(instruction, n, image, logo, brand))
            if on_progress:
                on_progress(n, total)
            await asyncio.sleep(0)

        logger.info(f"Generated {len(result.pieces)} pieces")
        return result

    def render_piece(
        self,
        instruction: CompositionInstruction,
        n: int,
        source: ImageSource,
        logo: ImageSource = None,
        brand: Optional[BrandProfile] = None,
    ) -> GeneratedPiece:
        piece = GeneratedPiece(
            id=piece_id(instruction.format, instruction.variation_seed, n),
            format_id=instruction.format,
            variation=instruction.variation_seed,
            composition=instruction,
        )

        extra = directive_treatment(instruction.image.treatment, brand.palette if brand else None)
        try:
            rendered = self.renderer.render(instruction, source, logo, treatments=[extra] if extra else None)
        except Exception as e:
            logger.error(f"Failed to render {piece.id}: {e}")
            return piece

        try:
            preview = self.renderer.to_preview(rendered, self.preview_quality, self.preview_max_dimension)
            piece.preview_data_url = to_data_url(preview, "image/jpeg")
        except Exception as e:
            logger.error(f"Failed to encode preview for {piece.id}: {e}")
        finally:
            rendered.dispose()
        return piece
